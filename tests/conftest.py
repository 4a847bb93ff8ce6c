"""
Pytest configuration and shared fixtures.

Provides sample A1111 parameter blocks and in-memory PNG/JPEG images
carrying them in the places real tools put them.
"""

from io import BytesIO

import piexif
import piexif.helper
import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo


FULL_PARAMETERS = (
    "A cat. Negative prompt: dog. Steps: 20, Sampler: Euler, Schedule type: Karras, "
    "CFG scale: 7, Seed: 42, Model: foo.safetensors, Size: 512x768, Extra: bar"
)

WEBUI_PARAMETERS = (
    "masterpiece, best quality, lighthouse at dusk\n"
    "Negative prompt: lowres, bad anatomy\n"
    "Steps: 28, Sampler: DPM++ 2M, Schedule type: Karras, CFG scale: 6.5, Seed: 1234567, "
    "Size: 832x1216, Model hash: abc123, Model: animagine-xl, Version: v1.9.0"
)


def build_png(parameters=None, size=(64, 64), **text_chunks):
    """Encode a PNG, optionally with a `parameters` text chunk and extra chunks."""
    info = PngInfo()
    if parameters is not None:
        info.add_text("parameters", parameters)
    for keyword, text in text_chunks.items():
        info.add_text(keyword, text)
    buf = BytesIO()
    Image.new("RGB", size, (40, 80, 120)).save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


def build_jpeg(user_comment=None, image_description=None, size=(64, 64)):
    """Encode a JPEG with EXIF UserComment and/or ImageDescription."""
    exif = {"0th": {}, "Exif": {}}
    if image_description is not None:
        exif["0th"][piexif.ImageIFD.ImageDescription] = image_description.encode("ascii")
    if user_comment is not None:
        exif["Exif"][piexif.ExifIFD.UserComment] = piexif.helper.UserComment.dump(
            user_comment, encoding="unicode"
        )
    buf = BytesIO()
    image = Image.new("RGB", size, (200, 120, 40))
    if user_comment is None and image_description is None:
        image.save(buf, format="JPEG")
    else:
        image.save(buf, format="JPEG", exif=piexif.dump(exif))
    return buf.getvalue()


@pytest.fixture
def full_parameters():
    return FULL_PARAMETERS


@pytest.fixture
def webui_parameters():
    return WEBUI_PARAMETERS


@pytest.fixture
def png_factory():
    return build_png


@pytest.fixture
def jpeg_factory():
    return build_jpeg
