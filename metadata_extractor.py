# metadata_extractor.py
import html
import logging
import re
from io import BytesIO

import exifread
import piexif.helper
from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import TAGS

from parameter_parser import extract

logger = logging.getLogger(__name__)

CORRUPTED_IMAGE_MESSAGE = 'Failed to process image. The file might be corrupted.'
NO_METADATA_MESSAGE = 'No metadata found in the image. Is this an A1111 generated image?'
UNKNOWN_ERROR_MESSAGE = 'Unknown error occurred'

EXIF_IFD_POINTER = 0x8769
PNG_TEXT_TAG = 'pngText'
PARAMETERS_KEYWORD = 'parameters'
XMP_TEXT_KEY = 'XML:com.adobe.xmp'

XMP_DESCRIPTION_PATTERN = re.compile(
    r'<dc:description>.*?<rdf:li[^>]*>(.*?)</rdf:li>', re.DOTALL
)
XMP_PARAMETERS_ATTR_PATTERN = re.compile(r'\b(?:\w+:)?parameters="([^"]*)"', re.DOTALL)
XMP_PARAMETERS_ELEMENT_PATTERN = re.compile(
    r'<(?:\w+:)?parameters>(.*?)</(?:\w+:)?parameters>', re.DOTALL
)


class ImageMetadataError(Exception):
    """Base class for failures that end the processing of one image."""


class CorruptedImageError(ImageMetadataError):
    """The image bytes could not be decoded."""


class NoMetadataError(ImageMetadataError):
    """The image carries no readable metadata container."""


def _tag(description, value=None):
    return {'description': description, 'value': description if value is None else value}


class ImageMetadataExtractor:
    """Collects image attributes and metadata tags from in-memory image bytes."""

    def decode_image(self, buffer):
        """Read width, height, format and PNG text chunks."""
        try:
            with Image.open(BytesIO(buffer)) as img:
                comments = []
                for keyword, text in getattr(img, 'text', {}).items():
                    comments.append({'keyword': keyword, 'text': text})
                return {
                    'width': img.width,
                    'height': img.height,
                    'format': (img.format or '').lower(),
                    'size': len(buffer),
                    'comments': comments,
                }
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise CorruptedImageError(str(e)) from e

    def read_tags(self, buffer):
        """Flatten EXIF, XMP and PNG text data into one tag mapping."""
        tags = {}

        try:
            with Image.open(BytesIO(buffer)) as img:
                tags.update(self._read_pil_exif(img))
                png_text = dict(getattr(img, 'text', {}) or {})
                xmp = img.info.get('xmp') or png_text.get(XMP_TEXT_KEY)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
            raise NoMetadataError(str(e)) from e

        # exifread as backup for anything Pillow did not surface
        for name, value in self._read_exifread_tags(buffer).items():
            tags.setdefault(name, value)

        if xmp:
            tags.update(self._read_xmp(xmp))

        if png_text:
            for keyword, text in png_text.items():
                if keyword in (PARAMETERS_KEYWORD, XMP_TEXT_KEY):
                    continue
                tags.setdefault(keyword, _tag(text))
            tags[PNG_TEXT_TAG] = _tag(', '.join(png_text.keys()), dict(png_text))

        if 'Description' not in tags and 'ImageDescription' in tags:
            tags['Description'] = dict(tags['ImageDescription'])

        if not tags:
            raise NoMetadataError('image carries no EXIF, XMP or text chunks')

        logger.debug(f"Found tags: {list(tags.keys())}")
        return tags

    def _read_pil_exif(self, img):
        """Base IFD and Exif IFD entries keyed by tag name."""
        tags = {}
        exif = img.getexif()
        entries = list(exif.items())
        try:
            entries.extend(exif.get_ifd(EXIF_IFD_POINTER).items())
        except (KeyError, ValueError, TypeError) as e:
            logger.debug(f"Exif IFD unreadable: {e}")

        for tag_id, value in entries:
            if tag_id == EXIF_IFD_POINTER:
                continue
            name = TAGS.get(tag_id, str(tag_id))
            decoded = self._decode_exif_value(name, value)
            tags[name] = _tag(decoded)
        return tags

    def _read_exifread_tags(self, buffer):
        tags = {}
        try:
            found = exifread.process_file(BytesIO(buffer), details=False)
        except Exception as e:
            logger.warning(f"exifread extraction failed: {e}")
            return tags

        for name, value in found.items():
            if name.startswith('JPEGThumbnail'):
                continue
            name = name.replace('EXIF ', '').replace('Image ', '')
            if name == 'UserComment' and isinstance(value.values, (list, bytes)):
                decoded = self._decode_user_comment(bytes(value.values))
            else:
                decoded = str(value)
            tags[name] = _tag(decoded)
        return tags

    def _read_xmp(self, xmp):
        """Pick `Description` and `parameters` out of an XMP packet."""
        if isinstance(xmp, bytes):
            xmp = xmp.decode('utf-8', errors='ignore')

        tags = {}
        description = XMP_DESCRIPTION_PATTERN.search(xmp)
        if description:
            tags['Description'] = _tag(html.unescape(description.group(1)))

        parameters = (XMP_PARAMETERS_ELEMENT_PATTERN.search(xmp)
                      or XMP_PARAMETERS_ATTR_PATTERN.search(xmp))
        if parameters:
            tags[PARAMETERS_KEYWORD] = _tag(html.unescape(parameters.group(1)))
        return tags

    def _decode_user_comment(self, raw):
        """Decode an EXIF UserComment carrying its 8-byte charset header."""
        try:
            return piexif.helper.UserComment.load(raw).strip('\x00')
        except ValueError:
            pass

        for encoding in ['utf-8', 'utf-16le', 'latin-1']:
            try:
                decoded = raw.decode(encoding).strip('\x00')
            except UnicodeDecodeError:
                continue
            if decoded:
                return decoded
        return raw.decode('latin-1', errors='ignore').strip('\x00')

    def _decode_exif_value(self, tag, value):
        """Turn raw EXIF values into display strings."""
        if tag == 'UserComment' and isinstance(value, bytes):
            return self._decode_user_comment(value)
        if isinstance(value, bytes):
            if all(32 <= b <= 126 or b in (9, 10, 13) for b in value[:50]):
                return value.decode('ascii', errors='ignore').strip('\x00')
            return f"[Binary data: {len(value)} bytes]"
        if isinstance(value, tuple):
            return ', '.join(str(v) for v in value)
        return str(value)

    def apply_png_parameters(self, tags, image_info):
        """Expose a PNG `parameters` text chunk as the `parameters` tag."""
        if PNG_TEXT_TAG not in tags or not isinstance(image_info.get('comments'), list):
            return tags

        logger.debug(f"Found PNG text chunks: {[c.get('keyword') for c in image_info['comments']]}")
        for chunk in image_info['comments']:
            if chunk.get('keyword') == PARAMETERS_KEYWORD and chunk.get('text'):
                logger.debug(f"Found parameters text chunk: {chunk['text']!r}")
                tags[PARAMETERS_KEYWORD] = {'description': chunk['text']}
                break
        return tags

    def parse_image(self, buffer, filename):
        """Decode an image and return its generation parameters.

        The result is a plain dict: on success it carries `metadata`,
        `image_info` and `filename`; on failure only `error`.
        """
        try:
            buffer = bytes(buffer)
            logger.info(f"Received image buffer of size: {len(buffer)}")

            try:
                image_info = self.decode_image(buffer)
            except CorruptedImageError as e:
                logger.error(f"Error getting image metadata: {e}")
                return {'success': False, 'error': CORRUPTED_IMAGE_MESSAGE}

            try:
                tags = self.read_tags(buffer)
            except NoMetadataError as e:
                logger.error(f"Error extracting EXIF data: {e}")
                return {'success': False, 'error': NO_METADATA_MESSAGE}

            self.apply_png_parameters(tags, image_info)
            parameters = extract(tags)

            return {
                'success': True,
                'metadata': parameters.to_dict(),
                'image_info': {
                    'width': image_info['width'],
                    'height': image_info['height'],
                    'format': image_info['format'],
                    'size': len(buffer),
                },
                'filename': filename,
            }
        except Exception as e:
            logger.exception(f"Error parsing image {filename}")
            return {'success': False, 'error': str(e) or UNKNOWN_ERROR_MESSAGE}


def parse_image(buffer, filename):
    """Module-level shortcut for ImageMetadataExtractor().parse_image."""
    return ImageMetadataExtractor().parse_image(buffer, filename)
