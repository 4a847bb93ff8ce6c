"""
Tests for metadata_viewer.py display helpers.
"""

import pytest

from metadata_extractor import parse_image
from metadata_viewer import (
    UNKNOWN,
    build_parameter_items,
    format_file_size,
    format_image_info,
    format_resolution,
    is_supported_upload,
    to_parameters_text,
)
from parameter_parser import extract


class TestFormatResolution:
    """Tests for the displayed original resolution."""

    @pytest.mark.parametrize("resolution", ["512x768", "1024X1024", "832×1216"])
    def test_kept(self, resolution):
        assert format_resolution(resolution) == resolution

    @pytest.mark.parametrize("resolution", ["", "256x256", "512x511", "axb", "512", "1x2x3"])
    def test_unknown(self, resolution):
        assert format_resolution(resolution) == UNKNOWN

    def test_custom_minimum(self):
        assert format_resolution("256x256", min_side=256) == "256x256"
        assert format_resolution("512x512", min_side=1024) == UNKNOWN


class TestParameterItems:
    """Tests for the parameter grid contents."""

    def test_small_resolution_end_to_end(self, png_factory):
        """Test a tiny generation size is parsed but displayed as Unknown."""
        text = "a tiny fox\nSteps: 10, Sampler: Euler, CFG scale: 7, Seed: 1, Size: 256x256"
        result = parse_image(png_factory(text), "tiny.png")

        assert result["metadata"]["resolution"] == "256x256"
        items = dict(build_parameter_items(result["metadata"]))
        assert items["Original Resolution"] == UNKNOWN
        assert items["Steps"] == "10"

    def test_order_and_other_params(self, full_parameters):
        metadata = extract({"Description": {"description": full_parameters}}).to_dict()

        assert build_parameter_items(metadata) == [
            ("Model", "foo.safetensors"),
            ("Sampling Method", "Euler"),
            ("Scheduler", "Karras"),
            ("CFG Scale", "7"),
            ("Steps", "20"),
            ("Seed", "42"),
            ("Original Resolution", "512x768"),
            ("Extra", "bar"),
        ]

    def test_other_params_hidden(self, full_parameters):
        metadata = extract({"Description": {"description": full_parameters}}).to_dict()
        labels = [label for label, _ in build_parameter_items(metadata, include_other=False)]
        assert "Extra" not in labels


class TestFormatting:
    """Tests for small formatting helpers."""

    def test_image_info(self):
        info = {"width": 512, "height": 768, "format": "png", "size": 10}
        assert format_image_info(info) == "512 × 768 • PNG"
        assert format_image_info(None) == ""

    @pytest.mark.parametrize("size, expected", [
        (0, "0 B"),
        (512, "512.0 B"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
    ])
    def test_file_size(self, size, expected):
        assert format_file_size(size) == expected

    @pytest.mark.parametrize("filename, expected", [
        ("image.png", True),
        ("IMAGE.JPG", True),
        ("photo.jpeg", True),
        ("anim.webp", False),
        ("noext", False),
        (None, False),
    ])
    def test_supported_upload(self, filename, expected):
        assert is_supported_upload(filename) is expected


class TestParametersText:
    """Tests for rebuilding the A1111 text block."""

    def test_rebuilt_text(self, full_parameters):
        metadata = extract({"Description": {"description": full_parameters}}).to_dict()

        assert to_parameters_text(metadata) == (
            "A cat.\n"
            "Negative prompt: dog.\n"
            "Steps: 20, Sampler: Euler, Schedule type: Karras, CFG scale: 7, Seed: 42, "
            "Size: 512x768, Model: foo.safetensors, Extra: bar"
        )

    def test_rebuilt_text_parses_back(self, webui_parameters):
        metadata = extract({"Description": {"description": webui_parameters}}).to_dict()
        again = extract({"Description": {"description": to_parameters_text(metadata)}}).to_dict()
        assert again == metadata

    def test_empty_record(self):
        assert to_parameters_text(extract({}).to_dict()) == ""
