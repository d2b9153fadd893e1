"""Tests for image reference parsing."""

import pytest

from image_inspector.utils.reference import parse_image_reference


@pytest.mark.parametrize(
    "image,expected",
    [
        ("nginx", ("nginx", "latest")),
        ("nginx:alpine", ("nginx", "alpine")),
        ("library/nginx:1.25", ("library/nginx", "1.25")),
        ("localhost:5000/myapp", ("localhost:5000/myapp", "latest")),
        ("localhost:5000/myapp:v1", ("localhost:5000/myapp", "v1")),
        ("nginx@sha256:0123", ("nginx", "sha256:0123")),
        ("nginx:", ("nginx", "latest")),
    ],
)
def test_parse_image_reference(image, expected):
    """Test repository/tag splitting."""
    assert parse_image_reference(image) == expected
