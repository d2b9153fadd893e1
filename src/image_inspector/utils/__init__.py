"""Utility functions for the image inspector."""

from .log import configure_logging
from .reference import parse_image_reference

__all__ = ["configure_logging", "parse_image_reference"]
