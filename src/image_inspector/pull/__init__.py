"""Authenticated image pulls with progress reporting."""

from .decoder import PullMessage, PullMessageDecoder
from .progress import LayerProgress, ProgressAggregator
from .puller import pull_image

__all__ = [
    "LayerProgress",
    "ProgressAggregator",
    "PullMessage",
    "PullMessageDecoder",
    "pull_image",
]
