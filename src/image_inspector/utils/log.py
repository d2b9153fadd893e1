"""Centralised logging configuration helpers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

PathLike = Union[str, Path]

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    *,
    level: int = logging.INFO,
    log_file: Optional[PathLike] = None,
    fmt: str = DEFAULT_FORMAT,
    datefmt: Optional[str] = None,
    stream: bool = True,
    force: bool = True,
) -> None:
    """Configure root logging for applications embedding the inspector.

    Args:
        level: Logging level to apply.
        log_file: Optional file path for log output. File is truncated on setup.
        fmt: Log message format string.
        datefmt: Optional date format string.
        stream: Whether to emit logs to stderr via ``StreamHandler``.
        force: Whether to override existing logging configuration.
    """
    handlers: list[logging.Handler] = []
    if stream:
        handlers.append(logging.StreamHandler())
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="w", encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt=datefmt,
        handlers=handlers or None,
        force=force,
    )
