"""Tar stream handling for container filesystems."""

from .conduit import ExtractionConduit
from .materializer import (
    OWNER_PERM_RW,
    ROOTFS_PREFIX,
    MaterializeStats,
    materialize_tar_stream,
    resolve_entry_path,
)

__all__ = [
    "ExtractionConduit",
    "MaterializeStats",
    "OWNER_PERM_RW",
    "ROOTFS_PREFIX",
    "materialize_tar_stream",
    "resolve_entry_path",
]
