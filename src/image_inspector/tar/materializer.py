"""Replay of a container filesystem tar stream onto disk."""

import logging
import os
import posixpath
import stat
import tarfile
import threading
from dataclasses import dataclass
from typing import BinaryIO, Optional

from ..exceptions import MaterializationError

logger = logging.getLogger(__name__)

# Prefix of every entry in the runtime's filesystem export
ROOTFS_PREFIX = "rootfs/"
# Forced onto every directory and file so the tree stays writable and removable
OWNER_PERM_RW = 0o600

COPY_BUFFER_SIZE = 64 * 1024


@dataclass
class MaterializeStats:
    """Counters describing one replayed archive."""

    directories: int = 0
    files: int = 0
    symlinks: int = 0
    hardlinks: int = 0
    skipped: int = 0
    bytes_written: int = 0

    @property
    def entries(self) -> int:
        return self.directories + self.files + self.symlinks + self.hardlinks


def strip_rootfs_prefix(name: str) -> str:
    """Remove the export's root-filesystem marker from an entry name."""
    if name.startswith(ROOTFS_PREFIX):
        return name[len(ROOTFS_PREFIX) :]
    if name == ROOTFS_PREFIX.rstrip("/"):
        return ""
    return name


def resolve_entry_path(destination: str, name: str) -> str | None:
    """Map an entry name to a path under ``destination``.

    Returns:
        The destination path, or None if the name would escape ``destination``
    """
    relative = posixpath.normpath(strip_rootfs_prefix(name).lstrip("/") or ".")
    if relative == ".." or relative.startswith("../"):
        return None
    if relative == ".":
        return destination
    return os.path.join(destination, relative)


def _is_within(root: str, path: str) -> bool:
    parent = os.path.realpath(os.path.dirname(path))
    return parent == root or parent.startswith(root + os.sep)


def _entry_mode(member: tarfile.TarInfo) -> int:
    return stat.S_IMODE(member.mode) | OWNER_PERM_RW


def _restore_times(path: str, member: tarfile.TarInfo) -> None:
    """Best-effort restore of access and modification times."""
    mtime = member.mtime
    try:
        atime = float(member.pax_headers.get("atime", mtime))
        os.utime(path, (atime, mtime), follow_symlinks=False)
    except (OSError, ValueError, NotImplementedError):
        pass


def _make_directory(path: str, mode: int) -> None:
    try:
        os.mkdir(path, mode)
    except FileExistsError:
        if os.path.islink(path):
            return
        try:
            os.chmod(path, mode)
        except OSError as e:
            raise MaterializationError(f"Unable to update directory mode: {e}") from e
    except OSError as e:
        raise MaterializationError(f"Unable to create directory: {e}") from e


def _write_file(tar: tarfile.TarFile, member: tarfile.TarInfo, path: str, mode: int) -> int:
    flags = os.O_CREAT | os.O_TRUNC | os.O_WRONLY | getattr(os, "O_NOFOLLOW", 0)
    try:
        fd = os.open(path, flags, mode)
    except OSError as e:
        raise MaterializationError(f"Unable to create file: {e}") from e

    written = 0
    with os.fdopen(fd, "wb") as dst:
        src = tar.extractfile(member)
        if src is None:
            return 0
        try:
            while True:
                chunk = src.read(COPY_BUFFER_SIZE)
                if not chunk:
                    break
                dst.write(chunk)
                written += len(chunk)
        except OSError as e:
            raise MaterializationError(f"Unable to write into file: {e}") from e
        finally:
            src.close()

    if written != member.size:
        raise MaterializationError(
            f"Short write for {member.name}: {written} of {member.size} bytes"
        )
    return written


def _materialize_member(
    tar: tarfile.TarFile,
    member: tarfile.TarInfo,
    destination: str,
    root: str,
    stats: MaterializeStats,
) -> None:
    path = resolve_entry_path(destination, member.name)
    if path is None or (path != destination and not _is_within(root, path)):
        logger.warning("Skipping entry outside of the destination: %s", member.name)
        stats.skipped += 1
        return

    mode = _entry_mode(member)
    if member.isdir():
        _make_directory(path, mode)
        stats.directories += 1
    elif member.isreg():
        stats.bytes_written += _write_file(tar, member, path, mode)
        stats.files += 1
    elif member.issym():
        try:
            os.symlink(member.linkname, path)
        except OSError as e:
            raise MaterializationError(f"Unable to create symlink: {e}") from e
        stats.symlinks += 1
    elif member.islnk():
        target = resolve_entry_path(destination, member.linkname)
        if target is None or not _is_within(root, target):
            logger.warning(
                "Skipping hardlink %s to outside target %s", member.name, member.linkname
            )
            stats.skipped += 1
            return
        try:
            os.link(target, path, follow_symlinks=False)
        except OSError as e:
            raise MaterializationError(f"Unable to create link: {e}") from e
        stats.hardlinks += 1
    else:
        # Device nodes, FIFOs and the like make no sense outside the container
        logger.debug("Skipping special entry %s", member.name)
        stats.skipped += 1
        return

    _restore_times(path, member)


def materialize_tar_stream(
    fileobj: BinaryIO, destination: str, stop: Optional[threading.Event] = None
) -> MaterializeStats:
    """Replay a tar stream onto ``destination``, entry by entry.

    Entries are applied strictly in stream order and nothing is buffered
    beyond the entry being copied. Directories and files get owner
    read/write added to their mode. Entries already written stay on disk
    when a later one fails.

    Args:
        fileobj: Readable tar byte stream (no seeking required)
        destination: Existing directory to write into
        stop: Checked before each entry; once set, replay ends with an error

    Returns:
        MaterializeStats for the replayed archive

    Raises:
        MaterializationError: If the stream is corrupt or an entry cannot be written
    """
    stats = MaterializeStats()
    root = os.path.realpath(destination)
    try:
        with tarfile.open(fileobj=fileobj, mode="r|") as tar:
            for member in tar:
                if stop is not None and stop.is_set():
                    raise MaterializationError("Extraction cancelled")
                _materialize_member(tar, member, destination, root, stats)
    except tarfile.TarError as e:
        raise MaterializationError(f"Unable to extract container: {e}") from e
    except OSError as e:
        raise MaterializationError(f"Unable to read image tar stream: {e}") from e
    return stats
