"""Boundary for scanners run over an extracted image."""

import logging
from typing import Optional, Protocol, runtime_checkable

import aiofiles

from .models import STATUS_SUCCESS, ImageMetadata, ScanReport

logger = logging.getLogger(__name__)


@runtime_checkable
class Scanner(Protocol):
    """What the inspector expects from a content scanner."""

    name: str

    async def scan(self, path: str, image_metadata: ImageMetadata) -> None:
        """Scan the filesystem at ``path`` (read-only)."""
        ...

    def results_file_name(self) -> str:
        """Where the machine-readable report was written."""
        ...

    def html_results_file_name(self) -> Optional[str]:
        """Where the HTML report was written, if any."""
        ...


async def _read_report(path: str) -> bytes:
    async with aiofiles.open(path, "rb") as f:
        return await f.read()


async def run_scanner(
    scanner: Scanner, path: str, image_metadata: ImageMetadata
) -> ScanReport:
    """Run one scanner and collect its reports.

    A failing scanner never fails the inspection; the failure is recorded
    in the returned report instead.
    """
    result = ScanReport(scanner=scanner.name)
    logger.info("%s scanning %s", scanner.name, path)
    try:
        await scanner.scan(path, image_metadata)
        result.report = await _read_report(scanner.results_file_name())
        html_path = scanner.html_results_file_name()
        if html_path:
            result.html_report = await _read_report(html_path)
    except Exception as e:
        logger.error("Unable to run %s: %s", scanner.name, e)
        result.set_error(e)
        return result

    result.status = STATUS_SUCCESS
    return result
