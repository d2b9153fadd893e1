"""Example usage of the async image inspector."""

import asyncio
import logging
import sys

# Add parent directory to path
sys.path.insert(0, "src")

from image_inspector import (
    ImageInspector,
    InspectorError,
    InspectorOptions,
    configure_logging,
    inspect_image,
)

logger = logging.getLogger(__name__)


def report_progress(total_bytes: int, final: bool) -> None:
    state = "done" if final else "so far"
    logger.info(f"  {total_bytes // 1024} KiB downloaded {state}")


async def main(image: str):
    """Extract an image into a temporary directory."""
    try:
        logger.info(f"Inspecting {image}...")
        result = await inspect_image(image, progress_callback=report_progress)
        logger.info(f"✓ Extracted to {result.destination}")
        logger.info(f"  Image ID: {result.image_metadata.id}")
        logger.info(f"  Layers: {len(result.image_metadata.layers)}")
        if result.pull.skipped:
            logger.info("  Image was already present locally")
        else:
            logger.info(f"  Pulled with: {result.pull.credential_name}")
    except InspectorError as e:
        logger.error(f"Inspection failed: {e}")


async def with_credentials(image: str, destination: str, dockercfg: str):
    """Extract a private image using credentials from a docker config file."""
    options = InspectorOptions(image=image, dst_path=destination, docker_cfg=[dockercfg])
    try:
        result = await ImageInspector(options).inspect()
        logger.info(f"✓ Extracted to {result.destination}")
    except InspectorError as e:
        logger.error(f"Inspection failed: {e}")


if __name__ == "__main__":
    configure_logging(level=logging.INFO)
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "busybox:latest"))
