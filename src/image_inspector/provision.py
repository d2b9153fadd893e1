"""Ephemeral container provisioning and filesystem extraction."""

import asyncio
import logging
import secrets
import threading
from contextlib import aclosing
from typing import Optional

from .core.docker_client import DockerClient
from .exceptions import (
    ExtractionError,
    InspectorError,
    MaterializationError,
    ProvisionError,
    RuntimeAPIError,
    RuntimeConnectionError,
)
from .models import ImageMetadata
from .tar.conduit import ExtractionConduit
from .tar.materializer import MaterializeStats, materialize_tar_stream

logger = logging.getLogger(__name__)

CONTAINER_NAME_PREFIX = "image-inspector-"
# Largest value of a signed 64 bit integer, exclusive upper bound for names
MAX_NAME_VALUE = 2**63 - 1


def generate_container_name() -> str:
    """Generate a random container name that will not collide.

    Raises:
        ProvisionError: If the system randomness source is unavailable
    """
    try:
        value = secrets.randbelow(MAX_NAME_VALUE)
    except (OSError, NotImplementedError) as e:
        raise ProvisionError(f"Unable to generate random container name: {e}") from e
    return f"{CONTAINER_NAME_PREFIX}{value:016x}"


async def _join(task: asyncio.Future) -> Optional[BaseException]:
    """Wait for ``task`` and return its error instead of raising it."""
    try:
        await task
    except (InspectorError, OSError) as e:
        return e
    return None


async def extract_container_filesystem(
    client: DockerClient, container_id: str, destination: str
) -> MaterializeStats:
    """Stream the container's root filesystem into ``destination``.

    The copy-out runs as its own task while the materializer drains the
    conduit in a worker thread; both are always joined before returning.
    Cancelling the caller stops the copy-out, makes the materializer give up
    at the next entry and waits for both before the cancellation propagates.

    Raises:
        RuntimeAPIError: If the daemon refuses or breaks the copy
        RuntimeConnectionError: If the daemon connection is lost
        MaterializationError: If the archive cannot be written to disk
    """
    loop = asyncio.get_event_loop()
    stop = threading.Event()

    with ExtractionConduit() as conduit:

        async def produce() -> None:
            try:
                async with aclosing(
                    client.copy_from_container(container_id, "/")
                ) as stream:
                    async for chunk in stream:
                        await conduit.write(chunk)
            finally:
                await conduit.finish_writes()

        def consume() -> MaterializeStats:
            try:
                stats = materialize_tar_stream(conduit.reader, destination, stop)
                conduit.drain()
                return stats
            except OSError as e:
                raise MaterializationError(f"Unable to read image tar stream: {e}") from e
            finally:
                conduit.close_reader()

        # The producer must be running while the consumer drains, or a full
        # pipe blocks it forever.
        producer = asyncio.ensure_future(produce())
        consumer = loop.run_in_executor(None, consume)
        try:
            await asyncio.wait({consumer})
        except asyncio.CancelledError:
            stop.set()
            producer.cancel()
            await asyncio.wait({producer})
            # A producer cancelled before its first step never closed the pipe
            await conduit.finish_writes()
            await asyncio.wait({consumer})
            for future in (producer, consumer):
                if not future.cancelled():
                    future.exception()
            raise
        producer_error = await _join(producer)

    consumer_error = consumer.exception()
    # A broken pipe only echoes the consumer giving up
    if producer_error is not None and not (
        consumer_error is not None and isinstance(producer_error, BrokenPipeError)
    ):
        raise producer_error
    if consumer_error is not None:
        raise consumer_error
    return consumer.result()


async def _remove_container(client: DockerClient, container_id: str) -> None:
    try:
        await client.remove_container(container_id)
    except (RuntimeAPIError, RuntimeConnectionError) as e:
        logger.warning("Unable to remove container %s: %s", container_id, e)
    else:
        logger.debug("Removed container %s", container_id)


async def create_and_extract(
    client: DockerClient, image: str, destination: str
) -> ImageMetadata:
    """Extract the filesystem of ``image`` through a throwaway container.

    The container is created with blank entrypoint and command and is never
    started. It is removed whatever the outcome.

    Args:
        client: Connected docker client
        image: Image reference, already present locally
        destination: Existing directory receiving the filesystem

    Returns:
        Metadata of the image behind the container

    Raises:
        ProvisionError: If the container cannot be created or inspected
        ExtractionError: If the filesystem cannot be copied or written
    """
    container_name = generate_container_name()
    try:
        container_id = await client.create_container(container_name, image)
    except (RuntimeAPIError, RuntimeConnectionError) as e:
        raise ProvisionError(f"Unable to create docker container: {e}") from e
    logger.debug("Created container %s (%s) from %s", container_name, container_id, image)

    image_metadata: Optional[ImageMetadata] = None
    try:
        try:
            container = await client.inspect_container(container_id)
        except (RuntimeAPIError, RuntimeConnectionError) as e:
            raise ProvisionError(
                f"Unable to get docker container information: {e}"
            ) from e

        try:
            image_metadata = await client.inspect_image(container.image)
        except (RuntimeAPIError, RuntimeConnectionError) as e:
            raise ProvisionError(f"Unable to get docker image information: {e}") from e

        logger.info("Extracting image %s to %s", image, destination)
        try:
            stats = await extract_container_filesystem(client, container_id, destination)
        except (InspectorError, OSError) as e:
            raise ExtractionError(
                f"Unable to extract container: {e}", image_metadata
            ) from e

        logger.info(
            "Extracted %d entries (%d bytes, %d skipped) from image %s",
            stats.entries,
            stats.bytes_written,
            stats.skipped,
            image,
        )
        return image_metadata
    finally:
        await _remove_container(client, container_id)
