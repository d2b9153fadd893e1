"""Authenticated image pull, trying every credential in order."""

import asyncio
import logging
from contextlib import aclosing
from typing import Optional

from ..auth.credentials import Credential, CredentialSet
from ..core.docker_client import DockerClient
from ..core.types import PULL_LOG_INTERVAL_SEC
from ..exceptions import (
    ImageNotFoundError,
    PullAttemptError,
    PullDecodeError,
    PullError,
    RuntimeAPIError,
)
from ..models import PullResult
from .decoder import PullMessage, PullMessageDecoder
from .progress import LayerProgress, ProgressAggregator, ProgressCallback

logger = logging.getLogger(__name__)


async def _pull_with_credential(
    client: DockerClient,
    image: str,
    credential: Credential,
    report_interval: float,
    progress_callback: Optional[ProgressCallback],
) -> int:
    """Run one pull attempt to completion.

    Returns:
        Number of bytes reported as downloaded

    Raises:
        PullAttemptError: If the stream carries an error message
        PullDecodeError: If a message cannot be decoded
        RuntimeAPIError: If the daemon refuses the request
    """
    decoder = PullMessageDecoder()
    layers = LayerProgress()
    aggregator: Optional[ProgressAggregator] = None
    aggregator_task: Optional[asyncio.Future] = None

    def handle(message: PullMessage) -> None:
        nonlocal aggregator, aggregator_task
        if message.error:
            raise PullAttemptError(message.error)
        if message.is_downloading:
            if aggregator is None:
                aggregator = ProgressAggregator(report_interval, progress_callback)
                aggregator_task = asyncio.ensure_future(aggregator.run())
            aggregator.feed(layers.update(message.id, message.current))

    try:
        async with aclosing(client.pull_image(image, credential)) as stream:
            async for chunk in stream:
                for message in decoder.feed(chunk):
                    handle(message)
        for message in decoder.close():
            handle(message)
    finally:
        if aggregator is not None and aggregator_task is not None:
            aggregator.close()
            await aggregator_task

    return aggregator.total_bytes if aggregator else 0


async def pull_image(
    client: DockerClient,
    image: str,
    credentials: CredentialSet,
    *,
    report_interval: float = PULL_LOG_INTERVAL_SEC,
    progress_callback: Optional[ProgressCallback] = None,
) -> PullResult:
    """Make ``image`` available locally, pulling it if needed.

    Args:
        client: Connected docker client
        image: Image reference
        credentials: Credentials to try, in order
        report_interval: Seconds between progress reports
        progress_callback: Optional callback receiving ``(total_bytes, final)``

    Returns:
        PullResult describing what happened

    Raises:
        PullError: If every credential failed
        RuntimeConnectionError: If the daemon cannot be reached
    """
    try:
        await client.inspect_image(image)
    except ImageNotFoundError:
        pass
    else:
        logger.info("Image %s is present locally, skipping pull", image)
        return PullResult(skipped=True)

    logger.info("Pulling image %s", image)
    attempts = 0
    for credential in credentials:
        attempts += 1
        try:
            downloaded = await _pull_with_credential(
                client, image, credential, report_interval, progress_callback
            )
        except (PullAttemptError, PullDecodeError, RuntimeAPIError) as e:
            logger.warning("Authentication with %s failed: %s", credential.name, e)
            continue

        logger.info(
            "Pulled image %s with %s (%d bytes downloaded)",
            image,
            credential.name,
            downloaded,
        )
        return PullResult(
            skipped=False, attempts=attempts, credential_name=credential.name
        )

    raise PullError(
        f"Unable to pull docker image {image}: {attempts} authentication attempt(s) failed"
    )
