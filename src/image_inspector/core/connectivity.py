"""Docker daemon connectivity checks."""

from .docker_client import DockerClient
from .types import DockerConfig


async def check_connectivity(config: DockerConfig) -> bool:
    """Verify the Docker daemon answers on the configured URI.

    Args:
        config: Docker connection settings

    Returns:
        True if the daemon is reachable and healthy

    Raises:
        RuntimeConnectionError: If the daemon cannot be reached
    """
    async with DockerClient(config) as client:
        return await client.ping()
