"""aiohttp session construction for the Docker Engine API."""

import json
from typing import Any
from urllib.parse import urlsplit

import aiohttp

from ..exceptions import ConfigurationError, RuntimeAPIError
from .types import DockerConfig

# Host used in request URLs when talking over a unix socket
UNIX_SOCKET_HOST = "http://docker"


def resolve_endpoint(config: DockerConfig) -> tuple[str, str | None]:
    """Split a daemon URI into an HTTP base URL and an optional socket path.

    Args:
        config: Docker connection settings

    Returns:
        (base_url, socket_path) tuple; socket_path is None for TCP daemons

    Raises:
        ConfigurationError: If the URI scheme is not supported
    """
    parts = urlsplit(config.url)
    if parts.scheme == "unix":
        socket_path = parts.path or parts.netloc
        if not socket_path:
            raise ConfigurationError(f"Missing socket path in {config.url!r}")
        base_url, sock = UNIX_SOCKET_HOST, socket_path
    elif parts.scheme in ("tcp", "http"):
        base_url, sock = f"http://{parts.netloc}", None
    elif parts.scheme == "https":
        base_url, sock = f"https://{parts.netloc}", None
    else:
        raise ConfigurationError(f"Unsupported Docker URI: {config.url!r}")

    if config.api_version:
        base_url = f"{base_url}/v{config.api_version}"
    return base_url, sock


async def create_session(config: DockerConfig | None = None) -> aiohttp.ClientSession:
    """Create an aiohttp session bound to the daemon described by ``config``."""
    config = config or DockerConfig()
    _, socket_path = resolve_endpoint(config)
    connector: aiohttp.BaseConnector
    if socket_path:
        connector = aiohttp.UnixConnector(path=socket_path)
    else:
        connector = aiohttp.TCPConnector()
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=config.timeout),
    )


async def parse_json_response(response: aiohttp.ClientResponse) -> Any:
    """Decode a JSON response body regardless of the advertised content type."""
    body = await response.read()
    if not body:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise RuntimeAPIError(
            f"Invalid JSON from daemon at {response.url}: {e}", response.status
        ) from e


async def error_message(response: aiohttp.ClientResponse) -> str:
    """Extract the daemon's error message from a failed response."""
    body = await response.text()
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body.strip() or response.reason or ""
    if isinstance(data, dict) and "message" in data:
        return str(data["message"])
    return body.strip()


def validate_ping_response(status: int, body: str) -> bool:
    """Check that a ``/_ping`` answer comes from a healthy daemon."""
    return status == 200 and body.strip() == "OK"
