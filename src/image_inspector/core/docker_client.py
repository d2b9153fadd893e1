"""Docker Engine API async client implementation."""

import json
import logging
from typing import AsyncIterator, Optional
from urllib.parse import quote

import aiohttp

from ..auth.credentials import Credential
from ..exceptions import (
    ImageNotFoundError,
    RuntimeAPIError,
    RuntimeConnectionError,
)
from ..models import ContainerMetadata, ImageMetadata
from ..utils.reference import parse_image_reference
from .session import (
    create_session,
    error_message,
    parse_json_response,
    resolve_endpoint,
    validate_ping_response,
)
from .types import DockerConfig

logger = logging.getLogger(__name__)


class DockerClient:
    """Docker Engine API async client covering what image extraction needs."""

    def __init__(self, config: Optional[DockerConfig] = None) -> None:
        """Initialize the docker client.

        Args:
            config: Docker connection settings (defaults to the local socket)
        """
        self.config = config or DockerConfig()
        self.base_url, self.socket_path = resolve_endpoint(self.config)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "DockerClient":
        """Enter async context manager."""
        if not self.session:
            self.session = await create_session(self.config)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise RuntimeConnectionError("Docker client used outside of its context")
        return self.session

    async def _raise_for_status(
        self,
        resp: aiohttp.ClientResponse,
        what: str,
        not_found: type[RuntimeAPIError] = RuntimeAPIError,
    ) -> None:
        if resp.status < 300:
            return
        message = await error_message(resp)
        if resp.status == 404:
            raise not_found(f"No such {what}: {message}", resp.status)
        raise RuntimeAPIError(
            f"Docker API error {resp.status} for {what}: {message}", resp.status
        )

    def _connection_error(self, e: Exception) -> RuntimeConnectionError:
        return RuntimeConnectionError(
            f"Unable to connect to docker daemon at {self.config.url}: {e}"
        )

    async def ping(self) -> bool:
        """Check that the daemon answers.

        Returns:
            True if the daemon is reachable

        Raises:
            RuntimeConnectionError: If the daemon cannot be reached
        """
        try:
            async with self._session().get(self._url("/_ping")) as resp:
                status, body = resp.status, await resp.text()
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e
        if not validate_ping_response(status, body):
            raise RuntimeConnectionError(
                f"Docker daemon at {self.config.url} is not healthy "
                f"(status {status}: {body.strip()})"
            )
        return True

    async def inspect_image(self, image: str) -> ImageMetadata:
        """Get image metadata.

        Args:
            image: Image reference or image ID

        Returns:
            Image metadata

        Raises:
            ImageNotFoundError: If the image is not present locally
            RuntimeAPIError: If the daemon reports another error
        """
        url = self._url(f"/images/{quote(image, safe='/:@')}/json")
        try:
            async with self._session().get(url) as resp:
                await self._raise_for_status(
                    resp, f"image {image}", not_found=ImageNotFoundError
                )
                return ImageMetadata.from_api(await parse_json_response(resp) or {})
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e

    async def pull_image(
        self, image: str, credential: Optional[Credential] = None
    ) -> AsyncIterator[bytes]:
        """Pull an image and stream the raw progress messages.

        The daemon answers with newline-delimited JSON objects; they are
        yielded undecoded, exactly as they arrive on the wire.

        Args:
            image: Image reference
            credential: Registry credential, anonymous when omitted

        Yields:
            Chunks of the progress stream

        Raises:
            RuntimeAPIError: If the daemon refuses the pull request
        """
        repository, tag = parse_image_reference(image)
        credential = credential or Credential.anonymous()
        try:
            async with self._session().post(
                self._url("/images/create"),
                params={"fromImage": repository, "tag": tag},
                headers={"X-Registry-Auth": credential.registry_auth()},
            ) as resp:
                await self._raise_for_status(resp, f"pull of {image}")
                async for chunk in resp.content.iter_any():
                    yield chunk
        except aiohttp.ClientPayloadError as e:
            raise RuntimeAPIError(f"Pull stream for {image} broke: {e}") from e
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e

    async def create_container(self, name: str, image: str) -> str:
        """Create a container that is never started.

        Entrypoint and command are blanked so the image's own code can never
        run through this container.

        Args:
            name: Container name
            image: Image reference

        Returns:
            Container ID
        """
        body = {"Image": image, "Entrypoint": [""], "Cmd": [""]}
        try:
            async with self._session().post(
                self._url("/containers/create"),
                params={"name": name},
                data=json.dumps(body).encode("utf-8"),
                headers={"Content-Type": "application/json"},
            ) as resp:
                await self._raise_for_status(resp, f"container create for {image}")
                data = await parse_json_response(resp) or {}
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e

        for warning in data.get("Warnings") or []:
            logger.warning("Docker: %s", warning)
        container_id = data.get("Id", "")
        if not container_id:
            raise RuntimeAPIError("Docker did not return a container id")
        return container_id

    async def inspect_container(self, container_id: str) -> ContainerMetadata:
        """Get container metadata."""
        try:
            async with self._session().get(
                self._url(f"/containers/{container_id}/json")
            ) as resp:
                await self._raise_for_status(resp, f"container {container_id}")
                return ContainerMetadata.from_api(await parse_json_response(resp) or {})
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e

    async def copy_from_container(
        self, container_id: str, path: str = "/"
    ) -> AsyncIterator[bytes]:
        """Stream a tar archive of ``path`` inside the container.

        Yields:
            Chunks of the tar archive

        Raises:
            RuntimeAPIError: If the daemon refuses the copy
            RuntimeConnectionError: If the stream breaks
        """
        try:
            async with self._session().get(
                self._url(f"/containers/{container_id}/archive"),
                params={"path": path},
            ) as resp:
                await self._raise_for_status(resp, f"copy from container {container_id}")
                async for chunk in resp.content.iter_chunked(self.config.chunk_size):
                    yield chunk
        except aiohttp.ClientPayloadError as e:
            raise RuntimeConnectionError(
                f"Filesystem stream from container {container_id} broke: {e}"
            ) from e
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e

    async def remove_container(self, container_id: str) -> None:
        """Remove a container along with its anonymous volumes."""
        try:
            async with self._session().delete(
                self._url(f"/containers/{container_id}"),
                params={"v": "1", "force": "1"},
            ) as resp:
                await self._raise_for_status(resp, f"container removal {container_id}")
        except (aiohttp.ClientConnectionError, OSError) as e:
            raise self._connection_error(e) from e
