"""Test helpers: tar builders and fake docker runtimes."""

import asyncio
import base64
import io
import json
import tarfile
from typing import Iterable, Optional

from aiohttp import web

from image_inspector.exceptions import ImageNotFoundError
from image_inspector.models import ContainerMetadata, ImageMetadata
from image_inspector.tar.materializer import ROOTFS_PREFIX

IMAGE_ID = "sha256:" + "ab" * 32

IMAGE_JSON = {
    "Id": IMAGE_ID,
    "RepoTags": ["example/app:v1"],
    "RepoDigests": [],
    "Architecture": "amd64",
    "Os": "linux",
    "Created": "2024-01-15T10:30:45.123456789Z",
    "Size": 1024,
    "RootFS": {"Type": "layers", "Layers": ["sha256:layer1", "sha256:layer2"]},
    "Config": {
        "Cmd": ["/bin/sh"],
        "Entrypoint": None,
        "Env": ["PATH=/usr/bin:/bin"],
        "User": "",
        "WorkingDir": "/app",
        "Labels": {"maintainer": "test@example.com"},
    },
}


def tar_entry(
    name: str,
    kind: bytes = tarfile.REGTYPE,
    data: bytes = b"",
    mode: int = 0o644,
    linkname: str = "",
    mtime: int = 1700000000,
    prefix: str = ROOTFS_PREFIX,
) -> tuple[tarfile.TarInfo, bytes]:
    """Describe one archive entry, prefixed with the root-filesystem marker."""
    info = tarfile.TarInfo(prefix + name)
    info.type = kind
    info.mode = mode
    info.mtime = mtime
    info.linkname = linkname
    info.size = len(data) if kind in (tarfile.REGTYPE, tarfile.AREGTYPE) else 0
    return info, data


def entry_bytes(info: tarfile.TarInfo, data: bytes = b"") -> bytes:
    """Raw bytes of one entry (header, payload, padding) without archive trailer."""
    header = info.tobuf(tarfile.PAX_FORMAT, tarfile.ENCODING, "surrogateescape")
    padding = (tarfile.BLOCKSIZE - len(data) % tarfile.BLOCKSIZE) % tarfile.BLOCKSIZE
    return header + data + b"\0" * padding


def build_tar(entries: Iterable[tuple[tarfile.TarInfo, bytes]]) -> bytes:
    """Build a complete tar archive from entries."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT) as tar:
        for info, data in entries:
            tar.addfile(info, io.BytesIO(data) if info.isreg() else None)
    return buf.getvalue()


def sample_entries() -> list[tuple[tarfile.TarInfo, bytes]]:
    """The small tree used across tests: a directory, a file and a symlink."""
    return [
        tar_entry("", tarfile.DIRTYPE, mode=0o755),
        tar_entry("a", tarfile.DIRTYPE, mode=0o555),
        tar_entry("a/f.txt", data=b"hello", mode=0o644),
        tar_entry("a/link", tarfile.SYMTYPE, linkname="f.txt", mode=0o777),
    ]


def pull_line(**fields) -> bytes:
    return json.dumps(fields).encode("utf-8") + b"\r\n"


def downloading(layer: str, current: int, total: int = 1000) -> bytes:
    return pull_line(
        status="Downloading",
        id=layer,
        progressDetail={"current": current, "total": total},
    )


def chunked(data: bytes, size: int) -> list[bytes]:
    return [data[i : i + size] for i in range(0, len(data), size)]


class FakeDockerClient:
    """Duck-typed stand-in for DockerClient driven entirely from memory."""

    def __init__(
        self,
        *,
        local_images: Iterable[str] = (),
        pull_streams: Optional[dict] = None,
        archive_chunks: Iterable[bytes] = (),
        archive_error: Optional[Exception] = None,
        archive_delay: float = 0,
        create_error: Optional[Exception] = None,
        inspect_container_error: Optional[Exception] = None,
        inspect_image_error: Optional[Exception] = None,
        remove_error: Optional[Exception] = None,
    ) -> None:
        self.local_images = set(local_images)
        self.pull_streams = pull_streams or {}
        self.archive_chunks = list(archive_chunks)
        self.archive_error = archive_error
        self.archive_delay = archive_delay
        self.create_error = create_error
        self.inspect_container_error = inspect_container_error
        self.inspect_image_error = inspect_image_error
        self.remove_error = remove_error
        self.pull_calls: list[str] = []
        self.created: list[tuple[str, str]] = []
        self.removed: list[str] = []
        self.chunks_sent = 0

    async def inspect_image(self, image: str) -> ImageMetadata:
        if image == IMAGE_ID and self.inspect_image_error:
            raise self.inspect_image_error
        if image in self.local_images or image == IMAGE_ID:
            return ImageMetadata.from_api(IMAGE_JSON)
        raise ImageNotFoundError(f"No such image: {image}", 404)

    async def pull_image(self, image, credential):
        self.pull_calls.append(credential.name)
        for item in self.pull_streams.get(credential.name, []):
            if isinstance(item, Exception):
                raise item
            yield item
        self.local_images.add(image)

    async def create_container(self, name: str, image: str) -> str:
        if self.create_error:
            raise self.create_error
        self.created.append((name, image))
        return "container-1"

    async def inspect_container(self, container_id: str) -> ContainerMetadata:
        if self.inspect_container_error:
            raise self.inspect_container_error
        return ContainerMetadata(id=container_id, name="fake", image=IMAGE_ID)

    async def copy_from_container(self, container_id: str, path: str = "/"):
        for chunk in self.archive_chunks:
            if self.archive_delay:
                await asyncio.sleep(self.archive_delay)
            self.chunks_sent += 1
            yield chunk
        if self.archive_error:
            raise self.archive_error

    async def remove_container(self, container_id: str) -> None:
        self.removed.append(container_id)
        if self.remove_error:
            raise self.remove_error


class FakeDockerDaemon:
    """Minimal Docker Engine API served by aiohttp.web."""

    def __init__(self, archive: bytes = b"", accepted_users: Iterable[str] = ()) -> None:
        self.archive = archive
        self.accepted_users = set(accepted_users)
        self.images: dict[str, dict] = {IMAGE_ID: IMAGE_JSON}
        self.containers: dict[str, dict] = {}
        self.pull_requests: list[dict] = []
        self.create_requests: list[dict] = []
        self.removed: list[str] = []
        self.healthy = True

    def add_image(self, ref: str) -> None:
        self.images[ref] = IMAGE_JSON

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/_ping", self.ping)
        app.router.add_post("/images/create", self.pull)
        app.router.add_get("/images/{name:.+}/json", self.inspect_image)
        app.router.add_post("/containers/create", self.create_container)
        app.router.add_get("/containers/{id}/json", self.inspect_container)
        app.router.add_get("/containers/{id}/archive", self.get_archive)
        app.router.add_delete("/containers/{id}", self.remove_container)
        return app

    async def ping(self, request: web.Request) -> web.Response:
        if not self.healthy:
            return web.Response(status=500, text="down")
        return web.Response(text="OK")

    async def inspect_image(self, request: web.Request) -> web.Response:
        name = request.match_info["name"]
        if name not in self.images:
            return web.json_response({"message": f"No such image: {name}"}, status=404)
        return web.json_response(self.images[name])

    async def pull(self, request: web.Request) -> web.StreamResponse:
        auth = json.loads(base64.urlsafe_b64decode(request.headers["X-Registry-Auth"]))
        self.pull_requests.append(
            {
                "fromImage": request.query.get("fromImage"),
                "tag": request.query.get("tag"),
                "auth": auth,
            }
        )
        response = web.StreamResponse()
        await response.prepare(request)
        await response.write(pull_line(status="Pulling from example/app", id="v1"))
        if self.accepted_users and auth.get("username") not in self.accepted_users:
            await response.write(
                pull_line(
                    error="unauthorized: authentication required",
                    errorDetail={"message": "unauthorized: authentication required"},
                )
            )
        else:
            await response.write(downloading("layer1", 100))
            await response.write(downloading("layer1", 250))
            await response.write(pull_line(status="Download complete", id="layer1"))
            self.add_image(f"{request.query['fromImage']}:{request.query['tag']}")
        await response.write_eof()
        return response

    async def create_container(self, request: web.Request) -> web.Response:
        body = await request.json()
        self.create_requests.append({"name": request.query.get("name"), "body": body})
        if body["Image"] not in self.images:
            return web.json_response({"message": "No such image"}, status=404)
        container_id = f"c{len(self.containers) + 1:063d}"
        self.containers[container_id] = {
            "Id": container_id,
            "Name": "/" + request.query.get("name", ""),
            "Image": IMAGE_ID,
        }
        return web.json_response({"Id": container_id, "Warnings": []}, status=201)

    async def inspect_container(self, request: web.Request) -> web.Response:
        container = self.containers.get(request.match_info["id"])
        if container is None:
            return web.json_response({"message": "No such container"}, status=404)
        return web.json_response(container)

    async def get_archive(self, request: web.Request) -> web.Response:
        if request.match_info["id"] not in self.containers:
            return web.json_response({"message": "No such container"}, status=404)
        assert request.query.get("path") == "/"
        return web.Response(body=self.archive, content_type="application/x-tar")

    async def remove_container(self, request: web.Request) -> web.Response:
        container_id = request.match_info["id"]
        if self.containers.pop(container_id, None) is None:
            return web.json_response({"message": "No such container"}, status=404)
        self.removed.append(container_id)
        return web.Response(status=204)
