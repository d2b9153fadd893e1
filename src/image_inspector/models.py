"""Data models for runtime metadata and inspection results."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class ImageConfig:
    """Runtime configuration baked into an image."""

    cmd: list[str]
    entrypoint: list[str]
    env: list[str]
    user: str
    working_dir: str | None
    exposed_ports: dict[str, Any]
    labels: dict[str, str]


@dataclass
class ImageMetadata:
    """Descriptive record of an image as reported by the runtime."""

    id: str
    repo_tags: list[str]
    repo_digests: list[str]
    architecture: str
    os: str
    created: datetime | None
    size: int
    layers: list[str]
    config: ImageConfig
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ImageMetadata":
        """Build metadata from a ``GET /images/{name}/json`` response."""
        rootfs = data.get("RootFS") or {}
        return cls(
            id=data.get("Id", ""),
            repo_tags=data.get("RepoTags") or [],
            repo_digests=data.get("RepoDigests") or [],
            architecture=data.get("Architecture", ""),
            os=data.get("Os", ""),
            created=parse_created_timestamp(data.get("Created", "")),
            size=data.get("Size", 0) or 0,
            layers=rootfs.get("Layers") or [],
            config=_parse_image_config(data.get("Config") or {}),
            raw=data,
        )


@dataclass
class ContainerMetadata:
    """Subset of ``GET /containers/{id}/json`` the inspector relies on."""

    id: str
    name: str
    image: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ContainerMetadata":
        return cls(
            id=data.get("Id", ""),
            name=data.get("Name", "").lstrip("/"),
            image=data.get("Image", ""),
            raw=data,
        )


@dataclass
class PullResult:
    """Outcome of the pull phase."""

    skipped: bool
    attempts: int = 0
    credential_name: str | None = None


@dataclass
class InspectionResult:
    """Final result of one inspection: where the image went and what it is."""

    image: str
    destination: str
    image_metadata: ImageMetadata
    pull: PullResult
    scans: list["ScanReport"] = field(default_factory=list)


def parse_created_timestamp(created_str: str) -> datetime | None:
    """Parse an RFC 3339 timestamp as emitted by the runtime.

    Nanosecond precision is truncated to microseconds so that
    ``datetime.fromisoformat`` accepts it.
    """
    if not created_str:
        return None
    value = created_str.replace("Z", "+00:00")
    if "." in value:
        head, _, tail = value.partition(".")
        digits = ""
        for ch in tail:
            if not ch.isdigit():
                break
            digits += ch
        value = f"{head}.{digits[:6].ljust(6, '0')}{tail[len(digits):]}"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _parse_image_config(runtime_config: dict[str, Any]) -> ImageConfig:
    """Parse the ``Config`` section of an image record."""
    return ImageConfig(
        cmd=runtime_config.get("Cmd") or [],
        entrypoint=runtime_config.get("Entrypoint") or [],
        env=runtime_config.get("Env") or [],
        user=runtime_config.get("User", ""),
        working_dir=runtime_config.get("WorkingDir") or None,
        exposed_ports=runtime_config.get("ExposedPorts") or {},
        labels=runtime_config.get("Labels") or {},
    )


STATUS_NOT_REQUESTED = "NotRequested"
STATUS_SUCCESS = "Success"
STATUS_ERROR = "Error"


@dataclass
class ScanReport:
    """State of one scanner run over the extracted filesystem."""

    scanner: str
    status: str = STATUS_NOT_REQUESTED
    error_message: str = ""
    report: bytes = b""
    html_report: bytes = b""
    timestamp: datetime = field(default_factory=datetime.now)

    def set_error(self, error: Exception) -> None:
        self.status = STATUS_ERROR
        self.error_message = str(error)
        self.timestamp = datetime.now()
