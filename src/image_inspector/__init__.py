"""Image Inspector - extract container image filesystems through the Docker Engine API."""

__version__ = "0.1.0"

from .auth.credentials import Credential, CredentialSet, resolve_credentials
from .core.connectivity import check_connectivity
from .core.docker_client import DockerClient
from .core.types import DockerConfig, InspectorOptions
from .exceptions import (
    ConfigurationError,
    CredentialError,
    DestinationError,
    ExtractionError,
    ImageNotFoundError,
    InspectorError,
    MaterializationError,
    ProvisionError,
    PullAttemptError,
    PullDecodeError,
    PullError,
    RuntimeAPIError,
    RuntimeConnectionError,
)
from .inspector import DirectoryFactory, ImageInspector, create_output_dir, inspect_image
from .models import ImageMetadata, InspectionResult, PullResult, ScanReport
from .provision import create_and_extract
from .pull.puller import pull_image
from .scanner import Scanner
from .tar.materializer import materialize_tar_stream
from .utils.log import configure_logging

__all__ = [
    "ConfigurationError",
    "Credential",
    "CredentialError",
    "CredentialSet",
    "DestinationError",
    "DirectoryFactory",
    "DockerClient",
    "DockerConfig",
    "ExtractionError",
    "ImageInspector",
    "ImageMetadata",
    "ImageNotFoundError",
    "InspectionResult",
    "InspectorError",
    "InspectorOptions",
    "MaterializationError",
    "ProvisionError",
    "PullAttemptError",
    "PullDecodeError",
    "PullError",
    "PullResult",
    "RuntimeAPIError",
    "RuntimeConnectionError",
    "ScanReport",
    "Scanner",
    "check_connectivity",
    "configure_logging",
    "create_and_extract",
    "create_output_dir",
    "inspect_image",
    "materialize_tar_stream",
    "pull_image",
    "resolve_credentials",
]
