"""Container runtime client internals."""

from .connectivity import check_connectivity
from .docker_client import DockerClient
from .types import DockerConfig, InspectorOptions

__all__ = ["DockerClient", "DockerConfig", "InspectorOptions", "check_connectivity"]
