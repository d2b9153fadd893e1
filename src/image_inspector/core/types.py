"""Configuration types for the image inspector."""

from dataclasses import dataclass, field

from ..exceptions import ConfigurationError

DEFAULT_DOCKER_URI = "unix:///var/run/docker.sock"
PULL_LOG_INTERVAL_SEC = 10.0


@dataclass(frozen=True)
class DockerConfig:
    """Connection settings for the Docker Engine API.

    Attributes:
        url: Daemon URI (``unix:///path``, ``tcp://host:port`` or ``http://host:port``)
        timeout: Total request timeout in seconds, ``None`` for no limit
        chunk_size: Read size used when streaming response bodies
        api_version: Optional API version prefix (e.g. ``"1.43"``)
    """

    url: str = DEFAULT_DOCKER_URI
    timeout: float | None = None
    chunk_size: int = 64 * 1024
    api_version: str | None = None


@dataclass
class InspectorOptions:
    """Options for one image inspection.

    Attributes:
        uri: Location of the Docker daemon socket
        image: Image reference to inspect
        dst_path: Destination directory, empty for a fresh temporary one
        docker_cfg: Docker config files holding registry credentials
        username: Registry username, replaces ``docker_cfg`` credentials
        password_file: File holding the password for ``username``
        pull_report_interval: Seconds between pull progress reports
    """

    image: str = ""
    uri: str = DEFAULT_DOCKER_URI
    dst_path: str = ""
    docker_cfg: list[str] = field(default_factory=list)
    username: str = ""
    password_file: str = ""
    pull_report_interval: float = PULL_LOG_INTERVAL_SEC

    def validate(self) -> None:
        """Check the invariants the inspection pipeline relies on.

        Raises:
            ConfigurationError: If the options are inconsistent
        """
        if not self.uri:
            raise ConfigurationError("Docker socket connection must be specified")
        if not self.image:
            raise ConfigurationError("Docker image to inspect must be specified")
        if self.docker_cfg and self.username:
            raise ConfigurationError(
                "Only specify dockercfg file or username/password pair for authentication"
            )
        if self.username and not self.password_file:
            raise ConfigurationError("Please specify password for the username")

    def docker_config(self) -> DockerConfig:
        """Build the daemon connection settings."""
        return DockerConfig(url=self.uri)
