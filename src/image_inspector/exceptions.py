"""Custom exceptions for the image inspector."""

from typing import Any, Optional


class InspectorError(Exception):
    """Base exception for all image inspector errors."""

    pass


class ConfigurationError(InspectorError):
    """Raised when inspector options are inconsistent."""

    pass


class CredentialError(InspectorError):
    """Raised when registry credentials cannot be loaded."""

    pass


class RuntimeConnectionError(InspectorError):
    """Raised when unable to connect to the container runtime."""

    pass


class RuntimeAPIError(InspectorError):
    """Raised when the container runtime answers with an error status."""

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class ImageNotFoundError(RuntimeAPIError):
    """Raised when the runtime does not know the requested image."""

    pass


class PullAttemptError(InspectorError):
    """Raised when the pull stream reports an error message."""

    pass


class PullDecodeError(InspectorError):
    """Raised when a pull progress message cannot be decoded."""

    pass


class MaterializationError(InspectorError):
    """Raised when a tar entry cannot be written to disk."""

    pass


class PhaseError(InspectorError):
    """Error annotated with the inspection phase that failed."""

    phase = "inspect"

    def __init__(self, message: str, image_metadata: Optional[Any] = None) -> None:
        super().__init__(message)
        self.image_metadata = image_metadata

    def __str__(self) -> str:
        return f"[{self.phase}] {super().__str__()}"


class PullError(PhaseError):
    """Raised when the image could not be pulled with any credential."""

    phase = "pull"


class DestinationError(PhaseError):
    """Raised when the extraction directory cannot be set up."""

    phase = "directory"


class ProvisionError(PhaseError):
    """Raised when the ephemeral container cannot be created or inspected."""

    phase = "provision"


class ExtractionError(PhaseError):
    """Raised when the container filesystem cannot be extracted."""

    phase = "extract"
