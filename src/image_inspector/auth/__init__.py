"""Registry credential handling."""

from .credentials import (
    ANONYMOUS_NAME,
    Credential,
    CredentialSet,
    load_docker_config,
    resolve_credentials,
)

__all__ = [
    "ANONYMOUS_NAME",
    "Credential",
    "CredentialSet",
    "load_docker_config",
    "resolve_credentials",
]
