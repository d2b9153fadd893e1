"""Registry credentials for authenticated image pulls."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional

import aiofiles

from ..exceptions import CredentialError

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Default Empty Authentication"


@dataclass(frozen=True)
class Credential:
    """A named username/password pair used for one pull attempt."""

    name: str
    username: str = ""
    password: str = ""
    email: str = ""
    server_address: str = ""

    @classmethod
    def anonymous(cls) -> "Credential":
        return cls(name=ANONYMOUS_NAME)

    @property
    def is_anonymous(self) -> bool:
        return not self.username and not self.password

    def registry_auth(self) -> str:
        """Encode the credential for the ``X-Registry-Auth`` header."""
        payload = {
            key: value
            for key, value in (
                ("username", self.username),
                ("password", self.password),
                ("email", self.email),
                ("serveraddress", self.server_address),
            )
            if value
        }
        return base64.urlsafe_b64encode(json.dumps(payload).encode("utf-8")).decode(
            "ascii"
        )

    def __repr__(self) -> str:
        return f"Credential(name={self.name!r}, username={self.username!r})"


class CredentialSet:
    """Ordered collection of credentials, tried one after another."""

    def __init__(self, credentials: Optional[Iterable[Credential]] = None) -> None:
        self._credentials: list[Credential] = list(credentials or [])

    def add(self, credential: Credential) -> None:
        self._credentials.append(credential)

    def extend(self, credentials: Iterable[Credential]) -> None:
        self._credentials.extend(credentials)

    @property
    def names(self) -> list[str]:
        return [credential.name for credential in self._credentials]

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __repr__(self) -> str:
        return f"CredentialSet({self.names!r})"


def _parse_auth_entry(registry: str, entry: Any) -> tuple[str, str, str] | None:
    """Return (username, password, email) for one docker config entry."""
    if not isinstance(entry, dict):
        return None

    email = entry.get("email", "") or ""
    auth = entry.get("auth", "")
    if auth:
        try:
            decoded = base64.b64decode(auth).decode("utf-8")
        except (binascii.Error, TypeError, UnicodeDecodeError) as e:
            raise CredentialError(f"Invalid auth for {registry}: {e}") from e
        username, sep, password = decoded.partition(":")
        if not sep:
            raise CredentialError(f"Invalid auth for {registry}: missing ':'")
        return username, password, email

    username = entry.get("username", "")
    if username:
        return username, entry.get("password", "") or "", email
    return None


def parse_docker_config(content: str, source: str) -> list[Credential]:
    """Parse a docker config document into credentials.

    Both the ``config.json`` layout (``{"auths": {...}}``) and the legacy
    ``.dockercfg`` layout (registries at the top level) are accepted.

    Args:
        content: Raw file content
        source: Name of the file, used as credential name prefix

    Returns:
        Credentials in file order

    Raises:
        CredentialError: If the document is invalid or has no usable entry
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CredentialError(f"Unable to parse docker config file {source}: {e}") from e
    if not isinstance(data, dict):
        raise CredentialError(f"Unable to parse docker config file {source}")

    auths = data["auths"] if "auths" in data else data
    if not isinstance(auths, dict):
        raise CredentialError(f"Invalid auths section in {source}")

    credentials = []
    for registry, entry in auths.items():
        parsed = _parse_auth_entry(registry, entry)
        if parsed is None:
            continue
        username, password, email = parsed
        credentials.append(
            Credential(
                name=f"{source}/{registry}",
                username=username,
                password=password,
                email=email,
                server_address=registry,
            )
        )

    if not credentials:
        raise CredentialError(f"No auths were found in the given dockercfg file {source}")
    return credentials


async def _read_utf8(path: str, what: str) -> str:
    """Read a whole file as UTF-8 without newline translation."""
    try:
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
    except OSError as e:
        raise CredentialError(f"Unable to open {what} {path}: {e}") from e
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CredentialError(f"{what.capitalize()} {path} is not valid UTF-8: {e}") from e


async def load_docker_config(path: str) -> list[Credential]:
    """Read credentials from a docker config file.

    Raises:
        CredentialError: If the file cannot be read or holds no credentials
    """
    content = await _read_utf8(path, "docker config file")
    return parse_docker_config(content, path)


async def resolve_credentials(
    docker_cfg_files: Iterable[str] = (),
    username: Optional[str] = None,
    password_file: Optional[str] = None,
) -> CredentialSet:
    """Build the ordered credential set for one inspection.

    The anonymous credential always comes first so that public images pull
    without any configuration. An explicit username replaces everything else.

    Args:
        docker_cfg_files: Docker config files, read in order
        username: Explicit registry username
        password_file: File whose content is the password for ``username``

    Returns:
        CredentialSet to try in order

    Raises:
        CredentialError: If the password file for ``username`` cannot be read
    """
    if username:
        if not password_file:
            raise CredentialError(f"No password file given for user {username}")
        password = await _read_utf8(password_file, "password file")
        return CredentialSet([Credential(name=username, username=username, password=password)])

    credentials = CredentialSet()
    credentials.add(Credential.anonymous())
    for cfg_file in docker_cfg_files:
        try:
            credentials.extend(await load_docker_config(cfg_file))
        except CredentialError as e:
            logger.warning(
                "Unable to read docker configuration from %s. Error: %s", cfg_file, e
            )
    return credentials
