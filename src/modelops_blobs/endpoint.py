"""URL routing for the registry blob API."""

import re
import urllib.parse
from typing import Optional

from .constants import BLOB_PATH, UPLOADS_PATH
from .errors import InvalidRepositoryError, MalformedLocationError
from .hashing import validate_digest

_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]+)[a-z0-9]+)*"
_REPOSITORY_RE = re.compile(rf"^{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*$")


def validate_repository(repository: str) -> str:
    """Validate a repository name (e.g. "library/ubuntu").

    Raises:
        InvalidRepositoryError: If the name does not follow the distribution grammar
    """
    if not repository or not _REPOSITORY_RE.match(repository):
        raise InvalidRepositoryError(repository)
    return repository


def _hostname(host: str) -> str:
    """Strip the port from a host[:port] string."""
    try:
        return urllib.parse.urlsplit(f"//{host}").hostname or host
    except ValueError:
        return host


def is_localhost(host: str) -> bool:
    """Check if a host[:port] is localhost-like and safe for insecure mode."""
    hostname = _hostname(host)
    return hostname in {"localhost", "127.0.0.1", "::1"} or hostname.endswith(".local")


def is_cloud_registry(host: str) -> bool:
    """Check if a host is a known cloud registry."""
    hostname = _hostname(host)
    cloud_suffixes = (".azurecr.io", ".gcr.io", "public.ecr.aws", ".amazonaws.com", ".pkg.dev")
    docker_hub_hosts = {"registry-1.docker.io", "index.docker.io", "docker.io", "registry.hub.docker.com"}
    return any(hostname.endswith(s) for s in cloud_suffixes) or hostname in docker_hub_hosts


class RegistryEndpoint:
    """Base URL of a registry plus the blob routes hanging off it."""

    def __init__(self, base_url: str):
        parts = urllib.parse.urlsplit(base_url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Registry URL must be http(s)://host[:port], got {base_url!r}")
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_host(cls, host: str, insecure: bool = False) -> "RegistryEndpoint":
        """Build an endpoint from a bare registry host (e.g. "localhost:5555")."""
        scheme = "http" if insecure else "https"
        return cls(f"{scheme}://{host}")

    @property
    def host(self) -> str:
        return urllib.parse.urlsplit(self.base_url).netloc

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def uploads_url(self, repository: str) -> str:
        validate_repository(repository)
        return self.url(UPLOADS_PATH.format(repository=repository))

    def blob_url(self, repository: str, digest: str) -> str:
        validate_repository(repository)
        validate_digest(digest)
        return self.url(BLOB_PATH.format(repository=repository, digest=digest))

    def __repr__(self) -> str:
        return f"RegistryEndpoint({self.base_url!r})"


def resolve_location(request_url: str, location: Optional[str]) -> str:
    """Resolve an upload session Location against the URL that returned it.

    Registries may answer with an absolute URL or with a path relative to
    the registry host.

    Raises:
        MalformedLocationError: If the header is missing or not a usable URL
    """
    if not location or not location.strip():
        raise MalformedLocationError(request_url, location)
    try:
        resolved = urllib.parse.urljoin(request_url, location.strip())
        parts = urllib.parse.urlsplit(resolved)
        # Accessing port validates it
        parts.port
    except ValueError as e:
        raise MalformedLocationError(request_url, location) from e
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise MalformedLocationError(request_url, location)
    return resolved


__all__ = [
    "RegistryEndpoint",
    "resolve_location",
    "validate_repository",
    "is_localhost",
    "is_cloud_registry",
]
