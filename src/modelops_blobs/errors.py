"""Custom exceptions for modelops-blobs.

This module defines typed exceptions for the blob transfer protocol. Transport
failures are represented by a single structured error carrying an optional
HTTP status, so callers classify failures with a field check rather than by
unwrapping nested exception types.
"""

from typing import Optional


class BlobError(RuntimeError):
    """Base class for all blob transfer errors."""
    pass


# Registry Errors
class RegistryError(BlobError):
    """Base class for registry communication errors."""
    pass


class TransportError(RegistryError):
    """Request failed at the transport layer.

    ``status_code`` is None for pure transport failures (connection refused,
    DNS, timeout). When the registry answered with an error status the
    response body has already been drained into ``body``.
    """

    def __init__(
        self,
        url: str,
        status_code: Optional[int] = None,
        reason: str = "",
        body: str = "",
        message: Optional[str] = None,
    ):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body
        if message is None:
            if status_code is None:
                message = f"request to {url} failed"
            else:
                message = f"{url} returned {status_code} {reason}".rstrip()
                if body:
                    message += f": {body}"
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class AuthError(TransportError):
    """Authentication or authorization failed (401/403)."""
    pass


class UnexpectedStatusError(RegistryError):
    """Registry answered, but not with the status a protocol step requires."""

    def __init__(self, url: str, status_code: int, reason: str = "", body: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        self.body = body
        status = f"{status_code} {reason}".rstrip()
        super().__init__(f"retrieving {url} returned {status} response: {body}")


class MalformedLocationError(RegistryError):
    """Upload session Location header is missing or not a usable URL."""

    def __init__(self, url: str, location: Optional[str]):
        self.url = url
        self.location = location
        if not location or not location.strip():
            detail = "no Location header"
        else:
            detail = f"unparsable Location header {location!r}"
        super().__init__(f"Upload session started at {url} returned {detail}")


# Validation Errors
class InvalidDigestError(BlobError, ValueError):
    """Digest string is not of the form <algorithm>:<encoded>."""

    def __init__(self, digest: str, reason: str = "invalid format"):
        self.digest = digest
        super().__init__(f"Invalid content digest {digest!r}: {reason}")


class InvalidRepositoryError(BlobError, ValueError):
    """Repository name does not follow the distribution naming rules."""

    def __init__(self, repository: str):
        self.repository = repository
        super().__init__(
            f"Invalid repository name {repository!r}. "
            f"Use lowercase path components such as 'library/ubuntu'."
        )


# Integrity Errors
class IntegrityError(BlobError):
    """Base class for data integrity errors."""
    pass


class DigestMismatchError(IntegrityError):
    """Downloaded content digest doesn't match the requested digest."""

    def __init__(self, path: str, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Digest verification failed for {path}\n"
            f"  Expected: {expected}\n"
            f"  Got:      {actual}\n"
            f"The blob may be corrupted or tampered with."
        )


# Configuration Errors
class ConfigError(BlobError):
    """Base class for configuration errors."""
    pass


class InsecureCloudRegistryError(ConfigError):
    """Insecure (plain HTTP) mode requested for a cloud registry."""

    def __init__(self, registry_host: str):
        self.registry_host = registry_host
        super().__init__(
            f"Insecure mode is enabled for cloud registry '{registry_host}'. "
            f"This causes HTTP (not HTTPS) connections and authentication failures. "
            f"Unset MODELOPS_BLOBS_INSECURE or set it to 'false'."
        )
