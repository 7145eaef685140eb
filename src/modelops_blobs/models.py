"""Data models for blob transfers."""

import urllib.parse
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import DIGEST_PARAM
from .hashing import validate_digest


class TransferMode(str, Enum):
    """How an upload moves bytes into an upload session."""
    MONOLITHIC = "monolithic"  # single PUT carrying the whole body
    CHUNKED = "chunked"        # PATCH the body, then a zero-length PUT to commit


class BlobDescriptor(BaseModel):
    """Identity and length of a blob held by the registry.

    ``size`` is -1 when the registry did not report a Content-Length.
    """
    model_config = ConfigDict(frozen=True)

    digest: str
    size: int = Field(..., ge=-1)

    @field_validator("digest")
    @classmethod
    def _check_digest(cls, v: str) -> str:
        return validate_digest(v)


class UploadSession(BaseModel):
    """Registry-assigned continuation target for one blob upload.

    The location is opaque: it is passed back verbatim, with the digest query
    parameter added only on the request that commits the blob.
    """
    model_config = ConfigDict(frozen=True)

    repository: str
    location: str

    def with_digest(self, digest: str) -> str:
        """Return the session location bound to ``digest``.

        Query parameters the registry put on the location (e.g. ``_state``)
        are preserved; an existing digest parameter is replaced.
        """
        validate_digest(digest)
        parts = urllib.parse.urlsplit(self.location)
        query = [
            (k, v)
            for k, v in urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
            if k != DIGEST_PARAM
        ]
        query.append((DIGEST_PARAM, digest))
        return urllib.parse.urlunsplit(parts._replace(query=urllib.parse.urlencode(query)))


__all__ = ["TransferMode", "BlobDescriptor", "UploadSession"]
