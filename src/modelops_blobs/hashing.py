"""Content digest parsing and hashing helpers.

The transfer protocol never hashes what it uploads: the caller claims a digest
and the registry rejects content that does not match it. These helpers exist
for callers (the CLI and the stable API) that need to compute a digest before
pushing, or verify one after pulling.
"""

from pathlib import Path
from typing import BinaryIO, Iterable
import hashlib
import re

from .errors import InvalidDigestError

# OCI image-spec digest grammar
_DIGEST_RE = re.compile(r"^(?P<algorithm>[a-z0-9]+(?:[+._-][a-z0-9]+)*):(?P<encoded>[a-zA-Z0-9=_-]+)$")

# Registered algorithms and the length of their hex encoding
_KNOWN_ALGORITHMS = {
    "sha256": 64,
    "sha512": 128,
}

_CHUNK_SIZE = 8192


def validate_digest(digest: str) -> str:
    """Validate a content digest string.

    Unknown algorithms are accepted as long as they follow the grammar; the
    registry is the authority on which algorithms it supports.

    Args:
        digest: Digest in format "<algorithm>:<encoded>"

    Returns:
        The digest, unchanged

    Raises:
        InvalidDigestError: If the digest is malformed
    """
    if not isinstance(digest, str):
        raise InvalidDigestError(repr(digest), "not a string")

    match = _DIGEST_RE.match(digest)
    if not match:
        raise InvalidDigestError(digest)

    algorithm = match.group("algorithm")
    encoded = match.group("encoded")
    expected_len = _KNOWN_ALGORITHMS.get(algorithm)
    if expected_len is not None:
        if len(encoded) != expected_len:
            raise InvalidDigestError(
                digest, f"{algorithm} digests must have {expected_len} hex characters"
            )
        if not re.fullmatch(r"[a-f0-9]+", encoded):
            raise InvalidDigestError(digest, f"{algorithm} digests must be lowercase hex")
    return digest


def digest_algorithm(digest: str) -> str:
    """Return the algorithm part of a validated digest."""
    return validate_digest(digest).split(":", 1)[0]


def _new_hash(algorithm: str):
    if algorithm not in _KNOWN_ALGORITHMS:
        raise InvalidDigestError(f"{algorithm}:", f"unsupported algorithm '{algorithm}'")
    return hashlib.new(algorithm)


def compute_chunks_digest(chunks: Iterable[bytes], algorithm: str = "sha256") -> str:
    """Compute a digest over an iterable of byte chunks."""
    h = _new_hash(algorithm)
    for chunk in chunks:
        h.update(chunk)
    return f"{algorithm}:{h.hexdigest()}"


def compute_bytes_digest(data: bytes, algorithm: str = "sha256") -> str:
    """Compute the digest of an in-memory byte string.

    Returns:
        Digest in format "sha256:xxxx"
    """
    return compute_chunks_digest([data], algorithm)


def compute_stream_digest(stream: BinaryIO, algorithm: str = "sha256") -> str:
    """Compute the digest of a binary stream, reading it to the end."""
    return compute_chunks_digest(iter(lambda: stream.read(_CHUNK_SIZE), b""), algorithm)


def compute_file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Compute the digest of file contents.

    Args:
        path: Path to file to hash
        algorithm: Hash algorithm name

    Returns:
        Digest in format "sha256:xxxx"
    """
    with Path(path).open("rb") as f:
        return compute_stream_digest(f, algorithm)


__all__ = [
    "validate_digest",
    "digest_algorithm",
    "compute_bytes_digest",
    "compute_chunks_digest",
    "compute_stream_digest",
    "compute_file_digest",
]
