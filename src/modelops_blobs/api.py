"""Stable API for pushing and pulling files as blobs.

These helpers sit on top of ``BlobClient`` for callers working with files on
disk: they compute the digest before a push and verify it after a pull. The
protocol driver itself does neither.
"""

import hashlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from .blobs import BlobClient
from .config import load_client_config
from .content import ContentSource
from .errors import DigestMismatchError
from .hashing import compute_file_digest, digest_algorithm
from .models import BlobDescriptor, TransferMode

logger = logging.getLogger(__name__)

_COPY_BUFSIZE = 1024 * 1024


def _default_client() -> BlobClient:
    config = load_client_config()
    return BlobClient.connect(
        config.require_registry(),
        insecure=config.insecure,
        timeout=config.timeout,
    )


def push_file(
    repository: str,
    path: Union[str, Path],
    chunked: bool = False,
    skip_existing: bool = True,
    client: Optional[BlobClient] = None,
) -> BlobDescriptor:
    """Upload a file as a blob and return its descriptor.

    Args:
        repository: Repository name (e.g., "team/models")
        path: File to upload
        chunked: Use the PATCH-then-PUT upload instead of a single PUT
        skip_existing: Don't upload if the registry already has the digest
        client: BlobClient to use (defaults to one from the client config)

    Returns:
        BlobDescriptor with the file's digest and size

    Example:
        >>> from modelops_blobs.api import push_file
        >>> desc = push_file("team/models", "weights.bin")
        >>> print(desc.digest)
        sha256:abc123...
    """
    path = Path(path)
    client = client or _default_client()
    digest = compute_file_digest(path)
    descriptor = BlobDescriptor(digest=digest, size=path.stat().st_size)

    if skip_existing and client.has_blob(repository, digest):
        logger.info(f"Skipping upload of {path}: {digest} already in {repository}")
        return descriptor

    mode = TransferMode.CHUNKED if chunked else TransferMode.MONOLITHIC
    with ContentSource.from_path(path) as source:
        client.upload(repository, digest, source, mode=mode)
    return descriptor


def pull_file(
    repository: str,
    digest: str,
    dest: Union[str, Path],
    client: Optional[BlobClient] = None,
) -> BlobDescriptor:
    """Download a blob to ``dest``, verifying its digest.

    The blob is written to a temporary file beside ``dest`` and only renamed
    into place once the digest matches.

    Raises:
        DigestMismatchError: If the downloaded bytes don't match ``digest``
    """
    dest = Path(dest)
    client = client or _default_client()
    h = hashlib.new(digest_algorithm(digest))
    dest.parent.mkdir(parents=True, exist_ok=True)

    fd, tmppath = tempfile.mkstemp(prefix=f".{dest.name}.partial-", dir=dest.parent)
    try:
        size = 0
        with os.fdopen(fd, "wb") as out, client.download_blob(repository, digest) as body:
            while True:
                chunk = body.read(_COPY_BUFSIZE)
                if not chunk:
                    break
                h.update(chunk)
                out.write(chunk)
                size += len(chunk)
            out.flush()
            os.fsync(out.fileno())

        actual = f"{h.name}:{h.hexdigest()}"
        if actual != digest:
            raise DigestMismatchError(str(dest), digest, actual)

        os.replace(tmppath, dest)
    except Exception:
        Path(tmppath).unlink(missing_ok=True)
        raise

    return BlobDescriptor(digest=digest, size=size)


def copy_blob(
    source: BlobClient,
    source_repository: str,
    target: BlobClient,
    target_repository: str,
    digest: str,
) -> BlobDescriptor:
    """Copy a blob between registries (or repositories) through a local spool.

    The blob is spooled to a temporary file so the upload can be replayed
    after an authentication challenge.
    """
    descriptor = source.blob_metadata(source_repository, digest)
    if target.has_blob(target_repository, digest):
        return descriptor

    with tempfile.TemporaryDirectory() as tmpdir:
        spool = Path(tmpdir) / "blob"
        with source.download_blob(source_repository, digest) as body, spool.open("wb") as out:
            shutil.copyfileobj(body, out, _COPY_BUFSIZE)
        with ContentSource.from_path(spool) as content:
            target.upload_blob(target_repository, digest, content)
    return descriptor


__all__ = ["push_file", "pull_file", "copy_blob"]
