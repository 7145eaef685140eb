"""Blob transfer protocol driver.

Implements the registry blob API on top of an injected ``HttpExecutor``:
upload sessions, monolithic and chunked uploads, streaming downloads, and
existence/metadata probes. Every call is a self-contained exchange; nothing is
cached between calls and nothing is retried here. Retrying a request after an
authentication challenge is the executor's job, which is why every upload
forwards the content's regenerator with its requests.
"""

import logging
from typing import Optional, Union

from .auth import AuthProvider, get_auth_provider
from .constants import DEFAULT_TIMEOUT, OCTET_STREAM
from .content import ContentSource
from .endpoint import RegistryEndpoint, resolve_location
from .errors import TransportError, UnexpectedStatusError
from .hashing import validate_digest
from .models import BlobDescriptor, TransferMode, UploadSession
from .transport import BlobRequest, HttpExecutor, RegistryTransport, ResponseBody, read_body

logger = logging.getLogger(__name__)

Content = Union[ContentSource, bytes, bytearray]


def _as_source(content: Content) -> ContentSource:
    if isinstance(content, (bytes, bytearray)):
        return ContentSource.from_bytes(bytes(content))
    return content


class BlobClient:
    """Moves blobs to and from one registry."""

    def __init__(self, endpoint: RegistryEndpoint, executor: HttpExecutor):
        self.endpoint = endpoint
        self.executor = executor

    @classmethod
    def connect(
        cls,
        registry: str,
        insecure: Optional[bool] = None,
        auth_provider: Optional[AuthProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "BlobClient":
        """Create a client for a registry host using the default transport.

        Args:
            registry: Registry host[:port] (e.g., "localhost:5555")
            insecure: Whether to use plain HTTP. If None, auto-detects
            auth_provider: Credential source. Defaults to get_auth_provider()
            timeout: Per-request timeout in seconds
        """
        transport = RegistryTransport(
            registry,
            insecure=insecure,
            auth_provider=auth_provider or get_auth_provider(registry),
            timeout=timeout,
        )
        return cls(RegistryEndpoint.from_host(registry, insecure=transport.insecure), transport)

    def close(self) -> None:
        close = getattr(self.executor, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "BlobClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ============= UPLOAD SESSIONS =============

    def initiate_upload(self, repository: str) -> UploadSession:
        """Start an upload session in ``repository``.

        Returns:
            UploadSession whose location is valid for exactly one transfer

        Raises:
            TransportError: If the request fails or the registry rejects it
            UnexpectedStatusError: If the registry answers with a non-2xx status
            MalformedLocationError: If the Location header is missing or invalid
        """
        url = self.endpoint.uploads_url(repository)
        logger.debug(f"registry.blob.initiate-upload url={url} repository={repository}")

        response = self.executor.post(url, OCTET_STREAM)
        try:
            if not 200 <= response.status_code < 300:
                raise UnexpectedStatusError(url, response.status_code, response.reason or "", response.text)
            location = resolve_location(response.url or url, response.headers.get("Location"))
        finally:
            read_body(response)
        return UploadSession(repository=repository, location=location)

    def _exchange(self, request: BlobRequest, expected_status: Optional[int] = None) -> None:
        """Execute one protocol step, checking its status when one is required."""
        response = self.executor.do(request)
        body = read_body(response)
        if expected_status is not None and response.status_code != expected_status:
            raise UnexpectedStatusError(request.url, response.status_code, response.reason or "", body)

    # ============= UPLOADS =============

    def upload(
        self,
        repository: str,
        digest: str,
        content: Content,
        mode: TransferMode = TransferMode.MONOLITHIC,
    ) -> None:
        """Upload a blob through a fresh upload session.

        In monolithic mode the whole body goes in one PUT bound to ``digest``.
        In chunked mode the body is PATCHed to the session (202 Accepted) and
        then committed with a zero-length PUT bound to ``digest`` (201 Created).
        The registry verifies the bytes against ``digest``; nothing is hashed
        client-side.

        A failed transfer is not resumed: upload again, which starts a new
        session.

        Args:
            repository: Repository name (e.g., "library/ubuntu")
            digest: Content digest the registry must verify (sha256:...)
            content: Blob bytes, optionally with a regenerator for replays
            mode: Transfer mode

        Raises:
            TransportError: If a request fails or the registry rejects it
            UnexpectedStatusError: If a chunked step gets the wrong status
            MalformedLocationError: If the session location is unusable
        """
        validate_digest(digest)
        mode = TransferMode(mode)
        source = _as_source(content)

        session = self.initiate_upload(repository)

        if mode is TransferMode.CHUNKED:
            logger.debug(
                f"registry.blob.chunked-upload url={session.location} "
                f"repository={repository} digest={digest}"
            )
            self._exchange(
                BlobRequest(
                    "PATCH",
                    session.location,
                    headers={"Content-Type": OCTET_STREAM},
                    body=source.stream,
                    regenerator=source.regenerator,
                ),
                expected_status=202,
            )

            commit_url = session.with_digest(digest)
            logger.debug(
                f"registry.blob.complete-chunked-upload url={commit_url} "
                f"repository={repository} digest={digest}"
            )
            self._exchange(
                BlobRequest(
                    "PUT",
                    commit_url,
                    headers={
                        "Content-Type": OCTET_STREAM,
                        "Content-Range": "0-0",
                        "Content-Length": "0",
                    },
                    body=b"",
                    regenerator=source.regenerator,
                ),
                expected_status=201,
            )
        else:
            upload_url = session.with_digest(digest)
            logger.debug(f"registry.blob.upload url={upload_url} repository={repository} digest={digest}")
            self._exchange(
                BlobRequest(
                    "PUT",
                    upload_url,
                    headers={"Content-Type": OCTET_STREAM},
                    body=source.stream,
                    regenerator=source.regenerator,
                )
            )

    def upload_blob(self, repository: str, digest: str, content: Content) -> None:
        """Upload a blob in a single PUT."""
        self.upload(repository, digest, content, mode=TransferMode.MONOLITHIC)

    def upload_blob_chunked(self, repository: str, digest: str, content: Content) -> None:
        """Upload a blob with PATCH, then commit it with a zero-length PUT."""
        self.upload(repository, digest, content, mode=TransferMode.CHUNKED)

    # ============= DOWNLOADS AND PROBES =============

    def download_blob(self, repository: str, digest: str) -> ResponseBody:
        """Stream a blob's bytes.

        The status is not checked here beyond what the executor rejects. The
        caller owns the returned stream and must close it.
        """
        url = self.endpoint.blob_url(repository, digest)
        logger.debug(f"registry.blob.download url={url} repository={repository} digest={digest}")
        return ResponseBody(self.executor.get(url))

    def has_blob(self, repository: str, digest: str) -> bool:
        """Check whether the registry holds a blob.

        Returns:
            True on 200, False when the registry reports 404

        Raises:
            TransportError: For any failure other than not-found
        """
        url = self.endpoint.blob_url(repository, digest)
        logger.debug(f"registry.blob.check url={url} repository={repository} digest={digest}")

        try:
            response = self.executor.head(url)
        except TransportError as e:
            if e.is_not_found:
                return False
            raise
        try:
            return response.status_code == 200
        finally:
            response.close()

    def blob_metadata(self, repository: str, digest: str) -> BlobDescriptor:
        """Describe a blob without transferring it.

        Unlike has_blob, a missing blob is an error here.

        Raises:
            TransportError: If the probe fails, including 404
        """
        url = self.endpoint.blob_url(repository, digest)
        logger.debug(f"registry.blob.check url={url} repository={repository} digest={digest}")

        response = self.executor.head(url)
        try:
            content_length = response.headers.get("Content-Length")
        finally:
            response.close()

        size = int(content_length) if content_length is not None else -1
        return BlobDescriptor(digest=digest, size=size)


__all__ = ["BlobClient"]
