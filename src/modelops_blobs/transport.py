"""HTTP execution layer for registry requests.

The blob protocol talks to the registry only through an ``HttpExecutor``. The
default executor, ``RegistryTransport``, sits on top of an ORAS client's
``requests`` session and auth backend. It owns the concerns the protocol
driver deliberately leaves out: credentials, replaying a request after an
authentication challenge, and turning error statuses into ``TransportError``.
"""

import base64
import io
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional, Protocol, Union

import oras.client
import requests

from .auth import AuthProvider
from .constants import ACR_TOKEN_USERNAME, BLOBS_VERSION, DEFAULT_TIMEOUT, ENV_INSECURE
from .content import BodyRegenerator
from .endpoint import is_cloud_registry, is_localhost
from .errors import AuthError, InsecureCloudRegistryError, TransportError

logger = logging.getLogger(__name__)

Body = Union[bytes, BinaryIO, None]

USER_AGENT = f"modelops-blobs/{BLOBS_VERSION}"


@dataclass
class BlobRequest:
    """A registry request with an optional body regenerator slot."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Body = None
    regenerator: Optional[BodyRegenerator] = None


class HttpExecutor(Protocol):
    """Executes registry requests.

    Implementations must be safe for concurrent use. Responses with an error
    status (>= 400) are raised as ``TransportError`` with the status set;
    connection failures are raised as ``TransportError`` with no status.
    Every returned response is streaming and must be closed by the caller.
    """

    def do(self, request: BlobRequest) -> requests.Response:
        ...

    def get(self, url: str) -> requests.Response:
        ...

    def head(self, url: str) -> requests.Response:
        ...

    def post(self, url: str, content_type: str, body: Body = None) -> requests.Response:
        ...


class ChallengeHandler(Protocol):
    """Answers a 401 challenge with headers for a retry, or None to give up.

    ``refresh`` is set when the rejected request already carried a token from
    an earlier challenge, so any cached token must be discarded.
    """

    def authenticate(
        self, response: requests.Response, headers: Dict[str, str], refresh: bool = False
    ) -> Optional[Dict[str, str]]:
        ...


class OrasChallengeHandler:
    """Challenge handler backed by an ORAS client's auth backend."""

    def __init__(self, client: "oras.client.OrasClient"):
        self.client = client

    def authenticate(
        self, response: requests.Response, headers: Dict[str, str], refresh: bool = False
    ) -> Optional[Dict[str, str]]:
        new_headers, changed = self.client.auth.authenticate_request(response, dict(headers), refresh=refresh)
        if not changed:
            return None
        return new_headers


class ResponseBody(io.RawIOBase):
    """Readable stream over a streaming response body.

    Closing the stream closes the underlying response.
    """

    def __init__(self, response: requests.Response):
        super().__init__()
        self._response = response
        raw = response.raw
        if hasattr(raw, "decode_content"):
            raw.decode_content = True

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self):
        return self._response.headers

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        data = self._response.raw.read(len(b))
        n = len(data)
        b[:n] = data
        return n

    def close(self) -> None:
        if not self.closed:
            self._response.close()
        super().close()


def read_body(response: requests.Response) -> str:
    """Drain a response body to text and close the response."""
    try:
        return response.text
    except requests.exceptions.RequestException as e:
        return f"<unreadable body: {e}>"
    finally:
        response.close()


def raise_for_status(response: requests.Response, url: Optional[str] = None) -> requests.Response:
    """Raise ``TransportError`` for error statuses, draining the body first."""
    if response.status_code < 400:
        return response
    url = url or response.url
    body = read_body(response)
    error_cls = AuthError if response.status_code in (401, 403) else TransportError
    raise error_cls(url, status_code=response.status_code, reason=response.reason or "", body=body)


def resolve_insecure(registry_host: str, insecure: Optional[bool] = None) -> bool:
    """Decide whether to talk plain HTTP to a registry.

    Localhost registries default to insecure; otherwise the
    MODELOPS_BLOBS_INSECURE environment variable decides.

    Raises:
        InsecureCloudRegistryError: If insecure mode is requested for a cloud registry
    """
    if insecure is None:
        if is_localhost(registry_host):
            insecure = True
        else:
            insecure = os.environ.get(ENV_INSECURE, "false").lower() in ("true", "1", "yes")

    if insecure and is_cloud_registry(registry_host):
        raise InsecureCloudRegistryError(registry_host)

    if is_localhost(registry_host) and not insecure:
        logger.warning(
            f"Connecting to localhost registry '{registry_host}' in secure mode. "
            f"If you get connection errors, you may need: {ENV_INSECURE}=true"
        )
    return insecure


class RegistryTransport:
    """Default ``HttpExecutor`` built on an ORAS client session."""

    def __init__(
        self,
        registry_host: str,
        insecure: Optional[bool] = None,
        auth_provider: Optional[AuthProvider] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        challenge_handler: Optional[ChallengeHandler] = None,
    ):
        """Initialize the transport.

        Args:
            registry_host: Registry host[:port] (e.g., "localhost:5555")
            insecure: Whether to use plain HTTP. If None, auto-detects
            auth_provider: Optional source of registry credentials
            timeout: Per-request timeout in seconds
            session: Optional session to use instead of the ORAS client's
            challenge_handler: Optional handler for 401 challenges. Defaults to
                the ORAS auth backend when no session is given.
        """
        self.registry_host = registry_host
        self.insecure = resolve_insecure(registry_host, insecure)
        self.timeout = timeout
        self.auth_provider = auth_provider
        self._authenticated = False
        self._auth_lock = threading.Lock()
        self._auth_headers: Dict[str, str] = {}
        # Authorization obtained by answering a challenge, sent on later requests
        self._token_headers: Dict[str, str] = {}

        if session is None:
            self.client = oras.client.OrasClient(insecure=self.insecure)
            self.session = self.client.session
            if challenge_handler is None:
                challenge_handler = OrasChallengeHandler(self.client)
        else:
            self.client = None
            self.session = session
        self.challenge_handler = challenge_handler

    @property
    def scheme(self) -> str:
        return "http" if self.insecure else "https"

    def close(self) -> None:
        self.session.close()

    def _ensure_authenticated(self) -> None:
        """Load credentials from the auth provider once, on first use."""
        if self._authenticated or not self.auth_provider:
            return
        with self._auth_lock:
            if self._authenticated:
                return
            self._load_credentials()
            self._authenticated = True

    def _load_credentials(self) -> None:
        try:
            credential = self.auth_provider.get_registry_credential(self.registry_host)
        except Exception as e:
            # Anonymous access may still work
            logger.warning(f"Failed to get credentials for {self.registry_host}: {e}")
            return

        if not credential.secret:
            logger.debug(f"Using anonymous access for {self.registry_host}")
            return

        if credential.username == ACR_TOKEN_USERNAME:
            if self.client is not None:
                self.client.auth.set_token_auth(credential.secret)
            self._auth_headers = {"Authorization": f"Bearer {credential.secret}"}
            logger.debug(f"Using ACR token authentication for {self.registry_host}")
        else:
            if self.client is not None:
                self.client.auth.set_basic_auth(credential.username, credential.secret)
            token = base64.b64encode(f"{credential.username}:{credential.secret}".encode()).decode()
            self._auth_headers = {"Authorization": f"Basic {token}"}
            logger.debug(f"Using basic authentication for {self.registry_host}")

    def _send(self, method: str, url: str, headers: Dict[str, str], body: Body) -> requests.Response:
        try:
            return self.session.request(
                method,
                url,
                headers=headers,
                data=body,
                stream=True,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(url, message=f"{method} {url} failed: {e}") from e

    def _replay_body(self, request: BlobRequest, start: Optional[int]) -> Body:
        """Obtain a body for replaying ``request``.

        Byte strings are resent as-is. A stream is replaced by a fresh one
        from the regenerator, or rewound if it is seekable.
        """
        body = request.body
        if body is None or isinstance(body, (bytes, bytearray)):
            return body
        if request.regenerator is not None:
            return request.regenerator.regenerate()
        if start is not None:
            body.seek(start)
            return body
        raise TransportError(
            request.url,
            message=(
                f"{request.method} {request.url} must be replayed after an authentication "
                f"challenge, but its body was consumed and no regenerator was provided"
            ),
        )

    def _remember_token(self, retry_headers: Optional[Dict[str, str]]) -> None:
        """Cache the Authorization a challenge produced, or forget it if rejected."""
        with self._auth_lock:
            if retry_headers and retry_headers.get("Authorization"):
                self._token_headers = {"Authorization": retry_headers["Authorization"]}
            else:
                self._token_headers = {}

    def do(self, request: BlobRequest) -> requests.Response:
        self._ensure_authenticated()
        with self._auth_lock:
            token_headers = dict(self._token_headers)
        headers = {"User-Agent": USER_AGENT, **self._auth_headers, **token_headers, **request.headers}

        start = None
        if hasattr(request.body, "seekable") and request.body.seekable():
            start = request.body.tell()

        response = self._send(request.method, request.url, headers, request.body)

        if response.status_code == 401 and self.challenge_handler is not None:
            # A cached token was rejected; ask for a new one instead of reusing it
            refresh = bool(token_headers)
            retry_headers = self.challenge_handler.authenticate(response, headers, refresh=refresh)
            if retry_headers:
                response.close()
                logger.debug(
                    f"registry.transport.replay method={request.method} url={request.url} refresh={refresh}"
                )
                body = self._replay_body(request, start)
                try:
                    response = self._send(request.method, request.url, {**headers, **retry_headers}, body)
                finally:
                    if body is not request.body and hasattr(body, "close"):
                        body.close()
                self._remember_token(retry_headers if response.status_code != 401 else None)
            elif refresh:
                self._remember_token(None)

        return raise_for_status(response, request.url)

    def get(self, url: str) -> requests.Response:
        return self.do(BlobRequest("GET", url))

    def head(self, url: str) -> requests.Response:
        return self.do(BlobRequest("HEAD", url))

    def post(self, url: str, content_type: str, body: Body = None) -> requests.Response:
        return self.do(BlobRequest("POST", url, headers={"Content-Type": content_type}, body=body))


__all__ = [
    "BlobRequest",
    "HttpExecutor",
    "ChallengeHandler",
    "OrasChallengeHandler",
    "RegistryTransport",
    "ResponseBody",
    "read_body",
    "raise_for_status",
    "resolve_insecure",
]
