"""In-memory registry that speaks the blob upload API.

``FakeRegistryServer`` stands in for a ``requests.Session``: the real
``RegistryTransport`` sends requests to it, so tests exercise the transport's
status handling and challenge replay as well as the protocol driver.
"""

import hashlib
import io
import urllib.parse
import uuid
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Dict, List, Optional, Set, Tuple

import requests
from requests.structures import CaseInsensitiveDict

FRESH_TOKEN = "Bearer fresh-token"


class FakeResponse(requests.Response):
    """Response that counts close() calls."""

    def __init__(self):
        super().__init__()
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        super().close()


def make_response(
    status: int,
    url: str,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
) -> FakeResponse:
    resp = FakeResponse()
    resp.status_code = status
    resp.reason = HTTPStatus(status).phrase
    resp.url = url
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.raw = io.BytesIO(body)
    resp.encoding = "utf-8"
    return resp


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: bytes


@dataclass
class FakeRegistryServer:
    """Conformant-enough registry with fault injection and a request log."""

    base_url: str = "http://registry.test"
    blobs: Dict[Tuple[str, str], bytes] = field(default_factory=dict)
    uploads: Dict[str, bytearray] = field(default_factory=dict)
    received: List[RecordedRequest] = field(default_factory=list)
    responses: List[FakeResponse] = field(default_factory=list)
    # method -> (status, body) returned once instead of the normal answer
    faults: Dict[str, Tuple[int, bytes]] = field(default_factory=dict)
    # methods that demand a fresh token before they are served
    challenge_methods: Set[str] = field(default_factory=set)
    # override Location returned when a session starts
    location_override: Optional[str] = None
    absolute_locations: bool = False
    omit_content_length: bool = False
    closed: bool = False
    # Authorization the registry currently accepts on challenged methods
    token: str = FRESH_TOKEN

    def fail_next(self, method: str, status: int, body: bytes = b"") -> None:
        self.faults[method] = (status, body)

    def calls(self, method: Optional[str] = None) -> List[RecordedRequest]:
        return [r for r in self.received if method is None or r.method == method]

    def put_blob(self, repository: str, data: bytes) -> str:
        digest = f"sha256:{hashlib.sha256(data).hexdigest()}"
        self.blobs[(repository, digest)] = data
        return digest

    def close(self) -> None:
        self.closed = True

    # requests.Session interface
    def request(self, method, url, headers=None, data=None, stream=False, timeout=None):
        headers = dict(headers or {})
        if data is None:
            body = b""
        elif isinstance(data, (bytes, bytearray)):
            body = bytes(data)
        else:
            body = data.read()
        self.received.append(RecordedRequest(method, url, headers, body))

        resp = self._handle(method, url, headers, body)
        self.responses.append(resp)
        return resp

    def _handle(self, method: str, url: str, headers: Dict[str, str], body: bytes) -> FakeResponse:
        if method in self.challenge_methods and headers.get("Authorization") != self.token:
            return make_response(
                401,
                url,
                b'{"errors":[{"code":"UNAUTHORIZED"}]}',
                {"WWW-Authenticate": 'Bearer realm="http://registry.test/token"'},
            )

        if method in self.faults:
            status, fault_body = self.faults.pop(method)
            return make_response(status, url, fault_body)

        parts = urllib.parse.urlsplit(url)
        path = parts.path
        query = dict(urllib.parse.parse_qsl(parts.query))

        if not path.startswith("/v2/") or "/blobs/" not in path:
            return make_response(404, url, b"not found")
        repository, _, rest = path[len("/v2/"):].partition("/blobs/")

        if rest.startswith("uploads/"):
            return self._handle_upload(method, url, repository, rest[len("uploads/"):], query, body)
        return self._handle_blob(method, url, repository, rest)

    def _handle_upload(self, method, url, repository, upload_id, query, body):
        if method == "POST" and upload_id == "":
            upload_id = uuid.uuid4().hex
            self.uploads[upload_id] = bytearray()
            location = f"/v2/{repository}/blobs/uploads/{upload_id}?_state=s{upload_id[:6]}"
            if self.absolute_locations:
                location = self.base_url + location
            if self.location_override is not None:
                location = self.location_override
            headers = {"Docker-Upload-UUID": upload_id}
            if location:
                headers["Location"] = location
            return make_response(202, url, b"", headers)

        if upload_id not in self.uploads:
            return make_response(404, url, b'{"errors":[{"code":"BLOB_UPLOAD_UNKNOWN"}]}')

        if method == "PATCH":
            self.uploads[upload_id].extend(body)
            size = len(self.uploads[upload_id])
            return make_response(
                202,
                url,
                b"",
                {
                    "Location": f"/v2/{repository}/blobs/uploads/{upload_id}",
                    "Range": f"0-{max(size - 1, 0)}",
                },
            )

        if method == "PUT":
            digest = query.get("digest")
            data = bytes(self.uploads[upload_id]) + body
            actual = f"sha256:{hashlib.sha256(data).hexdigest()}"
            if digest != actual:
                return make_response(400, url, b'{"errors":[{"code":"DIGEST_INVALID"}]}')
            del self.uploads[upload_id]
            self.blobs[(repository, digest)] = data
            return make_response(201, url, b"", {"Location": f"/v2/{repository}/blobs/{digest}"})

        return make_response(405, url, b"")

    def _handle_blob(self, method, url, repository, digest):
        data = self.blobs.get((repository, digest))
        if data is None:
            return make_response(404, url, b'{"errors":[{"code":"BLOB_UNKNOWN"}]}')
        headers = {"Docker-Content-Digest": digest}
        if not self.omit_content_length:
            headers["Content-Length"] = str(len(data))
        if method == "HEAD":
            return make_response(200, url, b"", headers)
        if method == "GET":
            return make_response(200, url, data, headers)
        return make_response(405, url, b"")


class FakeChallengeHandler:
    """Answers every challenge with the token the fake registry accepts."""

    def __init__(self, server: Optional[FakeRegistryServer] = None):
        self.server = server
        self.challenges = 0
        self.refreshes: List[bool] = []

    def authenticate(self, response, headers, refresh=False):
        self.challenges += 1
        self.refreshes.append(refresh)
        token = self.server.token if self.server is not None else FRESH_TOKEN
        return {"Authorization": token}
