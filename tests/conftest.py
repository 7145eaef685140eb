"""Shared test fixtures and utilities."""

import hashlib
import os

import pytest

# Keep developer config and credentials out of tests
for _var in (
    "MODELOPS_BLOBS_REGISTRY",
    "MODELOPS_BLOBS_INSECURE",
    "MODELOPS_BLOBS_TIMEOUT",
    "MODELOPS_BLOBS_CHUNKED",
    "REGISTRY_USERNAME",
    "REGISTRY_PASSWORD",
):
    os.environ.pop(_var, None)

from modelops_blobs.blobs import BlobClient
from modelops_blobs.endpoint import RegistryEndpoint
from modelops_blobs.transport import RegistryTransport

from tests.fixtures.fake_registry import FakeChallengeHandler, FakeRegistryServer

REPO = "team/models"


def sha256_digest(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Isolate HOME so ~/.modelops and ~/.docker come from tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))  # Windows
    return home


@pytest.fixture
def server():
    """In-memory registry standing in for the HTTP session."""
    return FakeRegistryServer()


@pytest.fixture
def challenge_handler(server):
    return FakeChallengeHandler(server)


@pytest.fixture
def transport(server, challenge_handler):
    """Real transport wired to the in-memory registry."""
    return RegistryTransport(
        "registry.test",
        insecure=True,
        session=server,
        challenge_handler=challenge_handler,
    )


@pytest.fixture
def client(server, transport):
    """BlobClient talking to the in-memory registry."""
    return BlobClient(RegistryEndpoint(server.base_url), transport)


@pytest.fixture
def blob():
    """Factory returning (data, digest) pairs."""
    def _blob(data: bytes = b"layer bytes " * 100):
        return data, sha256_digest(data)
    return _blob
