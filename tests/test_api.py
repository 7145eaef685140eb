"""Tests for the file-level push/pull API."""

import pytest

from modelops_blobs.api import copy_blob, pull_file, push_file
from modelops_blobs.blobs import BlobClient
from modelops_blobs.endpoint import RegistryEndpoint
from modelops_blobs.errors import ConfigError, DigestMismatchError, TransportError
from modelops_blobs.models import BlobDescriptor
from modelops_blobs.transport import RegistryTransport

from tests.conftest import REPO, sha256_digest
from tests.fixtures.fake_registry import FakeRegistryServer


@pytest.fixture
def weights(tmp_path):
    path = tmp_path / "weights.bin"
    path.write_bytes(b"\x00\x01weights" * 500)
    return path


class TestPushFile:
    """Test pushing files."""

    def test_push_monolithic(self, client, server, weights):
        data = weights.read_bytes()

        desc = push_file(REPO, weights, client=client)

        assert desc == BlobDescriptor(digest=sha256_digest(data), size=len(data))
        assert server.blobs[(REPO, desc.digest)] == data
        assert [r.method for r in server.received] == ["HEAD", "POST", "PUT"]

    def test_push_chunked(self, client, server, weights):
        desc = push_file(REPO, weights, chunked=True, client=client)
        assert [r.method for r in server.received] == ["HEAD", "POST", "PATCH", "PUT"]
        assert client.has_blob(REPO, desc.digest)

    def test_skips_existing(self, client, server, weights):
        server.put_blob(REPO, weights.read_bytes())

        push_file(REPO, weights, client=client)

        assert [r.method for r in server.received] == ["HEAD"]

    def test_force_uploads_existing(self, client, server, weights):
        server.put_blob(REPO, weights.read_bytes())
        push_file(REPO, weights, skip_existing=False, client=client)
        assert [r.method for r in server.received] == ["POST", "PUT"]

    def test_push_survives_auth_challenge(self, client, server, weights):
        """The file is reopened when the upload has to be replayed."""
        server.challenge_methods = {"PUT"}
        desc = push_file(REPO, weights, client=client)
        assert server.blobs[(REPO, desc.digest)] == weights.read_bytes()

    def test_push_without_registry_configured(self, isolated_home, weights):
        with pytest.raises(ConfigError):
            push_file(REPO, weights)


class TestPullFile:
    """Test pulling files with verification."""

    def test_pull_verifies_and_writes(self, client, server, tmp_path):
        data = b"model weights " * 1000
        digest = server.put_blob(REPO, data)
        dest = tmp_path / "out" / "weights.bin"

        desc = pull_file(REPO, digest, dest, client=client)

        assert dest.read_bytes() == data
        assert desc == BlobDescriptor(digest=digest, size=len(data))
        assert list(dest.parent.iterdir()) == [dest]

    def test_mismatch_leaves_nothing(self, client, server, tmp_path):
        digest = sha256_digest(b"expected")
        server.blobs[(REPO, digest)] = b"tampered"
        dest = tmp_path / "weights.bin"

        with pytest.raises(DigestMismatchError) as exc_info:
            pull_file(REPO, digest, dest, client=client)

        assert exc_info.value.expected == digest
        assert exc_info.value.actual == sha256_digest(b"tampered")
        assert list(tmp_path.iterdir()) == []

    def test_missing_blob_leaves_nothing(self, client, tmp_path):
        with pytest.raises(TransportError) as exc_info:
            pull_file(REPO, sha256_digest(b"absent"), tmp_path / "weights.bin", client=client)
        assert exc_info.value.is_not_found
        assert list(tmp_path.iterdir()) == []

    def test_keeps_existing_file_on_failure(self, client, server, tmp_path):
        digest = sha256_digest(b"expected")
        server.blobs[(REPO, digest)] = b"tampered"
        dest = tmp_path / "weights.bin"
        dest.write_bytes(b"previous")

        with pytest.raises(DigestMismatchError):
            pull_file(REPO, digest, dest, client=client)

        assert dest.read_bytes() == b"previous"


class TestCopyBlob:
    """Test copying blobs between registries."""

    @pytest.fixture
    def target_server(self):
        return FakeRegistryServer(base_url="http://mirror.test")

    @pytest.fixture
    def target(self, target_server, challenge_handler):
        transport = RegistryTransport(
            "mirror.test", insecure=True, session=target_server, challenge_handler=challenge_handler
        )
        return BlobClient(RegistryEndpoint(target_server.base_url), transport)

    def test_copy(self, client, server, target, target_server):
        data = b"layer" * 4000
        digest = server.put_blob(REPO, data)

        desc = copy_blob(client, REPO, target, "mirror/models", digest)

        assert desc == BlobDescriptor(digest=digest, size=len(data))
        assert target_server.blobs[("mirror/models", digest)] == data

    def test_copy_skips_existing(self, client, server, target, target_server):
        digest = server.put_blob(REPO, b"layer")
        target_server.put_blob("mirror/models", b"layer")

        copy_blob(client, REPO, target, "mirror/models", digest)

        assert server.calls("GET") == []
        assert target_server.calls("PUT") == []

    def test_copy_missing_source(self, client, target, target_server):
        with pytest.raises(TransportError) as exc_info:
            copy_blob(client, REPO, target, "mirror/models", sha256_digest(b"absent"))
        assert exc_info.value.is_not_found
        assert target_server.received == []
