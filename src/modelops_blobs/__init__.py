"""modelops-blobs: content-addressed blob transfers against OCI registries."""

from .blobs import BlobClient
from .content import (
    BodyRegenerator,
    BytesRegenerator,
    CallableRegenerator,
    ContentSource,
    FileRegenerator,
)
from .endpoint import RegistryEndpoint
from .errors import (
    AuthError,
    BlobError,
    MalformedLocationError,
    RegistryError,
    TransportError,
    UnexpectedStatusError,
)
from .models import BlobDescriptor, TransferMode, UploadSession
from .transport import BlobRequest, HttpExecutor, RegistryTransport, ResponseBody

__version__ = "0.1.0"

__all__ = [
    "BlobClient",
    "BlobDescriptor",
    "BlobRequest",
    "BodyRegenerator",
    "BytesRegenerator",
    "CallableRegenerator",
    "ContentSource",
    "FileRegenerator",
    "HttpExecutor",
    "RegistryEndpoint",
    "RegistryTransport",
    "ResponseBody",
    "TransferMode",
    "UploadSession",
    "AuthError",
    "BlobError",
    "MalformedLocationError",
    "RegistryError",
    "TransportError",
    "UnexpectedStatusError",
]
