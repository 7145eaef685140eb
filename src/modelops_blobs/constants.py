"""Constants for modelops-blobs."""

# Distribution API routes (relative to the registry base URL)
UPLOADS_PATH = "/v2/{repository}/blobs/uploads/"
BLOB_PATH = "/v2/{repository}/blobs/{digest}"

# Request bodies are opaque bytes
OCTET_STREAM = "application/octet-stream"

# Query parameter binding an upload session to a content digest
DIGEST_PARAM = "digest"

# Configuration
CONFIG_DIR = ".modelops"
CONFIG_FILE = "blobs.yaml"
DEFAULT_TIMEOUT = 300.0

# Environment variables
ENV_REGISTRY = "MODELOPS_BLOBS_REGISTRY"
ENV_INSECURE = "MODELOPS_BLOBS_INSECURE"
ENV_TIMEOUT = "MODELOPS_BLOBS_TIMEOUT"
ENV_CHUNKED = "MODELOPS_BLOBS_CHUNKED"

# Username ACR uses for access-token (bearer) authentication
ACR_TOKEN_USERNAME = "00000000-0000-0000-0000-000000000000"

# Version
BLOBS_VERSION = "0.1.0"
