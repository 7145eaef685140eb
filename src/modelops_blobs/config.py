"""Client configuration helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .constants import (
    CONFIG_DIR,
    CONFIG_FILE,
    DEFAULT_TIMEOUT,
    ENV_CHUNKED,
    ENV_INSECURE,
    ENV_REGISTRY,
    ENV_TIMEOUT,
)
from .errors import ConfigError
from .models import TransferMode


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass
class ClientConfig:
    """Settings for talking to a registry."""

    registry: Optional[str] = None   # host[:port]
    insecure: Optional[bool] = None  # None = auto-detect from the host
    timeout: float = DEFAULT_TIMEOUT
    chunked: bool = False

    @property
    def transfer_mode(self) -> TransferMode:
        return TransferMode.CHUNKED if self.chunked else TransferMode.MONOLITHIC

    def require_registry(self) -> str:
        if not self.registry:
            raise ConfigError(
                f"No registry configured. Pass --registry or set {ENV_REGISTRY}."
            )
        return self.registry


def default_config_path() -> Path:
    return Path.home() / CONFIG_DIR / CONFIG_FILE


def load_client_config(path: Optional[Path] = None) -> ClientConfig:
    """Load client configuration from YAML, then apply environment overrides.

    The file defaults to ~/.modelops/blobs.yaml. A missing or unreadable file
    yields the defaults.
    """
    cfg_path = path or default_config_path()
    data = {}
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except Exception:
            data = {}
        if not isinstance(data, dict):
            data = {}

    config = ClientConfig(
        registry=data.get("registry"),
        insecure=data.get("insecure"),
        timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
        chunked=bool(data.get("chunked", False)),
    )

    if os.environ.get(ENV_REGISTRY):
        config.registry = os.environ[ENV_REGISTRY]
    if os.environ.get(ENV_INSECURE):
        config.insecure = _parse_bool(os.environ[ENV_INSECURE])
    if os.environ.get(ENV_TIMEOUT):
        try:
            config.timeout = float(os.environ[ENV_TIMEOUT])
        except ValueError:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number of seconds, got {os.environ[ENV_TIMEOUT]!r}")
    if os.environ.get(ENV_CHUNKED):
        config.chunked = _parse_bool(os.environ[ENV_CHUNKED])

    return config


__all__ = ["ClientConfig", "load_client_config", "default_config_path"]
