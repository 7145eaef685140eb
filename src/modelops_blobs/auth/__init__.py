"""Minimal registry credential providers.

Token acquisition and refresh belong to the transport's auth backend; these
providers only supply the initial username/secret pair for a registry host.
"""

import base64
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

# docker login stores Docker Hub credentials under its v1 index URL
DOCKER_HUB_HOSTS = ("docker.io", "registry-1.docker.io", "index.docker.io", "registry.hub.docker.com")
DOCKER_HUB_AUTH_KEY = "https://index.docker.io/v1/"


@dataclass(frozen=True)
class Credential:
    """Username and password or token for a registry."""
    username: str
    secret: str


class AuthProvider(Protocol):
    """Source of registry credentials."""

    def get_registry_credential(self, registry: str) -> Credential:
        ...


class StaticAuth:
    """Static auth from environment variables."""

    def get_registry_credential(self, registry: str) -> Credential:
        """Get credentials from environment.

        Args:
            registry: Registry endpoint (ignored for static auth)

        Returns:
            Credential from environment variables or empty for anonymous
        """
        username = os.environ.get("REGISTRY_USERNAME", "")
        password = os.environ.get("REGISTRY_PASSWORD", "")

        if not password:
            # Return empty for anonymous/public registries
            return Credential(username="", secret="")

        return Credential(username=username, secret=password)


class DockerConfigAuth:
    """Credentials stored by ``docker login`` in ~/.docker/config.json.

    Only inline ``auth`` entries are read; credential helpers are not invoked.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or Path.home() / ".docker" / "config.json"

    def get_registry_credential(self, registry: str) -> Credential:
        registry_host = registry.split("/")[0]
        try:
            data = json.loads(self.config_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.debug(f"No usable docker config at {self.config_path}: {e}")
            return Credential(username="", secret="")

        auths = data.get("auths") or {}
        keys = [registry_host, f"https://{registry_host}", f"http://{registry_host}"]
        if registry_host in DOCKER_HUB_HOSTS:
            keys.append(DOCKER_HUB_AUTH_KEY)
        for key in keys:
            entry = auths.get(key)
            if entry and entry.get("auth"):
                decoded = base64.b64decode(entry["auth"]).decode("utf-8")
                username, _, secret = decoded.partition(":")
                return Credential(username=username, secret=secret)

        return Credential(username="", secret="")


def get_auth_provider(registry_ref: str) -> AuthProvider:
    """Get appropriate auth provider for standalone use.

    Args:
        registry_ref: Registry reference (e.g., "myacr.azurecr.io/repo")

    Returns:
        AuthProvider implementation
    """
    # In K8s/CI, use env vars
    if os.environ.get("REGISTRY_USERNAME") and os.environ.get("REGISTRY_PASSWORD"):
        return StaticAuth()

    # On a workstation, reuse `docker login`
    docker_auth = DockerConfigAuth()
    if docker_auth.config_path.exists():
        return docker_auth

    # Default to static/anonymous
    return StaticAuth()


__all__ = ["Credential", "AuthProvider", "StaticAuth", "DockerConfigAuth", "get_auth_provider"]
