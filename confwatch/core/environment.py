"""Backend selection and registration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Union
from urllib.parse import urlsplit

from .backend import Backend
from .config_loader import ConfigLoader
from .types import BackendConfig
# Lazy imports inside create_backend to avoid optional dependency import at module load time

logger = logging.getLogger(__name__)


def parse_backend_uri(uri: str) -> BackendConfig:
    """Turn a backend URI into a BackendConfig.

    Supported forms:

    - ``zk://host1:2181,host2:2181``
    - ``ssm://<stream name>``
    - ``rancher://host`` or a plain ``http(s)://`` metadata URL

    Raises:
        ValueError: If the scheme is not supported.
    """
    parts = urlsplit(uri)
    scheme = parts.scheme.lower()
    if scheme in {"zk", "zookeeper"}:
        nodes = [n for n in parts.netloc.split(",") if n]
        return BackendConfig(type="zookeeper", nodes=nodes)
    if scheme == "ssm":
        return BackendConfig(type="ssm", stream_name=parts.netloc or None)
    if scheme == "rancher":
        return BackendConfig(type="rancher", nodes=[parts.netloc] if parts.netloc else [])
    if scheme in {"http", "https"}:
        return BackendConfig(type="rancher", url=uri)
    raise ValueError(f"Unsupported backend: {uri}")


def _optional(**kwargs: object) -> Dict[str, object]:
    return {k: v for k, v in kwargs.items() if v is not None}


def create_backend(source: Union[str, BackendConfig], name: Optional[str] = None) -> Backend:
    """Create a backend instance from a URI or a BackendConfig.

    Args:
        source: Backend URI or settings.
        name: Optional custom name for the backend.

    Returns:
        Connected backend.

    Raises:
        ValueError: If the backend type is not supported.
        BackendError: If the backend cannot be reached.
    """
    cfg = parse_backend_uri(source) if isinstance(source, str) else source
    name = name or cfg.name
    if cfg.type == "zookeeper":
        from ..sources.zookeeper import ZookeeperBackend
        return ZookeeperBackend.connect(
            cfg.nodes or ["127.0.0.1:2181"],
            **_optional(timeout=cfg.timeout, name=name),
        )
    if cfg.type == "ssm":
        from ..sources.ssm import SsmBackend
        return SsmBackend.from_session(
            stream_name=cfg.stream_name,
            region=cfg.region,
            endpoint_url=cfg.endpoint_url,
            **_optional(delay=cfg.delay, poll_interval=cfg.poll_interval, name=name),
        )
    if cfg.type == "rancher":
        from ..sources.rancher_metadata import RancherMetadataBackend
        extra = _optional(timeout=cfg.timeout, name=name)
        if cfg.url:
            return RancherMetadataBackend(cfg.url, **extra)
        return RancherMetadataBackend.from_nodes(cfg.nodes, **extra)
    raise ValueError(f"Unsupported backend type: {cfg.type}")


class Environment:
    """Named backends declared in a confwatch.yaml file.

    Backends are created on first use and cached, so repeated lookups
    share one session.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """Initialize Environment.

        Args:
            config_path: Path to confwatch.yaml, or None to search for it.
        """
        self.loader = ConfigLoader(config_path)
        self._backends: Dict[str, Backend] = {}

    def backend(self, name_or_uri: str) -> Backend:
        """Get a backend by configured name, or by URI.

        Args:
            name_or_uri: Name under ``backends:`` or a backend URI.

        Returns:
            Backend instance.

        Raises:
            ValueError: If the name is unknown and not a URI.
        """
        if name_or_uri in self._backends:
            return self._backends[name_or_uri]
        cfg = self.loader.get_backend_config(name_or_uri)
        if cfg is None:
            if "://" not in name_or_uri:
                raise ValueError(f"Unknown backend: {name_or_uri}")
            cfg = parse_backend_uri(name_or_uri)
        logger.debug("Creating %s backend for %s", cfg.type, name_or_uri)
        backend = create_backend(cfg)
        self._backends[name_or_uri] = backend
        return backend

    def add_backend(self, name: str, backend: Backend) -> None:
        """Register a ready-made backend instance under ``name``."""
        self._backends[name] = backend
