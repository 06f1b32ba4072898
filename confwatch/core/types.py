"""Type definitions for the confwatch backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple


# Flat "/"-delimited key -> string value, never mutated once returned.
ConfigSnapshot = Mapping[str, str]


def freeze(values: Dict[str, str]) -> ConfigSnapshot:
    """Wrap a freshly built key/value dict as a read-only snapshot."""
    return MappingProxyType(values)


class StopSignal(Protocol):
    """Receive-only cancellation signal (``threading.Event`` satisfies it)."""

    def is_set(self) -> bool:
        ...


@dataclass(frozen=True)
class WatchRequest:
    """Inputs of one ``watch_prefix`` call.

    Attributes:
        prefix: Key prefix scoping the snapshot taken before watching.
        keys: Filter prefixes; only changes under one of them count.
        cursor: Opaque resume token, empty for "start from latest".
        stop: Optional external stop signal.
    """

    prefix: str
    keys: Tuple[str, ...]
    cursor: str = ""
    stop: Optional[StopSignal] = None


@dataclass
class BackendConfig:
    """Settings for one backend, as loaded from ``confwatch.yaml``.

    Attributes:
        type: Backend kind: ``zookeeper``, ``ssm`` or ``rancher``.
        name: Optional name the backend is registered under.
        nodes: Backend node addresses (``host:port``).
        stream_name: Kinesis stream carrying parameter change events.
        region: AWS region for the SSM/Kinesis clients.
        endpoint_url: Override for the SSM endpoint.
        url: Full metadata service URL, overrides ``nodes``.
        timeout: Session/request timeout in seconds.
        delay: Wait before the first stream fetch, in seconds.
        poll_interval: Wait between empty stream fetches, in seconds.
    """

    type: str
    name: Optional[str] = None
    nodes: List[str] = field(default_factory=list)
    stream_name: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    url: Optional[str] = None
    timeout: Optional[float] = None
    delay: Optional[float] = None
    poll_interval: Optional[float] = None

    @staticmethod
    def from_dict(d: Dict[str, Any], name: Optional[str] = None) -> "BackendConfig":
        """Create a BackendConfig from a raw YAML mapping.

        Args:
            d: Mapping with at least a ``type`` entry.
            name: Name the backend is registered under.

        Returns:
            BackendConfig instance.

        Raises:
            ValueError: If ``type`` is missing.
        """
        if "type" not in d:
            raise ValueError(f"Backend {name or '<unnamed>'} must have a 'type'")
        nodes = d.get("nodes") or []
        if isinstance(nodes, str):
            nodes = [n.strip() for n in nodes.split(",") if n.strip()]
        return BackendConfig(
            type=str(d["type"]).lower(),
            name=name,
            nodes=list(nodes),
            stream_name=d.get("stream_name"),
            region=d.get("region"),
            endpoint_url=d.get("endpoint_url"),
            url=d.get("url"),
            timeout=d.get("timeout"),
            delay=d.get("delay"),
            poll_interval=d.get("poll_interval"),
        )
