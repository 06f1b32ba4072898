"""Rancher metadata service backend."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Sequence

import httpx

from ..core.errors import DecodeError, TransportError
from ..core.flatten import flatten
from ..core.types import ConfigSnapshot, StopSignal, freeze

logger = logging.getLogger(__name__)

METADATA_URL = "http://rancher-metadata"


def wait_for_connection(
    probe: Callable[[], object],
    unit: float = 1.0,
    ceiling: float = 20.0,
) -> None:
    """Run ``probe`` until it succeeds, backing off exponentially.

    The wait starts at ``unit`` seconds and doubles after every failed
    probe; once the cumulative wait reaches ``ceiling`` the last error is
    raised.

    Args:
        probe: Callable raising TransportError on failure.
        unit: First backoff interval in seconds.
        ceiling: Cumulative wait after which probing gives up.

    Raises:
        TransportError: The error of the last failed probe.
    """
    waited = 0.0
    backoff = unit
    while True:
        try:
            probe()
            return
        except TransportError as e:
            if waited >= ceiling:
                raise
            logger.debug("Probe failed (%s), retrying in %ss", e, backoff)
        time.sleep(backoff)
        waited += backoff
        backoff *= 2


class RancherMetadataBackend:
    """Rancher metadata service source (read only, no change notification).

    Callers that need updates re-poll ``get_values`` on their own schedule;
    ``watch_prefix`` returns at once.
    """

    def __init__(
        self,
        url: str = METADATA_URL,
        name: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        timeout: float = 20.0,
        backoff_unit: float = 1.0,
        backoff_ceiling: float = 20.0,
    ):
        self.url = url.rstrip("/")
        self.name = name or f"rancher:{self.url}"
        self._client = client or httpx.Client(base_url=self.url, timeout=timeout)
        logger.info("Using Rancher Metadata URL: %s", self.url)
        wait_for_connection(lambda: self._request("/"), backoff_unit, backoff_ceiling)

    @classmethod
    def from_nodes(cls, nodes: Sequence[str], **kwargs) -> "RancherMetadataBackend":
        """Use the first backend node as metadata host, the default otherwise."""
        url = f"http://{nodes[0]}" if nodes else METADATA_URL
        return cls(url, **kwargs)

    def _request(self, path: str) -> httpx.Response:
        try:
            resp = self._client.get(path, headers={"Accept": "application/json"})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Metadata request {path} failed: {e}") from e
        return resp

    def get_values(self, keys: Sequence[str]) -> ConfigSnapshot:
        values: Dict[str, str] = {}
        for key in keys:
            resp = self._request(key)
            try:
                payload = resp.json()
            except ValueError as e:
                raise DecodeError(f"Metadata response for {key} is not JSON: {e}") from e
            values.update(flatten(key, payload))
        return freeze(values)

    def watch_prefix(
        self,
        prefix: str,
        keys: Sequence[str],
        cursor: str = "",
        stop: Optional[StopSignal] = None,
    ) -> str:
        # the metadata service has no change notification
        return cursor

    def close(self) -> None:
        self._client.close()
