"""ZooKeeper configuration backend.

Values are read with a recursive tree walk. Watching fans out one
one-shot ZooKeeper watch per relevant node and returns on the first
notification any of them delivers.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from kazoo.client import KazooClient
from kazoo.exceptions import KazooException, NoNodeError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import EventType, KeeperState, WatchedEvent

from ..core.errors import BackendError, NotFoundError, TransportError
from ..core.filters import has_prefix, iter_ancestors, join_key, strip_wildcard
from ..core.types import ConfigSnapshot, StopSignal, freeze

logger = logging.getLogger(__name__)

# Deletions and creations are reported through the parent's CHILD event.
RELAYED_EVENTS = frozenset({EventType.CHANGED, EventType.CHILD})
# kazoo drops every watch on session loss and calls it with a NONE event.
SESSION_LOST_STATES = frozenset(
    {KeeperState.EXPIRED_SESSION, KeeperState.CLOSED, KeeperState.AUTH_FAILED}
)


@contextmanager
def translate_errors(path: str) -> Iterator[None]:
    """Map kazoo exceptions onto the backend error hierarchy."""
    try:
        yield
    except NoNodeError as e:
        raise NotFoundError(f"Node {path} does not exist") from e
    except KazooException as e:
        raise TransportError(f"ZooKeeper request for {path} failed: {e!r}") from e


@dataclass(frozen=True)
class WatchResult:
    """First outcome relayed by a NodeWatch: an event or a subscribe error."""

    path: str
    event: Optional[WatchedEvent] = None
    error: Optional[BackendError] = None


class NodeWatch:
    """One-shot subscription to data and children changes of a single node.

    The watch relays at most one result. Once it has relayed or been
    cancelled it is spent and drops anything ZooKeeper delivers later;
    ZooKeeper offers no way to withdraw a registered watch.
    """

    def __init__(self, client: Any, path: str, results: "queue.Queue[WatchResult]"):
        self.client = client
        self.path = path
        self.started = False
        self.cancelled = False
        self._results = results
        self._lock = threading.Lock()
        self._spent = False

    @property
    def live(self) -> bool:
        """True while subscribed and still able to relay a result."""
        with self._lock:
            return self.started and not self._spent

    def start(self) -> None:
        with self._lock:
            if self._spent:
                return
            self.started = True
        try:
            with translate_errors(self.path):
                self.client.get(self.path, watch=self._on_event)
                self.client.get_children(self.path, watch=self._on_event)
        except BackendError as e:
            self._relay(WatchResult(self.path, error=e))
            return
        logger.debug("Watching: %s", self.path)

    def cancel(self) -> None:
        with self._lock:
            if self.started and not self._spent:
                logger.debug("Stop watching: %s", self.path)
            self._spent = True
            self.cancelled = True

    def _on_event(self, event: WatchedEvent) -> None:
        if event.type == EventType.NONE or event.state in SESSION_LOST_STATES:
            error = TransportError(
                f"ZooKeeper session lost while watching {self.path}: {event.state}"
            )
            self._relay(WatchResult(self.path, error=error))
            return
        if event.type not in RELAYED_EVENTS:
            return
        self._relay(WatchResult(self.path, event=event))

    def _relay(self, result: WatchResult) -> None:
        with self._lock:
            if self._spent:
                return
            self._spent = True
        self._results.put(result)


class WatchMultiplexer:
    """Fan out NodeWatches and fan their first result back in.

    Use as a context manager: leaving the scope cancels every watch it
    spawned and joins the subscription tasks.
    """

    def __init__(self, client: Any, poll_interval: float = 0.1):
        self.client = client
        self.poll_interval = poll_interval
        self.watches: List[NodeWatch] = []
        self._results: "queue.Queue[WatchResult]" = queue.Queue()
        self._pool: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "WatchMultiplexer":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def spawn(self, paths: Sequence[str]) -> None:
        """Start one NodeWatch per path, each subscribing on its own task."""
        if not paths:
            return
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=len(paths), thread_name_prefix="confwatch-zk"
            )
        for path in paths:
            watch = NodeWatch(self.client, path, self._results)
            self.watches.append(watch)
            self._pool.submit(watch.start)

    def wait(self, stop: Optional[StopSignal] = None) -> Optional[WatchResult]:
        """Block for the first relayed result; None if ``stop`` fires first."""
        while stop is None or not stop.is_set():
            try:
                return self._results.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
        return None

    def close(self) -> None:
        for watch in self.watches:
            watch.cancel()
        if self._pool is not None:
            self._pool.shutdown(wait=True, cancel_futures=True)
            self._pool = None


class ZookeeperBackend:
    def __init__(self, client: Any, name: Optional[str] = None, poll_interval: float = 0.1):
        self.client = client
        self.name = name or "zookeeper"
        self.poll_interval = poll_interval

    @classmethod
    def connect(
        cls,
        hosts: Sequence[str],
        timeout: float = 10.0,
        name: Optional[str] = None,
    ) -> "ZookeeperBackend":
        joined = ",".join(hosts)
        client = KazooClient(hosts=joined, timeout=timeout)
        try:
            client.start(timeout=timeout)
        except (KazooTimeoutError, KazooException) as e:
            raise TransportError(f"Could not connect to ZooKeeper at {joined}: {e}") from e
        return cls(client, name=name or f"zookeeper:{joined}")

    def _read(self, path: str) -> str:
        data, _ = self.client.get(path)
        return data.decode("utf-8") if data else ""

    def _walk(self, path: str, values: Dict[str, str]) -> None:
        with translate_errors(path):
            children = self.client.get_children(path)
            if not children:
                values[path] = self._read(path)
                return
            for child in children:
                child_path = join_key(path, child)
                # the child may be deleted between listing and reading
                stat = self.client.exists(child_path)
                if stat is None:
                    logger.debug("Node %s vanished during walk", child_path)
                    continue
                if stat.numChildren == 0:
                    values[child_path] = self._read(child_path)
                    continue
                try:
                    self._walk(child_path, values)
                except BackendError as e:
                    logger.warning("Skipping branch %s: %s", child_path, e)

    def get_values(self, keys: Sequence[str]) -> ConfigSnapshot:
        values: Dict[str, str] = {}
        for key in keys:
            path = strip_wildcard(key)
            logger.debug("Processing key=%s", path)
            with translate_errors(path):
                if self.client.exists(path) is None:
                    raise NotFoundError(f"Node {path} does not exist")
            self._walk(path, values)
        return freeze(values)

    @staticmethod
    def watch_targets(entries: Mapping[str, str], keys: Sequence[str]) -> List[str]:
        """Nodes to watch: each matching key plus its ancestors below the root."""
        targets: Dict[str, None] = {}
        for key in sorted(entries):
            if not has_prefix(key, keys):
                continue
            for ancestor in iter_ancestors(key):
                targets.setdefault(ancestor, None)
            targets.setdefault(key, None)
        return list(targets)

    def watch_prefix(
        self,
        prefix: str,
        keys: Sequence[str],
        cursor: str = "",
        stop: Optional[StopSignal] = None,
    ) -> str:
        # Watches are one-shot, so every call subscribes from scratch.
        entries = self.get_values([prefix])
        targets = self.watch_targets(entries, keys)
        with WatchMultiplexer(self.client, self.poll_interval) as mux:
            mux.spawn(targets)
            result = mux.wait(stop)

        if result is None:
            logger.debug("Watch on %s stopped", prefix)
            return cursor
        if result.error is not None:
            if result.error.cursor is None:
                result.error.cursor = cursor
            raise result.error
        logger.debug("Change on %s (%s)", result.path, result.event.type if result.event else None)
        return cursor
