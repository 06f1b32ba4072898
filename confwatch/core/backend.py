"""Backend protocol shared by every configuration store."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from .types import ConfigSnapshot, StopSignal


@runtime_checkable
class Backend(Protocol):
    """Protocol defining the interface for configuration backends.

    Callers only hold this type; the concrete backend is picked by
    :func:`confwatch.core.environment.create_backend`.
    """

    name: str

    def get_values(self, keys: Sequence[str]) -> ConfigSnapshot:
        """Read every key under the given prefixes.

        Args:
            keys: Key prefixes, e.g. ``["/app/*"]``.

        Returns:
            Flat snapshot of key -> string value across all prefixes.

        Raises:
            NotFoundError: If the backend treats a missing prefix as fatal.
            TransportError: On network or session failure.
        """
        ...

    def watch_prefix(
        self,
        prefix: str,
        keys: Sequence[str],
        cursor: str = "",
        stop: Optional[StopSignal] = None,
    ) -> str:
        """Block until a key under one of ``keys`` changes.

        Args:
            prefix: Prefix scoping what is watched.
            keys: Filter prefixes; only changes under one of them count.
            cursor: Opaque cursor returned by a previous call, or ``""``
                to start from the latest position.
            stop: Optional signal that ends the wait early.

        Returns:
            Cursor to pass to the next call.

        Raises:
            BackendError: On failure; ``error.cursor`` holds the last
                cursor obtained, when the backend has one.
        """
        ...
