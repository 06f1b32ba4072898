"""Exception hierarchy shared by every backend."""

from __future__ import annotations

from typing import Optional


class BackendError(Exception):
    """Base class for backend failures.

    Attributes:
        cursor: Last watch cursor obtained before the failure, when the
            failing call had one. Callers resume from it instead of
            re-reading the stream from scratch.
    """

    def __init__(self, message: str, cursor: Optional[str] = None):
        super().__init__(message)
        self.cursor = cursor


class NotFoundError(BackendError):
    """A key or node is absent."""


class TransportError(BackendError):
    """Network or session failure talking to a backend."""


class DecodeError(TransportError):
    """A backend payload could not be parsed."""
