"""confwatch - uniform reads and change watches over configuration backends.

Flatten hierarchical backend data into "/"-keyed snapshots and block on
changes through one ``watch_prefix`` contract with a resumable cursor.
"""

from .core.backend import Backend
from .core.environment import Environment, create_backend
from .core.errors import BackendError, DecodeError, NotFoundError, TransportError
from .core.flatten import flatten

__all__ = [
    "Backend",
    "Environment",
    "create_backend",
    "flatten",
    "BackendError",
    "NotFoundError",
    "TransportError",
    "DecodeError",
]
