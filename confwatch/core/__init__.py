from .backend import Backend
from .environment import Environment, create_backend
from .errors import BackendError, DecodeError, NotFoundError, TransportError
from .flatten import flatten

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
