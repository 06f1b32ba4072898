"""Key prefix helpers shared by the backends."""

from __future__ import annotations

import posixpath
from typing import Iterable, Iterator, Optional


def strip_wildcard(prefix: str) -> str:
    """Remove every ``/*`` wildcard suffix from a key prefix.

    Args:
        prefix: Key prefix such as ``/app/*``.

    Returns:
        The bare prefix, ``/`` for the root.
    """
    bare = prefix.replace("/*", "")
    return bare or "/"


def matching_filter(key: str, filters: Iterable[str]) -> Optional[str]:
    """Return the first filter that ``key`` starts with, if any.

    Args:
        key: Flat configuration key.
        filters: Prefix filters, checked in order.

    Returns:
        The matching filter, or None when no filter matches.
    """
    for flt in filters:
        if key.startswith(flt):
            return flt
    return None


def has_prefix(key: str, filters: Iterable[str]) -> bool:
    """Check if ``key`` starts with any of ``filters``."""
    return matching_filter(key, filters) is not None


def join_key(parent: str, child: str) -> str:
    """Join a node path and a child name with a single slash."""
    if parent.endswith("/"):
        return f"{parent}{child}"
    return f"{parent}/{child}"


def iter_ancestors(key: str) -> Iterator[str]:
    """Yield every ancestor directory of ``key``, nearest first.

    The root ``/`` is never yielded.

    Args:
        key: Absolute ``/``-delimited key.

    Yields:
        Ancestor paths, e.g. ``/a/b`` then ``/a`` for ``/a/b/c``.
    """
    current = posixpath.dirname(key)
    while current not in ("/", ""):
        yield current
        current = posixpath.dirname(current)
