"""Flattening of tree-shaped values into flat ``/``-delimited keys."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterator, Tuple

from .filters import join_key

logger = logging.getLogger(__name__)


def format_number(value: float) -> str:
    """Render a number as its shortest exact decimal, without exponent.

    Args:
        value: Integer or float.

    Returns:
        Decimal string, e.g. ``"1"`` for ``1.0`` and ``"0.0000001"`` for ``1e-7``.
    """
    if isinstance(value, int):
        return str(value)
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _segment(index: int, item: Any) -> str:
    if isinstance(item, dict):
        name = item.get("name")
        if isinstance(name, str):
            return name
    return str(index)


def iter_flat(root: str, value: Any) -> Iterator[Tuple[str, str]]:
    """Walk a tree-shaped value and yield its leaves as flat keys.

    - Objects recurse into each entry, in sorted key order.
    - Arrays recurse into each element; an element that is an object with
      a string ``name`` field is keyed by that name, otherwise by its index.
    - Booleans become ``true``/``false``, numbers their shortest decimal,
      ``None`` the literal ``null``, strings themselves.
    - Any other type is logged and skipped; the walk continues.

    Args:
        root: Key of ``value`` itself.
        value: Decoded JSON (or YAML) tree.

    Yields:
        Tuples of (flat_key, string_value).
    """
    if isinstance(value, dict):
        for key in sorted(value, key=str):
            yield from iter_flat(join_key(root, str(key)), value[key])
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from iter_flat(join_key(root, _segment(index, item)), item)
    elif isinstance(value, bool):
        yield root, "true" if value else "false"
    elif isinstance(value, str):
        yield root, value
    elif isinstance(value, (int, float)):
        yield root, format_number(value)
    elif value is None:
        yield root, "null"
    else:
        logger.warning("Skipping %s: unknown type %s", root, type(value).__name__)


def flatten(root: str, value: Any) -> Dict[str, str]:
    """Flatten a tree-shaped value rooted at ``root`` into a flat dict."""
    return {k: v for k, v in iter_flat(root, value)}
