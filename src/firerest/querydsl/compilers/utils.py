"""Helpers shared by where compilers."""

from typing import Any, Dict

# Top-level keys of an already compiled Firestore ``Filter``
FILTER_KEYS = ("fieldFilter", "unaryFilter", "compositeFilter")


def is_wire_filter(node: Any) -> bool:
    """Whether ``node`` is a compiled Firestore ``Filter`` rather than a universal dict."""
    return isinstance(node, dict) and len(node) == 1 and next(iter(node)) in FILTER_KEYS


def normalize_where_input(where: Any) -> Dict[str, Any]:
    """Return the universal dict for a ``Q`` node; dicts pass through.

    Raises:
        TypeError: If ``where`` is neither a ``Q`` node nor a dict
    """
    to_dict = getattr(where, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(where, dict):
        return where
    raise TypeError(f"Expected a Q node or a dict, got {type(where).__name__}")
