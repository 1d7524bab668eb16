"""Utility functions for firerest.

Shared helpers for document paths, numeric input checks and transaction
tokens used by the builders and the client.
"""

import base64
import binascii
import math
import re
from typing import Any, List, Tuple

from .exceptions import InvalidFieldError
from .types import Paths


# ===========================================================================
# Path helpers
# ===========================================================================

_SLASHES = re.compile(r"/{2,}")


def clean_path(path: str) -> str:
    """Strip whitespace and surrounding slashes, collapse repeated slashes."""
    return _SLASHES.sub("/", (path or "").strip()).strip("/")


def path_segments(path: str) -> List[str]:
    cleaned = clean_path(path)
    return cleaned.split("/") if cleaned else []


def get_document_from_path(path: str) -> Tuple[str, str]:
    """Split a path into ``(collection_path, document_id)``.

    A path with an odd number of segments names a collection, so the
    returned document id is empty.
    """
    parts = path_segments(path)
    if len(parts) % 2 == 0 and parts:
        return "/".join(parts[:-1]), parts[-1]
    return "/".join(parts), ""


def get_collection_from_path(path: str) -> Tuple[str, str]:
    """Split a collection path into ``(parent_document_path, collection_id)``.

    Raises:
        InvalidFieldError: If the path does not reference a collection
    """
    parts = path_segments(path)
    if not parts or len(parts) % 2 == 0:
        raise InvalidFieldError("Path must reference a collection", path=path)
    return "/".join(parts[:-1]), parts[-1]


def strip_base_path(name: str, base_path: str) -> str:
    """Return a document name relative to the documents root."""
    base = clean_path(base_path)
    cleaned = clean_path(name)
    if base and cleaned.startswith(base + "/"):
        return cleaned[len(base) + 1 :]
    marker = "/documents/"
    if marker in cleaned:
        return cleaned.split(marker, 1)[1]
    return cleaned


def normalize_paths(paths: Paths) -> List[str]:
    """Normalize path input to a list of strings."""
    return [paths] if isinstance(paths, str) else list(paths)


# ===========================================================================
# Field paths
# ===========================================================================


def escape_field_segment(segment: str) -> str:
    """Quote one field path segment with backticks."""
    return "`" + segment.replace("\\", "\\\\").replace("`", "\\`") + "`"


def escape_field_path(field: str) -> str:
    """Quote every dot-separated segment of a field path."""
    return ".".join(escape_field_segment(part) for part in field.split("."))


def parse_field_path(field_path: str) -> List[str]:
    """Split an escaped field path back into its raw segments."""
    segments: List[str] = []
    current: List[str] = []
    quoted = False
    escaped = False
    for char in field_path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\" and quoted:
            escaped = True
        elif char == "`":
            quoted = not quoted
        elif char == "." and not quoted:
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
    segments.append("".join(current))
    return segments


# ===========================================================================
# Numeric checks
# ===========================================================================


def is_numeric(value: Any) -> bool:
    """True for ints, finite floats and strings that parse as such (bools excluded)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value))
        except ValueError:
            return False
    return False


def is_number_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def to_count(value: Any, name: str) -> int:
    """Coerce a paging argument to ``int``.

    Raises:
        InvalidFieldError: If the value is not numeric or not integral
    """
    if not is_numeric(value):
        raise InvalidFieldError(f"{name} is not a valid number", field=name, value=value)
    number = float(value)
    if not number.is_integer():
        raise InvalidFieldError(f"{name} must be a whole number", field=name, value=value)
    return int(number)


# ===========================================================================
# Transaction tokens
# ===========================================================================


def normalize_transaction_id(token: str) -> str:
    """Re-encode a base64 transaction token in its URL-safe alphabet.

    Tokens that are not valid standard base64 are translated character by
    character and stripped of padding.
    """
    cleaned = re.sub(r"\s+", "", token)
    try:
        decoded = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        return cleaned.replace("+", "-").replace("/", "_").replace("=", "")
    return base64.urlsafe_b64encode(decoded).decode("ascii")
