"""Write staging shared by WriteBatch and Transaction.

Each function builds exactly one wire ``Write`` from a document path and
native field values. They hold no state: the owning builder decides where
the write is queued and when it is sent.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .codec import wrap_fields, wrap_value
from .constants import REQUEST_TIME, SERVER_TIMESTAMP
from .exceptions import InvalidFieldError, MissingFieldError, ValidationError
from .types import Fields, Mask, Write
from .utils import clean_path, escape_field_path, escape_field_segment, get_document_from_path

__all__ = (
    "document_name",
    "resolve_mask",
    "mask_paths",
    "create_write",
    "set_write",
    "update_write",
    "delete_write",
    "transform_write",
)


def document_name(base_path: str, path: str) -> str:
    """Full resource name of a document below ``base_path``."""
    return clean_path(base_path) + "/" + clean_path(path)


def mask_paths(fields: Sequence[str]) -> List[str]:
    return [escape_field_segment(field) for field in fields]


def resolve_mask(fields: Fields, mask: Mask) -> Optional[List[str]]:
    """Field names an update is restricted to, or None for a full replace.

    ``True`` masks every key of ``fields``. A list or tuple names the fields
    explicitly and must not be empty. Any other truthy value is rejected,
    so a bare string is never split into characters.

    Raises:
        InvalidFieldError: If the mask is of the wrong type or empty
    """
    if mask is None or mask is False:
        return None
    if mask is True:
        mask_fields = list(fields.keys())
    elif isinstance(mask, (list, tuple)):
        mask_fields = list(mask)
    else:
        raise InvalidFieldError("Mask must be a boolean or a list of field names", field="mask", value=mask)
    if not mask_fields:
        raise InvalidFieldError("Missing fields in mask", field="mask")
    return mask_fields


def _update(base_path: str, path: str, fields: Fields) -> Write:
    return {"update": {"name": document_name(base_path, path), "fields": wrap_fields(fields)}}


def create_write(base_path: str, path: str, fields: Fields) -> Write:
    """Write that creates a document and fails if it already exists.

    Raises:
        MissingFieldError: If the path does not end in a document id
    """
    _, document_id = get_document_from_path(path)
    if not document_id:
        raise MissingFieldError("Document ID is required for create operations", path=path)
    write = _update(base_path, path, fields)
    write["currentDocument"] = {"exists": False}
    return write


def set_write(base_path: str, path: str, fields: Fields, merge: bool = False) -> Write:
    """Write that overwrites a document, or only the given top-level fields with ``merge``."""
    write = _update(base_path, path, fields)
    if merge:
        write["updateMask"] = {"fieldPaths": mask_paths(list(fields.keys()))}
    return write


def update_write(base_path: str, path: str, fields: Fields, mask: Mask = None) -> Write:
    """Write that updates an existing document.

    Args:
        base_path: Documents root of the database
        path: Document path
        fields: New field values
        mask: True to mask every given field, or explicit field names

    Raises:
        InvalidFieldError: If the mask is of the wrong type or empty
    """
    write = _update(base_path, path, fields)
    write["currentDocument"] = {"exists": True}
    mask_fields = resolve_mask(fields, mask)
    if mask_fields is not None:
        write["updateMask"] = {"fieldPaths": mask_paths(mask_fields)}
    return write


def delete_write(base_path: str, path: str) -> Write:
    return {"delete": document_name(base_path, path)}


def _values(operand: Any) -> Dict[str, Any]:
    items = operand if isinstance(operand, (list, tuple)) else [operand]
    return {"values": [wrap_value(item) for item in items]}


def _field_transform(field: str, transform: Any) -> Dict[str, Any]:
    field_path = escape_field_path(field)
    if transform == SERVER_TIMESTAMP:
        return {"fieldPath": field_path, "setToServerValue": REQUEST_TIME}
    if isinstance(transform, Mapping) and len(transform) == 1:
        kind, operand = next(iter(transform.items()))
        if kind == "increment" and operand is not None:
            return {"fieldPath": field_path, "increment": wrap_value(operand)}
        if kind == "arrayUnion":
            return {"fieldPath": field_path, "appendMissingElements": _values(operand)}
        if kind == "arrayRemove":
            return {"fieldPath": field_path, "removeAllFromArray": _values(operand)}
    raise InvalidFieldError(
        "Unsupported transform; expected 'serverTimestamp', {increment}, {arrayUnion} or {arrayRemove}",
        field=field,
        value=transform,
    )


def transform_write(base_path: str, path: str, transforms: Mapping[str, Any]) -> Write:
    """Write that applies server-side field transforms.

    Example:
        >>> transform_write(base, "Users/alice", {"visits": {"increment": 1}, "seen": "serverTimestamp"})

    Raises:
        ValidationError: If no transforms are given
        InvalidFieldError: If a transform has an unrecognized shape
    """
    if not transforms:
        raise ValidationError("At least one field transform is required", path=path)
    return {
        "transform": {
            "document": document_name(base_path, path),
            "fieldTransforms": [_field_transform(field, transform) for field, transform in transforms.items()],
        }
    }
