"""Filter compiler.

Builds the Firestore ``Filter`` variants from predicate calls:

- ``{"fieldFilter": {"field": ..., "op": ..., "value": ...}}``
- ``{"unaryFilter": {"field": ..., "op": ...}}``
- ``{"compositeFilter": {"op": "AND" | "OR", "filters": [...]}}``

Operators are resolved into the closed enums of :mod:`firerest.constants`;
anything outside them is rejected with :class:`InvalidOperatorError`.
"""

from typing import Any, Dict, Iterable, Optional, Sequence, Union

from ..codec import wrap_value
from ..constants import (
    FIELD_OPERATOR_ALIASES,
    UNARY_OPERATOR_ALIASES,
    CompositeOperator,
    Direction,
    FieldOperator,
    UnaryOperator,
)
from ..exceptions import InvalidOperatorError
from ..types import Filter
from ..utils import escape_field_path, is_number_nan

__all__ = (
    "field_ref",
    "field_filter",
    "unary_filter",
    "composite_filter",
    "build_filter",
    "order",
    "cursor",
    "resolve_field_operator",
    "resolve_unary_operator",
)

Operator = Union[str, FieldOperator, UnaryOperator, None]


def field_ref(field: str) -> Dict[str, str]:
    """Return a ``FieldReference`` with every path segment quoted."""
    return {"fieldPath": escape_field_path(field)}


def _normalize(operator: str) -> str:
    return operator.strip().lower().replace("_", "").replace(" ", "")


def resolve_field_operator(operator: Union[str, FieldOperator]) -> Optional[FieldOperator]:
    """Resolve an operator spelling to a :class:`FieldOperator`, or ``None``."""
    if isinstance(operator, FieldOperator):
        return operator
    if isinstance(operator, UnaryOperator):
        return None
    key = _normalize(operator)
    if key in FIELD_OPERATOR_ALIASES:
        return FIELD_OPERATOR_ALIASES[key]
    for member in FieldOperator:
        if key == _normalize(member.value):
            return member
    return None


def resolve_unary_operator(operator: Union[str, UnaryOperator]) -> Optional[UnaryOperator]:
    """Resolve an operator spelling to a :class:`UnaryOperator`, or ``None``."""
    if isinstance(operator, UnaryOperator):
        return operator
    if isinstance(operator, FieldOperator):
        return None
    key = _normalize(operator)
    if key in UNARY_OPERATOR_ALIASES:
        return UNARY_OPERATOR_ALIASES[key]
    for member in UnaryOperator:
        if key == _normalize(member.value):
            return member
    return None


def _accepted_operators() -> str:
    return ", ".join(list(FIELD_OPERATOR_ALIASES) + list(UNARY_OPERATOR_ALIASES))


def field_filter(field: str, operator: FieldOperator, value: Any) -> Filter:
    if is_number_nan(value):
        raise InvalidOperatorError(
            "NaN can only be matched with a unary filter; omit the operator",
            field=field,
            operator=operator.value,
        )
    return {
        "fieldFilter": {
            "field": field_ref(field),
            "op": operator.value,
            "value": wrap_value(value),
        }
    }


def unary_filter(field: str, operator: UnaryOperator) -> Filter:
    return {
        "unaryFilter": {
            "field": field_ref(field),
            "op": operator.value,
        }
    }


def composite_filter(operator: CompositeOperator, filters: Iterable[Filter]) -> Filter:
    return {
        "compositeFilter": {
            "op": operator.value,
            "filters": list(filters),
        }
    }


def build_filter(field: str, operator: Operator = None, value: Any = None) -> Filter:
    """Build a single filter from a field, an operator and a value.

    Without an operator a ``None`` value becomes ``IS_NULL`` and a NaN value
    becomes ``IS_NAN``.

    Args:
        field: Dotted field path
        operator: Operator spelling or enum member
        value: Comparison value (ignored by unary operators)

    Returns:
        Filter dict

    Raises:
        InvalidOperatorError: If the operator (or its absence) cannot be resolved
    """
    if operator is None or (isinstance(operator, str) and not operator.strip()):
        if value is None:
            return unary_filter(field, UnaryOperator.IS_NULL)
        if is_number_nan(value):
            return unary_filter(field, UnaryOperator.IS_NAN)
        raise InvalidOperatorError("Invalid operator given", field=field, operator=operator)

    if not isinstance(operator, str):
        raise InvalidOperatorError("Invalid operator given", field=field, operator=operator)

    field_op = resolve_field_operator(operator)
    if field_op is not None:
        return field_filter(field, field_op, value)

    unary_op = resolve_unary_operator(operator)
    if unary_op is not None:
        return unary_filter(field, unary_op)

    raise InvalidOperatorError(
        f"Operator '{operator}' not within {_accepted_operators()}",
        field=field,
        operator=operator,
    )


def order(field: str, direction: Union[str, Direction, None] = None) -> Dict[str, Any]:
    """Return an ``Order`` entry; ``desc``/``dec`` prefixes sort descending."""
    if isinstance(direction, Direction):
        resolved = direction
    elif direction and direction.strip().upper().startswith(("DESC", "DEC")):
        resolved = Direction.DESCENDING
    else:
        resolved = Direction.ASCENDING
    return {"field": field_ref(field), "direction": resolved.value}


def cursor(values: Sequence[Any], before: bool) -> Dict[str, Any]:
    return {"values": [wrap_value(v) for v in values], "before": before}
