"""Firestore where compiler.

Transforms universal Q node dicts into Firestore ``Filter`` objects.

Firestore supports:
- Comparison: EQUAL, NOT_EQUAL, LESS_THAN(_OR_EQUAL), GREATER_THAN(_OR_EQUAL)
- Membership: IN, NOT_IN, ARRAY_CONTAINS, ARRAY_CONTAINS_ANY
- Unary: IS_NULL, IS_NAN
- Logical: AND, OR (but NOT negation)
"""

from typing import Any, Dict, List

from ...constants import CompositeOperator, FieldOperator, UnaryOperator
from ...exceptions import InvalidFieldError, InvalidOperatorError
from ...types import Filter
from ...utils import is_number_nan
from ..filters import composite_filter, field_filter, unary_filter
from .base import BaseWhere
from .utils import is_wire_filter

__all__ = (
    "FirestoreWhereCompiler",
    "firestore_where",
)


class FirestoreWhereCompiler(BaseWhere):
    """Compile universal query nodes into Firestore filter dicts.

    Several conditions inside one leaf are joined with an AND composite; a
    single condition is emitted as a bare field or unary filter.
    """

    _OP_MAP = {
        "$eq": FieldOperator.EQUAL,
        "$ne": FieldOperator.NOT_EQUAL,
        "$gt": FieldOperator.GREATER_THAN,
        "$gte": FieldOperator.GREATER_THAN_OR_EQUAL,
        "$lt": FieldOperator.LESS_THAN,
        "$lte": FieldOperator.LESS_THAN_OR_EQUAL,
        "$contains": FieldOperator.ARRAY_CONTAINS,
        "$contains_any": FieldOperator.ARRAY_CONTAINS_ANY,
        "$in": FieldOperator.IN,
        "$nin": FieldOperator.NOT_IN,
    }

    _UNARY_MAP = {
        "$isnull": UnaryOperator.IS_NULL,
        "$isnan": UnaryOperator.IS_NAN,
    }

    _CONNECTOR_MAP = {
        "$and": CompositeOperator.AND,
        "$or": CompositeOperator.OR,
    }

    _EXPR_MAP = {
        "$eq": "==",
        "$ne": "!=",
        "$gt": ">",
        "$gte": ">=",
        "$lt": "<",
        "$lte": "<=",
        "$contains": "array-contains",
        "$contains_any": "array-contains-any",
        "$in": "in",
        "$nin": "not-in",
    }

    def to_where(self, where: Any) -> Filter:
        """Convert Q object or universal dict to a Firestore filter.

        Dicts that already are Firestore filters are returned unchanged.

        Args:
            where: Q object or universal dict format

        Returns:
            Firestore ``Filter`` dict
        """
        if is_wire_filter(where):
            return where
        return super().to_where(where)

    def _join(self, connector: str, filters: List[Filter]) -> Filter:
        return composite_filter(self._CONNECTOR_MAP[connector], filters)

    def _negate(self, node: Dict[str, Any]) -> Filter:
        raise InvalidFieldError(field="$not", operation="where", message="Negation is not supported by Firestore")

    def _condition(self, field: str, op: str, value: Any) -> Filter:
        if op in self._UNARY_MAP:
            if value is not True:
                raise InvalidOperatorError(f"Operator {op} only accepts True", field=field, operator=op, value=value)
            return unary_filter(field, self._UNARY_MAP[op])
        if op == "$eq" and value is None:
            return unary_filter(field, UnaryOperator.IS_NULL)
        if op == "$eq" and is_number_nan(value):
            return unary_filter(field, UnaryOperator.IS_NAN)
        if op not in self._OP_MAP:
            raise InvalidOperatorError(
                f"Operator {op} is not supported. Supported: "
                f"{', '.join(sorted(list(self._OP_MAP) + list(self._UNARY_MAP)))}",
                field=field,
                operator=op,
            )
        return field_filter(field, self._OP_MAP[op], value)

    def _condition_expr(self, field: str, op: str, value: Any) -> str:
        if op == "$isnull":
            return f"{field} IS NULL"
        if op == "$isnan":
            return f"{field} IS NAN"
        return super()._condition_expr(field, op, value)

    def _expr_op(self, op: str) -> str:
        return self._EXPR_MAP.get(op, op)


firestore_where = FirestoreWhereCompiler()
