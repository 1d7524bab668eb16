"""Base compiler interface.

A where compiler walks the universal node tree produced by ``Q.to_dict()``::

    {"$and": [...]} | {"$or": [...]} | {"$not": node} | {field: {op: value, ...}}

The walk itself lives here; subclasses decide what a single condition, a
boolean join and a negation compile to.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ...exceptions import ValidationError
from .utils import normalize_where_input

__all__ = ("BaseWhere",)

CONNECTORS = ("$and", "$or")


class BaseWhere(ABC):
    """Abstract base class for where clause compilers.

    Subclasses implement the ``_condition``/``_join``/``_negate`` hooks for
    filters and may override ``_expr_op`` for readable expressions.
    """

    def to_where(self, where: Any) -> Any:
        """Convert a Q node or universal dict into the backend-native filter."""
        return self._compile(normalize_where_input(where))

    def to_expr(self, where: Any) -> str:
        """Convert a Q node or universal dict into a readable string expression."""
        return self._render(normalize_where_input(where))

    # ------------------------------------------------------------------
    # Tree walk
    # ------------------------------------------------------------------

    def _compile(self, node: Dict[str, Any]) -> Any:
        for connector in CONNECTORS:
            if connector in node:
                return self._join(connector, [self._compile(child) for child in node[connector]])
        if "$not" in node:
            return self._negate(node["$not"])

        conditions: List[Any] = [
            self._condition(field, op, value) for field, expr in node.items() for op, value in expr.items()
        ]
        if not conditions:
            raise ValidationError("Cannot compile an empty filter")
        if len(conditions) == 1:
            return conditions[0]
        return self._join("$and", conditions)

    def _render(self, node: Dict[str, Any]) -> str:
        for connector in CONNECTORS:
            if connector in node:
                keyword = f" {connector[1:].upper()} "
                return "(" + keyword.join(self._render(child) for child in node[connector]) + ")"
        if "$not" in node:
            return "NOT (" + self._render(node["$not"]) + ")"
        return " AND ".join(
            self._condition_expr(field, op, value) for field, expr in node.items() for op, value in expr.items()
        )

    def _condition_expr(self, field: str, op: str, value: Any) -> str:
        return f"{field} {self._expr_op(op)} {value!r}"

    def _expr_op(self, op: str) -> str:
        return op

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _condition(self, field: str, op: str, value: Any) -> Any:
        """Compile one ``field op value`` condition."""
        raise NotImplementedError

    @abstractmethod
    def _join(self, connector: str, filters: List[Any]) -> Any:
        """Join compiled filters with ``$and`` or ``$or``."""
        raise NotImplementedError

    @abstractmethod
    def _negate(self, node: Dict[str, Any]) -> Any:
        """Compile a ``$not`` node."""
        raise NotImplementedError
