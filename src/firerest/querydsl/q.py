"""Query DSL core utilities.

``Q`` nodes describe filters with keyword lookups and combine with ``&``,
``|`` and ``~``. A node compiles to the universal dict form and from there,
through :mod:`firerest.querydsl.compilers`, to a Firestore ``Filter``.

Typical usage:

- Build filters: ``Q(age__gte=18) & Q(age__lte=30)``
- Alternatives: ``Q(status="active") | Q(status="trial")``
- Field names that are not identifiers: ``Q.of("home town", "eq", "Oslo")``
- Compile: ``q.to_where()``
"""

from __future__ import annotations

from copy import deepcopy
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Tuple

from ..exceptions import InvalidOperatorError

if TYPE_CHECKING:
    from .compilers.base import BaseWhere

BackendType = Literal["generic", "firestore"]

AND = "$and"
OR = "$or"

# Lookup suffix -> universal operator
LOOKUPS = {
    "eq": "$eq",
    "ne": "$ne",
    "gt": "$gt",
    "gte": "$gte",
    "lt": "$lt",
    "lte": "$lte",
    "contains": "$contains",
    "contains_any": "$contains_any",
    "in": "$in",
    "nin": "$nin",
    "isnull": "$isnull",
    "isnan": "$isnan",
}

# Longest suffix first: "contains_any" before "contains"
_SUFFIXES = sorted(LOOKUPS, key=len, reverse=True)

Condition = Tuple[str, str, Any]


def split_lookup(key: str) -> Tuple[str, str]:
    """Split ``"info__lang__eq"`` into ``("info.lang", "$eq")``.

    Keys without a known lookup suffix compare for equality.
    """
    for lookup in _SUFFIXES:
        suffix = "__" + lookup
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)].replace("__", "."), LOOKUPS[lookup]
    return key.replace("__", "."), LOOKUPS["eq"]


class Q:
    """Composable boolean filter node.

    A leaf holds ``(field, operator, value)`` conditions that are ANDed
    together. Combining nodes with the same connector keeps the tree flat, so
    ``Q(a=1) & Q(b=2) & Q(c=3)`` becomes one AND with three children.
    Negation is representable but Firestore cannot compile it.
    """

    def __init__(self, **lookups: Any) -> None:
        self.conditions: List[Condition] = [(*split_lookup(key), value) for key, value in lookups.items()]
        self.children: List[Q] = []
        self.connector = AND
        self.negated = False

    @classmethod
    def of(cls, field: str, lookup: str, value: Any = True) -> Q:
        """Build a leaf from an explicit field path and lookup name."""
        if lookup not in LOOKUPS:
            raise InvalidOperatorError(f"Unknown lookup '{lookup}'", field=field, operator=lookup)
        node = cls()
        node.conditions.append((field, LOOKUPS[lookup], value))
        return node

    def _flattened(self, connector: str) -> List[Q]:
        if self.children and self.connector == connector and not self.negated:
            return list(self.children)
        return [self]

    def _combine(self, other: Any, connector: str) -> Q:
        if not isinstance(other, Q):
            return NotImplemented
        node = Q()
        node.connector = connector
        node.children = self._flattened(connector) + other._flattened(connector)
        return node

    def __and__(self, other: Q) -> Q:
        return self._combine(other, AND)

    def __or__(self, other: Q) -> Q:
        return self._combine(other, OR)

    def __invert__(self) -> Q:
        node = deepcopy(self)
        node.negated = not self.negated
        return node

    def __repr__(self) -> str:
        return f"<Q: {self.to_dict()}>"

    # -------------------
    # Universal dict representation
    # -------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return the universal dict form.

        Leaves become ``{field: {op: value}}``, combinations
        ``{"$and": [...]}``/``{"$or": [...]}`` and negation ``{"$not": node}``.
        """
        if self.children:
            node: Dict[str, Any] = {self.connector: [child.to_dict() for child in self.children]}
        else:
            node = {}
            for field, op, value in self.conditions:
                node.setdefault(field, {})[op] = value
        return {"$not": node} if self.negated else node

    # -------------------
    # Backend-specific filter
    # -------------------

    def _get_where_compiler(self, backend: BackendType) -> Optional[BaseWhere]:
        if backend == "firestore":
            from .compilers.firestore import firestore_where

            return firestore_where
        return None

    def to_where(self, backend: BackendType = "firestore") -> Any:
        """Compile to a Firestore ``Filter``, or the universal dict for ``generic``."""
        compiler = self._get_where_compiler(backend)
        return compiler.to_where(self) if compiler else self.to_dict()

    def to_expr(self, backend: BackendType = "firestore") -> str:
        """Readable expression for debugging."""
        compiler = self._get_where_compiler(backend)
        return compiler.to_expr(self) if compiler else str(self.to_dict())
