"""Structured query builder.

A :class:`Query` collects projection, sources, a filter tree, ordering,
cursors and paging through chained calls, then hands itself to an injected
callback on :meth:`Query.execute`. The builder never performs I/O; the
callback owns serialization, the ``runQuery`` request and turning the
response into documents.

Example:
    >>> q = (
    ...     db.query("Users")
    ...     .where("age", ">=", 18)
    ...     .where("status", "==", "active")
    ...     .order_by("age", "desc")
    ...     .limit(10)
    ... )
    >>> docs = q.execute()
"""

from copy import deepcopy
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Union

from ..constants import DOCUMENT_NAME_FIELD, CompositeOperator, Direction
from ..exceptions import InvalidRangeError, ValidationError
from ..types import Filter, Paths, StructuredQuery
from ..utils import clean_path, normalize_paths, to_count
from .compilers.firestore import firestore_where
from .filters import Operator, build_filter, composite_filter, cursor, field_ref, order
from .q import Q

if TYPE_CHECKING:
    from ..schema import Document

__all__ = ("Query", "QueryCallback")

QueryCallback = Callable[["Query"], List["Document"]]

FilterInput = Union[Filter, Q]


def _as_filter(node: FilterInput) -> Filter:
    if isinstance(node, Q):
        return firestore_where.to_where(node)
    if isinstance(node, dict):
        return deepcopy(firestore_where.to_where(node))
    raise TypeError(f"Expected a filter dict or Q, got {type(node).__name__}")


def _is_and(node: Optional[Filter]) -> bool:
    return bool(node) and node.get("compositeFilter", {}).get("op") == CompositeOperator.AND.value


class Query:
    """Chainable builder for a Firestore ``StructuredQuery``.

    Attributes:
        callback: Function executed with this query by :meth:`execute`
        parent: Document path the collections live under, empty for the root
    """

    def __init__(
        self,
        from_: Optional[Paths] = None,
        callback: Optional[QueryCallback] = None,
        collection_group: bool = False,
        parent: str = "",
    ) -> None:
        """Create a query over one or more collections.

        Args:
            from_: Collection id(s) to query
            callback: Function that runs the compiled query and returns documents
            collection_group: Query every collection sharing the id(s)
            parent: Parent document path of the collections
        """
        self.callback = callback
        self.parent = clean_path(parent)
        self._select: Optional[List[Dict[str, str]]] = None
        self._from: List[Dict[str, Any]] = []
        self._where: Optional[Filter] = None
        self._order_by: Optional[List[Dict[str, Any]]] = None
        self._start_at: Optional[Dict[str, Any]] = None
        self._end_at: Optional[Dict[str, Any]] = None
        self._offset: Optional[int] = None
        self._limit: Optional[int] = None
        if from_:
            self.add_collections(from_, collection_group)

    def __repr__(self) -> str:
        return f"<Query: {self.to_dict()}>"

    # ------------------------------------------------------------------
    # Projection / filtering / ordering
    # ------------------------------------------------------------------

    def select(self, field: Optional[str] = None) -> "Query":
        """Narrow the returned fields; repeat for several fields.

        A blank or missing field selects only the document name.
        """
        if not field or not field.strip():
            field = DOCUMENT_NAME_FIELD
        if self._select is None:
            self._select = []
        self._select.append(field_ref(field))
        return self

    def where(self, field: Union[str, FilterInput], operator: Operator = None, value: Any = None) -> "Query":
        """Filter by a field, an operator and a value.

        Repeated calls are conjoined under a single AND composite. A ``Q`` or
        a prebuilt filter may be passed instead of a field name.

        Args:
            field: Field path, ``Q`` node or filter dict
            operator: Operator spelling; omit with a ``None``/NaN value for unary filters
            value: Comparison value

        Returns:
            This query for chaining
        """
        if isinstance(field, str):
            new_filter = build_filter(field, operator, value)
        else:
            new_filter = _as_filter(field)

        if self._where is None:
            self._where = new_filter
        else:
            if not _is_and(self._where):
                self._where = composite_filter(CompositeOperator.AND, [self._where])
            self._where["compositeFilter"]["filters"].append(new_filter)
        return self

    def where_or(self, filters: Sequence[FilterInput]) -> "Query":
        """Filter with an OR composite of at least two filters.

        An existing filter root is kept and joined with the OR composite
        under AND.

        Raises:
            ValidationError: If fewer than two filters are given
        """
        if len(filters) < 2:
            raise ValidationError("OR filter requires at least 2 filters", count=len(filters))

        or_filter = composite_filter(CompositeOperator.OR, [_as_filter(f) for f in filters])

        if self._where is None:
            self._where = or_filter
        elif _is_and(self._where):
            self._where["compositeFilter"]["filters"].append(or_filter)
        else:
            self._where = composite_filter(CompositeOperator.AND, [self._where, or_filter])
        return self

    def order_by(self, field: str, direction: Union[str, Direction, None] = None) -> "Query":
        """Order results by a field; ``"desc"`` sorts descending, anything else ascending."""
        if self._order_by is None:
            self._order_by = []
        self._order_by.append(order(field, direction))
        return self

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def offset(self, offset: Any) -> "Query":
        """Skip the first ``offset`` results."""
        offset = to_count(offset, "Offset")
        if offset < 0:
            raise InvalidRangeError("Offset must be >= 0", offset=offset)
        self._offset = offset
        return self

    def limit(self, limit: Any) -> "Query":
        """Return at most ``limit`` results."""
        limit = to_count(limit, "Limit")
        if limit < 0:
            raise InvalidRangeError("Limit must be >= 0", limit=limit)
        self._limit = limit
        return self

    def range(self, start: Any, end: Any) -> "Query":
        """Return results ``start`` (inclusive) to ``end`` (exclusive).

        Raises:
            InvalidRangeError: If either bound is negative or ``start >= end``
        """
        start = to_count(start, "Range start")
        end = to_count(end, "Range end")
        if start < 0:
            raise InvalidRangeError("Range start must be >= 0", start=start)
        if end < 0:
            raise InvalidRangeError("Range end must be >= 0", end=end)
        if start >= end:
            raise InvalidRangeError("Range start must be less than range end", start=start, end=end)
        self._offset = start
        self._limit = end - start
        return self

    # ------------------------------------------------------------------
    # Cursors
    # ------------------------------------------------------------------

    def start_at(self, *values: Any) -> "Query":
        self._start_at = cursor(values, before=True)
        return self

    def start_after(self, *values: Any) -> "Query":
        self._start_at = cursor(values, before=False)
        return self

    def end_before(self, *values: Any) -> "Query":
        self._end_at = cursor(values, before=True)
        return self

    def end_at(self, *values: Any) -> "Query":
        self._end_at = cursor(values, before=False)
        return self

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def add_collections(self, collections: Paths, as_collection_group: bool = False) -> "Query":
        """Add collections to the query; ids already present are left untouched."""
        existing = set(self.get_collections())
        for collection_id in normalize_paths(collections):
            if collection_id not in existing:
                self._from.append({"collectionId": collection_id, "allDescendants": as_collection_group})
                existing.add(collection_id)
        return self

    def add_collection_groups(self, collections: Paths) -> "Query":
        return self.add_collections(collections, as_collection_group=True)

    def remove_collections(self, collections: Paths) -> "Query":
        removed = set(normalize_paths(collections))
        self._from = [selector for selector in self._from if selector["collectionId"] not in removed]
        return self

    def get_collections(self) -> List[str]:
        return [selector["collectionId"] for selector in self._from if selector.get("collectionId")]

    # ------------------------------------------------------------------
    # Compilation / execution
    # ------------------------------------------------------------------

    @staticmethod
    def create_filter(field: str, operator: Operator = None, value: Any = None) -> Filter:
        """Build a standalone filter for use with :meth:`where_or`."""
        return build_filter(field, operator, value)

    @property
    def filter(self) -> Optional[Filter]:
        """The current filter root."""
        return self._where

    def to_dict(self) -> StructuredQuery:
        """Return the wire ``StructuredQuery``; unset parts are omitted."""
        query: StructuredQuery = {}
        if self._select is not None:
            query["select"] = {"fields": list(self._select)}
        if self._from:
            query["from"] = [dict(selector) for selector in self._from]
        if self._where is not None:
            query["where"] = deepcopy(self._where)
        if self._order_by is not None:
            query["orderBy"] = list(self._order_by)
        if self._start_at is not None:
            query["startAt"] = self._start_at
        if self._end_at is not None:
            query["endAt"] = self._end_at
        if self._offset is not None:
            query["offset"] = self._offset
        if self._limit is not None:
            query["limit"] = self._limit
        return query

    def execute(self) -> List["Document"]:
        """Run the query through the callback and return its documents."""
        if self.callback is None:
            raise ValidationError("Query has no callback to execute with")
        return self.callback(self)
