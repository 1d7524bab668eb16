"""Aggregation query builder.

Wraps a base structured query with up to five ``count``/``sum``/``avg``
aggregations and defers execution to an injected callback.
"""

from typing import Any, Callable, Dict, List, Optional, Union

from ..constants import MAX_AGGREGATIONS
from ..exceptions import ValidationError
from ..types import StructuredQuery
from ..utils import to_count
from .filters import field_ref
from .query import Query

__all__ = ("AggregateQuery", "AggregateQueryCallback")

AggregateQueryCallback = Callable[["AggregateQuery"], Dict[str, Any]]


class AggregateQuery:
    """Chainable builder for a ``StructuredAggregationQuery``.

    Example:
        >>> totals = db.aggregate_query("Orders").count().sum("amount").get()
        >>> totals["count"], totals["sum_amount"]
    """

    def __init__(
        self,
        base_query: Union[Query, StructuredQuery, None],
        callback: AggregateQueryCallback,
    ) -> None:
        """
        Args:
            base_query: Query (or compiled structured query) to aggregate over
            callback: Function that runs the aggregation and returns alias -> value
        """
        self._base_query = base_query
        self._aggregations: List[Dict[str, Any]] = []
        self.callback = callback

    def __len__(self) -> int:
        return len(self._aggregations)

    def _add(self, aggregation: Dict[str, Any]) -> "AggregateQuery":
        alias = aggregation["alias"]
        if any(existing["alias"] == alias for existing in self._aggregations):
            raise ValidationError("Aggregation alias already used", alias=alias)
        self._aggregations.append(aggregation)
        return self

    def count(self, alias: Optional[str] = None, up_to: Optional[int] = None) -> "AggregateQuery":
        """Add a COUNT aggregation, optionally capped at ``up_to`` documents."""
        count: Dict[str, Any] = {}
        if up_to is not None:
            up_to = to_count(up_to, "upTo")
            if up_to < 1:
                raise ValidationError("upTo must be a positive number", up_to=up_to)
            count["upTo"] = up_to
        return self._add({"alias": alias or "count", "count": count})

    def sum(self, field: str, alias: Optional[str] = None) -> "AggregateQuery":
        """Add a SUM aggregation over a numeric field."""
        return self._add({"alias": alias or f"sum_{field}", "sum": {"field": field_ref(field)}})

    def avg(self, field: str, alias: Optional[str] = None) -> "AggregateQuery":
        """Add an AVG aggregation over a numeric field."""
        return self._add({"alias": alias or f"avg_{field}", "avg": {"field": field_ref(field)}})

    def get(self) -> Dict[str, Any]:
        """Execute the aggregation.

        Returns:
            Mapping of alias to native result value

        Raises:
            ValidationError: If there are no aggregations or more than five
        """
        if not self._aggregations:
            raise ValidationError("At least one aggregation must be specified")
        if len(self._aggregations) > MAX_AGGREGATIONS:
            raise ValidationError(
                f"Maximum {MAX_AGGREGATIONS} aggregations per query", count=len(self._aggregations)
            )
        return self.callback(self)

    def get_structured_aggregation_query(self) -> Dict[str, Any]:
        base = self._base_query.to_dict() if isinstance(self._base_query, Query) else self._base_query
        return {
            "structuredQuery": base or {},
            "aggregations": [dict(aggregation) for aggregation in self._aggregations],
        }
