"""Query DSL module.

Exports the `Query` and `AggregateQuery` builders and the `Q` class for
composable filter expressions. Firestore filter dicts are produced by the
`filters` module and the `compilers` subpackage.
"""

from .aggregate import AggregateQuery
from .filters import build_filter, field_ref
from .q import Q
from .query import Query

__all__ = ("AggregateQuery", "Q", "Query", "build_filter", "field_ref")
