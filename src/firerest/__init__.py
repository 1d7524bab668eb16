"""
firerest - a typed client for the Firestore REST API.

Exposes the `Firestore` client facade together with the query, aggregation,
batch and transaction builders it hands out.
"""

from .batch import WriteBatch
from .client import Firestore
from .codec import unwrap_value, wrap_value
from .constants import SERVER_TIMESTAMP, Direction, FieldOperator, UnaryOperator
from .exceptions import (
    DocumentNotFoundError,
    FireRestError,
    InvalidOperatorError,
    PartialBatchFailure,
    RemoteError,
    StateError,
    ValidationError,
)
from .querydsl import AggregateQuery, Q, Query
from .schema import Document
from .transaction import Transaction, TransactionState, run_transaction
from .types import Transport

__version__ = "0.1.0"

__all__ = [
    "Firestore",
    "Transport",
    "Document",
    "Query",
    "AggregateQuery",
    "Q",
    "WriteBatch",
    "Transaction",
    "TransactionState",
    "run_transaction",
    "wrap_value",
    "unwrap_value",
    "Direction",
    "FieldOperator",
    "UnaryOperator",
    "SERVER_TIMESTAMP",
    "FireRestError",
    "ValidationError",
    "InvalidOperatorError",
    "StateError",
    "RemoteError",
    "PartialBatchFailure",
    "DocumentNotFoundError",
]
