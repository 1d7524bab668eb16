"""
Wire constants and closed operator sets for the Firestore REST protocol.
"""

from enum import Enum


class FieldOperator(str, Enum):
    EQUAL = "EQUAL"
    NOT_EQUAL = "NOT_EQUAL"
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    ARRAY_CONTAINS = "ARRAY_CONTAINS"
    ARRAY_CONTAINS_ANY = "ARRAY_CONTAINS_ANY"
    IN = "IN"
    NOT_IN = "NOT_IN"


class UnaryOperator(str, Enum):
    IS_NAN = "IS_NAN"
    IS_NULL = "IS_NULL"


class CompositeOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class Direction(str, Enum):
    ASCENDING = "ASCENDING"
    DESCENDING = "DESCENDING"


# Operator spellings accepted by Query.where, keyed by their normalized form
FIELD_OPERATOR_ALIASES = {
    "==": FieldOperator.EQUAL,
    "===": FieldOperator.EQUAL,
    "!=": FieldOperator.NOT_EQUAL,
    "!==": FieldOperator.NOT_EQUAL,
    "<": FieldOperator.LESS_THAN,
    "<=": FieldOperator.LESS_THAN_OR_EQUAL,
    ">": FieldOperator.GREATER_THAN,
    ">=": FieldOperator.GREATER_THAN_OR_EQUAL,
    "contains": FieldOperator.ARRAY_CONTAINS,
    "array-contains": FieldOperator.ARRAY_CONTAINS,
    "containsany": FieldOperator.ARRAY_CONTAINS_ANY,
    "array-contains-any": FieldOperator.ARRAY_CONTAINS_ANY,
    "in": FieldOperator.IN,
    "notin": FieldOperator.NOT_IN,
    "not-in": FieldOperator.NOT_IN,
}

UNARY_OPERATOR_ALIASES = {
    "nan": UnaryOperator.IS_NAN,
    "null": UnaryOperator.IS_NULL,
}

# Reserved field holding the document resource name
DOCUMENT_NAME_FIELD = "__name__"

# Sentinel accepted by transform() for a server-side timestamp
SERVER_TIMESTAMP = "serverTimestamp"
REQUEST_TIME = "REQUEST_TIME"

MAX_AGGREGATIONS = 5

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

# Lower-cased message fragments that mark a transaction failure as retryable
RETRYABLE_ERROR_KEYWORDS = ("abort", "conflict", "contention", "deadline exceeded")
