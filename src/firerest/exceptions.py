"""Custom exceptions for the firerest client.

Errors fall into four families:

- ``ValidationError``: bad builder input, raised before any RPC is issued.
- ``StateError``: a transaction used outside of its active window.
- ``RemoteError``: the service answered with an error or an unusable payload.
- ``ConfigurationError``: missing or invalid settings.

Transport exceptions are never wrapped; they reach the caller as raised.
"""

from typing import Any, Dict, List, Optional


# Base exception
class FireRestError(Exception):
    """Base exception for all firerest errors.

    Attributes:
        message: Error message
        details: Additional error context as key-value pairs
    """

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        """Initialize exception with message and additional details.

        Args:
            message: Human-readable error message
            **kwargs: Additional context (e.g., path, operator, field)
        """
        self.message = message
        self.details: Dict[str, Any] = kwargs
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the complete error message with details."""
        if not self.details:
            return self.message

        details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        if self.message:
            return f"{self.message} ({details_str})"
        return details_str

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# Validation exceptions
class ValidationError(FireRestError):
    """Raised when builder input is rejected before any request is sent.

    Example:
        >>> raise ValidationError("Cannot commit empty batch")
    """


class InvalidOperatorError(ValidationError):
    """Raised when a filter operator is outside the supported operator set.

    Example:
        >>> raise InvalidOperatorError("Invalid operator given", operator="~=")
    """


class InvalidFieldError(ValidationError):
    """Raised when a field, value or mask has an invalid value or type.

    Example:
        >>> raise InvalidFieldError("Missing fields in mask", field="mask")
    """


class MissingFieldError(ValidationError):
    """Raised when a required part of the input is missing.

    Example:
        >>> raise MissingFieldError("Document ID is required", path="Users")
    """


class InvalidRangeError(ValidationError):
    """Raised when a numeric paging argument is out of range.

    Example:
        >>> raise InvalidRangeError("Range start must be less than range end", start=5, end=2)
    """


# State exceptions
class StateError(FireRestError):
    """Raised when a transaction operation is not valid in the current state.

    Example:
        >>> raise StateError("Transaction is not active", operation="get")
    """


# Remote exceptions
class RemoteError(FireRestError):
    """Raised when the service reports an error or returns an unusable payload."""


class PartialBatchFailure(RemoteError):
    """Raised when one operation of a non-atomic batch write fails.

    Writes that precede ``index`` in the same request may already have been
    applied by the service.

    Example:
        >>> raise PartialBatchFailure("Batch write operation 2 failed: not found", index=2)
    """

    def __init__(
        self,
        message: str = "",
        index: Optional[int] = None,
        write_results: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> None:
        self.index = index
        self.write_results = write_results or []
        super().__init__(message, **kwargs)


class DocumentNotFoundError(RemoteError):
    """Raised when a document read returns no fields.

    Example:
        >>> raise DocumentNotFoundError("No document with `fields` found", path="Users/alice")
    """


class ResponseDecodeError(RemoteError):
    """Raised when a response or wire value does not have the expected shape.

    Example:
        >>> raise ResponseDecodeError("Unexpected aggregation response", response=[])
    """


# Configuration exceptions
class ConfigurationError(FireRestError):
    """Raised when configuration is invalid or missing."""


class MissingConfigError(ConfigurationError):
    """Raised when required configuration values are not set.

    Example:
        >>> raise MissingConfigError("Project ID not set", config_key="FIRESTORE_PROJECT_ID")
    """
