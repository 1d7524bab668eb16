"""Transactions and the retry driver.

A :class:`Transaction` moves between two states::

    INACTIVE --begin()--> ACTIVE --commit()/rollback()--> INACTIVE

Reads are pinned to the server-issued transaction id; writes are staged in
memory and sent together on commit. :func:`run_transaction` re-runs a whole
user function on a fresh transaction when the service reports contention.
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from .constants import RETRYABLE_ERROR_KEYWORDS
from .exceptions import DocumentNotFoundError, ResponseDecodeError, StateError, ValidationError
from .logger import Logger
from .schema import Document
from .settings import settings as api_settings
from .types import JSON, Fields, Mask, Transport, Write
from .utils import clean_path, normalize_transaction_id
from .writes import create_write, delete_write, document_name, set_write, transform_write, update_write

__all__ = (
    "Transaction",
    "TransactionState",
    "run_transaction",
    "is_retryable_error",
    "backoff_delay_ms",
)

T = TypeVar("T")

logger = Logger(__name__)


class TransactionState(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"


class Transaction:
    """A set of pinned reads and staged writes committed atomically.

    An instance can be reused: after ``commit`` or ``rollback`` it returns to
    ``INACTIVE`` and accepts a new ``begin``.

    Example:
        >>> tx = db.transaction().begin()
        >>> alice = tx.get("Users/alice")
        >>> tx.update("Users/alice", {"visits": alice["visits"] + 1}, mask=True)
        >>> tx.commit()
    """

    def __init__(self, transport: Transport, base_path: str) -> None:
        self._transport = transport
        self._base_path = base_path
        self._transaction_id: Optional[str] = None
        self._writes: List[Write] = []
        self._state = TransactionState.INACTIVE
        self.logger = Logger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def transaction_id(self) -> Optional[str]:
        return self._transaction_id

    def size(self) -> int:
        """Number of staged writes."""
        return len(self._writes)

    def _require_active(self, operation: str) -> None:
        if self._state is not TransactionState.ACTIVE:
            raise StateError("Transaction is not active", operation=operation)

    def _reset(self) -> None:
        self._state = TransactionState.INACTIVE
        self._writes = []
        self._transaction_id = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self, options: Optional[Mapping[str, Any]] = None) -> "Transaction":
        """Start the transaction.

        Args:
            options: ``TransactionOptions`` (defaults to read-write)

        Raises:
            StateError: If the transaction is already active
            ResponseDecodeError: If the service returns no transaction id
        """
        if self._state is TransactionState.ACTIVE:
            raise StateError("Transaction is already active", operation="begin")

        payload = {"options": dict(options) if options else {"readWrite": {}}}
        response: JSON = self._transport.post("documents:beginTransaction", payload)
        token = (response or {}).get("transaction")
        if not token:
            raise ResponseDecodeError("beginTransaction returned no transaction id", response=response)

        self._transaction_id = normalize_transaction_id(token)
        self._writes = []
        self._state = TransactionState.ACTIVE
        self.logger.bind(transaction=self._transaction_id).debug("Transaction started")
        return self

    def commit(self) -> List[Dict[str, Any]]:
        """Send the staged writes; the transaction is inactive afterwards in every outcome.

        Returns:
            Write results reported by the service
        """
        self._require_active("commit")
        payload = {"writes": self._writes, "transaction": self._transaction_id}
        log = self.logger.bind(transaction=self._transaction_id)
        try:
            response: JSON = self._transport.post("documents:commit", payload)
        finally:
            self._reset()
        log.debug("Transaction committed: %d writes", len(payload["writes"]))
        return (response or {}).get("writeResults") or []

    def rollback(self) -> JSON:
        """Abandon the transaction; it is inactive afterwards in every outcome."""
        self._require_active("rollback")
        payload = {"transaction": self._transaction_id}
        try:
            return self._transport.post("documents:rollback", payload)
        finally:
            self._reset()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> Document:
        """Read one document inside the transaction.

        Raises:
            StateError: If the transaction is not active
            DocumentNotFoundError: If the document has no fields
        """
        self._require_active("get")
        response: JSON = self._transport.get(
            "documents/" + clean_path(path), params={"transaction": self._transaction_id}
        )
        if not response or not response.get("fields"):
            raise DocumentNotFoundError("No document with `fields` found", path=path)
        return Document.from_api(response)

    def get_all(self, paths: Sequence[str]) -> List[Document]:
        """Read several documents inside the transaction; missing ones are omitted."""
        self._require_active("get_all")
        payload = {
            "documents": [document_name(self._base_path, path) for path in paths],
            "transaction": self._transaction_id,
        }
        response: JSON = self._transport.post("documents:batchGet", payload)
        return [
            Document.from_api(item["found"], read_time=item.get("readTime"))
            for item in (response or [])
            if item.get("found")
        ]

    # ------------------------------------------------------------------
    # Staged writes
    # ------------------------------------------------------------------

    def create(self, path: str, fields: Fields) -> "Transaction":
        self._require_active("create")
        self._writes.append(create_write(self._base_path, path, fields))
        return self

    def set(self, path: str, fields: Fields, merge: bool = False) -> "Transaction":
        self._require_active("set")
        self._writes.append(set_write(self._base_path, path, fields, merge))
        return self

    def update(self, path: str, fields: Fields, mask: Mask = None) -> "Transaction":
        self._require_active("update")
        self._writes.append(update_write(self._base_path, path, fields, mask))
        return self

    def delete(self, path: str) -> "Transaction":
        self._require_active("delete")
        self._writes.append(delete_write(self._base_path, path))
        return self

    def transform(self, path: str, transforms: Mapping[str, Any]) -> "Transaction":
        self._require_active("transform")
        self._writes.append(transform_write(self._base_path, path, transforms))
        return self


# ===========================================================================
# Retry driver
# ===========================================================================


def is_retryable_error(error: BaseException) -> bool:
    """Whether a failed attempt is worth retrying.

    Builder and state errors never are; anything else is retried when its
    message mentions an abort, a conflict, contention or an exceeded deadline.
    """
    if isinstance(error, (ValidationError, StateError)):
        return False
    message = str(error).lower()
    return any(keyword in message for keyword in RETRYABLE_ERROR_KEYWORDS)


def backoff_delay_ms(attempt: int) -> int:
    """Exponential backoff: ``min(base * 2**attempt, cap)`` milliseconds."""
    return min(
        api_settings.TRANSACTION_BACKOFF_BASE_MS * (2**attempt),
        api_settings.TRANSACTION_BACKOFF_MAX_MS,
    )


def run_transaction(
    factory: Callable[[], Transaction],
    fn: Callable[[Transaction], T],
    options: Optional[Mapping[str, Any]] = None,
    max_retries: Optional[int] = None,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """Run ``fn`` inside a transaction, retrying on contention.

    Every attempt uses a new transaction from ``factory``; ``fn`` must be safe
    to run more than once.

    Args:
        factory: Creates a fresh inactive transaction
        fn: User function receiving the active transaction
        options: ``TransactionOptions`` passed to ``begin``
        max_retries: Retries after the first attempt (default from settings)
        sleep: Blocking wait in seconds

    Returns:
        The value returned by ``fn`` on the successful attempt

    Raises:
        Exception: The original error when it is not retryable or retries are exhausted
    """
    if max_retries is None:
        max_retries = api_settings.TRANSACTION_MAX_RETRIES

    for attempt in range(max_retries + 1):
        transaction = factory()
        try:
            transaction.begin(options)
            result = fn(transaction)
            transaction.commit()
            return result
        except Exception as error:
            if transaction.is_active:
                try:
                    transaction.rollback()
                except Exception as rollback_error:
                    logger.warning("Rollback failed after transaction error: %s", rollback_error)

            if not is_retryable_error(error) or attempt >= max_retries:
                raise

            delay = backoff_delay_ms(attempt)
            logger.warning(
                "Transaction attempt %d failed (%s); retrying in %d ms", attempt + 1, error, delay
            )
            sleep(delay / 1000)

    raise StateError("Transaction failed after maximum retries", max_retries=max_retries)
