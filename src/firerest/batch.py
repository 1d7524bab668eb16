"""Non-atomic write batches.

A :class:`WriteBatch` queues writes in memory and sends them in a single
``batchWrite`` request. The service applies each write independently: when
``commit`` reports a failing operation, the writes before it may already have
taken effect.
"""

from typing import Any, Dict, List, Mapping, Optional

from .exceptions import PartialBatchFailure, ValidationError
from .logger import Logger
from .types import JSON, Fields, Mask, Transport, Write
from .writes import create_write, delete_write, set_write, transform_write, update_write

__all__ = ("WriteBatch", "check_write_statuses")


def check_write_statuses(response: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Return ``writeResults`` of a batch write response.

    Raises:
        PartialBatchFailure: For the first operation whose status code is non-zero
    """
    response = response or {}
    write_results = response.get("writeResults") or []
    for index, status in enumerate(response.get("status") or []):
        code = (status or {}).get("code")
        if code:
            message = status.get("message") or "Unknown error"
            raise PartialBatchFailure(
                f"Batch write operation {index} failed: {message}",
                index=index,
                write_results=write_results,
                code=code,
            )
    return write_results


class WriteBatch:
    """Accumulates create/set/update/delete/transform writes for one request.

    Example:
        >>> batch = db.batch()
        >>> batch.set("Users/alice", {"name": "Alice"}).delete("Users/bob")
        >>> results = batch.commit()
    """

    def __init__(self, transport: Transport, base_path: str) -> None:
        """
        Args:
            transport: HTTP collaborator used by :meth:`commit`
            base_path: Documents root, ``projects/<p>/databases/<d>/documents/``
        """
        self._transport = transport
        self._base_path = base_path
        self._writes: List[Write] = []
        self.logger = Logger(self.__class__.__name__)

    def __len__(self) -> int:
        return len(self._writes)

    @property
    def writes(self) -> List[Write]:
        """Copy of the pending writes."""
        return list(self._writes)

    def size(self) -> int:
        return len(self._writes)

    def create(self, path: str, fields: Fields) -> "WriteBatch":
        """Create a document; the path must include the document id."""
        self._writes.append(create_write(self._base_path, path, fields))
        return self

    def set(self, path: str, fields: Fields, merge: bool = False) -> "WriteBatch":
        """Overwrite a document, or only the given fields with ``merge``."""
        self._writes.append(set_write(self._base_path, path, fields, merge))
        return self

    def update(self, path: str, fields: Fields, mask: Mask = None) -> "WriteBatch":
        """Update an existing document."""
        self._writes.append(update_write(self._base_path, path, fields, mask))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._writes.append(delete_write(self._base_path, path))
        return self

    def transform(self, path: str, transforms: Mapping[str, Any]) -> "WriteBatch":
        """Apply server-side field transforms to a document."""
        self._writes.append(transform_write(self._base_path, path, transforms))
        return self

    def commit(self) -> List[Dict[str, Any]]:
        """Send all pending writes in one request.

        The pending list is cleared whether or not the request succeeds.

        Returns:
            Write results reported by the service

        Raises:
            ValidationError: If there are no pending writes
            PartialBatchFailure: If an individual write failed
        """
        if not self._writes:
            raise ValidationError("Cannot commit empty batch")

        payload = {"writes": self._writes}
        count = len(self._writes)
        try:
            response: JSON = self._transport.post("documents:batchWrite", payload)
        finally:
            self._writes = []
        self.logger.debug("Batch write sent: %d writes", count)
        return check_write_statuses(response)
