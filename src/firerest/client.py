"""
Firestore client facade.

This module provides :class:`Firestore`, which binds the query, aggregation,
batch and transaction builders to an injected transport. The transport owns
HTTP and authentication; this class only decides which REST method to call
and how to turn responses into :class:`~firerest.schema.Document` objects.
"""

import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

from .batch import WriteBatch, check_write_statuses
from .codec import unwrap_value, wrap_fields
from .exceptions import DocumentNotFoundError, MissingConfigError, ResponseDecodeError, ValidationError
from .logger import Logger
from .querydsl.aggregate import AggregateQuery
from .querydsl.query import Query
from .schema import Document
from .settings import settings as api_settings
from .transaction import Transaction, run_transaction
from .types import JSON, Fields, Mask, Transport, Write
from .utils import (
    clean_path,
    get_collection_from_path,
    get_document_from_path,
    normalize_paths,
)
from .writes import document_name, mask_paths, resolve_mask

__all__ = ("Firestore",)

T = TypeVar("T")


class Firestore:
    """Typed client for one Firestore database over its REST API.

    Example:
        >>> db = Firestore(transport, project_id="my-project")
        >>> db.create_document("Users/alice", {"name": "Alice", "visits": 0})
        >>> adults = db.query("Users").where("age", ">=", 18).execute()
        >>> db.run_transaction(lambda tx: tx.update("Users/alice", {"visits": 1}, mask=True))

    Attributes:
        project_id: Google Cloud project id
        database: Database id, ``(default)`` unless configured
    """

    def __init__(
        self,
        transport: Transport,
        project_id: Optional[str] = None,
        database: Optional[str] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            transport: HTTP collaborator; paths are relative to the database root
            project_id: Project id (default from settings)
            database: Database id (default from settings)
            sleep: Blocking wait in seconds used between transaction retries

        Raises:
            MissingConfigError: If no project id is given or configured
        """
        self.project_id = project_id or api_settings.FIRESTORE_PROJECT_ID
        if not self.project_id:
            raise MissingConfigError(
                "FIRESTORE_PROJECT_ID is not set. Pass project_id or configure it in your .env file.",
                config_key="FIRESTORE_PROJECT_ID",
                env_file=".env",
            )
        self.database = database or api_settings.FIRESTORE_DATABASE
        self._transport = transport
        self._sleep = sleep
        self.logger = Logger(self.__class__.__name__, project=self.project_id, database=self.database)
        self.logger.message("Firestore client initialized")

    def __repr__(self) -> str:
        return f"Firestore(project_id={self.project_id!r}, database={self.database!r})"

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def base_path(self) -> str:
        """Documents root: ``projects/<p>/databases/<d>/documents/``."""
        return f"projects/{self.project_id}/databases/{self.database}/documents/"

    @property
    def base_url(self) -> str:
        """REST root that transport paths are relative to."""
        return (
            f"{api_settings.FIRESTORE_HOST.rstrip('/')}/{api_settings.FIRESTORE_API_VERSION}/"
            f"projects/{self.project_id}/databases/{self.database}/"
        )

    @staticmethod
    def _documents_path(path: str) -> str:
        cleaned = clean_path(path)
        return "documents/" + cleaned if cleaned else "documents"

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_document(self, path: str) -> Document:
        """Get a document.

        Raises:
            DocumentNotFoundError: If the document has no fields
        """
        response: JSON = self._transport.get(self._documents_path(path))
        if not response or not response.get("fields"):
            raise DocumentNotFoundError("No document with `fields` found", path=path)
        return Document.from_api(response)

    def get_documents(self, path: str, ids: Optional[Sequence[str]] = None) -> List[Document]:
        """Get every document of a collection, or only the given ids.

        Missing ids are left out of the result.
        """
        if ids is None:
            return self.query(path).execute()
        if not ids:
            return []
        collection = clean_path(path)
        payload = {"documents": [document_name(self.base_path, f"{collection}/{doc_id}") for doc_id in ids]}
        response: JSON = self._transport.post("documents:batchGet", payload)
        return [
            Document.from_api(item["found"], read_time=item.get("readTime"))
            for item in (response or [])
            if item.get("found")
        ]

    def get_document_ids(self, path: str) -> List[str]:
        """List the ids of the documents in a collection."""
        documents = self.query(path).select().execute()
        return [doc.id for doc in documents if doc.id]

    def create_document(self, path: str, fields: Optional[Fields] = None) -> Document:
        """Create a document; an id is generated when the path names a collection."""
        collection, document_id = get_document_from_path(path)
        params = {"documentId": document_id} if document_id else None
        response: JSON = self._transport.post(
            self._documents_path(collection), {"fields": wrap_fields(fields)}, params=params
        )
        self.logger.debug("Document created: %s", (response or {}).get("name"))
        return Document.from_api(response or {})

    def update_document(self, path: str, fields: Fields, mask: Mask = None) -> Document:
        """Update or create a document.

        Args:
            path: Document path
            fields: New field values
            mask: True to touch only the given fields, or explicit field names
                (a name listed here but absent from ``fields`` is deleted)

        Raises:
            InvalidFieldError: If the mask is of the wrong type or empty
        """
        params: Optional[Dict[str, List[str]]] = None
        mask_fields = resolve_mask(fields, mask)
        if mask_fields is not None:
            params = {"updateMask.fieldPaths": mask_paths(mask_fields)}
        response: JSON = self._transport.patch(
            self._documents_path(path), {"fields": wrap_fields(fields)}, params=params
        )
        return Document.from_api(response or {})

    def delete_document(self, path: str) -> JSON:
        """Delete a document (its subcollections are kept)."""
        return self._transport.delete(self._documents_path(path))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _query_callback(self, parent: str) -> Callable[[Query], List[Document]]:
        route = self._documents_path(parent) + ":runQuery"

        def callback(query: Query) -> List[Document]:
            response: JSON = self._transport.post(route, {"structuredQuery": query.to_dict()})
            if not isinstance(response, list):
                raise ResponseDecodeError("runQuery response must be a list", response=response)
            return [
                Document.from_api(item["document"], read_time=item.get("readTime"))
                for item in response
                if item.get("document")
            ]

        return callback

    def query(self, path: str) -> Query:
        """Start a query over the collection at ``path``; call ``execute()`` to run it."""
        parent, collection_id = get_collection_from_path(path)
        return Query(collection_id, self._query_callback(parent), parent=parent)

    def collection_group(self, collection_id: str) -> Query:
        """Query every collection named ``collection_id`` in the database."""
        return Query(collection_id, self._query_callback(""), collection_group=True)

    def query_multiple_collections(self, collection_paths: Sequence[str]) -> Query:
        """Query several collections under the same parent in one request."""
        parents = set()
        collection_ids = []
        for path in normalize_paths(collection_paths):
            parent, collection_id = get_collection_from_path(path)
            parents.add(parent)
            collection_ids.append(collection_id)
        if len(parents) > 1:
            raise ValidationError("All collections must share the same parent", paths=list(collection_paths))
        parent = parents.pop() if parents else ""
        return Query(collection_ids, self._query_callback(parent), parent=parent)

    def query_multiple_collection_groups(self, collection_ids: Sequence[str]) -> Query:
        return Query(list(collection_ids), self._query_callback(""), collection_group=True)

    # ------------------------------------------------------------------
    # Aggregations
    # ------------------------------------------------------------------

    def _aggregate_callback(self, parent: str) -> Callable[[AggregateQuery], Dict[str, Any]]:
        route = self._documents_path(parent) + ":runAggregationQuery"

        def callback(aggregate: AggregateQuery) -> Dict[str, Any]:
            payload = {"structuredAggregationQuery": aggregate.get_structured_aggregation_query()}
            response: JSON = self._transport.post(route, payload)
            results = response if isinstance(response, list) else [response]
            for item in results:
                fields = ((item or {}).get("result") or {}).get("aggregateFields")
                if fields is not None:
                    return {alias: unwrap_value(value) for alias, value in fields.items()}
            raise ResponseDecodeError("Unexpected aggregation response", response=response)

        return callback

    def aggregate_query(self, path: str) -> AggregateQuery:
        """Aggregate over the collection at ``path``."""
        parent, collection_id = get_collection_from_path(path)
        return AggregateQuery(Query(collection_id, parent=parent), self._aggregate_callback(parent))

    def aggregate_collection_group(self, collection_id: str) -> AggregateQuery:
        return AggregateQuery(Query(collection_id, collection_group=True), self._aggregate_callback(""))

    def aggregate_from_query(self, query: Query, parent: Optional[str] = None) -> AggregateQuery:
        """Aggregate over the results of an existing query.

        The request goes to the query's own parent unless ``parent`` is given.
        """
        return AggregateQuery(query, self._aggregate_callback(query.parent if parent is None else parent))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def batch(self) -> WriteBatch:
        return WriteBatch(self._transport, self.base_path)

    def batch_write(self, writes: Sequence[Write]) -> List[Dict[str, Any]]:
        """Send prebuilt writes in one non-atomic request.

        Raises:
            ValidationError: If ``writes`` is empty
            PartialBatchFailure: If an individual write failed
        """
        if not writes:
            raise ValidationError("Cannot perform batch write with empty writes array")
        response: JSON = self._transport.post("documents:batchWrite", {"writes": list(writes)})
        return check_write_statuses(response)

    def transaction(self) -> Transaction:
        return Transaction(self._transport, self.base_path)

    def run_transaction(
        self,
        fn: Callable[[Transaction], T],
        options: Optional[Mapping[str, Any]] = None,
        max_retries: Optional[int] = None,
    ) -> T:
        """Run ``fn`` in a transaction, retrying with backoff on contention."""
        return run_transaction(self.transaction, fn, options, max_retries, sleep=self._sleep)
