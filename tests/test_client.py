"""Tests for the Firestore client facade."""

import pytest

from firerest import Firestore
from firerest.client import api_settings
from firerest.exceptions import (
    DocumentNotFoundError,
    InvalidFieldError,
    MissingConfigError,
    PartialBatchFailure,
    ResponseDecodeError,
    ValidationError,
)


class TestInit:
    def test_missing_project_id(self, transport, monkeypatch):
        monkeypatch.setattr(api_settings, "FIRESTORE_PROJECT_ID", None)
        with pytest.raises(MissingConfigError) as exc_info:
            Firestore(transport)
        assert exc_info.value.details["config_key"] == "FIRESTORE_PROJECT_ID"

    def test_project_id_from_settings(self, transport, monkeypatch):
        monkeypatch.setattr(api_settings, "FIRESTORE_PROJECT_ID", "from-env")
        assert Firestore(transport).project_id == "from-env"

    def test_paths(self, db, base_path):
        assert db.base_path == base_path
        assert db.base_url == "https://firestore.googleapis.com/v1/projects/test-project/databases/(default)/"

    def test_named_database(self, transport):
        db = Firestore(transport, project_id="p", database="analytics")
        assert db.base_path == "projects/p/databases/analytics/documents/"


class TestDocuments:
    """Tests for single-document operations."""

    def test_get_document(self, db, transport, make_doc):
        transport.queue("GET", "documents/Users/alice", make_doc("Users/alice", {"name": {"stringValue": "Alice"}}))
        doc = db.get_document("Users/alice")
        assert doc.path == "Users/alice"
        assert doc.id == "alice"
        assert doc["name"] == "Alice"
        assert doc.created.microsecond == 123000

    def test_get_document_missing(self, db, transport):
        transport.queue("GET", "documents/Users/ghost", {"name": "x"})
        with pytest.raises(DocumentNotFoundError):
            db.get_document("Users/ghost")

    def test_get_documents_by_id(self, db, transport, base_path, make_doc):
        transport.queue(
            "POST",
            "documents:batchGet",
            [{"found": make_doc("Users/a", {"n": {"integerValue": "1"}})}, {"missing": base_path + "Users/b"}],
        )
        docs = db.get_documents("Users", ["a", "b"])
        assert [d.id for d in docs] == ["a"]
        (call,) = transport.calls_to("POST")
        assert call["payload"] == {"documents": [base_path + "Users/a", base_path + "Users/b"]}

    def test_get_documents_empty_ids(self, db, transport):
        assert db.get_documents("Users", []) == []
        assert transport.calls == []

    def test_get_documents_whole_collection(self, db, transport, make_doc):
        transport.queue("POST", "documents:runQuery", [{"document": make_doc("Users/a", {})}])
        assert [d.id for d in db.get_documents("Users")] == ["a"]

    def test_get_document_ids(self, db, transport, make_doc):
        transport.queue(
            "POST",
            "documents:runQuery",
            [{"document": make_doc("Users/a", {})}, {"document": make_doc("Users/b", {})}],
        )
        assert db.get_document_ids("Users") == ["a", "b"]
        (call,) = transport.calls
        assert call["payload"]["structuredQuery"]["select"] == {"fields": [{"fieldPath": "`__name__`"}]}

    def test_create_document_with_id(self, db, transport, make_doc):
        transport.queue("POST", "documents/Users", make_doc("Users/alice", {"age": {"integerValue": "30"}}))
        doc = db.create_document("Users/alice", {"age": 30})
        assert doc.obj == {"age": 30}
        (call,) = transport.calls
        assert call["params"] == {"documentId": "alice"}
        assert call["payload"] == {"fields": {"age": {"integerValue": "30"}}}

    def test_create_document_generated_id(self, db, transport, make_doc):
        transport.queue("POST", "documents/Users", make_doc("Users/xyz123", {}))
        assert db.create_document("Users", {}).id == "xyz123"
        assert transport.calls[0]["params"] is None

    def test_update_document_with_mask(self, db, transport, make_doc):
        transport.queue("PATCH", "documents/Users/alice", make_doc("Users/alice", {}))
        db.update_document("Users/alice", {"age": 31, "home town": "Oslo"}, mask=True)
        (call,) = transport.calls
        assert call["params"] == {"updateMask.fieldPaths": ["`age`", "`home town`"]}

    def test_update_document_without_mask(self, db, transport):
        db.update_document("Users/alice", {"age": 31})
        assert transport.calls[0]["params"] is None

    def test_update_document_explicit_mask_tuple(self, db, transport):
        db.update_document("Users/alice", {"age": 31}, mask=("age", "nickname"))
        assert transport.calls[0]["params"] == {"updateMask.fieldPaths": ["`age`", "`nickname`"]}

    def test_update_document_empty_mask(self, db, transport):
        with pytest.raises(InvalidFieldError):
            db.update_document("Users/alice", {"age": 31}, mask=[])
        assert transport.calls == []

    def test_update_document_string_mask(self, db, transport):
        """Test a bare string mask is rejected instead of split into characters."""
        with pytest.raises(InvalidFieldError):
            db.update_document("Users/alice", {"name": "A"}, mask="name")
        assert transport.calls == []

    def test_delete_document(self, db, transport):
        db.delete_document("Users/alice")
        assert transport.calls_to("DELETE", "documents/Users/alice")


class TestQueries:
    """Tests for query routing and response decoding."""

    def test_query_root_collection(self, db, transport, make_doc):
        transport.queue(
            "POST",
            "documents:runQuery",
            [{"readTime": "2024-05-03T00:00:00Z"}, {"document": make_doc("Users/a", {}), "readTime": "2024-05-03T00:00:00Z"}],
        )
        docs = db.query("Users").where("age", ">=", 18).limit(5).execute()
        assert len(docs) == 1
        assert docs[0].read_time == "2024-05-03T00:00:00Z"
        body = transport.calls[0]["payload"]["structuredQuery"]
        assert body["from"] == [{"collectionId": "Users", "allDescendants": False}]
        assert body["limit"] == 5

    def test_query_subcollection(self, db, transport):
        transport.queue("POST", "documents/Users/alice:runQuery", [])
        assert db.query("Users/alice/Posts").execute() == []
        assert transport.calls[0]["payload"]["structuredQuery"]["from"][0]["collectionId"] == "Posts"
        assert transport.calls[0]["path"] == "documents/Users/alice:runQuery"

    def test_query_document_path_rejected(self, db):
        with pytest.raises(InvalidFieldError):
            db.query("Users/alice")

    def test_collection_group(self, db, transport):
        transport.queue("POST", "documents:runQuery", [])
        db.collection_group("Posts").execute()
        assert transport.calls[0]["payload"]["structuredQuery"]["from"] == [
            {"collectionId": "Posts", "allDescendants": True}
        ]

    def test_query_multiple_collections(self, db, transport):
        transport.queue("POST", "documents/Users/a:runQuery", [])
        db.query_multiple_collections(["Users/a/Posts", "Users/a/Drafts"]).execute()
        assert [s["collectionId"] for s in transport.calls[0]["payload"]["structuredQuery"]["from"]] == [
            "Posts",
            "Drafts",
        ]

    def test_query_multiple_collections_different_parents(self, db):
        with pytest.raises(ValidationError):
            db.query_multiple_collections(["Users/a/Posts", "Users/b/Posts"])

    def test_query_multiple_collection_groups(self, db):
        q = db.query_multiple_collection_groups(["A", "B"])
        assert all(s["allDescendants"] for s in q.to_dict()["from"])

    def test_non_list_response(self, db, transport):
        transport.queue("POST", "documents:runQuery", {"error": "x"})
        with pytest.raises(ResponseDecodeError):
            db.query("Users").execute()


class TestAggregations:
    """Tests for aggregation routing and decoding."""

    def test_aggregate_query(self, db, transport):
        transport.queue(
            "POST",
            "documents:runAggregationQuery",
            [
                {
                    "result": {
                        "aggregateFields": {
                            "count": {"integerValue": "42"},
                            "sum_amount": {"doubleValue": 99.5},
                        }
                    },
                    "readTime": "2024-05-03T00:00:00Z",
                }
            ],
        )
        result = db.aggregate_query("Orders").count().sum("amount").get()
        assert result == {"count": 42, "sum_amount": 99.5}
        body = transport.calls[0]["payload"]["structuredAggregationQuery"]
        assert body["structuredQuery"]["from"] == [{"collectionId": "Orders", "allDescendants": False}]
        assert [a["alias"] for a in body["aggregations"]] == ["count", "sum_amount"]

    def test_aggregate_single_object_response(self, db, transport):
        transport.queue(
            "POST",
            "documents:runAggregationQuery",
            {"result": {"aggregateFields": {"count": {"integerValue": "0"}}}},
        )
        assert db.aggregate_collection_group("Orders").count().get() == {"count": 0}

    def test_aggregate_from_query(self, db, transport):
        transport.queue(
            "POST",
            "documents:runAggregationQuery",
            [{"result": {"aggregateFields": {"avg_age": {"nullValue": None}}}}],
        )
        query = db.query("Users").where("age", ">=", 18)
        assert db.aggregate_from_query(query).avg("age").get() == {"avg_age": None}
        where = transport.calls[0]["payload"]["structuredAggregationQuery"]["structuredQuery"]["where"]
        assert where["fieldFilter"]["op"] == "GREATER_THAN_OR_EQUAL"

    def test_aggregate_from_subcollection_query_uses_its_parent(self, db, transport):
        transport.queue(
            "POST",
            "documents/Users/alice:runAggregationQuery",
            [{"result": {"aggregateFields": {"count": {"integerValue": "2"}}}}],
        )
        query = db.query("Users/alice/Orders")
        assert db.aggregate_from_query(query).count().get() == {"count": 2}
        (call,) = transport.calls
        assert call["path"] == "documents/Users/alice:runAggregationQuery"

    def test_aggregate_from_query_explicit_parent(self, db, transport):
        transport.queue(
            "POST",
            "documents:runAggregationQuery",
            {"result": {"aggregateFields": {"count": {"integerValue": "0"}}}},
        )
        db.aggregate_from_query(db.query("Users/alice/Orders"), parent="").count().get()
        assert transport.calls[0]["path"] == "documents:runAggregationQuery"

    def test_unexpected_aggregate_response(self, db, transport):
        transport.queue("POST", "documents:runAggregationQuery", [{"readTime": "t"}])
        with pytest.raises(ResponseDecodeError):
            db.aggregate_query("Orders").count().get()

    def test_invalid_aggregation_sends_nothing(self, db, transport):
        with pytest.raises(ValidationError):
            db.aggregate_query("Orders").get()
        assert transport.calls == []


class TestWrites:
    def test_batch_is_bound(self, db, transport, base_path):
        db.batch().delete("Users/a").commit()
        (call,) = transport.calls_to("POST", "documents:batchWrite")
        assert call["payload"] == {"writes": [{"delete": base_path + "Users/a"}]}

    def test_batch_write_prebuilt(self, db, transport):
        transport.queue("POST", "documents:batchWrite", {"status": [{"code": 5, "message": "gone"}]})
        with pytest.raises(PartialBatchFailure):
            db.batch_write([{"delete": "x"}])

    def test_batch_write_empty(self, db):
        with pytest.raises(ValidationError):
            db.batch_write([])

    def test_run_transaction_uses_client_sleep(self, db, transport, sleeps):
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        transport.queue("POST", "documents:commit", RuntimeError("ABORTED"), {})
        assert db.run_transaction(lambda t: "ok") == "ok"
        assert sleeps == [1.0]
