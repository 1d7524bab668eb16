"""Tests for the Document schema."""

from datetime import datetime, timezone

from firerest.schema import Document

NAME = "projects/test-project/databases/(default)/documents/Users/alice/Posts/p1"


class TestDocumentCreation:
    """Tests for building documents from API payloads and native values."""

    def test_from_api(self, make_doc):
        doc = Document.from_api(make_doc("Users/alice/Posts/p1", {"title": {"stringValue": "Hi"}}))
        assert doc.name == NAME
        assert doc.create_time == "2024-05-01T10:00:00.123456Z"
        assert doc.read_time is None

    def test_from_api_with_read_time(self, make_doc):
        doc = Document.from_api(make_doc("Users/a", {}), read_time="2024-05-03T00:00:00Z")
        assert doc.read == datetime(2024, 5, 3, tzinfo=timezone.utc)

    def test_from_fields(self):
        doc = Document.from_fields({"age": 30, "tags": ["a"]}, name=NAME)
        assert doc.fields == {
            "age": {"integerValue": "30"},
            "tags": {"arrayValue": {"values": [{"stringValue": "a"}]}},
        }

    def test_populate_by_name(self):
        doc = Document(name=NAME, update_time="2024-05-02T11:30:00.5Z")
        assert doc.updated == datetime(2024, 5, 2, 11, 30, 0, 500000, tzinfo=timezone.utc)

    def test_empty_document(self):
        doc = Document()
        assert doc.path is None
        assert doc.id is None
        assert doc.obj == {}
        assert doc.created is None


class TestDocumentAccess:
    def test_path_and_id(self):
        doc = Document(name=NAME)
        assert doc.path == "Users/alice/Posts/p1"
        assert doc.id == "p1"

    def test_obj_and_getitem(self):
        doc = Document.from_fields({"profile": {"city": "Oslo"}, "age": 30})
        assert doc.obj == {"profile": {"city": "Oslo"}, "age": 30}
        assert doc["age"] == 30

    def test_to_api(self):
        doc = Document.from_fields({"age": 30}, name=NAME)
        assert doc.to_api() == {"fields": {"age": {"integerValue": "30"}}, "name": NAME}

    def test_to_api_without_name(self):
        assert Document.from_fields({}).to_api() == {"fields": {}}
