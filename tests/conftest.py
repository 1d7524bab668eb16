"""Pytest configuration and fixtures for firerest tests."""

from collections import defaultdict
from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple

import pytest
from dotenv import load_dotenv

from firerest.client import Firestore

# Load environment variables
load_dotenv()

PROJECT_ID = "test-project"
BASE_PATH = f"projects/{PROJECT_ID}/databases/(default)/documents/"


class MockTransport:
    """In-memory transport that records requests and replays queued responses.

    Responses are queued per ``(method, path)``. The last queued item keeps
    being returned once the others are consumed; queued exceptions are raised.
    """

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self._responses: Dict[Tuple[str, str], List[Any]] = defaultdict(list)

    def queue(self, method: str, path: str, *responses: Any) -> "MockTransport":
        self._responses[(method.upper(), path)].extend(responses)
        return self

    def calls_to(self, method: str, path: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            call for call in self.calls if call["method"] == method.upper() and (path is None or call["path"] == path)
        ]

    def _dispatch(self, method: str, path: str, payload: Any = None, params: Any = None) -> Any:
        self.calls.append({"method": method, "path": path, "payload": deepcopy(payload), "params": params})
        queued = self._responses.get((method, path))
        if not queued:
            return {}
        item = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(item, BaseException):
            raise item
        return deepcopy(item)

    def get(self, path, params=None):
        return self._dispatch("GET", path, params=params)

    def post(self, path, payload, params=None):
        return self._dispatch("POST", path, payload, params)

    def patch(self, path, payload, params=None):
        return self._dispatch("PATCH", path, payload, params)

    def delete(self, path, params=None):
        return self._dispatch("DELETE", path, params=params)


def stored_document(path: str, fields: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    """REST document payload as the service would return it."""
    doc = {
        "name": BASE_PATH + path,
        "fields": fields,
        "createTime": "2024-05-01T10:00:00.123456Z",
        "updateTime": "2024-05-02T11:30:00.5Z",
    }
    doc.update(extra)
    return doc


@pytest.fixture
def transport():
    """Fresh mock transport."""
    return MockTransport()


@pytest.fixture
def sleeps():
    """Records delays passed to the client's sleep function."""
    return []


@pytest.fixture
def db(transport, sleeps):
    """Firestore client bound to the mock transport."""
    return Firestore(transport, project_id=PROJECT_ID, sleep=sleeps.append)


@pytest.fixture
def base_path():
    return BASE_PATH


@pytest.fixture
def make_doc():
    """Factory for REST document payloads."""
    return stored_document
