"""Tests for Transaction and the retry driver."""

import pytest

from firerest.exceptions import (
    DocumentNotFoundError,
    MissingFieldError,
    ResponseDecodeError,
    StateError,
    ValidationError,
)
from firerest.transaction import (
    Transaction,
    TransactionState,
    backoff_delay_ms,
    is_retryable_error,
    run_transaction,
)

TOKEN = "+/+/AQ=="
NORMALIZED = "-_-_AQ=="


@pytest.fixture
def tx(transport, base_path):
    transport.queue("POST", "documents:beginTransaction", {"transaction": TOKEN})
    return Transaction(transport, base_path)


class TestLifecycle:
    """Tests for the INACTIVE/ACTIVE state machine."""

    def test_starts_inactive(self, tx):
        assert tx.state is TransactionState.INACTIVE
        assert not tx.is_active
        assert tx.transaction_id is None

    def test_begin(self, tx, transport):
        assert tx.begin() is tx
        assert tx.is_active
        assert tx.transaction_id == NORMALIZED
        (call,) = transport.calls_to("POST", "documents:beginTransaction")
        assert call["payload"] == {"options": {"readWrite": {}}}

    def test_begin_read_only_options(self, tx, transport):
        tx.begin({"readOnly": {}})
        assert transport.calls[0]["payload"] == {"options": {"readOnly": {}}}

    def test_begin_twice(self, tx):
        tx.begin()
        with pytest.raises(StateError):
            tx.begin()

    def test_begin_without_token(self, transport, base_path):
        transport.queue("POST", "documents:beginTransaction", {})
        tx = Transaction(transport, base_path)
        with pytest.raises(ResponseDecodeError):
            tx.begin()
        assert not tx.is_active

    def test_commit(self, tx, transport, base_path):
        transport.queue("POST", "documents:commit", {"writeResults": [{"updateTime": "t"}]})
        tx.begin().set("Users/a", {"x": 1}).delete("Users/b")
        assert tx.size() == 2
        assert tx.commit() == [{"updateTime": "t"}]
        (call,) = transport.calls_to("POST", "documents:commit")
        assert call["payload"]["transaction"] == NORMALIZED
        assert call["payload"]["writes"][1] == {"delete": base_path + "Users/b"}
        assert tx.state is TransactionState.INACTIVE
        assert tx.size() == 0

    def test_commit_failure_resets(self, tx, transport):
        transport.queue("POST", "documents:commit", RuntimeError("ABORTED"))
        tx.begin().delete("Users/a")
        with pytest.raises(RuntimeError):
            tx.commit()
        assert not tx.is_active
        assert tx.transaction_id is None

    def test_rollback(self, tx, transport):
        tx.begin().delete("Users/a")
        tx.rollback()
        (call,) = transport.calls_to("POST", "documents:rollback")
        assert call["payload"] == {"transaction": NORMALIZED}
        assert not tx.is_active
        assert tx.size() == 0

    def test_reuse_after_commit(self, tx):
        tx.begin().commit()
        tx.begin()
        assert tx.is_active


class TestInactiveOperations:
    @pytest.mark.parametrize(
        "operation",
        [
            lambda t: t.get("Users/a"),
            lambda t: t.get_all(["Users/a"]),
            lambda t: t.create("Users/a", {}),
            lambda t: t.set("Users/a", {}),
            lambda t: t.update("Users/a", {"x": 1}),
            lambda t: t.delete("Users/a"),
            lambda t: t.transform("Users/a", {"n": {"increment": 1}}),
            lambda t: t.commit(),
            lambda t: t.rollback(),
        ],
    )
    def test_requires_active(self, tx, transport, operation):
        with pytest.raises(StateError):
            operation(tx)
        assert transport.calls == []


class TestReads:
    """Tests for reads pinned to the transaction."""

    def test_get(self, tx, transport, make_doc):
        transport.queue("GET", "documents/Users/alice", make_doc("Users/alice", {"age": {"integerValue": "30"}}))
        tx.begin()
        doc = tx.get("/Users/alice")
        assert doc.obj == {"age": 30}
        (call,) = transport.calls_to("GET")
        assert call["params"] == {"transaction": NORMALIZED}

    def test_get_missing(self, tx, transport):
        transport.queue("GET", "documents/Users/ghost", {})
        tx.begin()
        with pytest.raises(DocumentNotFoundError):
            tx.get("Users/ghost")

    def test_get_all(self, tx, transport, base_path, make_doc):
        transport.queue(
            "POST",
            "documents:batchGet",
            [
                {"found": make_doc("Users/a", {"n": {"integerValue": "1"}}), "readTime": "2024-05-03T00:00:00Z"},
                {"missing": base_path + "Users/b", "readTime": "2024-05-03T00:00:00Z"},
            ],
        )
        tx.begin()
        docs = tx.get_all(["Users/a", "Users/b"])
        assert [d.id for d in docs] == ["a"]
        assert docs[0].read_time == "2024-05-03T00:00:00Z"
        (call,) = transport.calls_to("POST", "documents:batchGet")
        assert call["payload"] == {
            "documents": [base_path + "Users/a", base_path + "Users/b"],
            "transaction": NORMALIZED,
        }

    def test_invalid_write_not_staged(self, tx):
        tx.begin()
        with pytest.raises(MissingFieldError):
            tx.create("Users", {"x": 1})
        assert tx.size() == 0


class TestRetryPolicy:
    @pytest.mark.parametrize(
        "message",
        ["10 ABORTED: Too much contention", "Transaction conflict", "Deadline Exceeded"],
    )
    def test_retryable(self, message):
        assert is_retryable_error(RuntimeError(message))

    def test_not_retryable(self):
        assert not is_retryable_error(RuntimeError("5 NOT_FOUND: not found"))

    def test_builder_errors_never_retried(self):
        assert not is_retryable_error(ValidationError("abort everything"))
        assert not is_retryable_error(StateError("conflict"))

    def test_backoff(self):
        assert [backoff_delay_ms(a) for a in range(6)] == [1000, 2000, 4000, 8000, 10000, 10000]


class TestRunTransaction:
    """Tests for the retry driver."""

    def _factory(self, transport, base_path):
        created = []

        def factory():
            tx = Transaction(transport, base_path)
            created.append(tx)
            return tx

        return factory, created

    def test_success_first_try(self, transport, base_path):
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        factory, created = self._factory(transport, base_path)
        sleeps = []
        result = run_transaction(factory, lambda t: t.delete("Users/a") and "done", sleep=sleeps.append)
        assert result == "done"
        assert len(created) == 1
        assert sleeps == []
        assert len(transport.calls_to("POST", "documents:commit")) == 1

    def test_retries_aborted_commit(self, transport, base_path):
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        transport.queue(
            "POST",
            "documents:commit",
            RuntimeError("10 ABORTED"),
            RuntimeError("10 ABORTED"),
            {"writeResults": []},
        )
        factory, created = self._factory(transport, base_path)
        sleeps = []
        attempts = []

        def fn(t):
            attempts.append(t)
            t.delete("Users/a")
            return len(attempts)

        assert run_transaction(factory, fn, sleep=sleeps.append) == 3
        assert sleeps == [1.0, 2.0]
        assert len(created) == 3
        assert len({id(t) for t in attempts}) == 3

    def test_user_error_rolls_back_without_retry(self, transport, base_path):
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        factory, created = self._factory(transport, base_path)
        sleeps = []

        def fn(t):
            raise LookupError("5 NOT_FOUND: not found")

        with pytest.raises(LookupError):
            run_transaction(factory, fn, sleep=sleeps.append)
        assert sleeps == []
        assert len(created) == 1
        assert len(transport.calls_to("POST", "documents:rollback")) == 1

    def test_rollback_failure_is_swallowed(self, transport, base_path):
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        transport.queue("POST", "documents:rollback", RuntimeError("rollback exploded"))
        factory, _ = self._factory(transport, base_path)

        def fn(t):
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            run_transaction(factory, fn, sleep=lambda s: None)

    def test_retries_exhausted(self, transport, base_path):
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        transport.queue("POST", "documents:commit", RuntimeError("ABORTED"))
        factory, created = self._factory(transport, base_path)
        sleeps = []
        with pytest.raises(RuntimeError, match="ABORTED"):
            run_transaction(factory, lambda t: t.delete("Users/a"), max_retries=2, sleep=sleeps.append)
        assert sleeps == [1.0, 2.0]
        assert len(created) == 3

    def test_retries_aborted_function(self, transport, base_path):
        """Test two ABORTED failures of fn retry after 1s then 2s and return the third result."""
        transport.queue("POST", "documents:beginTransaction", {"transaction": "dHgx"})
        factory, created = self._factory(transport, base_path)
        sleeps = []
        invocations = []

        def fn(t):
            invocations.append(t)
            if len(invocations) < 3:
                raise RuntimeError("10 ABORTED: Transaction lock timeout")
            return "third"

        assert run_transaction(factory, fn, sleep=sleeps.append) == "third"
        assert sleeps == [1.0, 2.0]
        assert len(transport.calls_to("POST", "documents:rollback")) == 2
        assert len(transport.calls_to("POST", "documents:commit")) == 1
