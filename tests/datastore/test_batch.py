"""Tests for SQLBatch: lazy transactions, atomicity and rollback on every failure path."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from kvspine.core.dialect import SQLiteQueries
from kvspine.core.errors import BackendError, InvalidValueError, NotFoundError, TransactionClosedError
from kvspine.datastore import Query
from kvspine.datastore.batch import BatchState, SQLBatch


@pytest.fixture
def executor():
    """Executor mock whose begin() hands out one transaction mock."""
    ex = MagicMock()
    txn = MagicMock()
    txn.closed = False

    def finish(*_):
        txn.closed = True

    txn.commit.side_effect = finish
    txn.rollback.side_effect = finish
    ex.begin.return_value = txn
    return ex


@pytest.fixture
def batch(executor):
    return SQLBatch(executor, SQLiteQueries("kv"))


class TestLazyTransaction:
    def test_new_batch_is_idle(self, batch, executor):
        assert batch.state is BatchState.IDLE
        executor.begin.assert_not_called()

    def test_first_write_opens_one_transaction(self, batch, executor):
        batch.put("a", b"1")
        batch.delete("b")
        assert batch.state is BatchState.OPEN
        executor.begin.assert_called_once()
        txn = executor.begin.return_value
        assert txn.execute.call_count == 2
        txn.execute.assert_any_call("INSERT OR IGNORE INTO kv (key, data) VALUES (?, ?)", ("a", b"1"))
        txn.execute.assert_any_call("DELETE FROM kv WHERE key = ?", ("b",))

    def test_empty_commit_is_noop(self, batch, executor):
        batch.commit()
        assert batch.state is BatchState.DONE
        executor.begin.assert_not_called()
        executor.execute.assert_not_called()

    def test_begin_failure_propagates(self, batch, executor):
        executor.begin.side_effect = BackendError("pool exhausted")
        with pytest.raises(BackendError):
            batch.put("a", b"1")
        assert batch.state is BatchState.IDLE


class TestRollbackPaths:
    def test_execute_failure_rolls_back(self, batch, executor):
        txn = executor.begin.return_value
        txn.execute.side_effect = [1, BackendError("constraint")]
        batch.put("a", b"1")
        with pytest.raises(BackendError):
            batch.put("b", b"2")
        txn.rollback.assert_called_once()
        assert batch.state is BatchState.DONE

    def test_interrupt_rolls_back_and_reraises_unchanged(self, batch, executor):
        txn = executor.begin.return_value
        interrupt = KeyboardInterrupt()
        txn.execute.side_effect = interrupt
        with pytest.raises(KeyboardInterrupt) as exc_info:
            batch.delete("a")
        assert exc_info.value is interrupt
        txn.rollback.assert_called_once()

    def test_none_value_rolls_back_open_transaction(self, batch, executor):
        batch.put("a", b"1")
        with pytest.raises(InvalidValueError):
            batch.put("b", None)
        txn = executor.begin.return_value
        txn.rollback.assert_called_once()
        assert txn.execute.call_count == 1
        assert batch.state is BatchState.DONE

    def test_none_value_on_idle_batch_touches_nothing(self, batch, executor):
        with pytest.raises(InvalidValueError):
            batch.put("a", None)
        executor.begin.assert_not_called()
        assert batch.state is BatchState.IDLE

    def test_int_value_rolls_back_open_transaction(self, batch, executor):
        batch.put("a", b"1")
        with pytest.raises(InvalidValueError):
            batch.put("b", 5)
        txn = executor.begin.return_value
        txn.rollback.assert_called_once()
        assert txn.execute.call_count == 1
        assert batch.state is BatchState.DONE

    def test_invalid_value_after_done_reports_closed(self, batch):
        batch.commit()
        with pytest.raises(TransactionClosedError):
            batch.put("a", None)

    def test_commit_failure_rolls_back(self, batch, executor):
        txn = executor.begin.return_value
        txn.commit.side_effect = BackendError("serialization failure")
        batch.put("a", b"1")
        with pytest.raises(BackendError, match="serialization"):
            batch.commit()
        txn.rollback.assert_called_once()
        assert batch.state is BatchState.DONE

    def test_rollback_failure_does_not_mask_original(self, batch, executor):
        txn = executor.begin.return_value
        txn.execute.side_effect = BackendError("original")
        txn.rollback.side_effect = BackendError("rollback failed")
        with pytest.raises(BackendError, match="original"):
            batch.put("a", b"1")


class TestTerminalState:
    @pytest.mark.parametrize("op", ["commit", "put", "delete", "rollback"])
    def test_done_rejects_everything(self, batch, op):
        batch.put("a", b"1")
        batch.commit()
        with pytest.raises(TransactionClosedError):
            if op == "put":
                batch.put("b", b"2")
            elif op == "delete":
                batch.delete("b")
            else:
                getattr(batch, op)()

    def test_none_after_done_is_closed_error(self, batch):
        batch.commit()
        with pytest.raises(TransactionClosedError):
            batch.put("a", None)

    def test_explicit_rollback(self, batch, executor):
        batch.put("a", b"1")
        batch.rollback()
        executor.begin.return_value.rollback.assert_called_once()
        assert batch.state is BatchState.DONE

    def test_rollback_of_idle_batch(self, batch, executor):
        batch.rollback()
        assert batch.state is BatchState.DONE
        executor.begin.assert_not_called()


class TestContextManager:
    def test_commits_on_clean_exit(self, batch, executor):
        with batch as b:
            b.put("a", b"1")
        executor.begin.return_value.commit.assert_called_once()

    def test_rolls_back_on_exception(self, batch, executor):
        with pytest.raises(RuntimeError):
            with batch as b:
                b.put("a", b"1")
                raise RuntimeError("abort")
        txn = executor.begin.return_value
        txn.rollback.assert_called_once()
        txn.commit.assert_not_called()

    def test_already_committed_inside_block(self, batch, executor):
        with batch as b:
            b.put("a", b"1")
            b.commit()
        executor.begin.return_value.commit.assert_called_once()


class TestAgainstSQLite:
    def test_batch_atomicity(self, file_store):
        file_store.put("keep", b"old")
        b = file_store.batch()
        b.put("new/1", b"1")
        b.delete("keep")
        with pytest.raises(BackendError):
            b.put(object(), b"unbindable key")  # type: ignore[arg-type]
        assert b.state is BatchState.DONE
        assert file_store.get("keep") == b"old"
        with pytest.raises(NotFoundError):
            file_store.get("new/1")

    def test_commit_makes_writes_visible(self, file_store):
        b = file_store.batch()
        b.put("a", b"1")
        b.put("a", b"2")
        b.delete("missing")
        assert not file_store.has("a")
        b.commit()
        assert file_store.get("a") == b"1"

    def test_memory_store_batch(self, store):
        with store.batch() as b:
            b.put("x", b"1")
            b.put("y", b"2")
        assert store.get("y") == b"2"

    def test_commit_while_query_open(self, file_store):
        keys = [f"/p/{i}" for i in range(5)]
        for key in keys:
            file_store.put(key, b"v")
        with file_store.query(Query(prefix="/p/")) as results:
            first = next(results)
            b = file_store.batch()
            b.delete(first.key)
            b.commit()
            rest = [e.key for e in results]
        assert rest == keys[1:]
        assert not file_store.has(first.key)

    def test_batch_put_per_scanned_entry(self, file_store):
        for i in range(3):
            file_store.put(f"src/{i}", b"v")
        with file_store.query(Query()) as results:
            for entry in results:
                b = file_store.batch()
                b.put("copy/" + entry.key, entry.value)
                b.commit()
        assert file_store.get("copy/src/2") == b"v"

    def test_memory_batch_committed_on_other_thread(self, store):
        b = store.batch()
        b.put("/a", b"1")
        errors: list[BaseException] = []

        def commit() -> None:
            try:
                b.commit()
            except BaseException as e:  # noqa: BLE001
                errors.append(e)

        worker = threading.Thread(target=commit)
        worker.start()
        worker.join(timeout=5)
        assert errors == []
        assert b.state is BatchState.DONE
        assert store.get("/a") == b"1"

    def test_memory_reads_from_other_thread_after_commit(self, store):
        b = store.batch()
        b.put("/a", b"1")
        b.commit()
        found: list[bool] = []
        worker = threading.Thread(target=lambda: found.append(store.has("/a")))
        worker.start()
        worker.join(timeout=5)
        assert found == [True]
