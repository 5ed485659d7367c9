"""
Tests for transactional reads, writes and the session lifecycle.
"""

import asyncio
import pytest
import pytest_asyncio

from firestore_client import (
    InvalidArgumentError,
    OrderingViolationError,
    Transaction,
)
from firestore_client.transaction import READ_AFTER_WRITE_ERROR_MSG, AttemptState


@pytest_asyncio.fixture
async def transaction(firestore):
    """A transaction that has begun (handle b"tx-1")."""
    transaction = Transaction(firestore, "tag01")
    await transaction.begin()
    return transaction


class TestReadGate:
    """Test that reads are rejected once a write was recorded."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("write", ["create", "set", "update", "delete"])
    async def test_reads_after_write_raise_without_rpc(self, firestore, transport, transaction, write):
        """Test every read entry point after every kind of write."""
        ref = firestore.doc("col/doc")
        if write == "delete":
            transaction.delete(ref)
        else:
            getattr(transaction, write)(ref, {"a": 1})

        calls_before = list(transport.calls)

        with pytest.raises(OrderingViolationError, match="all reads to be executed before all writes"):
            transaction.get(ref)
        with pytest.raises(OrderingViolationError):
            transaction.get_document(ref)
        with pytest.raises(OrderingViolationError):
            transaction.get(firestore.collection("col"))
        with pytest.raises(OrderingViolationError):
            transaction.get_query(firestore.collection("col"))
        with pytest.raises(OrderingViolationError):
            transaction.get_all(ref, firestore.doc("col/other"))

        assert transport.calls == calls_before

    @pytest.mark.asyncio
    async def test_ordering_check_precedes_argument_checks(self, transaction, firestore):
        """Test that even malformed reads report the ordering violation first."""
        transaction.set(firestore.doc("col/doc"), {"a": 1})

        with pytest.raises(OrderingViolationError) as exc_info:
            transaction.get_all()

        assert exc_info.value.message == READ_AFTER_WRITE_ERROR_MSG

    @pytest.mark.asyncio
    async def test_reads_before_writes_may_run_concurrently(self, firestore, transport, transaction, database_root):
        """Test concurrent reads followed by a write."""
        transport.set_document(f"{database_root}/col/a", {"n": 1})
        transport.set_document(f"{database_root}/col/b", {"n": 2})
        a, b = firestore.doc("col/a"), firestore.doc("col/b")

        first, second = await asyncio.gather(transaction.get(a), transaction.get(b))
        transaction.set(a, {"n": first.get("n") + second.get("n")})

        assert len(transport.calls_to("batchGet")) == 2
        assert transaction.attempt.has_writes


class TestReads:
    """Test reads scoped to the transaction handle."""

    @pytest.mark.asyncio
    async def test_get_document(self, firestore, transport, transaction, database_root):
        """Test a single-document read."""
        transport.set_document(f"{database_root}/col/doc", {"count": 3})

        snapshot = await transaction.get(firestore.doc("col/doc"))

        assert snapshot.exists
        assert snapshot.get("count") == 3
        request = transport.calls_to("batchGet")[0]
        assert request["documents"] == [f"{database_root}/col/doc"]
        assert request["transaction"] == b"tx-1"
        assert "mask" not in request

    @pytest.mark.asyncio
    async def test_get_missing_document(self, firestore, transaction):
        """Test reading a document that does not exist."""
        snapshot = await transaction.get(firestore.doc("col/missing"))

        assert not snapshot.exists
        assert snapshot.to_dict() is None

    @pytest.mark.asyncio
    async def test_get_query(self, firestore, transport, transaction, database_root):
        """Test a query read."""
        transport.set_document(f"{database_root}/col/a", {"n": 1})
        transport.set_document(f"{database_root}/col/b", {"n": 2})

        snapshot = await transaction.get(firestore.collection("col").where("n", ">", 0))

        assert [doc.id for doc in snapshot] == ["a", "b"]
        request = transport.calls_to("runQuery")[0]
        assert request["transaction"] == b"tx-1"
        assert request["parent"] == database_root
        assert request["structuredQuery"]["from"] == [{"collectionId": "col"}]

    @pytest.mark.asyncio
    async def test_get_all_with_field_mask(self, firestore, transport, transaction, database_root):
        """Test a multi-document read with a field mask."""
        transport.set_document(f"{database_root}/col/a", {"x": 1})
        transport.set_document(f"{database_root}/col/b", {"x": 2})
        a, b = firestore.doc("col/a"), firestore.doc("col/b")

        snapshots = await transaction.get_all(b, a, {"field_mask": ["x"]})

        assert [s.id for s in snapshots] == ["b", "a"]
        request = transport.calls_to("batchGet")[0]
        assert request["mask"] == {"fieldPaths": ["x"]}
        assert request["transaction"] == b"tx-1"

    def test_get_rejects_other_types(self, firestore):
        """Test that get() only accepts references and queries."""
        transaction = Transaction(firestore)

        with pytest.raises(InvalidArgumentError, match="DocumentReference or a Query"):
            transaction.get("col/doc")

    def test_get_all_argument_errors_raise_immediately(self, firestore):
        """Test that get_all() validates before returning an awaitable."""
        transaction = Transaction(firestore)

        with pytest.raises(InvalidArgumentError):
            transaction.get_all()
        with pytest.raises(InvalidArgumentError):
            transaction.get_all([firestore.doc("col/a")])


class TestSessionLifecycle:
    """Test begin/commit/rollback requests and attempt reset."""

    @pytest.mark.asyncio
    async def test_begin_without_previous_handle(self, firestore, transport):
        """Test the first begin request."""
        transaction = Transaction(firestore)

        await transaction.begin()

        assert transport.calls_to("beginTransaction") == [{"database": firestore.formatted_name}]
        assert transaction.transaction_id == b"tx-1"
        assert transaction.attempt.state is AttemptState.BEGUN

    @pytest.mark.asyncio
    async def test_begin_with_retry_hint(self, firestore, transport, transaction):
        """Test that a second begin names the previous handle."""
        transaction._reset(1)
        await transaction.begin()

        request = transport.calls_to("beginTransaction")[1]
        assert request["options"] == {"readWrite": {"retryTransaction": b"tx-1"}}
        assert transaction.transaction_id == b"tx-2"

    @pytest.mark.asyncio
    async def test_commit(self, firestore, transport, transaction):
        """Test the commit request."""
        transaction.create(firestore.doc("col/a"), {"a": 1}).delete(firestore.doc("col/b"))

        await transaction.commit()

        request = transport.calls_to("commit")[0]
        assert request["database"] == firestore.formatted_name
        assert request["transaction"] == b"tx-1"
        assert len(request["writes"]) == 2
        assert transaction.attempt.state is AttemptState.COMMITTED

    @pytest.mark.asyncio
    async def test_rollback(self, firestore, transport, transaction):
        """Test the rollback request."""
        await transaction.rollback()

        assert transport.calls_to("rollback") == [
            {"database": firestore.formatted_name, "transaction": b"tx-1"}
        ]
        assert transaction.attempt.state is AttemptState.ROLLED_BACK

    @pytest.mark.asyncio
    async def test_reset_clears_writes_and_keeps_handle(self, firestore, transaction):
        """Test that reset always yields an empty write set."""
        ref = firestore.doc("col/doc")
        transaction.set(ref, {"a": 1}).update(ref, {"b": 2})
        assert transaction.attempt.has_writes

        transaction._reset(1)

        assert transaction.attempt.writes.is_empty
        assert not transaction.attempt.has_writes
        assert transaction.attempt.index == 1
        assert transaction.attempt.state is AttemptState.IDLE
        assert transaction.transaction_id == b"tx-1"

        transaction._reset(2)
        assert transaction.attempt.writes.is_empty

        # Reads are allowed again
        snapshot = await transaction.get(ref)
        assert not snapshot.exists
