"""
Tests for write batches and preconditions.
"""

import pytest
from pydantic import ValidationError

from firestore_client import InvalidArgumentError, Precondition, WriteBatch

from helpers import COMMIT_TIME


@pytest.fixture
def batch(firestore):
    return firestore.batch()


class TestWrites:
    """Test the REST form of recorded writes."""

    def test_create(self, firestore, batch, database_root):
        batch.create(firestore.doc("col/a"), {"n": 1})

        assert batch.writes == [{
            "update": {"name": f"{database_root}/col/a", "fields": {"n": {"integerValue": "1"}}},
            "currentDocument": {"exists": False},
        }]

    def test_set_replaces(self, firestore, batch):
        batch.set(firestore.doc("col/a"), {"n": 1})

        write = batch.writes[0]
        assert "updateMask" not in write
        assert "currentDocument" not in write

    def test_set_with_merge(self, firestore, batch):
        batch.set(firestore.doc("col/a"), {"a": 1, "b": {"c": 2, "d": 3}, "e": {}}, merge=True)

        assert batch.writes[0]["updateMask"] == {"fieldPaths": ["a", "b.c", "b.d", "e"]}

    def test_set_with_merge_fields(self, firestore, batch):
        batch.set(firestore.doc("col/a"), {"a": 1, "b": 2}, merge_fields=["a", ["x.y", "z"]])

        assert batch.writes[0]["updateMask"] == {"fieldPaths": ["a", "`x.y`.z"]}

    def test_set_with_merge_and_merge_fields(self, firestore, batch):
        with pytest.raises(InvalidArgumentError, match="cannot specify both"):
            batch.set(firestore.doc("col/a"), {"a": 1}, merge=True, merge_fields=["a"])

    def test_update_expands_dotted_keys(self, firestore, batch):
        batch.update(firestore.doc("col/a"), {"a.b": 1, "c": "x"})

        write = batch.writes[0]
        assert write["update"]["fields"] == {
            "a": {"mapValue": {"fields": {"b": {"integerValue": "1"}}}},
            "c": {"stringValue": "x"},
        }
        assert write["updateMask"] == {"fieldPaths": ["a.b", "c"]}
        assert write["currentDocument"] == {"exists": True}

    def test_update_with_precondition(self, firestore, batch):
        precondition = Precondition(last_update_time="2024-01-01T00:00:00Z")

        batch.update(firestore.doc("col/a"), {"n": 2}, precondition)

        assert batch.writes[0]["currentDocument"] == {"updateTime": "2024-01-01T00:00:00Z"}

    @pytest.mark.parametrize("data", [
        {"a": 1, "a.b": 2},
        {"a.b.c": 1, "a.b": 2},
        {"x": 0, "a.b": 1, "a.b.c.d": 2},
    ])
    def test_update_with_overlapping_fields(self, firestore, batch, data):
        with pytest.raises(InvalidArgumentError, match="was specified multiple times"):
            batch.update(firestore.doc("col/a"), data)

        assert batch.is_empty

    def test_update_with_sibling_fields(self, firestore, batch):
        batch.update(firestore.doc("col/a"), {"a.b": 1, "a.c": 2, "ab": 3})

        assert batch.writes[0]["updateMask"] == {"fieldPaths": ["a.b", "a.c", "ab"]}

    def test_update_without_fields(self, firestore, batch):
        with pytest.raises(InvalidArgumentError, match="At least one field"):
            batch.update(firestore.doc("col/a"), {})

    def test_delete(self, firestore, batch, database_root):
        batch.delete(firestore.doc("col/a"))
        batch.delete(firestore.doc("col/b"), Precondition(exists=True))

        assert batch.writes == [
            {"delete": f"{database_root}/col/a"},
            {"delete": f"{database_root}/col/b", "currentDocument": {"exists": True}},
        ]

    def test_chaining(self, firestore, batch):
        ref = firestore.doc("col/a")

        result = batch.set(ref, {"n": 1}).update(ref, {"n": 2}).delete(ref)

        assert result is batch
        assert len(batch) == 3

    def test_invalid_reference(self, batch):
        with pytest.raises(InvalidArgumentError, match="\"documentRef\" is not a valid DocumentReference"):
            batch.set("col/a", {"n": 1})

    def test_invalid_data(self, firestore, batch):
        with pytest.raises(InvalidArgumentError, match="not a valid Firestore document"):
            batch.set(firestore.doc("col/a"), ["n", 1])

    def test_batch_size_limit(self, firestore):
        batch = WriteBatch(firestore, max_batch_size=2)
        batch.delete(firestore.doc("col/a")).delete(firestore.doc("col/b"))

        with pytest.raises(InvalidArgumentError, match="more than 2 writes"):
            batch.delete(firestore.doc("col/c"))


class TestCommit:
    """Test committing outside of a transaction."""

    @pytest.mark.asyncio
    async def test_commit(self, firestore, transport, batch):
        batch.set(firestore.doc("col/a"), {"n": 1}).delete(firestore.doc("col/b"))

        results = await batch.commit()

        request = transport.calls_to("commit")[0]
        assert "transaction" not in request
        assert len(request["writes"]) == 2
        assert [r.update_time for r in results] == [COMMIT_TIME, COMMIT_TIME]

    @pytest.mark.asyncio
    async def test_commit_time_fallback(self, firestore, transport, batch):
        transport.set_response("commit", {"writeResults": [{}], "commitTime": "2024-02-02T00:00:00Z"})
        batch.delete(firestore.doc("col/a"))

        results = await batch.commit()

        assert results[0].update_time == "2024-02-02T00:00:00Z"

    @pytest.mark.asyncio
    async def test_no_writes_after_commit(self, firestore, batch):
        await batch.commit()

        with pytest.raises(InvalidArgumentError, match="has been committed"):
            batch.delete(firestore.doc("col/a"))
        with pytest.raises(InvalidArgumentError, match="has been committed"):
            await batch.commit()


class TestPrecondition:
    """Test precondition validation."""

    def test_alias(self):
        precondition = Precondition(lastUpdateTime="2024-01-01T00:00:00Z")

        assert precondition.last_update_time == "2024-01-01T00:00:00Z"
        assert not precondition.is_empty

    def test_empty(self):
        assert Precondition().is_empty
        assert Precondition().to_dict() == {}

    def test_exists_false(self):
        assert Precondition(exists=False).to_dict() == {"exists": False}

    def test_more_than_one_condition(self):
        with pytest.raises(ValidationError, match="more than one precondition"):
            Precondition(exists=True, last_update_time="2024-01-01T00:00:00Z")
