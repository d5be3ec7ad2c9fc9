"""Tests for entity orderings and sorted collections."""

from __future__ import annotations

import random

import pytest

from gitlab_transfer.exceptions import DataIntegrityError, DuplicateKeyError
from gitlab_transfer.models import Issue, Milestone, Note
from gitlab_transfer.ordering import (
    SortedCollection,
    issue_collection,
    milestone_collection,
    note_collection,
)


def _milestone(iid: int) -> Milestone:
    return Milestone(iid=iid, id=1000 + iid, title=f"Milestone {iid}")


@pytest.mark.unit
class TestSortedCollection:
    def test_iterates_in_key_order(self) -> None:
        collection = milestone_collection([_milestone(3), _milestone(1), _milestone(2)])
        assert [m.iid for m in collection] == [1, 2, 3]
        assert collection.keys() == [1, 2, 3]

    def test_numeric_not_lexicographic_order(self) -> None:
        collection = issue_collection(Issue(iid=iid, id=iid, title="t") for iid in (10, 9, 100, 1))
        assert collection.keys() == [1, 9, 10, 100]

    def test_find_present_and_absent(self) -> None:
        collection = milestone_collection([_milestone(i) for i in (2, 4, 6)])
        found = collection.find(4)
        assert found is not None
        assert found.id == 1004
        assert collection.find(5) is None
        assert collection.find(0) is None
        assert collection.find(7) is None

    def test_contains(self) -> None:
        collection = milestone_collection([_milestone(1)])
        assert 1 in collection
        assert 2 not in collection
        assert "1" not in collection

    def test_empty_collection(self) -> None:
        collection = note_collection()
        assert len(collection) == 0
        assert not collection
        assert collection.find(1) is None
        assert list(collection) == []

    def test_duplicate_key_rejected(self) -> None:
        collection = milestone_collection([_milestone(1)])
        with pytest.raises(DuplicateKeyError) as exc_info:
            collection.add(Milestone(iid=1, id=2, title="Other"))
        assert exc_info.value.kind == "milestone"
        assert exc_info.value.key == 1
        assert len(collection) == 1

    def test_duplicate_is_data_integrity_error(self) -> None:
        with pytest.raises(DataIntegrityError):
            issue_collection([Issue(iid=5, id=1, title="a"), Issue(iid=5, id=2, title="b")])

    def test_notes_ordered_by_id_not_issue(self) -> None:
        notes = note_collection([Note(id=30, issue_iid=1, body="c"), Note(id=10, issue_iid=1, body="a")])
        assert [n.body for n in notes] == ["a", "c"]

    def test_notes_with_same_id_rejected(self) -> None:
        with pytest.raises(DuplicateKeyError):
            note_collection([Note(id=1, issue_iid=1, body="a"), Note(id=1, issue_iid=1, body="b")])

    def test_custom_key(self) -> None:
        collection: SortedCollection[str] = SortedCollection(len, ["ccc", "a", "bb"], kind="word")
        assert list(collection) == ["a", "bb", "ccc"]

    def test_clear(self) -> None:
        collection = milestone_collection([_milestone(1)])
        collection.clear()
        assert len(collection) == 0
        collection.add(_milestone(1))
        assert len(collection) == 1


@pytest.mark.unit
class TestUniquenessProperty:
    """Randomized checks: collections never hold two members with one key."""

    @pytest.mark.parametrize("seed", range(20))
    def test_colliding_iids_rejected(self, seed: int) -> None:
        rng = random.Random(seed)
        iids = rng.sample(range(1, 500), 30)
        collision = rng.choice(iids)
        milestones = [_milestone(iid) for iid in iids]
        milestones.insert(rng.randrange(len(milestones) + 1), Milestone(iid=collision, id=9999, title="dup"))

        with pytest.raises(DuplicateKeyError) as exc_info:
            milestone_collection(milestones)
        assert exc_info.value.key == collision

    @pytest.mark.parametrize("seed", range(20))
    def test_unique_iids_sorted_and_findable(self, seed: int) -> None:
        rng = random.Random(seed)
        iids = rng.sample(range(1, 10_000), rng.randrange(0, 200))
        collection = issue_collection(Issue(iid=iid, id=iid * 7, title=str(iid)) for iid in iids)

        assert collection.keys() == sorted(iids)
        for iid in iids:
            found = collection.find(iid)
            assert found is not None
            assert found.id == iid * 7
