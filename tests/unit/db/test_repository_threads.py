"""Tests for the thread store."""

from __future__ import annotations

import pytest

from dialedger.db.errors import NotFoundError, ValidationError


# ------------------------------------------------------------------
# Create / get
# ------------------------------------------------------------------

def test_create_and_get_thread(repo):
    t = repo.create_thread("Project X", "budget talks")
    result = repo.get_thread(t.id)
    assert result.title == "Project X"
    assert result.description == "budget talks"
    assert result.created_at == result.updated_at


def test_create_strips_title(repo):
    assert repo.create_thread("  Padded  ").title == "Padded"


@pytest.mark.parametrize("title", ["", "   ", None])
def test_create_rejects_blank_title(repo, title):
    with pytest.raises(ValidationError):
        repo.create_thread(title)
    assert repo.list_threads() == []


def test_new_threads_go_to_the_end(repo):
    a = repo.create_thread("a")
    b = repo.create_thread("b")
    c = repo.create_thread("c")
    assert [a.display_order, b.display_order, c.display_order] == [1, 2, 3]
    assert [t.id for t in repo.list_threads()] == [a.id, b.id, c.id]


def test_get_thread_not_found(repo):
    with pytest.raises(NotFoundError) as exc_info:
        repo.get_thread(999)
    assert exc_info.value.entity == "thread"
    assert exc_info.value.entity_id == 999


def test_list_threads_empty(repo):
    assert repo.list_threads() == []


def test_same_order_sorted_by_most_recent_update(repo):
    a = repo.create_thread("a")
    b = repo.create_thread("b")
    repo.reorder_threads([(a.id, 0), (b.id, 0)])
    repo.update_thread(a.id, "a2")
    assert [t.id for t in repo.list_threads()] == [a.id, b.id]
    repo.update_thread(b.id, "b2")
    assert [t.id for t in repo.list_threads()] == [b.id, a.id]


# ------------------------------------------------------------------
# Update
# ------------------------------------------------------------------

def test_update_thread_replaces_fields(repo):
    t = repo.create_thread("old", "desc")
    updated = repo.update_thread(t.id, "new")
    assert updated.title == "new"
    assert updated.description is None


def test_update_bumps_updated_at_strictly(repo):
    t = repo.create_thread("t")
    first = repo.update_thread(t.id, "t1")
    second = repo.update_thread(t.id, "t2")
    assert t.updated_at < first.updated_at < second.updated_at
    assert second.created_at == t.created_at


def test_update_unknown_thread(repo):
    with pytest.raises(NotFoundError):
        repo.update_thread(42, "x")


def test_update_rejects_blank_title(repo):
    t = repo.create_thread("keep")
    with pytest.raises(ValidationError):
        repo.update_thread(t.id, " ")
    assert repo.get_thread(t.id).title == "keep"


# ------------------------------------------------------------------
# Delete
# ------------------------------------------------------------------

def test_delete_thread_cascades(repo):
    t = repo.create_thread("t")
    e = repo.create_entry(t.id, "note", "2024-01-01")
    repo.create_attachment(e.id, "a.txt", "/store/1_a.txt")
    repo.create_attachment(e.id, "b.txt", "/store/1_b.txt")

    removed = repo.delete_thread(t.id)

    assert [a.file_name for a in removed] == ["a.txt", "b.txt"]
    assert repo.list_entries(t.id) == []
    assert repo.list_attachments(e.id) == []
    with pytest.raises(NotFoundError):
        repo.get_entry(e.id)


def test_delete_thread_leaves_others(repo):
    keep = repo.create_thread("keep")
    gone = repo.create_thread("gone")
    repo.create_entry(keep.id, "note", "2024-01-01")
    repo.delete_thread(gone.id)
    assert [t.id for t in repo.list_threads()] == [keep.id]
    assert len(repo.list_entries(keep.id)) == 1


def test_delete_unknown_thread(repo):
    with pytest.raises(NotFoundError):
        repo.delete_thread(7)


# ------------------------------------------------------------------
# Reorder
# ------------------------------------------------------------------

def test_reorder_with_mappings(repo):
    a, b, c = (repo.create_thread(n) for n in "abc")
    repo.reorder_threads([{"id": c.id, "order": 1}, {"id": a.id, "order": 2}, {"id": b.id, "order": 3}])
    assert [t.title for t in repo.list_threads()] == ["c", "a", "b"]


def test_reorder_with_pairs(repo):
    a, b = repo.create_thread("a"), repo.create_thread("b")
    repo.reorder_threads([(a.id, 5), (b.id, 1)])
    assert [t.title for t in repo.list_threads()] == ["b", "a"]


def test_reorder_subset_leaves_rest(repo):
    a, b = repo.create_thread("a"), repo.create_thread("b")
    repo.reorder_threads([(a.id, 10)])
    assert repo.get_thread(b.id).display_order == 2


def test_reorder_unknown_id_writes_nothing(repo):
    a = repo.create_thread("a")
    with pytest.raises(NotFoundError):
        repo.reorder_threads([(a.id, 9), (999, 1)])
    assert repo.get_thread(a.id).display_order == 1


@pytest.mark.parametrize(
    "orders",
    [
        "not a list",
        {"id": 1, "order": 1},
        [{"id": 1}],
        [(1, "2")],
        [(True, 1)],
        [(1, 2, 3)],
        [(1, 1), (1, 2)],
        42,
    ],
)
def test_reorder_malformed(repo, orders):
    repo.create_thread("a")
    with pytest.raises(ValidationError):
        repo.reorder_threads(orders)
    assert repo.get_thread(1).display_order == 1


def test_reorder_does_not_touch_updated_at(repo):
    a = repo.create_thread("a")
    repo.reorder_threads([(a.id, 3)])
    assert repo.get_thread(a.id).updated_at == a.updated_at
