"""Cross-entity substring search over threads, entries and attachment names.

Matching is SQL LIKE '%query%' (case-insensitive for ASCII), not ranked
full-text search. Entry metadata is matched as raw serialized JSON, so a hit
inside metadata means "the text occurs somewhere in the payload", not a
field-aware match. entry_preview() is the field-aware part: it looks at the
known fields of each entry type to show why an entry surfaced.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field

from dialedger.db.errors import StorageError, ValidationError
from dialedger.db.models import (
    ENTRY_TYPES,
    ActionItemsMeta,
    EmailMeta,
    Entry,
    EntryType,
    FileMeta,
    Thread,
)
from dialedger.db.repository import row_to_entry, row_to_thread

_PREVIEW_MAX = 120
_CONTEXT_BEFORE = 30
_CONTEXT_AFTER = 70


@dataclass
class EntryHit:
    entry: Entry
    thread_title: str
    matching_attachments: list[str] = field(default_factory=list)
    preview: str = ""


@dataclass
class SearchResults:
    threads: list[Thread] = field(default_factory=list)
    entries: list[EntryHit] = field(default_factory=list)


def search(
    conn: sqlite3.Connection,
    query: str,
    *,
    entry_types: Iterable[str] | None = None,
    thread_id: int | None = None,
) -> SearchResults:
    """Search threads and entries for *query*.

    Args:
        conn: Open connection with the schema initialised.
        query: Substring to look for; blank queries are rejected.
        entry_types: Restrict entry hits to these types (exact match). Empty
            or None means all types.
        thread_id: Restrict entry hits to one thread.

    Returns:
        SearchResults with threads newest-updated first and entries newest
        entry_date first.

    Raises:
        ValidationError: Blank query or unknown entry type in the filter.
        StorageError: SQLite failure.
    """
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("search query is required")
    needle = query.strip()
    pattern = f"%{_escape_like(needle)}%"
    types = _check_types(entry_types)

    entry_sql = """
        SELECT e.id, e.thread_id, e.entry_type, e.title, e.content, e.entry_date,
               e.created_at, e.metadata, t.title AS thread_title
        FROM entries e
        JOIN threads t ON e.thread_id = t.id
        WHERE (
            e.title LIKE :p ESCAPE '\\'
            OR e.content LIKE :p ESCAPE '\\'
            OR e.metadata LIKE :p ESCAPE '\\'
            OR EXISTS (
                SELECT 1 FROM attachments a
                WHERE a.entry_id = e.id AND a.file_name LIKE :p ESCAPE '\\'
            )
        )
    """
    params: dict[str, object] = {"p": pattern}
    if types:
        slots = [f":t{i}" for i in range(len(types))]
        entry_sql += f" AND e.entry_type IN ({', '.join(slots)})"
        params.update({f"t{i}": t for i, t in enumerate(types)})
    if thread_id is not None:
        entry_sql += " AND e.thread_id = :thread_id"
        params["thread_id"] = thread_id
    entry_sql += " ORDER BY e.entry_date DESC, e.id DESC"

    try:
        thread_rows = conn.execute(
            """
            SELECT id, title, description, created_at, updated_at, display_order
            FROM threads
            WHERE title LIKE :p ESCAPE '\\' OR description LIKE :p ESCAPE '\\'
            ORDER BY updated_at DESC, id DESC
            """,
            {"p": pattern},
        ).fetchall()
        entry_rows = conn.execute(entry_sql, params).fetchall()
        matches = _matching_attachments(conn, [r["id"] for r in entry_rows], pattern)
    except sqlite3.Error as exc:
        raise StorageError(str(exc)) from exc

    hits: list[EntryHit] = []
    for row in entry_rows:
        entry = row_to_entry(row)
        matched = matches.get(entry.id, [])
        hits.append(
            EntryHit(
                entry=entry,
                thread_title=row["thread_title"],
                matching_attachments=matched,
                preview=entry_preview(entry, needle, matched),
            )
        )
    return SearchResults(threads=[row_to_thread(r) for r in thread_rows], entries=hits)


def _matching_attachments(
    conn: sqlite3.Connection, entry_ids: list[int], pattern: str
) -> dict[int, list[str]]:
    """Map entry id → names of *its* attachments that match, in insertion order."""
    if not entry_ids:
        return {}
    placeholders = ",".join("?" * len(entry_ids))
    rows = conn.execute(
        f"SELECT entry_id, file_name FROM attachments"
        f" WHERE entry_id IN ({placeholders}) AND file_name LIKE ? ESCAPE '\\'"
        f" ORDER BY id",
        (*entry_ids, pattern),
    ).fetchall()
    result: dict[int, list[str]] = {}
    for row in rows:
        result.setdefault(row["entry_id"], []).append(row["file_name"])
    return result


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _check_types(entry_types: Iterable[str] | None) -> list[str]:
    if entry_types is None:
        return []
    if isinstance(entry_types, str):
        entry_types = [entry_types]
    types: list[str] = []
    for t in entry_types:
        value = t.value if isinstance(t, EntryType) else t
        if value not in ENTRY_TYPES:
            raise ValidationError(f"unknown entry type in filter: {t!r}")
        if value not in types:
            types.append(value)
    return types


# ------------------------------------------------------------------
# Previews
# ------------------------------------------------------------------


def snippet(text: str, query: str, max_len: int = _PREVIEW_MAX) -> str:
    """Return *text* around the first case-insensitive hit of *query*.

    Without a hit the head of the text (max_len chars) is returned.
    """
    if not text:
        return ""
    at = text.lower().find(query.lower()) if query else -1
    if at == -1:
        return text[:max_len]
    start = max(0, at - _CONTEXT_BEFORE)
    end = min(len(text), at + len(query) + _CONTEXT_AFTER)
    out = text[start:end]
    if start > 0:
        out = "..." + out
    if end < len(text):
        out += "..."
    return out


def _contains(text: str, query: str) -> bool:
    return bool(text) and query.lower() in text.lower()


def entry_preview(entry: Entry, query: str, matching_attachments: list[str] | None = None) -> str:
    """Explain why *entry* matched *query* with a short, field-aware snippet."""
    if matching_attachments:
        return f"[attachment] {matching_attachments[0]}"

    try:
        data = entry.metadata_dict
    except ValueError:
        data = {}
    meta = entry.typed_metadata if data and entry.entry_type in ENTRY_TYPES else None

    if isinstance(meta, ActionItemsMeta):
        if _contains(meta.description, query):
            return snippet(meta.description, query)
        for item in meta.items:
            if _contains(item.text, query):
                return f"{_mark(item.completed)} {snippet(item.text, query)}"
        if meta.items:
            first = meta.items[0]
            return f"{_mark(first.completed)} {first.text[:_PREVIEW_MAX]}"
        if meta.description:
            return meta.description[:_PREVIEW_MAX]

    if isinstance(meta, EmailMeta):
        for label, value in (
            ("From", meta.sender),
            ("To", meta.to),
            ("Cc", meta.cc),
            ("Bcc", meta.bcc),
            ("Subject", meta.subject),
        ):
            if _contains(value, query):
                return f"{label}: {snippet(value, query)}"
        if _contains(meta.body, query):
            return snippet(meta.body, query)
        if _contains(meta.attachments, query):
            return f"[attachment] {snippet(meta.attachments, query)}"
        if meta.subject:
            return f"Subject: {meta.subject[:_PREVIEW_MAX]}"
        if meta.sender:
            return f"From: {meta.sender[:_PREVIEW_MAX]}"

    if isinstance(meta, FileMeta) and _contains(meta.file_name, query):
        return f"[attachment] {meta.file_name}"

    for key in ("subject", "body", "notes", "summary", "content", "description",
                "participants", "attendees", "location"):
        value = data.get(key)
        if isinstance(value, str) and _contains(value, query):
            return snippet(value, query)

    if entry.content and _contains(entry.content, query):
        return snippet(entry.content, query)
    return (entry.title or "")[:_PREVIEW_MAX]


def _mark(completed: bool) -> str:
    return "[x]" if completed else "[ ]"
