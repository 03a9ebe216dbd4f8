"""Repository for threads, entries and attachments.

Single interface for the three stores. Every mutating method runs in one
transaction; sqlite3 errors surface as StorageError, unknown ids as
NotFoundError, bad input as ValidationError. The repository never touches
the filesystem: deletions return the attachment records that went away so
the caller can remove their files.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any

from dialedger.db.errors import NotFoundError, StorageError, ValidationError
from dialedger.db.models import ENTRY_TYPES, Attachment, Entry, EntryType, Thread

_STAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

_THREAD_COLUMNS = "id, title, description, created_at, updated_at, display_order"
_ENTRY_COLUMNS = "id, thread_id, entry_type, title, content, entry_date, created_at, metadata"
_ATTACHMENT_COLUMNS = "id, entry_id, file_name, file_path, file_size, mime_type, created_at"


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks an update_entry() field the caller did not pass (None means "clear").
UNSET: Any = _Unset()


class Repository:
    """Data access layer for threads, entries and attachments.

    Wraps an open sqlite3.Connection. The connection is owned by the caller,
    must have foreign keys enabled (cascades rely on them) and must be closed
    after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see dialedger.db.schema.initialize).
        """
        self._conn = conn

    @contextmanager
    def _storage(self) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit on success, roll back on any exception."""
        with self._storage(), self._conn:
            yield self._conn

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    def list_threads(self) -> list[Thread]:
        """Return all threads in display order (manual order, then most recently updated)."""
        with self._storage():
            rows = self._conn.execute(
                f"SELECT {_THREAD_COLUMNS} FROM threads"
                " ORDER BY display_order ASC, updated_at DESC"
            ).fetchall()
        return [row_to_thread(r) for r in rows]

    def get_thread(self, thread_id: int) -> Thread:
        """Return a thread by ID.

        Raises:
            NotFoundError: No thread has this ID.
        """
        with self._storage():
            row = self._conn.execute(
                f"SELECT {_THREAD_COLUMNS} FROM threads WHERE id = ?", (thread_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError("thread", thread_id)
        return row_to_thread(row)

    def create_thread(self, title: str, description: str | None = None) -> Thread:
        """Insert a thread at the end of the manual order.

        Args:
            title: Required, non-blank.
            description: Optional free text.

        Returns:
            The stored Thread.
        """
        title = _require_text(title, "thread title")
        stamp = _now()
        with self._transaction() as conn:
            next_order = conn.execute(
                "SELECT COALESCE(MAX(display_order), 0) + 1 FROM threads"
            ).fetchone()[0]
            cur = conn.execute(
                """
                INSERT INTO threads (title, description, created_at, updated_at, display_order)
                VALUES (?, ?, ?, ?, ?)
                """,
                (title, description, stamp, stamp, next_order),
            )
        return self.get_thread(cur.lastrowid)

    def update_thread(self, thread_id: int, title: str, description: str | None = None) -> Thread:
        """Replace title and description and bump updated_at.

        Raises:
            ValidationError: Blank title.
            NotFoundError: Unknown thread.
        """
        title = _require_text(title, "thread title")
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT updated_at FROM threads WHERE id = ?", (thread_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("thread", thread_id)
            conn.execute(
                "UPDATE threads SET title = ?, description = ?, updated_at = ? WHERE id = ?",
                (title, description, _next_stamp(row["updated_at"]), thread_id),
            )
        return self.get_thread(thread_id)

    def delete_thread(self, thread_id: int) -> list[Attachment]:
        """Delete a thread; entries and attachments go with it (FK cascade).

        Files on disk are left alone.

        Returns:
            The attachment records removed by the cascade.

        Raises:
            NotFoundError: Unknown thread.
        """
        with self._transaction() as conn:
            if conn.execute("SELECT 1 FROM threads WHERE id = ?", (thread_id,)).fetchone() is None:
                raise NotFoundError("thread", thread_id)
            rows = conn.execute(
                """
                SELECT a.id, a.entry_id, a.file_name, a.file_path, a.file_size,
                       a.mime_type, a.created_at
                FROM attachments a JOIN entries e ON a.entry_id = e.id
                WHERE e.thread_id = ?
                ORDER BY a.id
                """,
                (thread_id,),
            ).fetchall()
            conn.execute("DELETE FROM threads WHERE id = ?", (thread_id,))
        return [row_to_attachment(r) for r in rows]

    def reorder_threads(self, orders: Iterable[Any]) -> None:
        """Apply new display_order values, all or nothing.

        Args:
            orders: (id, order) pairs or {"id": ..., "order": ...} mappings.

        Raises:
            ValidationError: Malformed list (nothing is written).
            NotFoundError: An id does not exist (nothing is written).
        """
        pairs = _parse_orders(orders)
        with self._transaction() as conn:
            for thread_id, order in pairs:
                cur = conn.execute(
                    "UPDATE threads SET display_order = ? WHERE id = ?", (order, thread_id)
                )
                if cur.rowcount == 0:
                    raise NotFoundError("thread", thread_id)

    def _touch_thread(self, conn: sqlite3.Connection, thread_id: int) -> None:
        row = conn.execute("SELECT updated_at FROM threads WHERE id = ?", (thread_id,)).fetchone()
        if row is not None:
            conn.execute(
                "UPDATE threads SET updated_at = ? WHERE id = ?",
                (_next_stamp(row["updated_at"]), thread_id),
            )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self, thread_id: int) -> list[Entry]:
        """Return a thread's entries oldest first (empty for unknown threads)."""
        with self._storage():
            rows = self._conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM entries WHERE thread_id = ?"
                " ORDER BY entry_date ASC, id ASC",
                (thread_id,),
            ).fetchall()
        return [row_to_entry(r) for r in rows]

    def get_entry(self, entry_id: int) -> Entry:
        """Return an entry by ID.

        Raises:
            NotFoundError: No entry has this ID.
        """
        with self._storage():
            row = self._conn.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM entries WHERE id = ?", (entry_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError("entry", entry_id)
        return row_to_entry(row)

    def create_entry(
        self,
        thread_id: int,
        entry_type: str | EntryType,
        entry_date: str | datetime | date,
        *,
        title: str | None = None,
        content: str | None = None,
        metadata: Any = None,
    ) -> Entry:
        """Insert an entry under *thread_id* and bump the thread's updated_at.

        Args:
            thread_id: Parent thread.
            entry_type: One of the six entry types; fixed for the entry's lifetime.
            entry_date: Caller-supplied date, stored verbatim.
            title: Optional display title.
            content: Legacy free-text column.
            metadata: dict, metadata variant or pre-serialized JSON text.

        Raises:
            ValidationError: Unknown entry type, empty entry_date or
                unserializable metadata.
            NotFoundError: Unknown thread.
        """
        entry_type = _check_entry_type(entry_type)
        stored_date = _check_entry_date(entry_date)
        payload = serialize_metadata(metadata)
        with self._transaction() as conn:
            if conn.execute("SELECT 1 FROM threads WHERE id = ?", (thread_id,)).fetchone() is None:
                raise NotFoundError("thread", thread_id)
            cur = conn.execute(
                """
                INSERT INTO entries (thread_id, entry_type, title, content, entry_date,
                                     created_at, metadata)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (thread_id, entry_type, title, content, stored_date, _now(), payload),
            )
            self._touch_thread(conn, thread_id)
        return self.get_entry(cur.lastrowid)

    def update_entry(
        self,
        entry_id: int,
        *,
        title: Any = UNSET,
        content: Any = UNSET,
        entry_date: Any = UNSET,
        metadata: Any = UNSET,
    ) -> Entry:
        """Change only the fields that were passed; entry_type is not updatable.

        Passing None clears title, content or metadata. entry_date cannot be
        cleared.

        Raises:
            ValidationError: Empty entry_date or unserializable metadata.
            NotFoundError: Unknown entry.
        """
        assignments: list[str] = []
        params: list[Any] = []
        if title is not UNSET:
            assignments.append("title = ?")
            params.append(title)
        if content is not UNSET:
            assignments.append("content = ?")
            params.append(content)
        if entry_date is not UNSET:
            assignments.append("entry_date = ?")
            params.append(_check_entry_date(entry_date))
        if metadata is not UNSET:
            assignments.append("metadata = ?")
            params.append(serialize_metadata(metadata))

        with self._transaction() as conn:
            row = conn.execute("SELECT thread_id FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                raise NotFoundError("entry", entry_id)
            if assignments:
                conn.execute(
                    f"UPDATE entries SET {', '.join(assignments)} WHERE id = ?",
                    (*params, entry_id),
                )
            self._touch_thread(conn, row["thread_id"])
        return self.get_entry(entry_id)

    def delete_entry(self, entry_id: int) -> list[Attachment]:
        """Delete an entry (attachments cascade) and bump its thread.

        Returns:
            The attachments the entry had right before deletion.

        Raises:
            NotFoundError: Unknown entry.
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT thread_id FROM entries WHERE id = ?", (entry_id,)).fetchone()
            if row is None:
                raise NotFoundError("entry", entry_id)
            attachments = conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE entry_id = ? ORDER BY id",
                (entry_id,),
            ).fetchall()
            conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            self._touch_thread(conn, row["thread_id"])
        return [row_to_attachment(r) for r in attachments]

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def create_attachment(
        self,
        entry_id: int,
        file_name: str,
        file_path: str,
        *,
        file_size: int | None = None,
        mime_type: str | None = None,
    ) -> Attachment:
        """Record a file already copied into managed storage.

        Raises:
            ValidationError: Empty file name or path.
            NotFoundError: Unknown entry.
        """
        file_name = _require_text(file_name, "attachment file name")
        file_path = _require_text(str(file_path), "attachment file path")
        with self._transaction() as conn:
            if conn.execute("SELECT 1 FROM entries WHERE id = ?", (entry_id,)).fetchone() is None:
                raise NotFoundError("entry", entry_id)
            cur = conn.execute(
                """
                INSERT INTO attachments (entry_id, file_name, file_path, file_size,
                                         mime_type, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (entry_id, file_name, file_path, file_size, mime_type, _now()),
            )
        return self.get_attachment(cur.lastrowid)

    def list_attachments(self, entry_id: int) -> list[Attachment]:
        """Return an entry's attachments in insertion order."""
        with self._storage():
            rows = self._conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE entry_id = ? ORDER BY id",
                (entry_id,),
            ).fetchall()
        return [row_to_attachment(r) for r in rows]

    def get_attachment(self, attachment_id: int) -> Attachment:
        """Return an attachment by ID.

        Raises:
            NotFoundError: No attachment has this ID.
        """
        with self._storage():
            row = self._conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE id = ?", (attachment_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError("attachment", attachment_id)
        return row_to_attachment(row)

    def delete_attachment(self, attachment_id: int) -> Attachment:
        """Delete the attachment row only and return what was deleted.

        Raises:
            NotFoundError: Unknown attachment.
        """
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT {_ATTACHMENT_COLUMNS} FROM attachments WHERE id = ?", (attachment_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError("attachment", attachment_id)
            conn.execute("DELETE FROM attachments WHERE id = ?", (attachment_id,))
        return row_to_attachment(row)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def count_rows(self) -> dict[str, int]:
        """Return {"threads": n, "entries": n, "attachments": n}."""
        with self._storage():
            return {
                table: self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]  # noqa: S608
                for table in ("threads", "entries", "attachments")
            }


# ------------------------------------------------------------------
# Validation + serialization helpers
# ------------------------------------------------------------------


def serialize_metadata(metadata: Any) -> str | None:
    """Serialize entry metadata for storage (None stays NULL, text is kept as-is)."""
    if metadata is None:
        return None
    if isinstance(metadata, str):
        return metadata
    if hasattr(metadata, "to_dict"):
        metadata = metadata.to_dict()
    try:
        return json.dumps(metadata, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"metadata is not JSON-serializable: {exc}") from exc


def _require_text(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} is required")
    return value.strip()


def _check_entry_type(entry_type: Any) -> str:
    value = entry_type.value if isinstance(entry_type, EntryType) else entry_type
    if not isinstance(value, str) or value not in ENTRY_TYPES:
        allowed = ", ".join(sorted(ENTRY_TYPES))
        raise ValidationError(f"invalid entry type {entry_type!r} (allowed: {allowed})")
    return value


def _check_entry_date(entry_date: Any) -> str:
    if isinstance(entry_date, (datetime, date)):
        return entry_date.isoformat()
    if not isinstance(entry_date, str) or not entry_date.strip():
        raise ValidationError("entry_date is required")
    return entry_date


def _parse_orders(orders: Iterable[Any]) -> list[tuple[int, int]]:
    if isinstance(orders, (str, bytes, Mapping)) or not isinstance(orders, Iterable):
        raise ValidationError("thread order must be a list of {id, order} items")
    pairs: list[tuple[int, int]] = []
    seen: set[int] = set()
    for item in orders:
        if isinstance(item, Mapping):
            thread_id, order = item.get("id"), item.get("order")
        elif isinstance(item, (tuple, list)) and len(item) == 2:
            thread_id, order = item
        else:
            raise ValidationError(f"malformed thread order item: {item!r}")
        if not _is_int(thread_id) or not _is_int(order):
            raise ValidationError(f"thread order item needs integer id and order: {item!r}")
        if thread_id in seen:
            raise ValidationError(f"thread {thread_id} appears twice in the order list")
        seen.add(thread_id)
        pairs.append((thread_id, order))
    return pairs


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ------------------------------------------------------------------
# Timestamps
# ------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _now() -> str:
    return _utcnow().strftime(_STAMP_FORMAT)


def _next_stamp(previous: str | None) -> str:
    """Return now, or previous + 1µs if the clock has not moved past it."""
    stamp = _utcnow()
    if previous:
        try:
            prev = datetime.fromisoformat(previous)
        except ValueError:
            prev = None
        if prev is not None:
            if prev.tzinfo is not None:
                prev = prev.astimezone(timezone.utc).replace(tzinfo=None)
            if stamp <= prev:
                stamp = prev + timedelta(microseconds=1)
    return stamp.strftime(_STAMP_FORMAT)


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def row_to_thread(row: sqlite3.Row) -> Thread:
    return Thread(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        display_order=row["display_order"] if row["display_order"] is not None else 0,
    )


def row_to_entry(row: sqlite3.Row) -> Entry:
    return Entry(
        id=row["id"],
        thread_id=row["thread_id"],
        entry_type=row["entry_type"],
        entry_date=row["entry_date"],
        title=row["title"],
        content=row["content"],
        created_at=row["created_at"],
        metadata=row["metadata"],
    )


def row_to_attachment(row: sqlite3.Row) -> Attachment:
    return Attachment(
        id=row["id"],
        entry_id=row["entry_id"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        mime_type=row["mime_type"],
        created_at=row["created_at"],
    )
