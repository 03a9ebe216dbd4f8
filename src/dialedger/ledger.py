"""Ledger - the explicit handle callers open once and pass around.

Bundles the open connection, the Repository, the FileStore and the
MigrationReport from startup. Plain store operations are reached through
``ledger.repo``; the methods here are the ones that must keep the database
and the attachment directory in step (copy-in, delete-with-cleanup,
download) plus the .eml import and the open action item listing.
"""

from __future__ import annotations

import logging
import shutil
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dialedger.config import LedgerConfig, load_config
from dialedger.db.connection import Database
from dialedger.db.errors import LedgerError, ValidationError
from dialedger.db.migrations import MigrationReport
from dialedger.db.models import ActionItemsMeta, Attachment, Entry, EntryType
from dialedger.db.repository import Repository
from dialedger.db.schema import initialize
from dialedger.db.search import SearchResults, search
from dialedger.ingest.eml import parse_eml
from dialedger.storage import FileStore

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    """What a delete removed: the attachment rows and which files went with them."""

    deleted_attachments: list[Attachment] = field(default_factory=list)
    removed_files: list[Path] = field(default_factory=list)
    missing_files: list[Path] = field(default_factory=list)
    failed_files: list[Path] = field(default_factory=list)


@dataclass
class OpenActionItem:
    entry_id: int
    entry_title: str
    entry_date: str
    text: str
    item_index: int


class Ledger:
    """Open store plus managed attachment directory.

    Args:
        conn: Connection with the schema initialised.
        files: FileStore owning the attachment copies.
        migration_report: Report from the initialize() call that prepared *conn*.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        files: FileStore,
        migration_report: MigrationReport | None = None,
    ) -> None:
        self.conn = conn
        self.repo = Repository(conn)
        self.files = files
        self.migration_report = migration_report or MigrationReport()

    @classmethod
    def open(cls, config: LedgerConfig | None = None) -> Ledger:
        """Create the data directory, open the database and migrate it."""
        config = config if config is not None else load_config()
        conn = Database(config.db_path).connect()
        try:
            report = initialize(conn, strict=config.database.strict_migrations)
        except BaseException:
            conn.close()
            raise
        if report.failed:
            logger.warning("Migrations failed: %s", ", ".join(report.failed))
        logger.debug("Opened ledger at %s", config.db_path)
        return cls(conn, FileStore(config.attachments_path, config.max_upload_bytes), report)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Ledger:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Attachments on disk
    # ------------------------------------------------------------------

    def add_attachment(
        self, entry_id: int, source: Path | str, file_name: str | None = None
    ) -> Attachment:
        """Copy *source* into managed storage and record it on *entry_id*.

        The copy is removed again if the record cannot be written.
        """
        self.repo.get_entry(entry_id)
        stored = self.files.copy_in(source, file_name)
        try:
            return self.repo.create_attachment(
                entry_id,
                stored.file_name,
                str(stored.path),
                file_size=stored.size,
                mime_type=stored.mime_type,
            )
        except LedgerError:
            self.files.delete_if_exists(stored.path)
            raise

    def attachment_file(self, attachment_id: int) -> tuple[Attachment, Path]:
        """Return the attachment and its file path; PhysicalFileMissing if gone."""
        attachment = self.repo.get_attachment(attachment_id)
        return attachment, self.files.resolve(attachment)

    def export_attachment(self, attachment_id: int, dest: Path | str) -> Path:
        """Copy an attachment out under its original name.

        *dest* may be a directory (file keeps its original name) or a file path.
        """
        attachment, path = self.attachment_file(attachment_id)
        dest = Path(dest)
        target = dest / attachment.file_name if dest.is_dir() else dest
        if not target.parent.is_dir():
            raise ValidationError(f"export directory does not exist: {target.parent}")
        shutil.copy2(path, target)
        return target

    def _sweep(self, attachments: list[Attachment]) -> DeleteResult:
        result = DeleteResult(deleted_attachments=attachments)
        for attachment in attachments:
            path = Path(attachment.file_path)
            try:
                removed = self.files.delete_if_exists(path)
            except OSError as exc:
                logger.warning("Could not delete attachment file %s: %s", path, exc)
                result.failed_files.append(path)
                continue
            (result.removed_files if removed else result.missing_files).append(path)
        return result

    def delete_entry(self, entry_id: int) -> DeleteResult:
        """Delete an entry and the files of its attachments."""
        return self._sweep(self.repo.delete_entry(entry_id))

    def delete_thread(self, thread_id: int) -> DeleteResult:
        """Delete a thread and sweep the files of every attachment below it."""
        return self._sweep(self.repo.delete_thread(thread_id))

    def delete_attachment(self, attachment_id: int) -> DeleteResult:
        """Delete one attachment row, then its file."""
        return self._sweep([self.repo.delete_attachment(attachment_id)])

    # ------------------------------------------------------------------
    # Entries with files
    # ------------------------------------------------------------------

    def add_entry(
        self,
        thread_id: int,
        entry_type: EntryType | str,
        entry_date: str | datetime,
        *,
        title: str | None = None,
        content: str | None = None,
        metadata: Any = None,
        files: Iterable[Path | str] = (),
    ) -> tuple[Entry, list[Attachment]]:
        """Create an entry together with its attachments, or nothing at all.

        Every file is checked before the entry is written; if copying one
        still fails, the entry and the copies made so far are removed.
        """
        files = [Path(p) for p in files]
        for path in files:
            self.files.check(path)
        entry = self.repo.create_entry(
            thread_id, entry_type, entry_date, title=title, content=content, metadata=metadata
        )
        attached: list[Attachment] = []
        try:
            for path in files:
                attached.append(self.add_attachment(entry.id, path))
        except BaseException:
            logger.debug("Attaching to entry %s failed; removing it", entry.id)
            self.delete_entry(entry.id)
            raise
        return entry, attached

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_eml(
        self, thread_id: int, path: Path | str, *, attach_original: bool = True
    ) -> Entry:
        """Create an email entry from an .eml file.

        The entry is dated from the mail's Date header (now if it has none)
        and, unless disabled, gets the .eml itself as an attachment. If the
        .eml cannot be attached no entry is left behind.
        """
        path = Path(path)
        parsed = parse_eml(path)
        sent = parsed.date or datetime.now(timezone.utc)
        entry, _ = self.add_entry(
            thread_id,
            EntryType.EMAIL,
            sent.isoformat(),
            title=parsed.meta.subject or path.name,
            metadata=parsed.meta,
            files=[path] if attach_original else [],
        )
        return entry

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def open_action_items(self, thread_id: int) -> list[OpenActionItem]:
        """Every incomplete action item of a thread, in entry order."""
        items: list[OpenActionItem] = []
        for entry in self.repo.list_entries(thread_id):
            if entry.entry_type != EntryType.ACTION_ITEMS.value:
                continue
            try:
                meta = entry.typed_metadata
            except ValueError:
                logger.warning("Entry %s has unreadable metadata; skipped", entry.id)
                continue
            if not isinstance(meta, ActionItemsMeta):
                continue
            for index, item in enumerate(meta.items):
                if not item.completed:
                    items.append(
                        OpenActionItem(
                            entry_id=entry.id,
                            entry_title=entry.title or meta.description or "Action Items",
                            entry_date=entry.entry_date,
                            text=item.text,
                            item_index=index,
                        )
                    )
        return items

    def search(
        self,
        query: str,
        *,
        entry_types: Iterable[str] | None = None,
        thread_id: int | None = None,
    ) -> SearchResults:
        return search(self.conn, query, entry_types=entry_types, thread_id=thread_id)
