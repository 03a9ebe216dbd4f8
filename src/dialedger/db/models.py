"""Domain models for the dialedger database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from dialedger.db.schema import ENTRY_TYPE_VALUES


class EntryType(str, Enum):
    NOTE = "note"
    MEETING = "meeting"
    CONVERSATION = "conversation"
    EMAIL = "email"
    FILE = "file"
    ACTION_ITEMS = "action_items"


ENTRY_TYPES: frozenset[str] = frozenset(ENTRY_TYPE_VALUES)


@dataclass
class Thread:
    id: int
    title: str
    description: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    display_order: int = 0


@dataclass
class Entry:
    id: int
    thread_id: int
    entry_type: str
    entry_date: str
    title: str | None = None
    content: str | None = None  # legacy column, unused by current entry types
    created_at: str | None = None
    metadata: str | None = None  # serialized JSON, stored verbatim

    @property
    def metadata_dict(self) -> dict[str, Any]:
        if not self.metadata:
            return {}
        data = json.loads(self.metadata)
        return data if isinstance(data, dict) else {}

    @property
    def typed_metadata(self) -> EntryMetadata:
        return parse_metadata(self.entry_type, self.metadata_dict)


@dataclass
class Attachment:
    id: int
    entry_id: int
    file_name: str
    file_path: str
    file_size: int | None = None
    mime_type: str | None = None
    created_at: str | None = None


# ------------------------------------------------------------------
# Metadata variants, one per entry type
# ------------------------------------------------------------------
#
# Keys on disk keep their stored spelling ("from", "fileName", ...);
# attribute names differ only where the key is not a valid identifier.


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


@dataclass
class NoteMeta:
    content: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NoteMeta:
        return cls(content=_text(data, "content"))

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content}


@dataclass
class EmailMeta:
    sender: str = ""
    to: str = ""
    cc: str = ""
    bcc: str = ""
    subject: str = ""
    body: str = ""
    attachments: str = ""  # comma-separated file names as listed in the mail

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmailMeta:
        return cls(
            sender=_text(data, "from"),
            to=_text(data, "to"),
            cc=_text(data, "cc"),
            bcc=_text(data, "bcc"),
            subject=_text(data, "subject"),
            body=_text(data, "body"),
            attachments=_text(data, "attachments"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.to,
            "cc": self.cc,
            "bcc": self.bcc,
            "subject": self.subject,
            "body": self.body,
            "attachments": self.attachments,
        }


@dataclass
class MeetingMeta:
    location: str = ""
    attendees: str = ""
    duration: str = ""
    notes: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeetingMeta:
        return cls(
            location=_text(data, "location"),
            attendees=_text(data, "attendees"),
            duration=_text(data, "duration"),
            notes=_text(data, "notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "attendees": self.attendees,
            "duration": self.duration,
            "notes": self.notes,
        }


@dataclass
class ConversationMeta:
    participants: str = ""
    location: str = ""
    summary: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationMeta:
        return cls(
            participants=_text(data, "participants"),
            location=_text(data, "location"),
            summary=_text(data, "summary"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "participants": self.participants,
            "location": self.location,
            "summary": self.summary,
        }


@dataclass
class FileMeta:
    file_name: str = ""
    file_type: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileMeta:
        return cls(
            file_name=_text(data, "fileName"),
            file_type=_text(data, "fileType"),
            description=_text(data, "description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "fileType": self.file_type,
            "description": self.description,
        }


@dataclass
class ActionItem:
    text: str
    completed: bool = False


@dataclass
class ActionItemsMeta:
    description: str = ""
    items: list[ActionItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionItemsMeta:
        raw_items = data.get("items")
        items = [
            ActionItem(text=_text(item, "text"), completed=bool(item.get("completed", False)))
            for item in (raw_items if isinstance(raw_items, list) else [])
            if isinstance(item, dict)
        ]
        return cls(description=_text(data, "description"), items=items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "items": [{"text": i.text, "completed": i.completed} for i in self.items],
        }


EntryMetadata = Union[NoteMeta, EmailMeta, MeetingMeta, ConversationMeta, FileMeta, ActionItemsMeta]

METADATA_TYPES: dict[str, type] = {
    EntryType.NOTE.value: NoteMeta,
    EntryType.EMAIL.value: EmailMeta,
    EntryType.MEETING.value: MeetingMeta,
    EntryType.CONVERSATION.value: ConversationMeta,
    EntryType.FILE.value: FileMeta,
    EntryType.ACTION_ITEMS.value: ActionItemsMeta,
}


def parse_metadata(entry_type: str, data: dict[str, Any] | None) -> EntryMetadata:
    """Build the metadata variant for *entry_type* from a deserialized dict.

    Unknown keys are ignored and missing ones take their defaults; shape is
    never validated.

    Raises:
        KeyError: *entry_type* is not one of the known entry types.
    """
    return METADATA_TYPES[entry_type].from_dict(data or {})
