"""Parse .eml files into email entry metadata.

Plain-text bodies are preferred; HTML-only mails are reduced to text with
BeautifulSoup (drop script/style/head) followed by html2text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from pathlib import Path

import html2text
from bs4 import BeautifulSoup

from dialedger.db.errors import ValidationError
from dialedger.db.models import EmailMeta

# html2text converter
_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


@dataclass
class EmlAttachment:
    filename: str
    content_type: str
    size: int


@dataclass
class ParsedEmail:
    meta: EmailMeta
    date: datetime | None = None
    message_id: str = ""
    attachments: list[EmlAttachment] = field(default_factory=list)


def parse_eml(path: Path | str) -> ParsedEmail:
    """Read *path* and return its headers, body and attachment listing.

    Raises:
        ValidationError: *path* is not a readable file.
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"not an .eml file: {path}")
    msg = BytesParser(policy=policy.default).parsebytes(path.read_bytes())
    return parse_message(msg)


def parse_message(msg: EmailMessage) -> ParsedEmail:
    attachments = [
        EmlAttachment(
            filename=part.get_filename(),
            content_type=part.get_content_type(),
            size=len(part.get_payload(decode=True) or b""),
        )
        for part in msg.iter_attachments()
        if part.get_filename()
    ]
    meta = EmailMeta(
        sender=_header(msg, "From"),
        to=_header(msg, "To"),
        cc=_header(msg, "Cc"),
        bcc=_header(msg, "Bcc"),
        subject=_header(msg, "Subject"),
        body=_body_text(msg),
        attachments=", ".join(a.filename for a in attachments),
    )
    return ParsedEmail(
        meta=meta,
        date=_date(msg),
        message_id=_header(msg, "Message-ID"),
        attachments=attachments,
    )


def _header(msg: EmailMessage, name: str) -> str:
    value = msg.get(name)
    return str(value).strip() if value is not None else ""


def _date(msg: EmailMessage) -> datetime | None:
    try:
        raw = msg.get("Date")
        return parsedate_to_datetime(str(raw)) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _body_text(msg: EmailMessage) -> str:
    part = msg.get_body(preferencelist=("plain",))
    if part is not None:
        return part.get_content().strip()
    part = msg.get_body(preferencelist=("html",))
    if part is not None:
        return html_to_text(part.get_content())
    return ""


def html_to_text(html: str) -> str:
    """Strip non-content tags and convert the rest to plain text."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "head"]):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()
