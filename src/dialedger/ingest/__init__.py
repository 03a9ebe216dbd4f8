"""dialedger import helpers - turn external files into entries."""

from dialedger.ingest.eml import EmlAttachment, ParsedEmail, html_to_text, parse_eml

__all__ = [
    "EmlAttachment",
    "ParsedEmail",
    "html_to_text",
    "parse_eml",
]
