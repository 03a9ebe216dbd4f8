"""Managed attachment storage: copy uploads in, delete them on request.

Every attachment record points at a copy made here, never at the original
upload (which may be a temporary file). Copies are named
``{epoch_ms}_{stem}{ext}`` with a ``-N`` suffix on collision.
"""

from __future__ import annotations

import logging
import mimetypes
import shutil
import time
from dataclasses import dataclass
from pathlib import Path

from dialedger.db.errors import PhysicalFileMissing, ValidationError
from dialedger.db.models import Attachment

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 100 * 1024 * 1024


@dataclass
class StoredFile:
    path: Path
    file_name: str  # original name, shown to the user
    size: int
    mime_type: str | None


class FileStore:
    """Directory that owns the byte copies referenced by attachment rows."""

    def __init__(self, root: Path | str, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self.root = Path(root)
        self.max_bytes = max_bytes

    def check(self, source: Path | str) -> int:
        """Return the size of *source* if it can be copied in.

        Raises:
            ValidationError: Source missing, not a regular file, or too large.
        """
        source = Path(source)
        if not source.is_file():
            raise ValidationError(f"not a file: {source} (folders cannot be attached)")
        size = source.stat().st_size
        if size > self.max_bytes:
            raise ValidationError(
                f"{source.name} is {size / (1024 * 1024):.1f} MB;"
                f" the limit is {self.max_bytes / (1024 * 1024):.0f} MB"
            )
        return size

    def copy_in(self, source: Path | str, original_name: str | None = None) -> StoredFile:
        """Copy *source* into the managed directory under a collision-free name.

        Args:
            source: File to copy (left untouched).
            original_name: Name to record; defaults to the source's name.

        Raises:
            ValidationError: Source missing, not a regular file, or too large.
        """
        source = Path(source)
        size = self.check(source)

        name = Path(original_name).name if original_name else source.name
        self.root.mkdir(parents=True, exist_ok=True)
        target = self._unique_target(name)
        shutil.copy2(source, target)
        logger.debug("Copied %s -> %s", source, target)
        mime_type, _ = mimetypes.guess_type(name)
        return StoredFile(path=target, file_name=name, size=size, mime_type=mime_type)

    def _unique_target(self, name: str) -> Path:
        stem, ext = Path(name).stem, Path(name).suffix
        base = f"{int(time.time() * 1000)}_{stem}"
        target = self.root / f"{base}{ext}"
        n = 1
        while target.exists():
            target = self.root / f"{base}-{n}{ext}"
            n += 1
        return target

    def delete_if_exists(self, path: Path | str) -> bool:
        """Delete *path* if it is there. Returns True if a file was removed."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        logger.debug("Deleted attachment file %s", path)
        return True

    def resolve(self, attachment: Attachment) -> Path:
        """Return the on-disk path of *attachment*.

        Raises:
            PhysicalFileMissing: The file was removed outside dialedger.
        """
        path = Path(attachment.file_path)
        if not path.is_file():
            raise PhysicalFileMissing(path)
        return path
