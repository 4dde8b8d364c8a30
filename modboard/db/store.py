"""
ModBoard Document Store

The whole board lives in one JSON file. Reads return a fresh snapshot,
writes replace the file atomically (temp file + rename in the same
directory) so a reader never sees a partial write.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..exceptions import PersistenceError
from .models import Document

logger = logging.getLogger(__name__)


class DocumentStore:
    """
    Single-file JSON document store.

    No locking is done here; callers that need load-mutate-save to be
    atomic must serialize around it themselves.
    """

    def __init__(self, path: str, write_retries: int = 2, indent: Optional[int] = None):
        """
        Initialize the store.

        Args:
            path: Path to the JSON document
            write_retries: Total write attempts before giving up
            indent: JSON indent for the written file (None = compact)
        """
        self.path = Path(path)
        self.write_retries = max(1, write_retries)
        self.indent = indent

    def exists(self) -> bool:
        """Return True if the document file exists."""
        return self.path.exists()

    def load(self) -> Document:
        """
        Load the persisted document.

        Returns an empty document if the file is missing, unreadable or
        corrupt. Never raises.
        """
        if not self.path.exists():
            return Document()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return Document.from_dict(data)
        except (OSError, ValueError, RecursionError) as e:
            logger.warning(f"Unreadable document {self.path}, starting empty: {e}")
            return Document()

    def save(self, document: Document):
        """
        Atomically replace the persisted document.

        Raises:
            PersistenceError: If every write attempt failed
        """
        payload = json.dumps(document.to_dict(), ensure_ascii=False, indent=self.indent)

        last_error: Optional[OSError] = None
        for attempt in range(1, self.write_retries + 1):
            try:
                self._write_atomic(payload)
                return
            except OSError as e:
                last_error = e
                logger.warning(
                    f"Document write failed (attempt {attempt}/{self.write_retries}): {e}"
                )

        logger.error(f"Giving up writing {self.path}: {last_error}")
        raise PersistenceError(str(last_error))

    def _write_atomic(self, payload: str):
        """Write payload to a temp file beside the target, then rename over it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
