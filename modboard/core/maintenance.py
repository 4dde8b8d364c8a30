"""
ModBoard Maintenance Module

Document backups: create, rotate, list and restore.
"""

import json
import logging
import shutil
from contextlib import nullcontext
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..db.models import Document
from ..db.store import DocumentStore
from ..exceptions import PersistenceError

logger = logging.getLogger(__name__)


BACKUP_PREFIX = "modboard_backup_"


class MaintenanceManager:
    """Backup management for the board document."""

    def __init__(self, store: DocumentStore, backup_path: str, keep: int = 7, lock=None):
        """
        Args:
            store: Live document store
            backup_path: Directory holding backups
            keep: Number of newest backups to retain
            lock: Lock serializing against board writes, if any
        """
        self.store = store
        self.backup_dir = Path(backup_path)
        self.keep = keep
        self._lock = lock

    def _locked(self):
        if self._lock is None:
            return nullcontext()
        return self._lock

    def run_backup(self) -> Optional[str]:
        """
        Copy the live document into the backup directory.

        Returns backup file path or None if there is nothing to back up
        or the copy failed.
        """
        if not self.store.exists():
            logger.info("No document to back up")
            return None

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
            backup_path = self.backup_dir / f"{BACKUP_PREFIX}{timestamp}.json"

            with self._locked():
                shutil.copy2(str(self.store.path), str(backup_path))

            self._cleanup_old_backups()

            logger.info(f"Document backup created: {backup_path}")
            return str(backup_path)

        except OSError as e:
            logger.error(f"Backup failed: {e}")
            return None

    def _cleanup_old_backups(self):
        """Remove old backup files, keeping the most recent ones."""
        for old_backup in self._backup_files()[self.keep:]:
            try:
                old_backup.unlink()
                logger.debug(f"Removed old backup: {old_backup}")
            except OSError as e:
                logger.warning(f"Could not remove old backup {old_backup}: {e}")

    def _backup_files(self) -> list[Path]:
        if not self.backup_dir.exists():
            return []
        # Timestamped names sort chronologically
        return sorted(self.backup_dir.glob(f"{BACKUP_PREFIX}*.json"), reverse=True)

    def list_backups(self) -> list[dict]:
        """
        List available backups, newest first.

        Returns list of dicts with:
        - path: Backup file path
        - timestamp: Modification time
        - size_bytes: File size
        """
        result = []
        for backup in self._backup_files():
            stat = backup.stat()
            result.append({
                "path": str(backup),
                "timestamp": datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds"),
                "size_bytes": stat.st_size,
            })
        return result

    def restore_backup(self, backup_path: str) -> bool:
        """
        Replace the live document with a backup.

        The current document is copied to <name>.pre_restore first. The
        backup must parse as a board document.

        Returns True on success, False on failure.
        """
        backup_file = Path(backup_path)
        if not backup_file.exists():
            logger.error(f"Backup file not found: {backup_path}")
            return False

        try:
            with open(backup_file, "r", encoding="utf-8") as f:
                document = Document.from_dict(json.load(f))
        except (OSError, ValueError, RecursionError) as e:
            logger.error(f"Backup is not a valid document: {e}")
            return False

        with self._locked():
            try:
                if self.store.exists():
                    safety = self.store.path.with_suffix(".json.pre_restore")
                    shutil.copy2(str(self.store.path), str(safety))
                    logger.info(f"Created safety backup: {safety}")

                self.store.save(document)
            except (OSError, PersistenceError) as e:
                logger.error(f"Restore failed: {e}")
                return False

        logger.info(f"Document restored from: {backup_path}")
        return True
