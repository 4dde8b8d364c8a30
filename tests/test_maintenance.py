"""
Tests for ModBoard Maintenance Module

Tests backup creation, rotation, listing and restore.
"""

import json
import tempfile
import threading
from pathlib import Path

from modboard.core.maintenance import BACKUP_PREFIX, MaintenanceManager
from modboard.db.models import Document, Thread
from modboard.db.store import DocumentStore


class TestBackup:
    """Tests for document backups."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.store = DocumentStore(str(self.temp_dir / "db.json"))
        self.backup_dir = self.temp_dir / "backups"
        self.maintenance = MaintenanceManager(self.store, str(self.backup_dir), keep=3)

    def test_nothing_to_back_up(self):
        assert self.maintenance.run_backup() is None

    def test_backup_created(self):
        """Test backup copies the live document."""
        self.store.save(Document(threads=[Thread(id="T1", title="hello")]))

        path = self.maintenance.run_backup()
        assert path is not None
        assert Path(path).name.startswith(BACKUP_PREFIX)
        assert json.loads(Path(path).read_text(encoding="utf-8"))["threads"][0]["id"] == "T1"

    def test_rotation(self):
        """Test only the newest backups are kept."""
        self.store.save(Document())
        paths = [self.maintenance.run_backup() for _ in range(5)]

        remaining = [b["path"] for b in self.maintenance.list_backups()]
        assert len(remaining) == 3
        assert remaining == list(reversed(paths[-3:]))

    def test_list_backups_empty(self):
        assert self.maintenance.list_backups() == []

    def test_list_backups_fields(self):
        self.store.save(Document())
        self.maintenance.run_backup()

        backup = self.maintenance.list_backups()[0]
        assert set(backup) == {"path", "timestamp", "size_bytes"}
        assert backup["size_bytes"] > 0

    def test_backup_with_lock(self):
        maintenance = MaintenanceManager(self.store, str(self.backup_dir), lock=threading.RLock())
        self.store.save(Document())

        assert maintenance.run_backup() is not None


class TestRestore:
    """Tests for restoring backups."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.store = DocumentStore(str(self.temp_dir / "db.json"))
        self.maintenance = MaintenanceManager(self.store, str(self.temp_dir / "backups"))

    def test_restore(self):
        """Test restore replaces the live document and keeps a safety copy."""
        self.store.save(Document(threads=[Thread(id="OLD")]))
        backup = self.maintenance.run_backup()
        self.store.save(Document(threads=[Thread(id="NEW")]))

        assert self.maintenance.restore_backup(backup) is True
        assert [t.id for t in self.store.load().threads] == ["OLD"]

        safety = self.temp_dir / "db.json.pre_restore"
        assert json.loads(safety.read_text(encoding="utf-8"))["threads"][0]["id"] == "NEW"

    def test_restore_missing_file(self):
        assert self.maintenance.restore_backup(str(self.temp_dir / "nope.json")) is False

    def test_restore_rejects_deeply_nested(self):
        self.store.save(Document(threads=[Thread(id="LIVE")]))
        bad = self.temp_dir / "nested.json"
        bad.write_text("[" * 200000 + "]" * 200000, encoding="utf-8")

        assert self.maintenance.restore_backup(str(bad)) is False
        assert [t.id for t in self.store.load().threads] == ["LIVE"]

    def test_restore_rejects_invalid(self):
        """Test a non-document backup leaves the live document alone."""
        self.store.save(Document(threads=[Thread(id="LIVE")]))
        bad = self.temp_dir / "bad.json"
        bad.write_text("[]", encoding="utf-8")

        assert self.maintenance.restore_backup(str(bad)) is False
        assert [t.id for t in self.store.load().threads] == ["LIVE"]
