"""Tests for table storage and the storage manager."""

import json
import os
import stat

import pytest

from mini_record.errors import SchemaMismatchError
from mini_record.storage import StorageManager
from mini_record.table import Table
from mini_record.types import TypeRegistry


def make_registry() -> TypeRegistry:
    registry = TypeRegistry()
    registry.declare_column("User", "name", "TEXT")
    registry.declare_column("User", "email", "TEXT")
    registry.freeze()
    return registry


class TestTable:
    """Tests for the Table class."""

    @pytest.fixture
    def table(self, tmp_path):
        descriptor = make_registry().get_or_raise("User")
        return Table(descriptor, tmp_path / "users.csv")

    def test_missing_store(self, table):
        """A missing store reads as empty."""
        assert not table.exists()
        assert table.read_all() == []
        assert table.count == 0

    def test_create_writes_header(self, table):
        """Creating a table writes only the header line."""
        table.create()

        assert table.exists()
        assert table.file_path.read_text() == "id,name,email\n"
        assert table.read_all() == []

    def test_create_replaces_existing(self, table):
        """Creating a table discards existing rows."""
        table.write_all([{"id": "1", "name": "Ada", "email": "ada@example.com"}])
        table.create()

        assert table.read_all() == []

    def test_write_and_read(self, table):
        """Rows come back in order as text mappings."""
        table.write_all([
            {"id": "1", "name": "Ada", "email": "ada@example.com"},
            {"id": "2", "name": "Grace", "email": ""},
        ])

        assert table.read_all() == [
            {"id": "1", "name": "Ada", "email": "ada@example.com"},
            {"id": "2", "name": "Grace", "email": ""},
        ]
        assert table.count == 2

    def test_fields_with_commas_and_quotes(self, table):
        """Values containing separators survive a rewrite."""
        table.write_all([{"id": "1", "name": 'Lovelace, "Ada"', "email": "line\nbreak"}])

        assert table.read_all()[0]["name"] == 'Lovelace, "Ada"'
        assert table.read_all()[0]["email"] == "line\nbreak"

    def test_write_leaves_no_temporary_files(self, table, tmp_path):
        """The store is replaced in place without stray files."""
        table.create()
        table.write_all([{"id": "1", "name": "Ada", "email": ""}])

        assert sorted(p.name for p in tmp_path.iterdir()) == ["users.csv"]

    def test_drop(self, table):
        """Dropping removes the store; dropping again is harmless."""
        table.create()
        table.drop()
        assert not table.exists()

        table.drop()
        assert not table.exists()

    def test_header_mismatch(self, table):
        """A store whose header differs from the declaration is rejected."""
        table.file_path.write_text("id,name\n1,Ada\n")

        with pytest.raises(SchemaMismatchError, match="declares"):
            table.read_all()

    def test_row_arity_mismatch(self, table):
        """A row with the wrong number of fields is rejected."""
        table.file_path.write_text("id,name,email\n1,Ada\n")

        with pytest.raises(SchemaMismatchError, match="line 2"):
            table.read_all()

    def test_empty_file(self, table):
        """A zero-length store reads as empty."""
        table.file_path.write_text("")
        assert table.read_all() == []

    def test_write_keeps_existing_mode(self, table):
        """Rewriting a store keeps its permissions."""
        table.create()
        os.chmod(table.file_path, 0o644)

        table.write_all([{"id": "1", "name": "Ada", "email": ""}])
        assert stat.S_IMODE(table.file_path.stat().st_mode) == 0o644

    def test_new_store_follows_umask(self, table):
        """A new store gets the mode a plain open would give it."""
        umask = os.umask(0o022)
        try:
            table.create()
        finally:
            os.umask(umask)

        assert stat.S_IMODE(table.file_path.stat().st_mode) == 0o644


class TestStorageManager:
    """Tests for the StorageManager class."""

    @pytest.fixture
    def storage(self, tmp_path):
        return StorageManager(tmp_path / "db", make_registry())

    def test_creates_data_dir(self, storage):
        """The data directory is created on demand."""
        assert storage.data_dir.is_dir()

    def test_storage_path(self, storage):
        """Stores are named after the pluralized type."""
        assert storage.storage_path("User") == storage.data_dir / "users.csv"

    def test_get_table_cached(self, storage):
        """The same table object is returned for a type."""
        assert storage.get_table("User") is storage.get_table("User")

    def test_unknown_type(self, storage):
        """Undeclared types raise KeyError."""
        with pytest.raises(KeyError):
            storage.get_table("Nope")

    def test_create_read_write_drop(self, storage):
        """Manager operations delegate to the type's table."""
        assert not storage.exists("User")
        storage.create_table("User")
        assert storage.exists("User")

        storage.write_all("User", [{"id": "1", "name": "Ada", "email": ""}])
        assert storage.read_all("User")[0]["name"] == "Ada"

        storage.drop_table("User")
        assert not storage.exists("User")
        assert storage.read_all("User") == []

    def test_next_identity_from_rows(self, storage):
        """Without a recorded mark, the next identity is max + 1."""
        assert storage.next_identity("User", []) == 1
        assert storage.next_identity("User", [{"id": "3"}, {"id": "7"}, {"id": "5"}]) == 8

    def test_recorded_identity_survives_deletion(self, storage):
        """The recorded high-water mark wins over the remaining rows."""
        storage.record_identity("User", 4)

        assert storage.next_identity("User", [{"id": "1"}]) == 5
        marks = json.loads((storage.data_dir / StorageManager.SEQUENCES_FILE).read_text())
        assert marks == {"users": 4}

    def test_record_identity_never_lowers(self, storage):
        """Recording a lower identity keeps the higher mark."""
        storage.record_identity("User", 9)
        storage.record_identity("User", 3)

        assert storage.next_identity("User", []) == 10

    def test_create_and_drop_reset_identity(self, storage):
        """A fresh store starts counting from 1 again."""
        storage.record_identity("User", 9)
        storage.create_table("User")
        assert storage.next_identity("User", []) == 1

        storage.record_identity("User", 2)
        storage.drop_table("User")
        assert storage.next_identity("User", []) == 1

    def test_unreadable_marks_ignored(self, storage):
        """A corrupt mark file falls back to the rows."""
        (storage.data_dir / StorageManager.SEQUENCES_FILE).write_text("{not json")

        assert storage.next_identity("User", [{"id": "2"}]) == 3

    def test_failed_mark_write_keeps_old_marks(self, storage, monkeypatch):
        """An interrupted mark write leaves the previous file intact."""
        storage.record_identity("User", 4)
        marks_path = storage.data_dir / StorageManager.SEQUENCES_FILE

        def broken_dump(obj, f, **kwargs):
            f.write('{"us')
            raise OSError("disk full")

        monkeypatch.setattr(json, "dump", broken_dump)
        with pytest.raises(OSError, match="disk full"):
            storage.record_identity("User", 5)
        monkeypatch.undo()

        assert json.loads(marks_path.read_text()) == {"users": 4}
        assert sorted(p.name for p in storage.data_dir.iterdir()) == [StorageManager.SEQUENCES_FILE]
        assert storage.next_identity("User", []) == 5

    def test_read_error_propagates(self, storage):
        """I/O errors reach the caller."""
        storage.storage_path("User").mkdir()

        with pytest.raises(OSError):
            storage.read_all("User")
