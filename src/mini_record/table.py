"""Tabular file storage for a single record type."""

from __future__ import annotations

import csv
import logging
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, TextIO

from mini_record.errors import SchemaMismatchError
from mini_record.types import TypeDescriptor

logger = logging.getLogger(__name__)


def _default_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@contextmanager
def atomic_write(path: Path) -> Iterator[TextIO]:
    """Open a temporary file beside ``path`` and move it over ``path`` on success.

    The replacement keeps the mode of the file it replaces, or gets the
    mode a plain ``open`` would give a new file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        mode = stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        mode = _default_mode()

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
            yield f
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class Table:
    """Manages the comma-separated store for a single type.

    The store is a header line (identity column plus declared columns)
    followed by one line per row. Every mutation rewrites the whole file.
    """

    def __init__(self, descriptor: TypeDescriptor, file_path: Path) -> None:
        self.descriptor = descriptor
        self.file_path = file_path

    @property
    def header(self) -> list[str]:
        return self.descriptor.header

    def exists(self) -> bool:
        """Return whether the store file exists."""
        return self.file_path.exists()

    def create(self) -> None:
        """Write a fresh store holding only the header, replacing any existing one."""
        self.write_all([])
        logger.info("Created table %s at %s", self.descriptor.table_name, self.file_path)

    def drop(self) -> None:
        """Delete the store. Dropping a missing store is a no-op."""
        try:
            self.file_path.unlink()
        except FileNotFoundError:
            logger.debug("Table %s does not exist; nothing to drop", self.descriptor.table_name)
            return
        logger.info("Dropped table %s", self.descriptor.table_name)

    def read_all(self) -> list[dict[str, str]]:
        """Read every row as a mapping from column name to stored text.

        Returns an empty list if the store does not exist.

        Raises:
            SchemaMismatchError: If the header or a row does not match the
                declared columns.
        """
        if not self.file_path.exists():
            return []

        header = self.header
        rows: list[dict[str, str]] = []
        with open(self.file_path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f)
            stored_header = next(reader, None)
            if stored_header is None:
                return []
            if stored_header != header:
                raise SchemaMismatchError(
                    f"Store {self.file_path} has columns {stored_header}, "
                    f"but type '{self.descriptor.name}' declares {header}"
                )
            for fields in reader:
                if not fields:
                    continue
                if len(fields) != len(header):
                    raise SchemaMismatchError(
                        f"Row on line {reader.line_num} of {self.file_path} has "
                        f"{len(fields)} fields, expected {len(header)}"
                    )
                rows.append(dict(zip(header, fields)))

        logger.debug("Read %d rows from %s", len(rows), self.file_path)
        return rows

    def write_all(self, rows: Iterable[Mapping[str, Any]]) -> None:
        """Replace the whole store with ``rows``, re-emitting the header.

        The new contents are written to a temporary file in the same
        directory and moved over the store in one step.
        """
        header = self.header
        count = 0
        with atomic_write(self.file_path) as f:
            writer = csv.writer(f)
            writer.writerow(header)
            for row in rows:
                writer.writerow([row.get(column, "") for column in header])
                count += 1

        logger.debug("Wrote %d rows to %s", count, self.file_path)

    @property
    def count(self) -> int:
        """Return the number of stored rows."""
        return len(self.read_all())
