"""Append-only CSV record file used for resumable crawls."""

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import Optional, TextIO

from .articles import ArticleIdError, ArticleRecord, parse_id_field
from .config import RECORD_HEADER

LOGGER = logging.getLogger(__name__)


class RecordStoreError(RuntimeError):
    """Raised when the record file cannot be opened, read or written."""


class UrlListError(RuntimeError):
    """Raised when a URL list file is unreadable or empty."""


class RecordStore:
    """Durable CSV store of captured articles.

    The header row is written once when the file starts empty. Existing rows are
    never rewritten; every :meth:`append` is flushed (and fsynced by default)
    before it returns so a crash cannot lose a row that was reported as captured.
    """

    def __init__(
        self,
        path: Path,
        handle: TextIO,
        seed_ids: frozenset[int],
        *,
        skipped_lines: int = 0,
        created: bool = False,
        fsync: bool = True,
    ) -> None:
        self._path = path
        self.created = created
        self._handle: Optional[TextIO] = handle
        self._writer = csv.writer(handle, lineterminator="\n")
        self._seed_ids = seed_ids
        self._skipped_lines = skipped_lines
        self._fsync = fsync

    @classmethod
    def open(cls, path: Path, *, fsync: bool = True) -> "RecordStore":
        path = Path(path)
        try:
            exists = path.exists() and path.stat().st_size > 0
            if not exists:
                return cls._create(path, fsync=fsync)

            # Bytes of a row cut off mid-character decode to U+FFFD.
            contents = path.read_bytes().decode("utf-8", errors="replace")
            seed_ids, skipped = _parse_seed_ids(contents)
            handle = path.open("a", encoding="utf-8", newline="")
            if not contents.endswith("\n"):
                # Terminate a row cut short by an earlier crash before appending.
                handle.write("\n")
                handle.flush()
        except OSError as exc:
            raise RecordStoreError(f"Failed to open record file {path}: {exc}") from exc

        if skipped:
            LOGGER.warning("Skipped %d record line(s) without a numeric id in %s", skipped, path)
        LOGGER.info("Loaded %d visited article ids from %s", len(seed_ids), path)
        return cls(path, handle, seed_ids, skipped_lines=skipped, fsync=fsync)

    @classmethod
    def _create(cls, path: Path, *, fsync: bool) -> "RecordStore":
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = path.open("w", encoding="utf-8", newline="")
        store = cls(path, handle, frozenset(), created=True, fsync=fsync)
        store._write_row(list(RECORD_HEADER))
        LOGGER.info("Created record file %s", path)
        return store

    @property
    def path(self) -> Path:
        return self._path

    @property
    def seed_ids(self) -> frozenset[int]:
        return self._seed_ids

    @property
    def skipped_lines(self) -> int:
        return self._skipped_lines

    def append(self, record: ArticleRecord) -> None:
        try:
            self._write_row(record.as_row())
        except OSError as exc:
            raise RecordStoreError(f"Failed to append article {record.id} to {self._path}: {exc}") from exc

    def _write_row(self, row: list[str]) -> None:
        if self._handle is None:
            raise RecordStoreError(f"Record file {self._path} is closed")
        self._writer.writerow(row)
        self._handle.flush()
        if self._fsync:
            os.fsync(self._handle.fileno())

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "RecordStore":
        return self

    def __exit__(self, *_exc_info) -> None:
        self.close()


def _parse_seed_ids(contents: str) -> tuple[frozenset[int], int]:
    ids: set[int] = set()
    skipped = 0
    for line in contents.split("\n")[1:]:
        if not line.strip():
            continue
        first_field = line.rstrip("\r").split(",", 1)[0]
        try:
            ids.add(parse_id_field(first_field))
        except ArticleIdError:
            skipped += 1
            LOGGER.debug("Ignoring record line without numeric id: %r", line[:80])
    return frozenset(ids), skipped


def load_url_list(path: Path) -> list[str]:
    """Read a newline-delimited URL list, ignoring blank lines."""

    try:
        contents = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise UrlListError(f"Failed to open URL list {path}: {exc}") from exc

    urls = [line.strip() for line in contents.splitlines() if line.strip()]
    if not urls:
        raise UrlListError(f"No URLs found in URL list {path}")
    return urls
