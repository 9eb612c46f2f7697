"""Reading previous output as a cache and writing fresh output."""

from __future__ import annotations

import csv
import logging
import os
import stat
import tempfile
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from .models import CSV_HEADER, URLRecord

logger = logging.getLogger("title_grabber")

EMPTY_CACHE: Mapping[str, URLRecord] = MappingProxyType({})


def _output_mode(path: Path) -> int:
    """Mode of the existing output, else what a plain open() would create."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except OSError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def _decoded_cleanly(row: list) -> bool:
    """False if any field carries surrogate escapes from undecodable bytes."""
    try:
        "".join(row).encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _parse_row(row: list) -> Optional[URLRecord]:
    if len(row) != len(CSV_HEADER) or not _decoded_cleanly(row):
        return None
    url, end_url, page_title, article_title = (value.strip() for value in row)
    if not url:
        return None
    return URLRecord(
        url=url,
        end_url=end_url or url,
        page_title=page_title,
        article_title=article_title,
    )


def load_cache(
    path: Path,
    log: Optional[logging.Logger] = None,
) -> Mapping[str, URLRecord]:
    """Load rows with at least one title from a previous run's output.

    Never raises: a missing or unreadable file results in an empty cache and
    malformed rows are skipped individually. The returned mapping is
    read-only so it can be shared between worker threads as is.
    """
    log = log or logger
    path = Path(path)
    if not path.is_file():
        return EMPTY_CACHE

    records: Dict[str, URLRecord] = {}
    skipped = 0
    try:
        with open(path, newline="", encoding="utf-8", errors="surrogateescape") as handle:
            reader = csv.reader(handle)
            header = next(reader, None)
            if header is None:
                return EMPTY_CACHE
            if tuple(col.strip() for col in header) != CSV_HEADER:
                log.warning("Ignoring cache %s: unexpected header %s", path, header)
                return EMPTY_CACHE
            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    break
                except csv.Error as exc:
                    log.debug("Skipping malformed row in %s: %s", path, exc)
                    skipped += 1
                    continue
                record = _parse_row(row)
                if record is None:
                    skipped += 1
                    continue
                if record.has_title:
                    records[record.url] = record
    except OSError as exc:
        log.warning("Unable to read cache %s: %s", path, exc)
        return EMPTY_CACHE

    log.info("Loaded %d cached URLs from %s (%d rows skipped)", len(records), path, skipped)
    return MappingProxyType(records)


class CSVWriter:
    """Write records to a temporary file, moved over the output on commit.

    The previous output doubles as the cache, so it is only replaced once the
    whole run has succeeded.
    """

    def __init__(self, output_path: Path) -> None:
        self.output_path = Path(output_path)
        self._handle = None
        self._writer = None
        self._tmp_path: Optional[Path] = None
        self.rows_written = 0

    def __enter__(self) -> "CSVWriter":
        directory = self.output_path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.output_path.name}.",
            suffix=".tmp",
            dir=str(directory),
        )
        self._tmp_path = Path(tmp_name)
        self._handle = os.fdopen(fd, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._handle)
        self._writer.writerow(CSV_HEADER)
        return self

    def write(self, record: URLRecord) -> None:
        self._writer.writerow(record.as_row())
        self.rows_written += 1

    def write_all(self, records: Iterable[URLRecord]) -> None:
        for record in records:
            self.write(record)

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self._handle.close()
        finally:
            if exc_type is None:
                os.chmod(self._tmp_path, _output_mode(self.output_path))
                os.replace(self._tmp_path, self.output_path)
            else:
                self._tmp_path.unlink(missing_ok=True)
