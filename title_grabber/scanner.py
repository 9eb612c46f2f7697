"""Input scanning: turn text files into a stream of candidate URLs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional

from .utils import find_url

logger = logging.getLogger("title_grabber")


def scan_lines(lines: Iterable[str]) -> Iterator[str]:
    """Yield at most one URL per line, in line order."""
    for line in lines:
        url = find_url(line)
        if url:
            yield url


def scan_files(
    paths: Iterable[Path],
    log: Optional[logging.Logger] = None,
) -> Iterator[str]:
    """Yield candidate URLs from each file in order.

    A file that cannot be opened raises ``OSError`` and aborts the scan.
    """
    log = log or logger
    for path in paths:
        log.info("FILE: %s", path)
        with open(path, encoding="utf-8", errors="replace") as handle:
            yield from scan_lines(handle)
