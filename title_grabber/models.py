"""Data models used throughout the grabber pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

CSV_HEADER = ("url", "end_url", "page_title", "article_title")


@dataclass(frozen=True)
class URLRecord:
    """Resolved titles for a single input URL."""

    url: str
    end_url: str
    page_title: str = ""
    article_title: str = ""

    @property
    def has_title(self) -> bool:
        return bool(self.page_title or self.article_title)

    def as_row(self) -> Tuple[str, str, str, str]:
        return (self.url, self.end_url, self.page_title, self.article_title)


@dataclass
class GrabSummary:
    """Counters describing a finished run."""

    output_path: Optional[Path] = None
    cached: int = 0
    submitted: int = 0
    fetched: int = 0
    failed: int = 0

    @property
    def written(self) -> int:
        return self.cached + self.fetched
