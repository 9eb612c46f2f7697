"""Utility helpers for URL matching and string normalization."""

from __future__ import annotations

import re
from typing import Optional

URL_PATTERN = re.compile(r"https?://\S+")
WHITESPACE_RUN_PATTERN = re.compile(r"\s{2,}")


def find_url(line: str) -> Optional[str]:
    """Return the first URL-shaped substring of ``line``.

    Only the first match counts; any further URLs on the same line are
    ignored.
    """
    match = URL_PATTERN.search(line)
    return match.group(0) if match else None


def normalize_whitespace(value: Optional[str]) -> str:
    """Trim, then collapse runs of two or more whitespace characters to one space.

    A lone whitespace character, newline or tab included, is left as is.
    """
    if not value:
        return ""
    return WHITESPACE_RUN_PATTERN.sub(" ", value.strip())
