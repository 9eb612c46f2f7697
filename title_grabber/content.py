"""HTML parsing and title extraction utilities."""

from __future__ import annotations

from typing import Mapping, Optional, Tuple, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from .utils import normalize_whitespace

HTML_CONTENT_TYPES = ("html", "xml")
_ARTICLE_HEADING_SELECTORS = ("article h1", "[role=article] h1")


def is_html_response(headers: Mapping[str, str]) -> bool:
    """True unless the response declares a non-HTML content type."""
    content_type = (headers.get("Content-Type") or "").lower()
    if not content_type:
        return True
    return any(kind in content_type for kind in HTML_CONTENT_TYPES)


def parse_html(markup: Union[bytes, str]) -> BeautifulSoup:
    """Parse raw markup; bytes let the page's own charset declaration win."""
    return BeautifulSoup(markup, "html.parser")


def _tag_text(tag: Optional[Tag]) -> str:
    if tag is None:
        return ""
    return normalize_whitespace(tag.get_text(" ", strip=True))


def _first_article_heading(soup: BeautifulSoup) -> Optional[Tag]:
    """First h1 inside an article container, in document order."""
    return soup.select_one(", ".join(_ARTICLE_HEADING_SELECTORS))


def extract_page_title(soup: BeautifulSoup) -> str:
    title = soup.find("title")
    if title is None:
        return ""
    return normalize_whitespace(title.get_text())


def extract_article_title(soup: BeautifulSoup) -> str:
    heading = _first_article_heading(soup) or soup.find("h1")
    return _tag_text(heading)


def extract_titles(soup: BeautifulSoup) -> Tuple[str, str]:
    """Return ``(page_title, article_title)``; either may be empty."""
    return extract_page_title(soup), extract_article_title(soup)
