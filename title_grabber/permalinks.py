"""Canonicalization of links embedded in social permalink pages.

A link-shortener landing page often redirects to a single social post whose
real content is one or more links to other posts. For those pages the
``end_url`` of a record should point at what the post references rather
than at the post itself, so the embedded links are resolved, filtered down
to genuine status permalinks and joined into a single composite value.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Pattern, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from .fetcher import Fetcher

logger = logging.getLogger("title_grabber")

END_URL_SEPARATOR = "|"
ABSOLUTE_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


@dataclass(frozen=True)
class PermalinkSite:
    """Where a social site keeps its permalinks and how they look."""

    hosts: FrozenSet[str]
    base_url: str
    container_selector: str
    link_selectors: Tuple[str, ...]
    status_pattern: Pattern[str]
    link_attributes: Tuple[str, ...] = ("data-expanded-url", "href")

    def owns(self, url: str) -> bool:
        return (urlparse(url).hostname or "").lower() in self.hosts

    def is_status_path(self, path: str) -> bool:
        return bool(self.status_pattern.search(path))


TWITTER = PermalinkSite(
    hosts=frozenset({"twitter.com", "www.twitter.com", "mobile.twitter.com"}),
    base_url="https://twitter.com",
    container_selector=".permalink-inner.permalink-tweet-container",
    link_selectors=(".js-tweet-text-container a", ".QuoteTweet-container a"),
    status_pattern=re.compile(r"/status/\d+$"),
)


def _path_segments(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def _dedupe(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


class PermalinkResolver:
    """Rewrite ``end_url`` for pages hosted on a permalink site."""

    def __init__(
        self,
        fetcher: Fetcher,
        site: PermalinkSite = TWITTER,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.fetcher = fetcher
        self.site = site
        self.log = log or logger

    def container(self, soup: BeautifulSoup, page_url: str) -> Optional[Tag]:
        """The permalink container, or ``None`` if this is not such a page."""
        if not self.site.owns(page_url):
            return None
        return soup.select_one(self.site.container_selector)

    def collect_links(self, container: Tag) -> List[str]:
        """Non-empty link targets from the post text and quoted post."""
        targets: List[str] = []
        for selector in self.site.link_selectors:
            for anchor in container.select(selector):
                target = ""
                for attribute in self.site.link_attributes:
                    target = (anchor.get(attribute) or "").strip()
                    if target:
                        break
                if target:
                    targets.append(target)
        return _dedupe(targets)

    def _follow(self, candidate: str) -> Optional[str]:
        """Resolve absolute candidates over HTTP; ``None`` drops the candidate."""
        if not ABSOLUTE_URL_PATTERN.match(candidate):
            return candidate
        resolved = self.fetcher.resolve(candidate)
        if resolved is None:
            self.log.debug("Keeping unresolved link %s", candidate)
            return candidate
        if self.site.owns(resolved) and not self.site.is_status_path(urlparse(resolved).path):
            self.log.debug("Dropping %s: resolved to non-status page %s", candidate, resolved)
            return None
        return resolved

    def _absolutize(self, candidate: str) -> Optional[str]:
        """Absolute http(s) URL for ``candidate``; relative ones join the base origin."""
        try:
            parsed = urlparse(candidate)
            if not parsed.scheme:
                if not parsed.netloc and not parsed.path:
                    return None
                parsed = urlparse(urljoin(self.site.base_url + "/", candidate))
        except ValueError:
            return None
        if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
            return None
        return parsed.geturl()

    def _keep(self, url: str) -> bool:
        if not self.site.owns(url):
            return True
        path = urlparse(url).path
        if len(_path_segments(path)) <= 1:
            return True
        return self.site.is_status_path(path)

    def canonical_links(self, container: Tag) -> List[str]:
        """Resolved, filtered, sorted and de-duplicated permalinks."""
        survivors: List[str] = []
        for candidate in self.collect_links(container):
            followed = self._follow(candidate)
            if followed is None:
                continue
            absolute = self._absolutize(followed)
            if absolute is None:
                self.log.debug("Dropping unparsable link %s", followed)
                continue
            if self._keep(absolute):
                survivors.append(absolute)
        return sorted(set(survivors))

    def end_url(self, soup: BeautifulSoup, page_url: str) -> str:
        """Composite of embedded permalinks, falling back to ``page_url``."""
        container = self.container(soup, page_url)
        if container is None:
            return page_url
        joined = END_URL_SEPARATOR.join(self.canonical_links(container))
        return joined or page_url
