"""High-level orchestration: scan inputs, dispatch work, write output."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Iterator, Mapping, Optional

from .cache import CSVWriter, load_cache
from .config import GrabberConfig
from .content import extract_titles, is_html_response, parse_html
from .fetcher import Fetcher
from .models import GrabSummary, URLRecord
from .permalinks import PermalinkResolver
from .pool import WorkerPool
from .scanner import scan_files

logger = logging.getLogger("title_grabber")


def dispatch(
    candidates: Iterable[str],
    cache: Mapping[str, URLRecord],
    pool: WorkerPool[URLRecord],
    process: Callable[[str], Optional[URLRecord]],
    summary: Optional[GrabSummary] = None,
) -> Iterator[URLRecord]:
    """Serve cached URLs inline and farm the rest out to ``pool``.

    Cached records come out in scan order as the candidates are consumed;
    computed records follow once the pool has finished, in completion order.
    Each URL is handled once no matter how often it appears in the input.
    """
    summary = summary if summary is not None else GrabSummary()
    seen = set()
    for url in candidates:
        if url in seen:
            continue
        seen.add(url)
        cached = cache.get(url)
        if cached is not None:
            summary.cached += 1
            yield cached
            continue
        pool.submit(process, url)

    summary.submitted = pool.submitted
    for record in pool.join():
        if record is None:
            summary.failed += 1
            continue
        summary.fetched += 1
        yield record


class TitleGrabber:
    """Fetch titles for every URL in the configured input files."""

    def __init__(
        self,
        config: GrabberConfig,
        *,
        fetcher: Optional[Fetcher] = None,
        resolver: Optional[PermalinkResolver] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.log = log or logger
        self.fetcher = fetcher or Fetcher(config, log=self.log)
        self.resolver = resolver or PermalinkResolver(self.fetcher, log=self.log)

    def process_url(self, url: str) -> Optional[URLRecord]:
        """Fetch one URL and build its record, or ``None`` if the fetch failed."""
        resp = self.fetcher.get(url)
        if resp is None:
            return None
        try:
            page_url = resp.url or url
            if not is_html_response(resp.headers):
                self.log.debug("Skipping title extraction for %s (%s)", url, resp.headers.get("Content-Type"))
                return URLRecord(url=url, end_url=page_url)
            soup = parse_html(resp.content)
        finally:
            resp.close()
        page_title, article_title = extract_titles(soup)
        end_url = self.resolver.end_url(soup, page_url)
        self.log.debug("%s -> %s | %r | %r", url, end_url, page_title, article_title)
        return URLRecord(
            url=url,
            end_url=end_url,
            page_title=page_title,
            article_title=article_title,
        )

    def grab(
        self,
        urls: Iterable[str],
        cache: Mapping[str, URLRecord],
        summary: Optional[GrabSummary] = None,
    ) -> Iterator[URLRecord]:
        """Yield a record for every distinct URL that could be resolved."""
        with WorkerPool(self.config.max_threads, log=self.log) as pool:
            yield from dispatch(urls, cache, pool, self.process_url, summary)

    def write_csv(self) -> GrabSummary:
        """Run the whole pipeline and replace the output file with the result.

        File-system errors (an unreadable input, an unwritable output)
        propagate to the caller; per-URL failures never do.
        """
        start = time.perf_counter()
        output_path = self.config.output_path
        cache = load_cache(output_path, log=self.log)
        summary = GrabSummary(output_path=output_path)

        try:
            with CSVWriter(output_path) as writer:
                urls = scan_files(self.config.input_paths, log=self.log)
                writer.write_all(self.grab(urls, cache, summary))
        finally:
            self.fetcher.close()

        elapsed = time.perf_counter() - start
        self.log.info(
            "Wrote %d rows to %s in %.2fs (%d cached, %d fetched, %d failed)",
            writer.rows_written,
            output_path,
            elapsed,
            summary.cached,
            summary.fetched,
            summary.failed,
        )
        return summary
