"""HTTP fetching with timeouts, a redirect limit, and linear backoff retries."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

import requests

from .config import GrabberConfig

logger = logging.getLogger("title_grabber")

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

RETRYABLE_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
    requests.exceptions.ContentDecodingError,
)


class RetryableStatus(Exception):
    """A 5xx response that is worth another attempt."""

    def __init__(self, response: requests.Response) -> None:
        super().__init__(response.status_code)
        self.response = response


class Fetcher:
    """Thin wrapper around ``requests`` applying the retry policy.

    Sessions are kept per thread, so a single ``Fetcher`` can be shared by
    every worker in the pool.
    """

    def __init__(
        self,
        config: GrabberConfig,
        log: Optional[logging.Logger] = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.timeout = (config.connect_timeout, config.read_timeout)
        self.max_retries = config.max_retries
        self.log = log or logger
        self._session_factory = session_factory
        self._sleep = sleep
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._session_factory()
            session.headers.update(DEFAULT_HEADERS)
            session.max_redirects = self.config.max_redirects
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _request(self, url: str, stream: bool) -> requests.Response:
        resp = self.session.get(
            url,
            timeout=self.timeout,
            allow_redirects=True,
            stream=stream,
        )
        if resp.status_code >= 500:
            resp.close()
            raise RetryableStatus(resp)
        return resp

    def get(self, url: str, stream: bool = False) -> Optional[requests.Response]:
        """Fetch ``url``, retrying transient failures.

        Makes at most ``max_retries + 1`` attempts and sleeps ``n + 1``
        seconds before retry ``n + 1``. Returns ``None`` on a terminal
        failure (4xx, too many redirects, bad URL) or once the retry budget
        is exhausted.
        """
        attempt = 0
        while True:
            try:
                resp = self._request(url, stream)
            except (RetryableStatus, *RETRYABLE_ERRORS) as exc:
                reason = exc.response.status_code if isinstance(exc, RetryableStatus) else exc
                if attempt >= self.max_retries:
                    self.log.warning("GET %s - [%s] - giving up after %d attempts", url, reason, attempt + 1)
                    return None
                attempt += 1
                self.log.warning("GET %s [%s] - Retry: %d", url, reason, attempt)
                self._sleep(attempt)
                continue
            except requests.RequestException as exc:
                self.log.warning("GET %s - [%s]", url, exc)
                return None

            if resp.status_code >= 400:
                self.log.warning("GET %s - [%s]", url, resp.status_code)
                resp.close()
                return None
            self.log.info("GET %s - [%s]", url, resp.status_code)
            return resp

    def resolve(self, url: str) -> Optional[str]:
        """Follow redirects for ``url`` and return where they end up."""
        resp = self.get(url, stream=True)
        if resp is None:
            return None
        final_url = resp.url
        resp.close()
        return final_url

    def close(self) -> None:
        """Close every per-thread session created so far."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()
