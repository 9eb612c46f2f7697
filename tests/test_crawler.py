import csv
import tempfile
import unittest
from pathlib import Path

import requests

from title_grabber.config import GrabberConfig
from title_grabber.crawler import TitleGrabber, dispatch
from title_grabber.fetcher import Fetcher
from title_grabber.models import GrabSummary, URLRecord
from title_grabber.pool import WorkerPool
from tests.fakes import FakeResponse, FakeSession, html_page


def read_rows(path):
    with open(path, newline="", encoding="utf-8") as handle:
        return list(csv.DictReader(handle))


class GrabberTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)
        self.output = self.dir / "out.csv"
        self.session = FakeSession()

    def tearDown(self):
        self._tmp.cleanup()

    def write_input(self, name, text):
        path = self.dir / name
        path.write_text(text, encoding="utf-8")
        return path

    def make_grabber(self, *inputs, max_retries=2, max_threads=4):
        config = GrabberConfig(
            input_paths=inputs,
            output_path=self.output,
            max_retries=max_retries,
            max_threads=max_threads,
        )
        fetcher = Fetcher(config, session_factory=lambda: self.session, sleep=lambda _: None)
        return TitleGrabber(config, fetcher=fetcher)


class TestTitleGrabber(GrabberTestCase):
    def test_end_to_end_example(self):
        url = "https://example.com/page1"
        self.session.route(url, FakeResponse(url, "<html><head><title> Foo  Bar </title></head><body>hi</body></html>"))
        inputs = self.write_input("urls.txt", "see https://example.com/page1 thanks\n")

        summary = self.make_grabber(inputs).write_csv()

        self.assertEqual(
            read_rows(self.output),
            [{"url": url, "end_url": url, "page_title": "Foo Bar", "article_title": ""}],
        )
        self.assertEqual((summary.cached, summary.fetched, summary.failed), (0, 1, 0))
        self.assertGreaterEqual(self.session.closed, 1)

    def test_lines_without_urls_produce_no_rows(self):
        inputs = self.write_input("urls.txt", "nothing here\n\nftp://not-http.example/\n")
        summary = self.make_grabber(inputs).write_csv()
        self.assertEqual(read_rows(self.output), [])
        self.assertEqual(summary.submitted, 0)
        self.assertEqual(self.session.calls, [])

    def test_redirects_set_end_url(self):
        self.session.route("https://sho.rt/a", FakeResponse("https://example.com/final", html_page("Final")))
        inputs = self.write_input("urls.txt", "https://sho.rt/a\n")
        self.make_grabber(inputs).write_csv()
        row = read_rows(self.output)[0]
        self.assertEqual((row["url"], row["end_url"], row["page_title"]), ("https://sho.rt/a", "https://example.com/final", "Final"))

    def test_cached_rows_are_reused_without_requests(self):
        self.output.write_text(
            "url,end_url,page_title,article_title\n"
            "https://cached.example/,https://cached.example/home,Cached,Heading\n"
            "https://untitled.example/,https://untitled.example/,,\n",
            encoding="utf-8",
        )
        self.session.route("https://untitled.example/", FakeResponse("https://untitled.example/", html_page("Now titled")))
        inputs = self.write_input("urls.txt", "https://cached.example/\nhttps://untitled.example/\n")

        summary = self.make_grabber(inputs).write_csv()

        rows = read_rows(self.output)
        self.assertEqual(rows[0], {
            "url": "https://cached.example/",
            "end_url": "https://cached.example/home",
            "page_title": "Cached",
            "article_title": "Heading",
        })
        self.assertEqual(rows[1]["page_title"], "Now titled")
        self.assertEqual(self.session.calls_for("https://cached.example/"), 0)
        self.assertEqual(self.session.calls_for("https://untitled.example/"), 1)
        self.assertEqual((summary.cached, summary.fetched), (1, 1))

    def test_cached_rows_keep_scan_order(self):
        self.output.write_text(
            "url,end_url,page_title,article_title\n"
            "https://b.example/,https://b.example/,B,\n"
            "https://a.example/,https://a.example/,A,\n",
            encoding="utf-8",
        )
        self.session.route("https://new.example/", FakeResponse("https://new.example/", html_page("New")))
        inputs = self.write_input("urls.txt", "https://a.example/\nhttps://new.example/\nhttps://b.example/\n")
        self.make_grabber(inputs).write_csv()
        self.assertEqual(
            [row["url"] for row in read_rows(self.output)],
            ["https://a.example/", "https://b.example/", "https://new.example/"],
        )

    def test_failed_urls_are_skipped_and_retried_next_run(self):
        good, bad, missing = "https://ok.example/", "https://down.example/", "https://gone.example/"
        self.session.route(good, FakeResponse(good, html_page("OK")))
        self.session.route(bad, requests.ConnectionError("refused"))
        self.session.route(missing, FakeResponse(missing, status_code=404))
        inputs = self.write_input("urls.txt", f"{good}\n{bad}\n{missing}\n")

        summary = self.make_grabber(inputs, max_retries=2).write_csv()

        self.assertEqual([row["url"] for row in read_rows(self.output)], [good])
        self.assertEqual(self.session.calls_for(bad), 3)
        self.assertEqual(self.session.calls_for(missing), 1)
        self.assertEqual((summary.submitted, summary.fetched, summary.failed), (3, 1, 2))

        self.session.route(bad, FakeResponse(bad, html_page("Back up")))
        self.make_grabber(inputs).write_csv()
        self.assertEqual(self.session.calls_for(good), 1)
        self.assertEqual(sorted(row["url"] for row in read_rows(self.output)), [bad, good])

    def test_success_on_final_attempt_yields_row(self):
        url = "https://flaky.example/"
        self.session.route(url, [requests.Timeout("slow"), requests.Timeout("slow"), FakeResponse(url, html_page("Finally"))])
        inputs = self.write_input("urls.txt", f"{url}\n")
        self.make_grabber(inputs, max_retries=2).write_csv()
        self.assertEqual(read_rows(self.output)[0]["page_title"], "Finally")
        self.assertEqual(self.session.calls_for(url), 3)

    def test_each_url_written_once_across_files(self):
        url = "https://dup.example/"
        self.session.route(url, FakeResponse(url, html_page("Dup")))
        first = self.write_input("a.txt", f"{url}\n{url} again\n")
        second = self.write_input("b.txt", f"again: {url}\n")
        self.make_grabber(first, second).write_csv()
        self.assertEqual(len(read_rows(self.output)), 1)
        self.assertEqual(self.session.calls_for(url), 1)

    def test_non_html_response_has_empty_titles(self):
        url = "https://files.example/report.pdf"
        self.session.route(url, FakeResponse(url, b"%PDF-1.4", headers={"Content-Type": "application/pdf"}))
        inputs = self.write_input("urls.txt", f"{url}\n")
        self.make_grabber(inputs).write_csv()
        self.assertEqual(
            read_rows(self.output),
            [{"url": url, "end_url": url, "page_title": "", "article_title": ""}],
        )

    def test_permalink_page_gets_composite_end_url(self):
        short = "https://sho.rt/tweet"
        tweet = "https://twitter.com/carol/status/999"
        body = """
        <div class="permalink-inner permalink-tweet-container">
          <div class="js-tweet-text-container"><p>
            <a href="/alice/status/2">one</a> <a href="/bob/status/1">two</a> <a href="/alice/status/2">dup</a>
          </p></div>
        </div>
        """
        self.session.route(short, FakeResponse(tweet, html_page("Carol on Twitter", body)))
        inputs = self.write_input("urls.txt", f"{short}\n")
        self.make_grabber(inputs).write_csv()
        row = read_rows(self.output)[0]
        self.assertEqual(row["end_url"], "https://twitter.com/alice/status/2|https://twitter.com/bob/status/1")
        self.assertEqual(row["page_title"], "Carol on Twitter")

    def test_missing_input_file_aborts_and_keeps_previous_output(self):
        self.output.write_text("url,end_url,page_title,article_title\n", encoding="utf-8")
        grabber = self.make_grabber(self.dir / "missing.txt")
        self.assertIs(grabber.fetcher.session, self.session)
        with self.assertRaises(OSError):
            grabber.write_csv()
        self.assertEqual(self.session.closed, 1)
        self.assertEqual(self.output.read_text(encoding="utf-8"), "url,end_url,page_title,article_title\n")


class TestDispatch(unittest.TestCase):
    def test_counts_and_ordering(self):
        cache = {"https://c/": URLRecord("https://c/", "https://c/", "C", "")}
        summary = GrabSummary()

        def process(url):
            return None if url == "https://fail/" else URLRecord(url, url, "T", "")

        with WorkerPool(2) as pool:
            records = list(dispatch(
                ["https://c/", "https://x/", "https://fail/", "https://c/"],
                cache,
                pool,
                process,
                summary,
            ))

        self.assertEqual(records[0].url, "https://c/")
        self.assertEqual([r.url for r in records[1:]], ["https://x/"])
        self.assertEqual((summary.cached, summary.submitted, summary.fetched, summary.failed), (1, 2, 1, 1))


if __name__ == "__main__":
    unittest.main()
