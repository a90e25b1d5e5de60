"""
Verification scenarios for the crawl dispatcher and its attempt procedure
"""

import threading
import unittest

from crawler.engine import CrawlDispatcher
from crawler.errors import FetchCancelled, FetchTimeoutError, TransportError
from crawler.metrics import CrawlStatistics
from crawler.models import (
    CancellationToken,
    CrawlOptions,
    ErrorKind,
    FetchOutcome,
    FetchResult,
    FetchStrategy,
)
from crawler.url_utils import status_description
from frontier.memory_storage import InMemoryEntryStore

ROOT = "https://example.com/"
ABOUT = "https://example.com/about"


def outcome(strategy, status=200, html=None, content_type="text/html", elapsed_ms=120, redirect=None, references=None):
    result = FetchResult(
        strategy=strategy,
        status_code=status,
        status_description=status_description(status),
        elapsed_ms=elapsed_ms,
        content_type=content_type,
    )
    return FetchOutcome(result=result, html=html, references=list(references or []), redirect=redirect)


class ScriptedFetcher:
    """Fetcher double: `handler(address, call_number)` returns an outcome or raises."""

    def __init__(self, strategy, handler):
        self.strategy = strategy
        self.handler = handler
        self.calls = []
        self._lock = threading.Lock()

    def fetch(self, address, token=None):
        if token is not None and token.is_cancelled:
            raise FetchCancelled(address)
        with self._lock:
            self.calls.append(address)
            number = sum(1 for c in self.calls if c == address)
        return self.handler(address, number)


class TestCrawlDispatcher(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryEntryStore()
        self.stats = CrawlStatistics()

    def make_dispatcher(self, plain, rendered, seeds=(ROOT,), **kwargs):
        options = CrawlOptions(urls=list(seeds), **kwargs)
        self.plain = ScriptedFetcher(FetchStrategy.PLAIN, plain)
        self.rendered = ScriptedFetcher(FetchStrategy.RENDERED, rendered)
        return CrawlDispatcher(options, self.store, self.stats, [self.plain, self.rendered])

    def test_discovered_page_runs_in_next_round(self):
        """Scenario: seed returns 200 HTML linking to /about; /about is crawled one round later."""
        def plain(address, number):
            if address == ROOT:
                return outcome(FetchStrategy.PLAIN, html='<a href="/about">About</a>')
            return outcome(FetchStrategy.PLAIN, html="<p>About us</p>")

        def rendered(address, number):
            return outcome(FetchStrategy.RENDERED)

        dispatcher = self.make_dispatcher(plain, rendered, max_retry_attempts=0)
        rounds = dispatcher.run(CancellationToken())

        entries = self.store.all()
        self.assertEqual([e.address for e in entries], [ROOT, ABOUT])
        root, about = entries
        self.assertEqual(root.attempts, 1)
        self.assertIsNotNone(root.finished_at)
        self.assertEqual(about.attempts, 1)
        self.assertIsNotNone(about.finished_at)
        self.assertGreaterEqual(about.started_at, root.finished_at)
        self.assertEqual(rounds, 2)

        self.assertEqual(len(root.responses), 2)
        self.assertEqual(self.stats.type_count("200 OK"), 4)
        self.assertEqual(self.stats.total_timed(), 4)

    def test_repeated_timeout_uses_every_attempt(self):
        """Scenario: the plain fetch times out on every attempt with max_retry_attempts=2."""
        def plain(address, number):
            raise FetchTimeoutError(10)

        def rendered(address, number):
            return outcome(FetchStrategy.RENDERED, status=503, content_type=None)

        dispatcher = self.make_dispatcher(plain, rendered, max_retry_attempts=2)
        dispatcher.run(CancellationToken())

        entry = self.store.get(ROOT)
        self.assertEqual(entry.attempts, 3)
        self.assertIsNotNone(entry.finished_at)
        self.assertEqual(len(entry.errors), 3)
        self.assertTrue(all(e.kind == ErrorKind.TIMEOUT for e in entry.errors))
        self.assertTrue(all(e.strategy == FetchStrategy.PLAIN for e in entry.errors))
        self.assertEqual(entry.errors[0].message, "Request timeout after 10 second(s).")
        self.assertEqual(self.stats.type_count("TIMEOUT"), 3)
        self.assertEqual(self.stats.type_count("503 Service Unavailable"), 3)
        # Timeouts never produced a result, so only the rendered calls were timed
        self.assertEqual(self.stats.total_timed(), 3)

    def test_redirect_seen_by_both_strategies_is_inserted_once(self):
        def plain(address, number):
            if address == ROOT:
                return outcome(FetchStrategy.PLAIN, status=301, content_type=None, redirect="/home")
            return outcome(FetchStrategy.PLAIN)

        def rendered(address, number):
            if address == ROOT:
                return outcome(FetchStrategy.RENDERED, status=301, content_type=None,
                               redirect="https://example.com/home", references=["https://example.com/home"])
            return outcome(FetchStrategy.RENDERED)

        dispatcher = self.make_dispatcher(plain, rendered)
        dispatcher.run(CancellationToken())

        self.assertEqual([e.address for e in self.store.all()], [ROOT, "https://example.com/home"])
        self.assertEqual(self.plain.calls.count("https://example.com/home"), 1)

    def test_success_short_circuits_retries(self):
        def plain(address, number):
            return outcome(FetchStrategy.PLAIN, status=500 if number == 1 else 200, content_type=None)

        def rendered(address, number):
            return outcome(FetchStrategy.RENDERED, status=500, content_type=None)

        dispatcher = self.make_dispatcher(plain, rendered, max_retry_attempts=5)
        dispatcher.run(CancellationToken())

        entry = self.store.get(ROOT)
        self.assertEqual(entry.attempts, 2)
        self.assertIsNotNone(entry.finished_at)
        self.assertEqual(len(entry.responses), 4)

    def test_attempt_ceiling(self):
        def failing(address, number):
            return outcome(FetchStrategy.PLAIN, status=500, content_type=None)

        dispatcher = self.make_dispatcher(failing, failing, max_retry_attempts=1)
        rounds = dispatcher.run(CancellationToken())

        entry = self.store.get(ROOT)
        self.assertEqual(entry.attempts, 2)
        self.assertEqual(rounds, 2)
        self.assertIsNotNone(entry.finished_at)
        self.assertEqual(len(self.plain.calls), 2)

    def test_transport_and_unclassified_errors(self):
        def plain(address, number):
            raise TransportError("connection refused", label="ConnectionError")

        def rendered(address, number):
            raise ValueError("unexpected page state")

        dispatcher = self.make_dispatcher(plain, rendered)
        dispatcher.run(CancellationToken())

        entry = self.store.get(ROOT)
        self.assertEqual(entry.attempts, 1)
        self.assertIsNotNone(entry.finished_at)
        transport, unclassified = entry.errors
        self.assertEqual(transport.kind, ErrorKind.TRANSPORT)
        self.assertEqual(transport.error_type, "CONNECTIONERROR")
        self.assertEqual(unclassified.kind, ErrorKind.UNCLASSIFIED)
        self.assertEqual(unclassified.error_type, "ValueError")
        self.assertEqual(self.stats.types(), {"CONNECTIONERROR": 1, "VALUEERROR": 1})
        self.assertEqual(self.stats.total_timed(), 0)

    def test_cancelled_token_leaves_entry_untouched(self):
        dispatcher = self.make_dispatcher(lambda a, n: outcome(FetchStrategy.PLAIN),
                                          lambda a, n: outcome(FetchStrategy.RENDERED))
        token = CancellationToken()
        token.cancel()

        rounds = dispatcher.run(token)

        entry = self.store.get(ROOT)
        self.assertEqual(rounds, 0)
        self.assertEqual(entry.attempts, 0)
        self.assertIsNone(entry.started_at)
        self.assertIsNone(entry.finished_at)
        self.assertEqual(self.plain.calls, [])

    def test_cancel_during_attempt_skips_rendered_fetch(self):
        token = CancellationToken()

        def plain(address, number):
            token.cancel()
            return outcome(FetchStrategy.PLAIN, status=500, content_type=None)

        dispatcher = self.make_dispatcher(plain, lambda a, n: outcome(FetchStrategy.RENDERED),
                                          max_retry_attempts=3)
        dispatcher.run(token)

        entry = self.store.get(ROOT)
        self.assertEqual(entry.attempts, 1)
        self.assertEqual(len(entry.responses), 1)
        self.assertIsNone(entry.finished_at)
        self.assertEqual(self.rendered.calls, [])

    def test_duplicate_seeds_are_inserted_once(self):
        dispatcher = self.make_dispatcher(lambda a, n: outcome(FetchStrategy.PLAIN, content_type=None),
                                          lambda a, n: outcome(FetchStrategy.RENDERED, content_type=None),
                                          seeds=(ROOT, "https://EXAMPLE.com", "https://example.com/#x"))
        dispatcher.run(CancellationToken())
        self.assertEqual(len(self.store), 1)


if __name__ == "__main__":
    unittest.main()
