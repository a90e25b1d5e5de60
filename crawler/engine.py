"""
FILE DESCRIPTION: Crawl orchestration. Runs rounds of attempts over the unfinished frontier
on a thread pool and applies both fetch strategies to every entry.
KEY FUNCTIONS/CLASSES: CrawlDispatcher
"""

import threading
from concurrent.futures import ThreadPoolExecutor, wait

from crawler.core import logger
from crawler.errors import FetchCancelled, FetchError
from crawler.models import CancellationToken, CrawlOptions, ErrorKind, RequestError
from crawler.processor import LinkExtractor


class CrawlDispatcher:
    """
    FLOW: Seeds the entry store -> Snapshots unfinished entries -> Fans out one attempt per entry
    on the pool -> Waits for the whole round -> Repeats until nothing is unfinished or the
    token is cancelled.

    Each attempt runs the strategies in order (plain, then rendered). An entry finishes once an
    attempt produced any 2xx, or once it used up max_retry_attempts + 1 attempts.
    """

    def __init__(self, options: CrawlOptions, store, statistics, fetchers):
        self.options = options
        self.store = store
        self.statistics = statistics
        self.fetchers = list(fetchers)
        self.rounds = 0

    def log(self, level, msg):
        getattr(logger, level)(msg, extra={'context': threading.current_thread().name})

    def seed(self) -> int:
        added = 0
        for url in self.options.urls:
            if self.store.try_add(url):
                added += 1
            else:
                self.log("warning", f"Seed skipped (duplicate or invalid): {url}")
        return added

    def run(self, token: CancellationToken = None) -> int:
        """Blocks until the crawl ends. Returns the number of rounds executed."""
        token = token or CancellationToken()
        self.seed()

        with ThreadPoolExecutor(max_workers=self.options.max_workers,
                                thread_name_prefix="Worker") as pool:
            while not token.is_cancelled:
                batch = self.store.unfinished()
                if not batch:
                    break
                self.rounds += 1
                self.log("info", f"Round {self.rounds}: {len(batch)} entries")
                futures = [pool.submit(self._attempt, entry, token) for entry in batch]
                wait(futures)
                for future in futures:
                    # _attempt converts fetch failures itself; anything here is a bug in the loop
                    if future.exception() is not None:
                        self.log("error", f"Attempt crashed: {future.exception()!r}")

        if token.is_cancelled:
            self.log("warning", f"Crawl cancelled after {self.rounds} round(s)")
        else:
            self.log("info", f"Crawl finished after {self.rounds} round(s)")
        return self.rounds

    def _attempt(self, entry, token: CancellationToken):
        if token.is_cancelled:
            return

        attempt = entry.begin_attempt()
        succeeded = False

        for fetcher in self.fetchers:
            if token.is_cancelled:
                break
            result = self._run_strategy(fetcher, entry, token)
            if result is not None and result.is_success:
                succeeded = True

        if succeeded or attempt >= self.options.max_attempts:
            entry.finish()
            self.log("debug", f"Finished {entry.address} after {attempt} attempt(s)")

    def _run_strategy(self, fetcher, entry, token):
        """Runs one fetch; records its result or error. Returns the FetchResult or None."""
        strategy = fetcher.strategy
        try:
            outcome = fetcher.fetch(entry.address, token)
        except FetchCancelled:
            return None
        except FetchError as e:
            self._record_error(entry, RequestError(
                kind=e.kind, message=e.message, strategy=strategy, error_type=e.label,
            ), e.label)
            self.log("warning", f"[{strategy.value}] {entry.address}: {e.message}")
            return None
        except Exception as e:
            label = type(e).__name__.upper()
            self._record_error(entry, RequestError(
                kind=ErrorKind.UNCLASSIFIED, message=str(e), strategy=strategy,
                error_type=type(e).__name__,
            ), label)
            self.log("error", f"[{strategy.value}] {entry.address}: unexpected {type(e).__name__}: {e}")
            return None

        result = outcome.result
        entry.responses.append(result)
        self.statistics.record_timing(result.elapsed_ms)
        self.statistics.record_type(result.label)

        try:
            added = LinkExtractor.discover_outcome(self.store, entry.address, outcome, self.options.scope)
        except Exception as e:
            self.log("error", f"[{strategy.value}] link extraction failed on {entry.address}: {e}")
            added = []

        if added:
            self.log("debug", f"[{strategy.value}] {entry.address}: queued {len(added)} new address(es)")
        return result

    def _record_error(self, entry, error: RequestError, label: str):
        entry.errors.append(error)
        self.statistics.record_type(label)
