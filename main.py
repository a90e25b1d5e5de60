import sys
import signal
import argparse
from pathlib import Path
from urllib.parse import urlparse

from crawler.core import (
    APP_NAME,
    APP_VERSION,
    MAX_RETRY_ATTEMPTS,
    MAX_WORKERS,
    RENDERING_ENGINE,
    REQUEST_TIMEOUT,
    logger,
    setup_logger,
)
from crawler.engine import CrawlDispatcher
from crawler.errors import BrowserLaunchError
from crawler.js_engine import BrowserManager, RenderedFetcher
from crawler.live_view import LiveView
from crawler.metrics import CrawlStatistics, render_summary
from crawler.models import CancellationToken, CrawlOptions, RenderingEngine, ScopeMode
from crawler.processor import PageFetcher
from crawler.reporter import JsonFileSink, Reporter, default_report_name
from frontier.memory_storage import InMemoryEntryStore

EXIT_OK = 0
EXIT_INVALID_ARGS = 2
EXIT_BROWSER_LAUNCH = 3
EXIT_CANCELLED = 130


class CrawlSession:
    """
    Owns one crawl run: entry store, statistics, browser and cancellation token.
    Starts the browser, runs the dispatcher (with the live view if enabled),
    then writes the report and prints the summary.
    """
    def __init__(self, options: CrawlOptions, token=None, browser=None, store=None, fetchers=None):
        self.options = options
        self.token = token or CancellationToken()
        self.store = store or InMemoryEntryStore()
        self.statistics = CrawlStatistics()
        self.browser = browser or BrowserManager(options.rendering_engine)
        self.fetchers = fetchers
        self.report_path = None

    def _ctx(self):
        return {'context': 'session'}

    def build_dispatcher(self) -> CrawlDispatcher:
        fetchers = self.fetchers or [
            PageFetcher(self.options.request_timeout),
            RenderedFetcher(self.browser, self.options.request_timeout),
        ]
        return CrawlDispatcher(self.options, self.store, self.statistics, fetchers)

    def run(self, live=True, out=None) -> int:
        try:
            self.browser.start()
        except BrowserLaunchError as e:
            logger.critical(str(e), extra=self._ctx())
            print(f"FATAL: {e}", file=sys.stderr)
            print("Hint: run `playwright install` to download the browser binaries.", file=sys.stderr)
            return EXIT_BROWSER_LAUNCH

        view = LiveView(self.statistics, self.store) if live else None
        if view:
            view.start()
        try:
            self.build_dispatcher().run(self.token)
        finally:
            if view:
                view.stop()
            self.browser.close()

        self.report_path = self.write_report(out)
        finished, total = self.store.counts()
        print(render_summary(self.statistics, finished, total, self.report_path))

        return EXIT_CANCELLED if self.token.is_cancelled else EXIT_OK

    def write_report(self, out=None):
        path = out or Path.cwd() / default_report_name(self.statistics.started)
        try:
            return Reporter(self.store).write(JsonFileSink(path))
        except OSError as e:
            logger.error(f"Report could not be written to {path}: {e}", extra=self._ctx())
            print(f"REPORT_ERROR: {e}", file=sys.stderr)
            return None


def seed_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise argparse.ArgumentTypeError(f"not an absolute http(s) URL: {value!r}")
    return value


def non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return number


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def non_negative_float(value: str) -> float:
    number = float(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="focus",
        description=f"{APP_NAME} {APP_VERSION}: crawl seed sites with a plain and a rendered fetch per address.",
    )
    parser.add_argument("urls", nargs="+", type=seed_url, metavar="URL", help="Seed addresses")
    parser.add_argument("-r", "--retries", type=non_negative_int, default=MAX_RETRY_ATTEMPTS,
                        help="Extra attempts for addresses that never returned a 2xx")
    parser.add_argument("-t", "--timeout", type=non_negative_float, default=REQUEST_TIMEOUT,
                        help="Request timeout in seconds (0 = no timeout)")
    parser.add_argument("-w", "--workers", type=positive_int, default=MAX_WORKERS,
                        help="Maximum concurrent attempts")
    parser.add_argument("-e", "--engine", choices=[e.value for e in RenderingEngine],
                        default=RENDERING_ENGINE, help="Headless browser used for rendered fetches")
    parser.add_argument("--scope", choices=[s.value for s in ScopeMode], default=ScopeMode.ORIGIN.value,
                        help="origin: same scheme/host/port; path: also under the page's directory")
    parser.add_argument("--out", default=None, help="Report file (default: queue-<started>.json)")
    parser.add_argument("--log-file", default=None, help="Write logs to this file")
    parser.add_argument("--no-live", action="store_true", help="Disable the live view")
    return parser


def options_from_args(args) -> CrawlOptions:
    seeds = list(dict.fromkeys(args.urls))
    return CrawlOptions(
        urls=seeds,
        max_retry_attempts=args.retries,
        request_timeout=args.timeout,
        max_workers=args.workers,
        rendering_engine=RenderingEngine(args.engine),
        scope=ScopeMode(args.scope),
    )


def install_interrupt_handler(token: CancellationToken):
    def handle_interrupt(signum, frame):
        if not token.is_cancelled:
            logger.warning("Interrupt received. Finishing in-flight requests...", extra={'context': 'session'})
        token.cancel()
    signal.signal(signal.SIGINT, handle_interrupt)


def main(argv=None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_INVALID_ARGS if e.code else EXIT_OK

    try:
        options = options_from_args(args)
    except ValueError as e:
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return EXIT_INVALID_ARGS

    live = not args.no_live
    setup_logger(log_file=args.log_file, console=not live)

    token = CancellationToken()
    install_interrupt_handler(token)

    session = CrawlSession(options, token=token)
    return session.run(live=live, out=args.out)


if __name__ == "__main__":
    sys.exit(main())
