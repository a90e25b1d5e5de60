"""
FILE DESCRIPTION: Headless browser hub. One render thread runs an asyncio loop that owns Playwright
and a single browser; fetch workers submit render coroutines to that loop and block on the result.
KEY FUNCTIONS/CLASSES: BrowserManager, RenderedFetcher, classify_navigation_error
"""

import asyncio
import re
import threading
import time
from concurrent.futures import CancelledError
from concurrent.futures import TimeoutError as FutureTimeoutError

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from crawler.core import REQUEST_TIMEOUT, logger
from crawler.errors import (
    BrowserLaunchError,
    CrawlerError,
    FetchCancelled,
    FetchTimeoutError,
    RenderSkipped,
    TransportError,
)
from crawler.models import FetchOutcome, FetchResult, FetchStrategy, RenderingEngine
from crawler.processor import LinkExtractor, first_seen_headers, media_type
from crawler.url_utils import LinkUtility, status_description

NET_ERROR_PATTERN = re.compile(r"net::(ERR_[A-Z0-9_]+)")


def classify_navigation_error(error: Exception) -> Exception:
    """
    Maps a Playwright navigation failure onto the crawler's error types.
    Unrecognised failures are returned unchanged.
    """
    message = getattr(error, "message", None) or str(error)
    match = NET_ERROR_PATTERN.search(message)
    if not match:
        return error
    code = match.group(1)
    if code == "ERR_ABORTED":
        return RenderSkipped()
    return TransportError(message.strip().splitlines()[0], label=code)


# === BROWSER MANAGER ===

class RenderRequest:
    def __init__(self, url, timeout, token=None):
        self.url = url
        self.timeout = timeout
        self.token = token

class RenderResult:
    def __init__(self, outcome=None, error=None):
        self.outcome = outcome
        self.error = error

class BrowserManager:
    """
    FLOW: start() spawns the render thread -> The thread builds its event loop, launches one browser
    and signals ready (or the launch failure) -> render() schedules one coroutine per request on that
    loop, so pages navigate side by side -> Each page is scanned for references and closed ->
    close() stops the loop, then the browser and Playwright are shut down on the render thread.
    """
    POLL_INTERVAL = 1.0

    def __init__(self, engine: RenderingEngine = RenderingEngine.CHROMIUM):
        self.engine = RenderingEngine(engine)
        self._loop = None
        self._thread = None
        self._playwright = None
        self._browser = None
        self._ready = threading.Event()
        self._launch_error = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._browser is not None

    def start(self):
        if self.is_running:
            return
        self._ready.clear()
        self._launch_error = None
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._render_loop, daemon=True, name="RenderWorker")
        self._thread.start()
        self._ready.wait()
        if self._launch_error is not None:
            self._thread.join()
            raise BrowserLaunchError(
                f"Could not launch {self.engine.value}: {self._launch_error}"
            ) from self._launch_error

    def close(self, timeout: float = 10.0):
        if not self.is_running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)

    def _render_loop(self):
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._launch())
        except Exception as e:
            self._launch_error = e
            self._loop.close()
            self._ready.set()
            return

        logger.info(f"[JS-ENGINE] {self.engine.value} render worker ready.")
        self._ready.set()
        try:
            self._loop.run_forever()
            self._loop.run_until_complete(self._shutdown())
        except Exception as e:
            logger.critical(f"[JS-ENGINE] Render worker fatal error: {e}", exc_info=True)
        finally:
            self._browser = None
            self._loop.close()
            logger.info("[JS-ENGINE] Render worker stopped.")

    async def _launch(self):
        self._playwright = await async_playwright().start()
        try:
            self._browser = await getattr(self._playwright, self.engine.value).launch(headless=True)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise

    async def _shutdown(self):
        pending = [t for t in asyncio.all_tasks(self._loop) if t is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        browser, self._browser = self._browser, None
        if browser is not None:
            await browser.close()
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def _handle(self, browser, req: RenderRequest) -> RenderResult:
        if req.token is not None and req.token.is_cancelled:
            return RenderResult(error=FetchCancelled(f"Cancelled before rendering {req.url}"))

        page = None
        try:
            page = await browser.new_page(extra_http_headers={"Accept-Language": "en"})
            start_time = time.time()
            response = await page.goto(req.url, wait_until="domcontentloaded", timeout=req.timeout * 1000)
            fetch_time_ms = max(0, int((time.time() - start_time) * 1000))

            if response is None:
                return RenderResult(error=TransportError(
                    f"Navigation to {req.url} returned no response.", label="NO_RESPONSE"
                ))

            header_pairs = await response.headers_array()
            headers = first_seen_headers((h["name"], h["value"]) for h in header_pairs)
            result = FetchResult(
                strategy=FetchStrategy.RENDERED,
                status_code=response.status,
                status_description=status_description(response.status),
                elapsed_ms=fetch_time_ms,
                content_type=media_type(headers.get("content-type")),
                headers=headers,
            )

            references = await LinkExtractor.references_from_page(page) if result.is_html else []
            # Redirects the browser followed show up as a different final URL
            if LinkUtility.normalize_url(page.url) != LinkUtility.normalize_url(req.url):
                references.append(page.url)

            return RenderResult(outcome=FetchOutcome(
                result=result,
                references=references,
                redirect=headers.get("location"),
            ))
        except PlaywrightTimeoutError:
            return RenderResult(error=FetchTimeoutError(req.timeout))
        except PlaywrightError as e:
            return RenderResult(error=classify_navigation_error(e))
        except Exception as e:
            return RenderResult(error=e)
        finally:
            if page is not None:
                await page.close()

    def render(self, url: str, timeout: float = REQUEST_TIMEOUT, token=None) -> FetchOutcome:
        if not self.is_running:
            raise CrawlerError("Render worker is not running.")
        req = RenderRequest(url, timeout, token)
        future = asyncio.run_coroutine_threadsafe(self._handle(self._browser, req), self._loop)
        while True:
            try:
                result = future.result(timeout=self.POLL_INTERVAL)
                break
            except FutureTimeoutError:
                if not self.is_running and not future.done():
                    future.cancel()
                    raise CrawlerError("Render worker stopped before answering.")
            except CancelledError:
                raise CrawlerError("Render worker stopped before answering.")
        if result.error:
            raise result.error
        return result.outcome


# === RENDERED FETCHER ===

class RenderedFetcher:
    """
    FLOW: Checks the cancellation token -> Submits the address (and the token) to the BrowserManager ->
    Returns its FetchOutcome or re-raises the classified error.
    """
    strategy = FetchStrategy.RENDERED

    def __init__(self, manager: BrowserManager, timeout: float = REQUEST_TIMEOUT):
        self.manager = manager
        self.timeout = timeout

    def fetch(self, address: str, token=None) -> FetchOutcome:
        if token is not None and token.is_cancelled:
            raise FetchCancelled(f"Cancelled before rendering {address}")
        outcome = self.manager.render(address, self.timeout, token)
        logger.debug(f"[RENDERED] {address} -> {outcome.result.label} in {outcome.result.elapsed_ms}ms")
        return outcome
