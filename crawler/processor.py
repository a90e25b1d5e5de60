"""
FILE DESCRIPTION: Plain HTTP fetch strategy and link discovery shared by both strategies.
KEY FUNCTIONS/CLASSES: PageFetcher, LinkExtractor
"""

import time

import requests
from bs4 import BeautifulSoup

from crawler.core import USER_AGENT, REQUEST_TIMEOUT, logger
from crawler.errors import FetchCancelled, FetchTimeoutError, TransportError
from crawler.models import FetchOutcome, FetchResult, FetchStrategy, ScopeMode
from crawler.url_utils import LinkUtility, status_description

# Tag -> attribute pairs that count as references
REFERENCE_SELECTORS = (
    ("a", "href"),
    ("img", "src"),
    ("link", "href"),
    ("script", "src"),
)

DEFAULT_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en",
}


def media_type(content_type):
    """'text/html; charset=utf-8' -> 'text/html'. Empty values become None."""
    if not content_type:
        return None
    value = content_type.split(";", 1)[0].strip().lower()
    return value or None


def first_seen_headers(pairs) -> dict:
    """Header pairs -> dict keyed by lower-cased name; the first value for a name wins."""
    headers = {}
    for name, value in pairs:
        headers.setdefault(name.lower(), value)
    return headers


# === PAGE FETCHER ===

class PageFetcher:
    """
    FLOW: Checks the cancellation token -> Issues a single GET (redirects not followed) ->
    Captures status, headers, media type and elapsed time -> Returns a FetchOutcome
    carrying the HTML body and any Location target, or raises a classified FetchError.
    """
    strategy = FetchStrategy.PLAIN

    def __init__(self, timeout: float = REQUEST_TIMEOUT, session: requests.Session = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)

    def fetch(self, address: str, token=None) -> FetchOutcome:
        if token is not None and token.is_cancelled:
            raise FetchCancelled(f"Cancelled before fetching {address}")

        start_time = time.time()
        try:
            r = self.session.get(
                address,
                timeout=self.timeout or None,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            raise FetchTimeoutError(self.timeout) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(str(e), label=type(e).__name__) from e

        fetch_time_ms = max(0, int((time.time() - start_time) * 1000))
        headers = first_seen_headers(r.headers.items())

        result = FetchResult(
            strategy=self.strategy,
            status_code=r.status_code,
            status_description=status_description(r.status_code),
            elapsed_ms=fetch_time_ms,
            content_type=media_type(headers.get("content-type")),
            headers=headers,
        )

        html = r.text if result.is_html else None
        logger.debug(f"[PLAIN] {address} -> {result.label} in {fetch_time_ms}ms")
        return FetchOutcome(result=result, html=html, redirect=headers.get("location"))


# === LINK EXTRACTOR ===

class LinkExtractor:
    """
    FLOW: Collects raw reference values (from HTML text or a live page) ->
    Resolves each against the entry address and applies the scope filter ->
    Offers survivors to the entry store -> Returns the addresses actually inserted.
    """

    @staticmethod
    def references_from_html(html: str) -> list:
        if not html:
            return []
        soup = BeautifulSoup(html, "html.parser")
        references = []
        for tag, attribute in REFERENCE_SELECTORS:
            for node in soup.find_all(tag, attrs={attribute: True}):
                references.append(node[attribute])
        return references

    @staticmethod
    async def references_from_page(page) -> list:
        """
        Reads reference attributes from a live Playwright page.
        Must run on the event loop that owns the page.
        """
        references = []
        for tag, attribute in REFERENCE_SELECTORS:
            values = await page.locator(f"{tag}[{attribute}]").evaluate_all(
                f"nodes => nodes.map(n => n.getAttribute('{attribute}'))"
            )
            references.extend(v for v in values if v)
        return references

    @staticmethod
    def discover(store, base_url: str, references, scope: ScopeMode = ScopeMode.ORIGIN) -> list:
        added = []
        for reference in references:
            address = LinkUtility.resolve(base_url, reference, scope)
            if address and store.try_add(address):
                added.append(address)
        return added

    @classmethod
    def discover_outcome(cls, store, base_url: str, outcome: FetchOutcome,
                         scope: ScopeMode = ScopeMode.ORIGIN) -> list:
        """All references an outcome carries: HTML body, live-page values, redirect target."""
        references = list(outcome.references)
        if outcome.html:
            references.extend(cls.references_from_html(outcome.html))
        if outcome.redirect:
            references.append(outcome.redirect)
        return cls.discover(store, base_url, references, scope)
