from crawler.models import ErrorKind


class CrawlerError(Exception):
    """Base crawler exception."""
    pass

class FetchError(CrawlerError):
    """
    A classified fetch failure.
    `kind` becomes the RequestError kind, `label` the response-type counter key.
    """
    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str, label: str = None):
        super().__init__(message)
        self.message = message
        self.label = (label or type(self).__name__).upper()

class FetchTimeoutError(FetchError):
    """Raised when a fetch exceeds the configured request timeout."""
    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Request timeout after {timeout_seconds:g} second(s).",
            label="TIMEOUT",
        )
        self.timeout_seconds = timeout_seconds

class TransportError(FetchError):
    """Raised on connection, DNS or reset failures."""
    kind = ErrorKind.TRANSPORT

class RenderSkipped(FetchError):
    """Raised when the browser declines to navigate a non-document resource."""
    kind = ErrorKind.RENDER_SKIP

    def __init__(self, message: str = "Skipped because the browser could not render the URL."):
        super().__init__(message, label="SKIPPED")

class FetchCancelled(CrawlerError):
    """Raised when the cancellation token was set before a fetch started."""
    pass

class BrowserLaunchError(CrawlerError):
    """Raised when the headless browser cannot be launched. Fatal at start-up."""
    pass
