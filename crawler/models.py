from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
import threading


def now() -> datetime:
    """Timezone-aware local timestamp used for every model field."""
    return datetime.now().astimezone()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class FetchStrategy(Enum):
    PLAIN = "plain"
    RENDERED = "rendered"


class ErrorKind(Enum):
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    RENDER_SKIP = "render-skip"
    UNCLASSIFIED = "unclassified"


class RenderingEngine(Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class ScopeMode(Enum):
    ORIGIN = "origin"
    PATH = "path"


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of one fetch call by one strategy.
    Any response the server produced is a result, whatever its status.
    """
    strategy: FetchStrategy
    status_code: int
    status_description: str
    elapsed_ms: int
    content_type: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=now)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return bool(self.content_type) and "text/html" in self.content_type.lower()

    @property
    def label(self) -> str:
        return f"{self.status_code} {self.status_description}"

    def to_dict(self) -> dict:
        return {
            "created_at": self.created_at.isoformat(),
            "content_type": self.content_type,
            "strategy": self.strategy.value,
            "status_code": self.status_code,
            "status_description": self.status_description,
            "elapsed_ms": self.elapsed_ms,
            "headers": dict(self.headers),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FetchResult":
        return cls(
            strategy=FetchStrategy(data["strategy"]),
            status_code=int(data["status_code"]),
            status_description=data.get("status_description") or "",
            elapsed_ms=int(data.get("elapsed_ms") or 0),
            content_type=data.get("content_type"),
            headers=dict(data.get("headers") or {}),
            created_at=parse_timestamp(data.get("created_at")) or now(),
        )


@dataclass(frozen=True)
class RequestError:
    kind: ErrorKind
    message: str
    strategy: Optional[FetchStrategy] = None
    error_type: Optional[str] = None
    created_at: datetime = field(default_factory=now)

    def to_dict(self) -> dict:
        return {
            "created_at": self.created_at.isoformat(),
            "kind": self.kind.value,
            "strategy": self.strategy.value if self.strategy else None,
            "error_type": self.error_type,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RequestError":
        strategy = data.get("strategy")
        return cls(
            kind=ErrorKind(data["kind"]),
            message=data.get("message") or "",
            strategy=FetchStrategy(strategy) if strategy else None,
            error_type=data.get("error_type"),
            created_at=parse_timestamp(data.get("created_at")) or now(),
        )


@dataclass
class FetchOutcome:
    """
    What a fetch strategy hands back to the attempt procedure.
    `html` carries a raw body to scan, `references` holds raw attribute values
    already scanned from a live page, `redirect` is a target the fetch reported.
    """
    result: FetchResult
    html: Optional[str] = None
    references: List[str] = field(default_factory=list)
    redirect: Optional[str] = None


@dataclass
class CrawlOptions:
    urls: List[str] = field(default_factory=list)
    max_retry_attempts: int = 0
    request_timeout: float = 10.0
    max_workers: int = 10
    rendering_engine: RenderingEngine = RenderingEngine.CHROMIUM
    scope: ScopeMode = ScopeMode.ORIGIN

    def __post_init__(self):
        if self.max_retry_attempts < 0:
            raise ValueError("max_retry_attempts must be >= 0")
        if self.request_timeout < 0:
            raise ValueError("request_timeout must be >= 0")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retry_attempts + 1


class CancellationToken:
    """Cooperative cancellation signal shared by the dispatcher, workers and fetchers."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float = None) -> bool:
        return self._event.wait(timeout)
