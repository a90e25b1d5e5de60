from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from crawler.models import FetchResult, RequestError, now, parse_timestamp

@dataclass(eq=False)
class CrawlEntry:
    """
    Data model for one frontier address.
    Invariants: address is the primary key and never changes; attempts only grows;
    finished_at, once set, is never cleared.
    Mutated only by the worker currently processing the entry.
    """
    address: str
    added_at: datetime = field(default_factory=now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    attempts: int = 0
    responses: List[FetchResult] = field(default_factory=list)
    errors: List[RequestError] = field(default_factory=list)
    sequence: int = 0

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    def begin_attempt(self) -> int:
        self.attempts += 1
        if self.started_at is None:
            self.started_at = now()
        return self.attempts

    def finish(self) -> None:
        if self.finished_at is None:
            self.finished_at = now()

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "added_at": self.added_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "attempts": self.attempts,
            "responses": [r.to_dict() for r in self.responses],
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CrawlEntry":
        return cls(
            address=data["address"],
            added_at=parse_timestamp(data.get("added_at")) or now(),
            started_at=parse_timestamp(data.get("started_at")),
            finished_at=parse_timestamp(data.get("finished_at")),
            attempts=int(data.get("attempts") or 0),
            responses=[FetchResult.from_dict(r) for r in data.get("responses") or []],
            errors=[RequestError.from_dict(e) for e in data.get("errors") or []],
        )
