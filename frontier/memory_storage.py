import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from crawler.url_utils import LinkUtility
from frontier.models import CrawlEntry
from frontier.storage import EntryStore

logger = logging.getLogger("crawler.frontier")

class InMemoryEntryStore(EntryStore):
    """
    Thread-safe frontier held in a dict keyed by normalized address.
    The check-then-insert in try_add runs under a single lock; reads copy
    under the same lock so callers iterate private lists.
    """

    def __init__(self):
        self._entries: Dict[str, CrawlEntry] = {}
        self._lock = threading.Lock()
        self._sequence = 0

    def try_add(self, address: str) -> bool:
        normalized = LinkUtility.normalize_url(address)
        if not normalized:
            return False

        with self._lock:
            if normalized in self._entries:
                return False
            self._sequence += 1
            self._entries[normalized] = CrawlEntry(address=normalized, sequence=self._sequence)
            total = len(self._entries)

        logger.debug(f"try_add: queued {normalized} (total={total})")
        return True

    def unfinished(self) -> List[CrawlEntry]:
        with self._lock:
            return [e for e in self._entries.values() if e.finished_at is None]

    def all(self) -> List[CrawlEntry]:
        with self._lock:
            entries = list(self._entries.values())
        return sorted(entries, key=lambda e: (e.added_at, e.sequence))

    def get(self, address: str) -> Optional[CrawlEntry]:
        normalized = LinkUtility.normalize_url(address)
        with self._lock:
            return self._entries.get(normalized)

    def counts(self) -> Tuple[int, int]:
        with self._lock:
            finished = sum(1 for e in self._entries.values() if e.finished_at is not None)
            return finished, len(self._entries)

    def hydrate(self, entries: Iterable[CrawlEntry]) -> int:
        added = 0
        with self._lock:
            for entry in entries:
                key = LinkUtility.normalize_url(entry.address)
                if not key or key in self._entries:
                    continue
                self._sequence += 1
                entry.sequence = self._sequence
                self._entries[key] = entry
                added += 1
        return added
