from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Tuple
from frontier.models import CrawlEntry

class EntryStore(ABC):
    """
    Abstract interface for the crawl frontier.
    Ensures race-safe deduplication of addresses within a single crawl run.
    """

    @abstractmethod
    def try_add(self, address: str) -> bool:
        """
        Atomically create an entry ONLY if no entry with the same normalized
        address exists. Returns True if created, False if it was a duplicate.
        """
        pass

    @abstractmethod
    def unfinished(self) -> List[CrawlEntry]:
        """Point-in-time copy of the entries that have no finished_at yet."""
        pass

    @abstractmethod
    def all(self) -> List[CrawlEntry]:
        """Snapshot of every entry ordered by creation time."""
        pass

    @abstractmethod
    def get(self, address: str) -> Optional[CrawlEntry]:
        """Retrieve an entry by address (normalized before lookup)."""
        pass

    @abstractmethod
    def counts(self) -> Tuple[int, int]:
        """(finished, total) for progress displays."""
        pass

    @abstractmethod
    def hydrate(self, entries: Iterable[CrawlEntry]) -> int:
        """Insert already-built entries, skipping duplicates. Returns how many were added."""
        pass

    def __len__(self) -> int:
        return self.counts()[1]
