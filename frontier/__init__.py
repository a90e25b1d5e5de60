from frontier.models import CrawlEntry
from frontier.storage import EntryStore
from frontier.memory_storage import InMemoryEntryStore
