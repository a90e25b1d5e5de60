"""
Reporter drain order and the JSON sink round trip
"""

import json
import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

from crawler.models import ErrorKind, FetchResult, FetchStrategy, RequestError, now
from crawler.reporter import JsonFileSink, Reporter, default_report_name, load_entries
from frontier.memory_storage import InMemoryEntryStore
from frontier.models import CrawlEntry


class TestReporter(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.store = InMemoryEntryStore()

    def populate(self):
        self.store.try_add("https://example.com/")
        self.store.try_add("https://example.com/about")

        root = self.store.get("https://example.com/")
        root.begin_attempt()
        root.responses.append(FetchResult(
            strategy=FetchStrategy.PLAIN, status_code=200, status_description="OK",
            elapsed_ms=87, content_type="text/html", headers={"server": "nginx"},
        ))
        root.responses.append(FetchResult(
            strategy=FetchStrategy.RENDERED, status_code=200, status_description="OK",
            elapsed_ms=640, content_type="text/html",
        ))
        root.finish()

        about = self.store.get("https://example.com/about")
        for _ in range(2):
            about.begin_attempt()
            about.errors.append(RequestError(
                kind=ErrorKind.TIMEOUT, message="Request timeout after 10 second(s).",
                strategy=FetchStrategy.PLAIN, error_type="TIMEOUT",
            ))
        about.finish()

    def test_drain_orders_by_creation(self):
        base = now()
        self.store.hydrate([
            CrawlEntry(address="https://example.com/late", added_at=base + timedelta(seconds=5)),
            CrawlEntry(address="https://example.com/early", added_at=base),
        ])
        drained = Reporter(self.store).drain()
        self.assertEqual([e.address for e in drained], ["https://example.com/early", "https://example.com/late"])

    def test_write_hands_ordered_entries_to_sink(self):
        self.populate()
        sink = MagicMock()
        Reporter(self.store).write(sink)
        entries = sink.write.call_args.args[0]
        self.assertEqual([e.address for e in entries], ["https://example.com/", "https://example.com/about"])

    def test_json_round_trip(self):
        """Scenario: drain -> sink -> load reproduces addresses, attempts and histories."""
        self.populate()
        path = Path(self.tmp.name) / "report.json"

        written = Reporter(self.store).write(JsonFileSink(path))
        self.assertEqual(written, path)

        rehydrated = InMemoryEntryStore()
        rehydrated.hydrate(load_entries(path))

        original = self.store.all()
        loaded = rehydrated.all()
        self.assertEqual([e.address for e in loaded], [e.address for e in original])
        for before, after in zip(original, loaded):
            self.assertEqual(after.attempts, before.attempts)
            self.assertEqual(after.responses, before.responses)
            self.assertEqual(after.errors, before.errors)
            self.assertEqual(after.finished_at, before.finished_at)

    def test_json_uses_snake_case_fields(self):
        self.populate()
        path = Path(self.tmp.name) / "nested" / "report.json"
        JsonFileSink(path).write(self.store.all())

        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        self.assertEqual(data[0]["address"], "https://example.com/")
        self.assertEqual(data[0]["responses"][0]["status_code"], 200)
        self.assertEqual(data[0]["responses"][1]["strategy"], "rendered")
        self.assertEqual(data[1]["errors"][0]["kind"], "timeout")
        self.assertNotIn("sequence", data[0])

    def test_default_report_name(self):
        name = default_report_name(datetime(2026, 1, 2, 3, 4, 5))
        self.assertEqual(name, "queue-2026-01-02-03-04-05.json")
        self.assertEqual(JsonFileSink(None).path.name[:6], "queue-")


if __name__ == "__main__":
    unittest.main()
