"""
FILE DESCRIPTION: End-of-run report. Drains the entry store once and hands the ordered
entries to a sink; the JSON sink writes them to disk and load_entries reads them back.
KEY FUNCTIONS/CLASSES: Reporter, JsonFileSink, load_entries
"""

import json
from datetime import datetime
from pathlib import Path

from crawler.core import logger
from frontier.models import CrawlEntry


def default_report_name(moment: datetime = None) -> str:
    moment = moment or datetime.now()
    return moment.strftime("queue-%Y-%m-%d-%H-%M-%S.json")


class JsonFileSink:
    """Writes entries as an indented JSON array."""

    def __init__(self, path=None, indent: int = 2):
        self.path = Path(path) if path else Path.cwd() / default_report_name()
        self.indent = indent

    def write(self, entries) -> Path:
        payload = [entry.to_dict() for entry in entries]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=self.indent, ensure_ascii=False)
        logger.info(f"Report: wrote {len(payload)} entries to {self.path}", extra={'context': 'reporter'})
        return self.path


def load_entries(path) -> list:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return [CrawlEntry.from_dict(item) for item in data]


class Reporter:
    """
    FLOW: drain() snapshots every entry ordered by (added_at, insertion order) ->
    write() hands that sequence to the sink.
    """

    def __init__(self, store):
        self.store = store

    def drain(self) -> list:
        return self.store.all()

    def write(self, sink):
        return sink.write(self.drain())
