"""
Thread-safe aggregate statistics for a crawl run and terminal summary formatting.
The live view and the final report read the same counters.
"""

import os
import time
from datetime import datetime, timedelta
from threading import Lock

import psutil
from tabulate import tabulate

from crawler.core import FAST_RESPONSE_MS, SLOW_RESPONSE_MS

FAST_BUCKET = f"<{FAST_RESPONSE_MS}ms"
MEDIUM_BUCKET = f"{FAST_RESPONSE_MS}-{SLOW_RESPONSE_MS}ms"
SLOW_BUCKET = f">{SLOW_RESPONSE_MS}ms"
TIMING_BUCKETS = (FAST_BUCKET, MEDIUM_BUCKET, SLOW_BUCKET)


def bucket_for(elapsed_ms: int) -> str:
    if elapsed_ms < FAST_RESPONSE_MS:
        return FAST_BUCKET
    if elapsed_ms > SLOW_RESPONSE_MS:
        return SLOW_BUCKET
    return MEDIUM_BUCKET


class CrawlStatistics:
    """
    Response-time buckets and response-type labels, each behind its own lock
    so timing updates never contend with label updates.
    Counters only ever grow during a run.
    """

    def __init__(self):
        self.started = datetime.now().astimezone()
        self._start_clock = time.monotonic()

        self._timings_lock = Lock()
        self._timings = {bucket: 0 for bucket in TIMING_BUCKETS}

        self._types_lock = Lock()
        self._types = {}

    def record_timing(self, elapsed_ms: int) -> str:
        bucket = bucket_for(elapsed_ms)
        with self._timings_lock:
            self._timings[bucket] += 1
        return bucket

    def record_type(self, label: str) -> int:
        with self._types_lock:
            count = self._types.get(label, 0) + 1
            self._types[label] = count
        return count

    def timings(self) -> dict:
        with self._timings_lock:
            return dict(self._timings)

    def types(self) -> dict:
        with self._types_lock:
            return dict(sorted(self._types.items()))

    def type_count(self, label: str) -> int:
        with self._types_lock:
            return self._types.get(label, 0)

    def total_timed(self) -> int:
        with self._timings_lock:
            return sum(self._timings.values())

    def total_requests(self) -> int:
        with self._types_lock:
            return sum(self._types.values())

    def elapsed(self) -> timedelta:
        return timedelta(seconds=time.monotonic() - self._start_clock)

    def requests_per_second(self) -> float:
        seconds = self.elapsed().total_seconds()
        if seconds <= 0:
            return 0.0
        return self.total_requests() / seconds


def format_duration(delta: timedelta) -> str:
    total = int(delta.total_seconds())
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


def progress_rows(stats: CrawlStatistics, finished: int, total: int) -> list:
    percent = int(100 * finished / total) if total else 100
    return [
        ["Started", stats.started.strftime("%Y-%m-%d %H:%M")],
        ["Duration", format_duration(stats.elapsed())],
        ["Progress", f"{finished} ({percent}%) of {total}"],
        ["In Queue", total - finished],
        ["Requests", f"{stats.requests_per_second():.2f}/s"],
    ]


def response_rows(stats: CrawlStatistics) -> list:
    rows = [[count, bucket] for bucket, count in stats.timings().items()]
    rows.extend([count, label] for label, count in stats.types().items())
    return rows


def render_summary(stats: CrawlStatistics, finished: int, total: int, report_path=None) -> str:
    """
    Final summary printed once the crawl loop ends.
    """
    process = psutil.Process(os.getpid())
    memory_mb = process.memory_info().rss / 1024 / 1024

    lines = [
        "",
        "=" * 60,
        "CRAWL COMPLETED - FINAL SUMMARY",
        "=" * 60,
        tabulate(
            progress_rows(stats, finished, total) + [["Memory", f"{memory_mb:.2f} MB"]],
            tablefmt="plain",
        ),
        "",
        tabulate(response_rows(stats), headers=["Count", "Response"], tablefmt="simple"),
    ]
    if report_path:
        lines.extend(["", f"Report written to {report_path}"])
    lines.append("=" * 60)
    return "\n".join(lines)
