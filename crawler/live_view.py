"""
FILE DESCRIPTION: Periodic terminal dashboard drawn while the crawl runs.
KEY FUNCTIONS/CLASSES: LiveView, render_frame
"""

import sys
import threading

from tabulate import tabulate

from crawler.core import LIVE_VIEW_INTERVAL, logger
from crawler.metrics import progress_rows, response_rows

CLEAR_SCREEN = "\033[H\033[J"


def render_frame(statistics, store) -> str:
    finished, total = store.counts()
    return "\n".join([
        tabulate(progress_rows(statistics, finished, total), tablefmt="plain"),
        "",
        tabulate(response_rows(statistics), headers=["Count", "Response"], tablefmt="simple"),
    ])


class LiveView(threading.Thread):
    """
    FLOW: Wakes every interval -> Reads store counts and statistics copies ->
    Clears the terminal and redraws -> Draws one last frame after stop().
    """

    def __init__(self, statistics, store, interval: float = LIVE_VIEW_INTERVAL, stream=None):
        super().__init__(daemon=True, name="LiveView")
        self.statistics = statistics
        self.store = store
        self.interval = interval
        self.stream = stream or sys.stdout
        self._stop_event = threading.Event()
        self.frames = 0

    def draw(self):
        self.stream.write(CLEAR_SCREEN + render_frame(self.statistics, self.store) + "\n")
        self.stream.flush()
        self.frames += 1

    def run(self):
        try:
            while not self._stop_event.wait(self.interval):
                self.draw()
            self.draw()
        except Exception as e:
            logger.error(f"Live view stopped: {e}", extra={'context': self.name})

    def stop(self, timeout: float = 2.0):
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
