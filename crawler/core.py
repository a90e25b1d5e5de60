"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, CompanyFormatter, configuration constants
"""

import logging
import sys
import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env from the project root (values already in the environment win)
load_dotenv(Path(__file__).resolve().parents[1] / '.env')

APP_NAME = "Focus"
APP_VERSION = "0.1.0"

# Network timeout for both fetch strategies (seconds, 0 = no timeout)
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 10))

# Extra attempts for entries that never produced a 2xx (0 = one attempt only)
MAX_RETRY_ATTEMPTS = int(os.getenv("MAX_RETRY_ATTEMPTS", 0))

# Concurrency ceiling for attempts running in one round
MAX_WORKERS = int(os.getenv("MAX_WORKERS", 10))

# Playwright browser type: chromium, firefox or webkit
RENDERING_ENGINE = os.getenv("RENDERING_ENGINE", "chromium")

# Seconds between live view redraws
LIVE_VIEW_INTERVAL = float(os.getenv("LIVE_VIEW_INTERVAL", 0.25))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

USER_AGENT = f"{APP_NAME}/{APP_VERSION} (+crawler)"

# Response time bucket edges (milliseconds)
FAST_RESPONSE_MS = 450
SLOW_RESPONSE_MS = 900


# === LOGGING SECTION ===

class CompanyFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats as
    [ Tue Jan 06 05:32:41 AM 2026 ] -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p %Y")
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message

def setup_logger(name="crawler", log_file=None, level=None, console=True):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with CompanyFormatter.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level or LOG_LEVEL)

    if logger.handlers:
        return logger

    if name != "crawler":
        logger.propagate = True
        setup_logger("crawler", log_file=log_file, level=level, console=console)
        return logger

    formatter = CompanyFormatter()

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.propagate = False
    return logger

def reset_logger(name="crawler"):
    """Drop every handler so setup_logger can be called again with new targets."""
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    return logger

# Shared logger; handlers are attached by setup_logger() at start-up
logger = logging.getLogger("crawler")
