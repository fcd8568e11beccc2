"""
reportsync — Engine step logger with duration tracking.

Steps log their start, then either completion or failure with elapsed time.
httpx and watchdog are kept at WARNING; each upload and each inotify event
would otherwise produce an INFO line of its own.
"""

import logging
import os
import time
from contextlib import contextmanager
from typing import Generator

logging.basicConfig(
    level=os.getenv("REPORTSYNC_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-7s | %(message)s",
    datefmt="%H:%M:%S",
)

for _noisy in ("httpx", "httpcore", "watchdog"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger("reportsync")


@contextmanager
def step_timer(step_name: str) -> Generator[None, None, None]:
    """Log the start of a step, then its outcome and duration."""
    logger.info("▶ %s — started", step_name)
    start = time.perf_counter()
    try:
        yield
    except Exception:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.warning("✗ %s — failed after %.0f ms", step_name, elapsed_ms)
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("✔ %s — completed in %.0f ms", step_name, elapsed_ms)
