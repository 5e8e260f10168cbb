import time
import logging
from typing import Callable

logger = logging.getLogger("messaging_service")


class FixedIntervalThrottle:
    """
    Blocks for a fixed interval between consecutive dispatch attempts.

    The first call to `wait()` returns immediately; every later call sleeps
    for `interval_seconds`. There is no adaptive backoff: the delay only
    keeps a sequential send loop under upstream provider rate limits.
    """

    def __init__(self, interval_seconds: float, sleep: Callable[[float], None] = time.sleep):
        self.interval = max(interval_seconds, 0)
        self._sleep = sleep
        self._started = False

    def wait(self):
        if not self._started:
            self._started = True
            return
        if self.interval > 0:
            logger.debug(f"Waiting {self.interval:.3f}s before next dispatch...")
            self._sleep(self.interval)
