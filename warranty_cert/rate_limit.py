"""
Minimum-delay gate for outbound requests to the billing API.
"""

import threading
import time
from typing import Callable, Optional

from .config import RATE_LIMIT_DELAY_MS, logger


class RateLimitGate:
    """
    Enforces a minimum delay between consecutive requests.

    One instance is shared by every client that talks to the billing API, so
    the delay holds process-wide regardless of which component fetches.
    """

    def __init__(
        self,
        min_delay_seconds: float = RATE_LIMIT_DELAY_MS / 1000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_delay_seconds = min_delay_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """
        Block until the minimum delay since the previous request has passed.

        Returns:
            Seconds spent waiting
        """
        with self._lock:
            waited = 0.0
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self.min_delay_seconds:
                    waited = self.min_delay_seconds - elapsed
                    logger.debug(f"Rate limit: waiting {waited:.3f}s")
                    self._sleep(waited)
            self._last_request = self._clock()
            return waited
