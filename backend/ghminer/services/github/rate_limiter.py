"""
Process-wide GitHub quota tracking.

One RateLimiter is created per retrieval/extraction run and handed to every
GithubClient that issues requests against the same token. All workers share
its counters; when the quota drops below the configured floor every caller
blocks until the reset time reported by GitHub (plus a small margin).
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_QUOTA = 5000
DEFAULT_RESET_WINDOW = 3600
RESET_MARGIN_SECONDS = 2


@dataclass(frozen=True)
class RateState:
    remaining: int
    reset_at: float
    request_floor: int

    @property
    def exhausted(self) -> bool:
        return self.remaining < self.request_floor


class RateLimiter:
    """Lock-protected remaining/reset counters with an interruptible wait."""

    def __init__(
        self,
        request_floor: int,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Callable[[float], bool]] = None,
    ):
        self.request_floor = request_floor
        self._clock = clock
        self._lock = threading.Lock()
        self._interrupted = threading.Event()
        self._sleep = sleep or self._interruptible_sleep
        self._remaining = DEFAULT_QUOTA
        self._reset_at = clock() + DEFAULT_RESET_WINDOW

    def _interruptible_sleep(self, seconds: float) -> bool:
        """Returns True when the full period elapsed, False when interrupted."""
        return not self._interrupted.wait(seconds)

    def snapshot(self) -> RateState:
        with self._lock:
            return RateState(self._remaining, self._reset_at, self.request_floor)

    def update(self, headers: Mapping[str, str]) -> None:
        """Refresh counters from x-ratelimit-* response headers, if present."""
        remaining = headers.get("x-ratelimit-remaining")
        reset = headers.get("x-ratelimit-reset")
        if remaining is None and reset is None:
            return
        with self._lock:
            try:
                if remaining is not None:
                    self._remaining = max(0, int(remaining))
                if reset is not None:
                    self._reset_at = float(reset)
            except ValueError:
                logger.warning(
                    f"Ignoring malformed rate limit headers: remaining={remaining!r} reset={reset!r}"
                )

    def wait_for_quota(self) -> bool:
        """
        Block while the remaining quota is below the floor.

        Returns False if the wait was interrupted, True once requests may be
        dispatched again.
        """
        while True:
            if self._interrupted.is_set():
                return False
            with self._lock:
                if self._remaining >= self.request_floor:
                    return True
                to_sleep = self._reset_at - self._clock() + RESET_MARGIN_SECONDS
                if to_sleep <= 0:
                    # Quota window has rolled over; the next response will correct this.
                    self._remaining = DEFAULT_QUOTA
                    return True
                remaining = self._remaining

            logger.warning(
                f"Request limit reached ({remaining} < {self.request_floor}), "
                f"sleeping for {int(to_sleep)} sec"
            )
            if not self._sleep(to_sleep):
                logger.info("Rate limit wait interrupted")
                return False

    def interrupt(self) -> None:
        """Wake every thread sleeping on the quota and refuse further waits."""
        self._interrupted.set()

    @property
    def interrupted(self) -> bool:
        return self._interrupted.is_set()
