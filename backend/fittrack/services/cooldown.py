"""Per-caller cooldown between successive requests of one kind.

One limiter exists per request kind. The check and the timestamp write
happen under one lock, so two concurrent requests from the same caller
cannot both pass. A reservation is rolled back if the request
later fails, so only successfully dispatched requests start a cooldown.
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from fittrack.services.errors import RateLimitedError

logger = logging.getLogger(__name__)

# Expired timestamps are swept once the map grows past this many callers
DEFAULT_SWEEP_THRESHOLD = 1024


@dataclass(frozen=True)
class Reservation:
    """Handle returned by ``CooldownLimiter.acquire`` for rollback."""

    identity: str
    timestamp: float
    previous: float | None


class CooldownLimiter:
    """Enforce a minimum interval between requests from the same identity."""

    def __init__(
        self,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        message: str = "Please wait {seconds} seconds before trying again.",
        sweep_threshold: int = DEFAULT_SWEEP_THRESHOLD,
    ):
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._message = message
        self._sweep_threshold = sweep_threshold
        self._last: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    def acquire(self, identity: str) -> Reservation:
        """Atomically check the cooldown for ``identity`` and record this request.

        Raises:
            RateLimitedError: If the previous request was less than
                ``interval_seconds`` ago. ``retry_after`` holds the wait.
        """
        with self._lock:
            now = self._clock()
            if not self.enabled:
                return Reservation(identity=identity, timestamp=now, previous=None)
            if len(self._last) >= self._sweep_threshold:
                self._sweep(now)
            previous = self._last.get(identity)
            if previous is not None:
                remaining = self.interval_seconds - (now - previous)
                if remaining > 0:
                    seconds = max(1, math.ceil(remaining))
                    logger.info("Cooldown active for %s: %ds remaining", identity, seconds)
                    raise RateLimitedError(
                        self._message.format(seconds=seconds), retry_after=seconds
                    )
            self._last[identity] = now
            return Reservation(identity=identity, timestamp=now, previous=previous)

    def _sweep(self, now: float) -> None:
        expired = [
            identity for identity, stamp in self._last.items()
            if now - stamp >= self.interval_seconds
        ]
        for identity in expired:
            del self._last[identity]
        if expired:
            logger.debug("Swept %d expired cooldown entries", len(expired))

    @property
    def tracked(self) -> int:
        """Number of callers with a recorded timestamp."""
        with self._lock:
            return len(self._last)

    def release(self, reservation: Reservation) -> None:
        """Undo ``reservation`` unless a newer request has replaced it."""
        with self._lock:
            if self._last.get(reservation.identity) != reservation.timestamp:
                return
            if reservation.previous is None:
                del self._last[reservation.identity]
            else:
                self._last[reservation.identity] = reservation.previous

    def reset(self) -> None:
        with self._lock:
            self._last.clear()
