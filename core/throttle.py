"""
core/throttle.py

Frame-rate gate for live video inference.

Frames that arrive sooner than `min_interval_sec` after the last accepted
frame are dropped, never queued. This keeps the interpreter from building
a backlog when the camera delivers faster than the model can run.

Only the live camera path uses this gate; single photos always run.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SEC = 0.05


class FrameThrottle:
    """
    Minimum-interval gate.

    Usage:
        throttle = FrameThrottle(0.05)
        if throttle.try_acquire(ts):
            ... run inference ...
        # else: silently skip the frame

    `last_run` starts at -inf, so the first call is always accepted.
    The timestamp is guarded by a lock, so callers may deliver frames
    from more than one thread.
    """

    def __init__(self, min_interval_sec: float = DEFAULT_MIN_INTERVAL_SEC) -> None:
        min_interval_sec = float(min_interval_sec)
        if min_interval_sec < 0:
            raise ValueError(f"min_interval_sec must be >= 0, got {min_interval_sec}")

        self.min_interval_sec = min_interval_sec
        self._last_run: float = -math.inf
        self._accepted = 0
        self._dropped = 0
        self._lock = threading.Lock()

        logger.debug("FrameThrottle initialised (min_interval=%.3fs)", min_interval_sec)

    @property
    def last_run(self) -> float:
        return self._last_run

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def dropped(self) -> int:
        return self._dropped

    def try_acquire(self, now: Optional[float] = None) -> bool:
        """
        Return True (and record `now`) if at least `min_interval_sec` has
        passed since the last accepted call; otherwise return False.

        `now` defaults to time.perf_counter().
        """
        if now is None:
            now = time.perf_counter()

        with self._lock:
            if now - self._last_run >= self.min_interval_sec:
                self._last_run = now
                self._accepted += 1
                return True
            self._dropped += 1
            return False

    def reset(self) -> None:
        with self._lock:
            self._last_run = -math.inf
            self._accepted = 0
            self._dropped = 0
