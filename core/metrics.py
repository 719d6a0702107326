from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from schemas import ClassificationResult

logger = logging.getLogger(__name__)


class InferenceMetrics:
    """
    Rolling metrics for the live classification loop.

    Sliding window = last N seconds (default 5s)
    Controlled by config.runtime.log_inference_metrics (True/False)

    Per window we keep:
      - inference latency samples (preprocess + forward pass, ms)
      - how many frames reached the model vs. were dropped by the throttle
      - how often the top-1 label changed between consecutive results
        (a cheap flicker indicator for the on-screen prediction)
    """

    __slots__ = (
        "_window_sec",
        "_last_log_ts",
        "_log_every_sec",
        "_records",     # list of (ts, latency_ms, top_index)
        "_drops",       # list of ts for throttled / failed frames
    )

    def __init__(
        self,
        window_sec: float = 5.0,
        log_every_sec: float = 5.0,
    ) -> None:
        """
        Parameters
        ----------
        window_sec : float
            Sliding window size for keeping metrics.
        log_every_sec : float
            How often we auto-emit a summary log line.
        """
        self._window_sec = float(window_sec)
        self._log_every_sec = float(log_every_sec)

        self._records: List[Tuple[float, float, int]] = []
        self._drops: List[float] = []

        self._last_log_ts = time.perf_counter()

        logger.info(
            "InferenceMetrics initialised | window=%.1fs log_every=%.1fs",
            self._window_sec,
            self._log_every_sec,
        )


    def update(self, result: Optional[ClassificationResult], ts_now: float) -> None:
        """
        Record one frame. `result` is None when the frame never produced
        a prediction (throttled or skipped after an error).
        """
        if result is None:
            self._drops.append(ts_now)
        else:
            top = result.top
            top_index = top.index if top is not None else -1
            self._records.append((ts_now, float(result.inference_ms), top_index))

        self._prune(ts_now)

        if ts_now - self._last_log_ts >= self._log_every_sec:
            self._last_log_ts = ts_now
            self._log_summary()

    def summary(self) -> Dict[str, float]:
        """
        Aggregate the current window.

        Keys: n_inferences, n_dropped, drop_ratio, mean_ms, p90_ms,
        inferences_per_sec, label_changes.
        """
        n_inf = len(self._records)
        n_drop = len(self._drops)
        total = n_inf + n_drop

        if n_inf:
            lat = np.asarray([r[1] for r in self._records], dtype=np.float64)
            mean_ms = float(lat.mean())
            p90_ms = float(np.percentile(lat, 90))
        else:
            mean_ms = 0.0
            p90_ms = 0.0

        changes = 0
        prev = None
        for _, _, top in self._records:
            if prev is not None and top != prev:
                changes += 1
            prev = top

        return {
            "n_inferences": float(n_inf),
            "n_dropped": float(n_drop),
            "drop_ratio": (n_drop / total) if total else 0.0,
            "mean_ms": mean_ms,
            "p90_ms": p90_ms,
            "inferences_per_sec": n_inf / self._window_sec if self._window_sec > 0 else 0.0,
            "label_changes": float(changes),
        }

    def _log_summary(self) -> None:
        s = self.summary()
        logger.info(
            "InferenceMetrics | inferences=%d dropped=%d (%.0f%%) "
            "| latency mean=%.1fms p90=%.1fms | rate=%.1f/s | label_changes=%d",
            int(s["n_inferences"]),
            int(s["n_dropped"]),
            s["drop_ratio"] * 100.0,
            s["mean_ms"],
            s["p90_ms"],
            s["inferences_per_sec"],
            int(s["label_changes"]),
        )

    def _prune(self, ts_now: float) -> None:
        """Remove records older than _window_sec from both buffers."""
        cutoff = ts_now - self._window_sec

        while self._records and self._records[0][0] < cutoff:
            self._records.pop(0)

        while self._drops and self._drops[0] < cutoff:
            self._drops.pop(0)
