"""Scheduler timing metrics collection and aggregation.

Tracks tick drift, emission latency and transport counters for monitoring
playback stability.
"""

import logging
import time
from collections import deque
from datetime import datetime
from typing import Any

import numpy as np

logger = logging.getLogger(__name__)

# Drift above this is reported as a late tick
LATE_TICK_THRESHOLD_MS = 20.0


class TimingHistogram:
    """Tracks timing measurements with percentile calculations."""

    def __init__(self, max_samples: int = 1000):
        """Initialize timing histogram.

        Args:
            max_samples: Maximum samples to retain (circular buffer)
        """
        self.samples: deque[float] = deque(maxlen=max_samples)
        self.max_samples = max_samples

    def record(self, value_ms: float) -> None:
        self.samples.append(value_ms)

    def get_stats(self) -> dict[str, float | int]:
        """Get timing statistics.

        Returns:
            Dictionary with avg, p50, p95, p99, max, samples count
        """
        if not self.samples:
            return {"avg": 0.0, "p50": 0.0, "p95": 0.0, "p99": 0.0, "max": 0.0, "samples": 0}

        arr = np.array(list(self.samples))
        return {
            "avg": float(np.mean(arr)),
            "p50": float(np.percentile(arr, 50)),
            "p95": float(np.percentile(arr, 95)),
            "p99": float(np.percentile(arr, 99)),
            "max": float(np.max(arr)),
            "samples": len(self.samples),
        }


class SchedulerMetrics:
    """Collects step clock and emission metrics."""

    def __init__(self, window: int = 1000) -> None:
        self.tick_drift = TimingHistogram(max_samples=window)
        self.emission_latency = TimingHistogram(max_samples=window)

        self.ticks = 0
        self.emitted_steps = 0
        self.emitted_notes = 0
        self.failed_emissions = 0
        self.late_ticks = 0

        self.start_time = time.time()

        logger.info("Scheduler metrics initialized")

    def record_tick(self, drift_ms: float) -> None:
        """Record one clock tick and how late it fired.

        Args:
            drift_ms: Actual minus expected tick time in milliseconds
        """
        self.ticks += 1
        self.tick_drift.record(drift_ms)

        if drift_ms > LATE_TICK_THRESHOLD_MS:
            self.late_ticks += 1
            logger.debug(f"Tick fired {drift_ms:.1f}ms late")

    def record_emission(self, latency_ms: float, note_count: int) -> None:
        """Record a completed step emission.

        Args:
            latency_ms: Time spent in the Tone Source call (milliseconds)
            note_count: Number of notes emitted
        """
        self.emitted_steps += 1
        self.emitted_notes += note_count
        self.emission_latency.record(latency_ms)

    def increment_failed_emission(self) -> None:
        self.failed_emissions += 1
        logger.warning(f"Step emission failed (total: {self.failed_emissions})")

    def reset(self) -> None:
        """Clear all samples and counters."""
        self.tick_drift.samples.clear()
        self.emission_latency.samples.clear()
        self.ticks = 0
        self.emitted_steps = 0
        self.emitted_notes = 0
        self.failed_emissions = 0
        self.late_ticks = 0

    def get_snapshot(self) -> dict[str, Any]:
        """Get current metrics snapshot.

        Returns:
            Dictionary with histogram stats and counters
        """
        return {
            "tick_drift_ms": self.tick_drift.get_stats(),
            "emission_latency_ms": self.emission_latency.get_stats(),
            "ticks": self.ticks,
            "emitted_steps": self.emitted_steps,
            "emitted_notes": self.emitted_notes,
            "failed_emissions": self.failed_emissions,
            "late_ticks": self.late_ticks,
            "uptime_sec": time.time() - self.start_time,
            "timestamp": datetime.now().isoformat(),
        }
