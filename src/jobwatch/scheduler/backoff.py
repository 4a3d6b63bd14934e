"""Interval adjustment policy for adaptive polling."""

from __future__ import annotations

from dataclasses import dataclass

from ..config import PollingConfig


@dataclass(frozen=True)
class BackoffPolicy:
    """Computes the next polling interval from the current one.

    Every method returns a value clamped to [min_interval_ms, max_interval_ms].
    """

    min_interval_ms: float = 1000.0
    max_interval_ms: float = 30_000.0
    multiplier: float = 1.5
    fast_progress_threshold: float = 50.0

    @classmethod
    def from_config(cls, config: PollingConfig) -> BackoffPolicy:
        return cls(
            min_interval_ms=config.min_interval_ms,
            max_interval_ms=config.max_interval_ms,
            multiplier=config.backoff_multiplier,
            fast_progress_threshold=config.fast_progress_threshold,
        )

    def clamp(self, interval_ms: float) -> float:
        return min(self.max_interval_ms, max(self.min_interval_ms, interval_ms))

    def after_success(self, interval_ms: float, progress: float) -> float:
        """Shrink for fast-moving jobs, grow for slow ones."""
        if progress > self.fast_progress_threshold:
            return self.clamp(interval_ms / self.multiplier)
        return self.clamp(interval_ms * self.multiplier)

    def after_failure(self, interval_ms: float) -> float:
        """Back off harder than for a slow job: square of the multiplier."""
        return self.clamp(interval_ms * self.multiplier**2)
