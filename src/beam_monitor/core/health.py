"""
Transmission Health Tracker
===========================

Bounded up/down counter fed by the outcome of every Modbus transaction.

- Success: counter += step (clamped to MAX), continuous failures reset
- Failure: counter -= step (floored at 0), continuous failures += 1
- Step is 1 normally and the delay multiplier while degraded
- Healthy when counter > (MAX * 3) // 4

Only the peripheral worker records outcomes. Readers get plain ints, so
is_healthy() and quality_percent() are safe from any thread.

Date: October 2026
License: MIT
"""

from typing import Optional

from ..config import PollerConfig


class HealthTracker:
    """Link health derived from recent transaction outcomes."""

    def __init__(self, config: Optional[PollerConfig] = None):
        self.config = config or PollerConfig()
        self.max_counter = self.config.health_max
        self.correctness_limit = (self.max_counter * 3) // 4

        self._counter = self.max_counter
        self._continuous_failures = 0

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def continuous_failures(self) -> int:
        return self._continuous_failures

    def is_degraded(self) -> bool:
        """True while the failure streak has reached the back-off threshold."""
        return self._continuous_failures >= self.config.continuous_errors_limit

    def step_size(self) -> int:
        """Health step for the current tick."""
        if self.is_degraded():
            return self.config.delay_multiplier_on_error
        return 1

    def record_success(self, step: int = 1):
        self._counter = min(self.max_counter, self._counter + step)
        self._continuous_failures = 0

    def record_failure(self, step: int = 1):
        self._continuous_failures = min(
            self.max_counter, self._continuous_failures + 1
        )
        self._counter = max(0, self._counter - step)

    def is_healthy(self) -> bool:
        return self._counter > self.correctness_limit

    def quality_percent(self) -> float:
        return 100.0 * self._counter / self.max_counter

    def quality_text(self) -> str:
        """Quality for the display, e.g. ' 97.0%'."""
        return f"{self.quality_percent():5.1f}%"
