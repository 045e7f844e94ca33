"""
Polling cadence for the supervisors.

    interval = base * 2 ** min(consecutive_failures, MAX_BACKOFF_STEPS)
    interval = clamp(interval, min_interval_s, max_backoff_s)
    interval += uniform(-1, 1) * interval * jitter_factor

Jitter keeps many schools' discovery sweeps from lining up; backoff eases
off a provider that keeps failing without ever stopping the loop.
"""
from __future__ import annotations

import random

from shared.config import Settings, get_settings

MAX_BACKOFF_STEPS = 5


class PollingCadence:
    def __init__(
        self,
        base_interval_s: float,
        settings: Settings | None = None,
        min_interval_s: float = 0.0,
        jitter_factor: float | None = None,
        max_backoff_s: float | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.base_interval_s = base_interval_s
        self.min_interval_s = min_interval_s
        self.jitter_factor = (
            settings.scheduler_jitter_factor if jitter_factor is None else jitter_factor
        )
        self.max_backoff_s = max(
            settings.scheduler_max_backoff_s if max_backoff_s is None else max_backoff_s,
            base_interval_s,
        )

    def next_interval(self, consecutive_failures: int = 0) -> float:
        steps = min(max(consecutive_failures, 0), MAX_BACKOFF_STEPS)
        interval = self.base_interval_s * (2 ** steps)
        interval = max(self.min_interval_s, min(interval, self.max_backoff_s))
        if self.jitter_factor > 0:
            interval += random.uniform(-1.0, 1.0) * interval * self.jitter_factor
        return max(interval, self.min_interval_s, 0.0)
