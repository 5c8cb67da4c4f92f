"""Timing helpers for per-stage latency reporting."""

from __future__ import annotations

import time


class Timer:
    """Simple context timer used by the pipeline stages."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


class StageTimings:
    """Collects named stage durations for one request."""

    def __init__(self) -> None:
        self._started = time.perf_counter()
        self.stages: dict[str, float] = {}

    def record(self, name: str, elapsed_ms: float) -> None:
        self.stages[name] = elapsed_ms

    def total_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000.0

    def rounded(self) -> dict[str, float]:
        values = {f"{name}Ms": round(value, 1) for name, value in self.stages.items()}
        values["totalMs"] = round(self.total_ms(), 1)
        return values
