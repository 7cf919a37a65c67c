from __future__ import annotations

import math
from collections import Counter
from typing import Iterable, Sequence

import numpy as np

from hlb.metrics.models import (
    ErrorType,
    Failure,
    LatencyStats,
    RequestOutcome,
    RunSummary,
    Success,
)


def percentile(sorted_samples: Sequence[float] | np.ndarray, pct: float) -> float:
    """Nearest-rank percentile of an ascending sample.

    The rank is ``ceil(pct / 100 * n)``, clamped to ``[1, n]``, so for
    ``[1..100]`` p50 is 50 and p99 is 99. An empty sample yields NaN.
    """
    n = len(sorted_samples)
    if n == 0:
        return math.nan
    idx = math.ceil(pct * n / 100.0) - 1
    idx = min(max(idx, 0), n - 1)
    return float(sorted_samples[idx])


def latency_stats(samples_sec: Iterable[float]) -> LatencyStats:
    values = np.sort(np.fromiter(samples_sec, dtype=float)) * 1000.0
    if values.size == 0:
        return LatencyStats.empty()
    return LatencyStats(
        count=int(values.size),
        min_ms=float(values[0]),
        max_ms=float(values[-1]),
        mean_ms=float(values.mean()),
        p50_ms=percentile(values, 50),
        p95_ms=percentile(values, 95),
        p99_ms=percentile(values, 99),
    )


class Aggregator:
    """Accumulates outcomes in any order and produces a RunSummary.

    Latency samples are kept for successful requests only; failed requests
    still count towards totals and the wall-clock window.
    """

    def __init__(self) -> None:
        self.succeeded = 0
        self.failed = 0
        self._ttfb: list[float] = []
        self._ttlb: list[float] = []
        self._total: list[float] = []
        self._errors: Counter[ErrorType] = Counter()
        self._statuses: Counter[int] = Counter()
        self._first_start: float | None = None
        self._last_completion: float | None = None
        self._approximated = False

    @property
    def count(self) -> int:
        return self.succeeded + self.failed

    def add(self, outcome: RequestOutcome) -> None:
        if self._first_start is None or outcome.started_at < self._first_start:
            self._first_start = outcome.started_at
        if self._last_completion is None or outcome.completed_at > self._last_completion:
            self._last_completion = outcome.completed_at

        match outcome.status:
            case Success():
                self.succeeded += 1
                ttfb = outcome.ttfb
                self._ttfb.append(ttfb if ttfb is not None else outcome.ttlb)
                self._ttlb.append(outcome.ttlb)
                self._total.append(outcome.total_time)
                if outcome.ttfb_approximated or ttfb is None:
                    self._approximated = True
            case Failure(error_kind=kind, status_code=code):
                self.failed += 1
                self._errors[kind] += 1
                if code is not None:
                    self._statuses[code] += 1

    def extend(self, outcomes: Iterable[RequestOutcome]) -> None:
        for outcome in outcomes:
            self.add(outcome)

    def summary(self) -> RunSummary:
        if self._first_start is None or self._last_completion is None:
            duration = 0.0
        else:
            duration = self._last_completion - self._first_start
        total = self.count
        rps = total / duration if duration > 0 else 0.0
        return RunSummary(
            total=total,
            succeeded=self.succeeded,
            failed=self.failed,
            duration_wall=duration,
            rps=rps,
            ttfb=latency_stats(self._ttfb),
            ttlb=latency_stats(self._ttlb),
            total_time=latency_stats(self._total),
            errors_by_kind=dict(self._errors),
            failed_statuses=dict(self._statuses),
            ttfb_approximated=self._approximated,
        )


def summarize(outcomes: Iterable[RequestOutcome]) -> RunSummary:
    aggregator = Aggregator()
    aggregator.extend(outcomes)
    return aggregator.summary()
