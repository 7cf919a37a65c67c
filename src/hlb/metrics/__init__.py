from __future__ import annotations

from hlb.metrics.aggregator import Aggregator, latency_stats, percentile, summarize
from hlb.metrics.models import (
    ErrorType,
    Failure,
    LatencyStats,
    OutcomeStatus,
    RequestOutcome,
    RunSummary,
    Success,
)

__all__ = [
    "Aggregator",
    "ErrorType",
    "Failure",
    "LatencyStats",
    "OutcomeStatus",
    "RequestOutcome",
    "RunSummary",
    "Success",
    "latency_stats",
    "percentile",
    "summarize",
]
