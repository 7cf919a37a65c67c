from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Union


class ErrorType(str, Enum):
    TIMEOUT = "timeout"
    CONNECT = "connect"
    DNS = "dns"
    TLS = "tls"
    READ = "read"
    WRITE = "write"
    PROTOCOL = "protocol"
    STATUS = "status"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class Success:
    status_code: int


@dataclass(frozen=True, slots=True)
class Failure:
    error_kind: ErrorType
    status_code: int | None = None
    detail: str = ""


OutcomeStatus = Union[Success, Failure]


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    """Timing and classification of one executed request.

    Timestamps are ``time.perf_counter()`` readings in seconds.
    ``first_byte_at`` is None when the request failed before any response
    byte arrived.
    """

    started_at: float
    first_byte_at: float | None
    completed_at: float
    status: OutcomeStatus
    bytes_received: int = 0
    ttfb_approximated: bool = False

    def __post_init__(self) -> None:
        if self.completed_at < self.started_at:
            msg = "completed_at precedes started_at"
            raise ValueError(msg)
        if self.first_byte_at is not None and not (
            self.started_at <= self.first_byte_at <= self.completed_at
        ):
            msg = "first_byte_at outside [started_at, completed_at]"
            raise ValueError(msg)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.status, Success)

    @property
    def ttfb(self) -> float | None:
        if self.first_byte_at is None:
            return None
        return self.first_byte_at - self.started_at

    @property
    def ttlb(self) -> float:
        return self.completed_at - self.started_at

    @property
    def total_time(self) -> float:
        return self.completed_at - self.started_at


@dataclass(frozen=True, slots=True)
class LatencyStats:
    """Latency distribution in milliseconds; NaN fields mean no samples."""

    count: int
    min_ms: float
    max_ms: float
    mean_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float

    @classmethod
    def empty(cls) -> LatencyStats:
        nan = math.nan
        return cls(count=0, min_ms=nan, max_ms=nan, mean_ms=nan, p50_ms=nan, p95_ms=nan, p99_ms=nan)


@dataclass(frozen=True, slots=True)
class RunSummary:
    total: int
    succeeded: int
    failed: int
    duration_wall: float
    rps: float
    ttfb: LatencyStats
    ttlb: LatencyStats
    total_time: LatencyStats
    errors_by_kind: Mapping[ErrorType, int] = field(default_factory=dict)
    failed_statuses: Mapping[int, int] = field(default_factory=dict)
    ttfb_approximated: bool = False

    @property
    def has_latency(self) -> bool:
        return self.succeeded > 0

    @property
    def error_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.failed / self.total

    @property
    def ttfb_p50(self) -> float:
        return self.ttfb.p50_ms

    @property
    def ttfb_p95(self) -> float:
        return self.ttfb.p95_ms

    @property
    def ttfb_p99(self) -> float:
        return self.ttfb.p99_ms

    @property
    def ttlb_p95(self) -> float:
        return self.ttlb.p95_ms

    @property
    def ttlb_p99(self) -> float:
        return self.ttlb.p99_ms

    @property
    def total_time_p95(self) -> float:
        return self.total_time.p95_ms

    @property
    def total_time_p99(self) -> float:
        return self.total_time.p99_ms
