from __future__ import annotations

import math

import pytest
from hypothesis import given, strategies as st

from hlb.metrics import Aggregator, ErrorType, Failure, RequestOutcome, Success, summarize


def _ok(start: float, ttfb: float, ttlb: float, code: int = 200) -> RequestOutcome:
    return RequestOutcome(
        started_at=start,
        first_byte_at=start + ttfb,
        completed_at=start + ttlb,
        status=Success(code),
    )


def _failed(start: float, elapsed: float, kind: ErrorType, code: int | None = None) -> RequestOutcome:
    return RequestOutcome(
        started_at=start,
        first_byte_at=None,
        completed_at=start + elapsed,
        status=Failure(kind, status_code=code),
    )


def _seconds(low_ms: int, high_ms: int) -> st.SearchStrategy[float]:
    return st.integers(min_value=low_ms, max_value=high_ms).map(lambda ms: ms / 1000.0)


outcome_strategy = st.one_of(
    st.builds(
        _ok,
        start=_seconds(0, 100_000),
        ttfb=_seconds(0, 1000),
        ttlb=_seconds(1000, 2000),
    ),
    st.builds(
        _failed,
        start=_seconds(0, 100_000),
        elapsed=_seconds(0, 2000),
        kind=st.sampled_from(list(ErrorType)),
    ),
)


@given(outcomes=st.lists(outcome_strategy, min_size=1, max_size=60))
def test_counts_always_add_up(outcomes: list[RequestOutcome]) -> None:
    summary = summarize(outcomes)
    assert summary.total == len(outcomes)
    assert summary.succeeded + summary.failed == summary.total
    assert summary.rps >= 0.0
    assert math.isfinite(summary.rps)


@given(data=st.data(), outcomes=st.lists(outcome_strategy, min_size=1, max_size=60))
def test_summary_ignores_arrival_order(data: st.DataObject, outcomes: list[RequestOutcome]) -> None:
    shuffled = data.draw(st.permutations(outcomes))
    first = summarize(outcomes)
    second = summarize(shuffled)
    assert (first.total, first.succeeded, first.failed) == (second.total, second.succeeded, second.failed)
    assert first.duration_wall == second.duration_wall
    assert first.rps == second.rps
    assert first.errors_by_kind == second.errors_by_kind
    for a, b in ((first.ttfb, second.ttfb), (first.ttlb, second.ttlb), (first.total_time, second.total_time)):
        assert a.count == b.count
        for field in ("min_ms", "max_ms", "mean_ms", "p50_ms", "p95_ms", "p99_ms"):
            left = getattr(a, field)
            right = getattr(b, field)
            assert left == right or (math.isnan(left) and math.isnan(right))


def test_all_failures_report_no_latency() -> None:
    outcomes = [
        _failed(0.0, 0.1, ErrorType.CONNECT),
        _failed(0.1, 0.2, ErrorType.TIMEOUT),
        _failed(0.2, 0.1, ErrorType.STATUS, code=503),
    ]
    summary = summarize(outcomes)
    assert summary.succeeded == 0
    assert summary.failed == 3
    assert not summary.has_latency
    assert math.isnan(summary.ttfb_p50)
    assert math.isnan(summary.ttlb_p99)
    assert math.isnan(summary.total_time_p95)
    assert summary.errors_by_kind == {
        ErrorType.CONNECT: 1,
        ErrorType.TIMEOUT: 1,
        ErrorType.STATUS: 1,
    }
    assert summary.failed_statuses == {503: 1}
    assert summary.error_rate == 1.0


def test_latency_only_from_successes() -> None:
    outcomes = [
        _ok(0.0, 0.010, 0.020),
        _failed(0.0, 5.0, ErrorType.TIMEOUT),
    ]
    summary = summarize(outcomes)
    assert summary.ttfb.count == 1
    assert math.isclose(summary.ttfb_p99, 10.0)
    assert math.isclose(summary.ttlb_p99, 20.0)
    assert math.isclose(summary.duration_wall, 5.0)
    assert math.isclose(summary.rps, 2 / 5.0)


def test_wall_time_spans_first_start_to_last_completion() -> None:
    summary = summarize([_ok(2.0, 0.1, 0.5), _ok(1.0, 0.1, 0.5), _ok(1.5, 0.1, 2.0)])
    assert math.isclose(summary.duration_wall, 2.5)
    assert math.isclose(summary.rps, 3 / 2.5)


def test_zero_duration_rps_sentinel() -> None:
    summary = summarize([_ok(1.0, 0.0, 0.0)])
    assert summary.duration_wall == 0.0
    assert summary.rps == 0.0
    assert summary.ttfb_p50 == 0.0


def test_empty_input_is_no_data_summary() -> None:
    summary = Aggregator().summary()
    assert summary.total == 0
    assert summary.rps == 0.0
    assert summary.error_rate == 0.0
    assert math.isnan(summary.ttfb_p95)


def test_approximated_ttfb_is_flagged() -> None:
    aggregator = Aggregator()
    aggregator.add(
        RequestOutcome(
            started_at=0.0,
            first_byte_at=0.3,
            completed_at=0.3,
            status=Success(200),
            ttfb_approximated=True,
        )
    )
    summary = aggregator.summary()
    assert summary.ttfb_approximated
    assert summary.ttfb_p50 == summary.ttlb.p50_ms


def test_outcome_rejects_inverted_timestamps() -> None:
    with pytest.raises(ValueError):
        RequestOutcome(started_at=1.0, first_byte_at=2.0, completed_at=1.5, status=Success(200))
