from __future__ import annotations

import pandas as pd

from hlb.config import LoadTestConfig
from hlb.metrics import LatencyStats, RunSummary

NO_LATENCY_MESSAGE = "No successful requests; latency percentiles unavailable."
APPROXIMATION_NOTE = "TTFB approximated by TTLB (transport has no first-byte signal)."


def latency_table(summary: RunSummary) -> pd.DataFrame:
    rows: dict[str, LatencyStats] = {
        "ttfb": summary.ttfb,
        "ttlb": summary.ttlb,
        "total": summary.total_time,
    }
    return pd.DataFrame.from_dict(
        {
            name: {
                "min": stats.min_ms,
                "mean": stats.mean_ms,
                "p50": stats.p50_ms,
                "p95": stats.p95_ms,
                "p99": stats.p99_ms,
                "max": stats.max_ms,
            }
            for name, stats in rows.items()
        },
        orient="index",
    )


def render_summary(summary: RunSummary, config: LoadTestConfig | None = None) -> str:
    lines: list[str] = []
    if config is not None:
        lines.append(f"Target.............: {config.target.method} {config.target.url}")
        lines.append(f"Requests...........: {config.total_requests}")
        lines.append(f"Concurrency........: {config.concurrency}")
    lines.append(f"Total..............: {summary.total}")
    lines.append(f"Succeeded..........: {summary.succeeded}")
    lines.append(f"Failed.............: {summary.failed}")
    lines.append(f"Wall time (s)......: {summary.duration_wall:.3f}")
    lines.append(f"Requests/sec.......: {summary.rps:.2f}")
    lines.append(f"Error rate.........: {summary.error_rate:.2%}")
    if summary.errors_by_kind:
        breakdown = ", ".join(
            f"{kind.value}={count}"
            for kind, count in sorted(summary.errors_by_kind.items(), key=lambda item: item[0].value)
        )
        lines.append(f"Errors by kind.....: {breakdown}")
    if summary.failed_statuses:
        breakdown = ", ".join(f"{code}={count}" for code, count in sorted(summary.failed_statuses.items()))
        lines.append(f"Failed statuses....: {breakdown}")
    lines.append("")
    if not summary.has_latency:
        lines.append(NO_LATENCY_MESSAGE)
        return "\n".join(lines)
    lines.append("Latency (ms):")
    lines.append(latency_table(summary).to_string(float_format=lambda v: f"{v:.2f}", na_rep="n/a"))
    if summary.ttfb_approximated:
        lines.append(APPROXIMATION_NOTE)
    return "\n".join(lines)
