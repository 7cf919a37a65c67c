from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

import httpx

from hlb.config import ConfigError, LoadTestConfig
from hlb.loadgen.client import HttpxTransport, Transport, send_request
from hlb.metrics import Aggregator, ErrorType, Failure, RequestOutcome, RunSummary

logger = logging.getLogger(__name__)

Executor = Callable[[], Awaitable[RequestOutcome]]
ProgressCallback = Callable[[int, int], Awaitable[None]]


async def run_load_test(
    config: LoadTestConfig,
    transport: Transport | None = None,
    progress: ProgressCallback | None = None,
) -> RunSummary:
    target = config.target
    logger.info(
        "Sending %d %s requests to %s with concurrency %d",
        config.total_requests,
        target.method,
        target.url,
        config.effective_concurrency,
    )
    logger.debug("Run parameters: %s", config.to_metadata())
    if transport is not None:
        summary = await _run_with(config, transport, progress)
    else:
        limits = httpx.Limits(
            max_connections=config.effective_concurrency,
            max_keepalive_connections=config.effective_concurrency,
        )
        async with httpx.AsyncClient(limits=limits, timeout=httpx.Timeout(target.timeout_sec)) as client:
            http = HttpxTransport(client, stream=target.stream)
            summary = await _run_with(config, http, progress)
    logger.info(
        "Run complete: %d succeeded, %d failed in %.3fs",
        summary.succeeded,
        summary.failed,
        summary.duration_wall,
    )
    return summary


async def _run_with(
    config: LoadTestConfig,
    transport: Transport,
    progress: ProgressCallback | None,
) -> RunSummary:
    if not transport.reports_first_byte:
        logger.info("Transport has no first-byte signal; TTFB will equal TTLB")
    return await dispatch(
        config.total_requests,
        config.concurrency,
        lambda: send_request(transport, config.target),
        progress,
    )


async def dispatch(
    total: int,
    concurrency: int,
    execute: Executor,
    progress: ProgressCallback | None = None,
) -> RunSummary:
    """Run ``execute`` exactly ``total`` times, at most ``concurrency`` at once.

    A fixed pool of ``min(total, concurrency)`` workers claims request slots
    until none remain. Outcomes travel over a queue to a single collector
    task, which is the only owner of the aggregator.
    """
    if total < 1:
        msg = f"total_requests must be >= 1, got {total}"
        raise ConfigError(msg)
    if concurrency < 1:
        msg = f"concurrency must be >= 1, got {concurrency}"
        raise ConfigError(msg)

    outcomes: asyncio.Queue[RequestOutcome] = asyncio.Queue()
    aggregator = Aggregator()
    remaining = total

    async def worker() -> None:
        nonlocal remaining
        while remaining > 0:
            remaining -= 1
            await outcomes.put(await _execute_one(execute))

    async def collector() -> None:
        while aggregator.count < total:
            outcome = await outcomes.get()
            aggregator.add(outcome)
            if progress:
                await progress(aggregator.count, total)

    workers = [asyncio.create_task(worker()) for _ in range(min(total, concurrency))]
    collecting = asyncio.create_task(collector())
    try:
        await asyncio.gather(*workers)
        await collecting
    finally:
        pending = [t for t in (*workers, collecting) if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    return aggregator.summary()


async def _execute_one(execute: Executor) -> RequestOutcome:
    started_at = time.perf_counter()
    try:
        return await execute()
    except Exception as exc:
        logger.warning("Executor raised %s; recording as failure", type(exc).__name__, exc_info=exc)
        return RequestOutcome(
            started_at=started_at,
            first_byte_at=None,
            completed_at=time.perf_counter(),
            status=Failure(ErrorType.OTHER, detail=str(exc) or type(exc).__name__),
        )
