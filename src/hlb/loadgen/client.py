from __future__ import annotations

import asyncio
import logging
import socket
import ssl
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from hlb.config import TargetConfig
from hlb.metrics import ErrorType, Failure, RequestOutcome, Success

logger = logging.getLogger(__name__)


class Transport(Protocol):
    reports_first_byte: bool

    async def execute(self, target: TargetConfig) -> RequestOutcome:
        ...


@dataclass(slots=True)
class HttpxTransport:
    """Issues requests through a shared ``httpx.AsyncClient``.

    In streaming mode the first body chunk marks ``first_byte_at`` (the
    header arrival time is used when the body is empty). Without streaming
    httpx only hands back a finished response, so TTFB falls back to TTLB
    and the outcome is flagged as approximated.
    """

    client: httpx.AsyncClient
    stream: bool = True

    @property
    def reports_first_byte(self) -> bool:
        return self.stream

    async def execute(self, target: TargetConfig) -> RequestOutcome:
        if self.stream:
            return await self._execute_streaming(target)
        return await self._execute_buffered(target)

    async def _execute_streaming(self, target: TargetConfig) -> RequestOutcome:
        started_at = time.perf_counter()
        first_byte_at: float | None = None
        received = 0
        async with self.client.stream(
            target.method,
            target.url,
            headers=target.headers,
            follow_redirects=target.follow_redirects,
        ) as resp:
            headers_at = time.perf_counter()
            async for chunk in resp.aiter_bytes():
                if chunk and first_byte_at is None:
                    first_byte_at = time.perf_counter()
                received += len(chunk)
        completed_at = time.perf_counter()
        if first_byte_at is None:
            first_byte_at = headers_at
        return RequestOutcome(
            started_at=started_at,
            first_byte_at=first_byte_at,
            completed_at=completed_at,
            status=_classify(resp),
            bytes_received=received,
        )

    async def _execute_buffered(self, target: TargetConfig) -> RequestOutcome:
        started_at = time.perf_counter()
        resp = await self.client.request(
            target.method,
            target.url,
            headers=target.headers,
            follow_redirects=target.follow_redirects,
        )
        completed_at = time.perf_counter()
        return RequestOutcome(
            started_at=started_at,
            first_byte_at=completed_at,
            completed_at=completed_at,
            status=_classify(resp),
            bytes_received=len(resp.content or b""),
            ttfb_approximated=True,
        )


async def send_request(transport: Transport, target: TargetConfig) -> RequestOutcome:
    """Run one request and map every failure mode to a ``Failure`` outcome."""
    started_at = time.perf_counter()
    try:
        if target.timeout_sec is None:
            return await transport.execute(target)
        return await asyncio.wait_for(transport.execute(target), timeout=target.timeout_sec)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        err = ErrorType.TIMEOUT
        detail = str(exc) or "deadline exceeded"
    except httpx.ConnectError as exc:
        err = _connect_error_kind(exc)
        detail = str(exc)
    except httpx.ReadError as exc:
        err = ErrorType.READ
        detail = str(exc)
    except httpx.WriteError as exc:
        err = ErrorType.WRITE
        detail = str(exc)
    except (httpx.RemoteProtocolError, httpx.LocalProtocolError, httpx.DecodingError) as exc:
        err = ErrorType.PROTOCOL
        detail = str(exc)
    except (httpx.HTTPError, httpx.StreamError, httpx.InvalidURL, OSError) as exc:
        err = ErrorType.OTHER
        detail = str(exc) or type(exc).__name__
    completed_at = time.perf_counter()
    logger.debug("request to %s failed: %s (%s)", target.url, err.value, detail)
    return RequestOutcome(
        started_at=started_at,
        first_byte_at=None,
        completed_at=completed_at,
        status=Failure(err, detail=detail),
    )


def _classify(resp: httpx.Response) -> Success | Failure:
    if resp.is_success:
        return Success(resp.status_code)
    return Failure(ErrorType.STATUS, status_code=resp.status_code, detail=resp.reason_phrase)


def _connect_error_kind(exc: BaseException) -> ErrorType:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return ErrorType.DNS
        if isinstance(current, ssl.SSLError):
            return ErrorType.TLS
        current = current.__cause__ or current.__context__
    return ErrorType.CONNECT
