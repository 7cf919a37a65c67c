from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx


class ConfigError(ValueError):
    """Raised for run parameters that make a load test impossible."""


@dataclass(frozen=True, slots=True)
class TargetConfig:
    url: str
    method: str = "GET"
    timeout_sec: float | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    follow_redirects: bool = True
    stream: bool = True


@dataclass(frozen=True, slots=True)
class LoadTestConfig:
    target: TargetConfig
    total_requests: int = 10
    concurrency: int = 1

    def __post_init__(self) -> None:
        self.validate()

    @property
    def effective_concurrency(self) -> int:
        return min(self.total_requests, self.concurrency)

    def validate(self) -> None:
        if self.total_requests < 1:
            msg = f"total_requests must be >= 1, got {self.total_requests}"
            raise ConfigError(msg)
        if self.concurrency < 1:
            msg = f"concurrency must be >= 1, got {self.concurrency}"
            raise ConfigError(msg)
        if self.target.timeout_sec is not None and self.target.timeout_sec <= 0:
            msg = f"timeout must be positive, got {self.target.timeout_sec}"
            raise ConfigError(msg)
        _check_url(self.target.url)
        _check_headers(self.target.headers)

    def to_metadata(self) -> Mapping[str, Any]:
        return {
            "total_requests": self.total_requests,
            "concurrency": self.concurrency,
            "target": {
                "url": self.target.url,
                "method": self.target.method,
                "timeout_sec": self.target.timeout_sec,
                "headers": dict(self.target.headers),
                "follow_redirects": self.target.follow_redirects,
                "stream": self.target.stream,
            },
        }


def _check_headers(headers: Mapping[str, str]) -> None:
    try:
        httpx.Headers(headers)
    except (UnicodeEncodeError, TypeError) as exc:
        msg = f"Invalid header: {exc}"
        raise ConfigError(msg) from exc


def _check_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        msg = f"Invalid URL {url!r}: {exc}"
        raise ConfigError(msg) from exc
    if parsed.scheme not in ("http", "https") or not parsed.host:
        msg = f"Invalid URL {url!r}: expected an absolute http(s) URL"
        raise ConfigError(msg)
