from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from hlb.config import ConfigError, LoadTestConfig, TargetConfig
from hlb.loadgen.runner import run_load_test
from hlb.report import render_summary

logger = logging.getLogger(__name__)


def _parse_headers(values: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            msg = f"Invalid header {raw!r}: expected 'Name: value'"
            raise ConfigError(msg)
        headers[name.strip()] = value.strip()
    return headers


def _build_config(args: argparse.Namespace) -> LoadTestConfig:
    target = TargetConfig(
        url=args.url,
        method=args.method.upper(),
        timeout_sec=args.timeout,
        headers=_parse_headers(args.header),
        follow_redirects=not args.no_redirects,
        stream=not args.no_stream,
    )
    return LoadTestConfig(
        target=target,
        total_requests=args.number,
        concurrency=args.concurrency,
    )


async def _print_progress(done: int, total: int) -> None:
    end = "\n" if done == total else ""
    print(f"\r{done}/{total} requests", end=end, file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HTTP load bench")
    parser.add_argument("-u", "--url", required=True, help="Target URL")
    parser.add_argument("-n", "--number", type=int, default=10, help="Total number of requests")
    parser.add_argument("-c", "--concurrency", type=int, default=1, help="Maximum requests in flight")
    parser.add_argument("--method", default="GET")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request deadline in seconds")
    parser.add_argument("-H", "--header", action="append", default=[], help="Extra header, 'Name: value'")
    parser.add_argument("--no-stream", action="store_true", help="Buffer responses; TTFB falls back to TTLB")
    parser.add_argument("--no-redirects", action="store_true", help="Do not follow redirects")
    parser.add_argument("--progress", action="store_true", help="Show completed request count")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = _build_config(args)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    progress = _print_progress if args.progress else None
    try:
        summary = asyncio.run(run_load_test(config, progress=progress))
    except KeyboardInterrupt:
        logger.warning("Interrupted; in-flight requests abandoned")
        return 130
    print(render_summary(summary, config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
