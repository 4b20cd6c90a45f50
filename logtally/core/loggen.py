"""
core/loggen.py

Deterministic synthetic log generator.

Produces lines in the record grammar with weighted severities, timestamps
spread over a fixed window (some written with a non-UTC offset), and a
configurable share of malformed lines. Alongside the lines it returns the
exact per-timestamp counts a correct run must reproduce, so large inputs can
be checked without a second implementation.

Usage:
    log = generate(1_000_000, seed=7)
    log.expected[datetime(2024, 1, 1, tzinfo=timezone.utc)]   # count of 'error' at 00:00:00Z

    logtally-gen data/test-1_000_000.log --lines 1000000 --seed 7
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .materialize import KeyFormat, format_entry, materialize
from .models import ERROR_SEVERITY

logger = logging.getLogger(__name__)

DEFAULT_START = datetime(2024, 1, 1, tzinfo=timezone.utc)

SEVERITY_WEIGHTS: dict[str, int] = {
    "error": 20,
    "warn":  15,
    "info":  55,
    "debug": 10,
}

_COMPONENTS = ("auth", "billing", "gateway", "search", "scheduler", "storage")
_CATEGORIES = ("db", "http", "cache", "io", "security")
_MESSAGES = (
    "connection refused",
    "request processed",
    "cache miss",
    "disk read failed",
    "retrying operation",
    "token expired",
    "upstream timeout",
)

# Each entry is rejected by the parser for a different reason.
_MALFORMED = (
    "",
    "plain text without any structure",
    "[not-a-timestamp] [svc:1] [error] [db] boom",
    "[2024-01-01T00:00:00] [svc:1] [error] [db] naive timestamp",
    "[2024-01-01T00:00:00Z] [svc] [error] [db] component without id",
    "[2024-01-01T00:00:00Z] [svc:1] [] [db] empty severity",
    "[2024-01-01T00:00:00Z] [svc:1] [error] [db]",
    "2024-01-01T00:00:00Z svc:1 error db no brackets",
)

_PLUS_TWO = timezone(timedelta(hours=2))


@dataclass
class GeneratedLog:
    lines: list[str]
    severity: str
    expected: Counter = field(default_factory=Counter)
    """UTC timestamp → number of lines with `severity` at that instant."""

    rejected: int = 0
    filtered: int = 0

    @property
    def counted(self) -> int:
        return sum(self.expected.values())

    def expected_output(self, key_format: KeyFormat = KeyFormat.ISO) -> list[str]:
        """The summary lines a correct sorted run must write."""
        return [format_entry(e, key_format) for e in materialize(self.expected)]


def _format_ts(ts: datetime, rng: random.Random) -> str:
    # One line in eight uses a +02:00 offset for the same instant
    if rng.random() < 0.125:
        return ts.astimezone(_PLUS_TWO).isoformat()
    return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


def generate(
    count: int,
    seed: int = 0,
    severity: str = ERROR_SEVERITY,
    start: datetime = DEFAULT_START,
    span_seconds: int = 3600,
    malformed_ratio: float = 0.01,
) -> GeneratedLog:
    """
    Generate `count` lines and their expected per-timestamp counts.

    Args:
        count:           Total number of lines (malformed ones included).
        seed:            RNG seed; equal arguments give identical output.
        severity:        Severity whose counts go into `expected`.
        start:           First possible timestamp (offset-aware).
        span_seconds:    Timestamps fall in [start, start + span_seconds).
        malformed_ratio: Probability that a line is malformed.
    """
    if count < 0:
        raise ValueError(f"count must be >= 0, got {count}")
    if span_seconds < 1:
        raise ValueError(f"span_seconds must be >= 1, got {span_seconds}")
    if not 0.0 <= malformed_ratio <= 1.0:
        raise ValueError(f"malformed_ratio must be in [0, 1], got {malformed_ratio}")

    rng = random.Random(seed)
    severities = list(SEVERITY_WEIGHTS)
    weights = list(SEVERITY_WEIGHTS.values())
    start_utc = start.astimezone(timezone.utc)

    log = GeneratedLog(lines=[], severity=severity)
    for i in range(count):
        if rng.random() < malformed_ratio:
            log.lines.append(rng.choice(_MALFORMED))
            log.rejected += 1
            continue

        ts = start_utc + timedelta(seconds=rng.randrange(span_seconds))
        level = rng.choices(severities, weights)[0]
        log.lines.append(
            f"[{_format_ts(ts, rng)}] [{rng.choice(_COMPONENTS)}:{i % 64}] "
            f"[{level}] [{rng.choice(_CATEGORIES)}] {rng.choice(_MESSAGES)}"
        )
        if level == severity:
            log.expected[ts] += 1
        else:
            log.filtered += 1

    logger.debug(
        "Generated %d lines — counted=%d filtered=%d rejected=%d keys=%d",
        count, log.counted, log.filtered, log.rejected, len(log.expected),
    )
    return log


def write_log(path: str, count: int, **kwargs) -> GeneratedLog:
    """Generate a log and write it to `path`, one line per record."""
    log = generate(count, **kwargs)
    with open(path, "w", encoding="utf-8", newline="\n") as fh:
        for line in log.lines:
            fh.write(line + "\n")
    logger.info("Wrote %d lines to %s", count, path)
    return log


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a synthetic logtally input file")
    parser.add_argument("path")
    parser.add_argument("--lines", type=int, default=100_000)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--span-seconds", type=int, default=3600)
    parser.add_argument("--malformed-ratio", type=float, default=0.01)
    parser.add_argument("--severity", default=ERROR_SEVERITY)
    parser.add_argument(
        "--expected", default=None,
        help="also write the expected summary for --severity to this path",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        log = write_log(
            args.path,
            args.lines,
            seed=args.seed,
            severity=args.severity,
            span_seconds=args.span_seconds,
            malformed_ratio=args.malformed_ratio,
        )
        if args.expected:
            with open(args.expected, "w", encoding="utf-8", newline="\n") as fh:
                fh.writelines(line + "\n" for line in log.expected_output())
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
