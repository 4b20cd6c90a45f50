"""
core/main.py

Command-line entry point.

    logtally app.log -o summary.txt --workers 8 --severity error
    cat app.log | logtally - --bucket-seconds 60

Defaults come from config.Settings (environment / .env). SIGINT cancels the
run in flight; a second SIGINT falls through to the default handler.

Exit codes:
    0    summary written
    1    bad arguments, unreadable input, or unwritable output
    130  cancelled (SIGINT or --timeout)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from .config import settings
from .errors import CancellationError, LogTallyError
from .materialize import KeyFormat, OutputOrder
from .pipeline import PipelineConfig, PipelineDriver, run_with_deadline
from .streams import FileSink, TextSink, file_lines, stream_lines

logger = logging.getLogger("logtally.main")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CANCELLED = 130


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Count log records of one severity per timestamp",
    )
    parser.add_argument("input", help="log file to read, or '-' for stdin")
    parser.add_argument("-o", "--output", default=None, help="summary file (default: stdout)")
    parser.add_argument("--workers", type=int, default=settings.WORKER_COUNT)
    parser.add_argument("--chunk-size", type=int, default=settings.CHUNK_SIZE)
    parser.add_argument("--queue-depth", type=int, default=settings.QUEUE_DEPTH)
    parser.add_argument("--severity", default=settings.SEVERITY)
    parser.add_argument("--bucket-seconds", type=int, default=settings.BUCKET_SECONDS)
    parser.add_argument(
        "--unordered", action="store_true",
        default=settings.OUTPUT_ORDER == OutputOrder.UNORDERED.value,
        help="skip the final sort (output order is unspecified)",
    )
    parser.add_argument(
        "--key-format", default=settings.KEY_FORMAT,
        choices=[f.value for f in KeyFormat],
    )
    parser.add_argument("--encoding", default=settings.INPUT_ENCODING)
    parser.add_argument("--timeout", type=float, default=None, help="deadline in seconds")
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL, type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        worker_count=args.workers,
        chunk_size=args.chunk_size,
        queue_depth=args.queue_depth,
        severity=args.severity,
        bucket_seconds=args.bucket_seconds,
        order=OutputOrder.UNORDERED if args.unordered else OutputOrder.SORTED,
        key_format=KeyFormat(args.key_format),
    )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )

    try:
        config = _build_config(args)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR

    lines = stream_lines(sys.stdin) if args.input == "-" else file_lines(args.input, args.encoding)
    sink = (
        TextSink(sys.stdout, config.key_format)
        if args.output is None
        else FileSink(args.output, config.key_format)
    )
    driver = PipelineDriver(config)

    def _signal_handler(_signum, _frame) -> None:
        logger.info("Interrupt received — cancelling run")
        driver.cancel()
        signal.signal(signal.SIGINT, signal.SIG_DFL)

    previous = signal.signal(signal.SIGINT, _signal_handler)
    try:
        if args.timeout is not None:
            stats = asyncio.run(run_with_deadline(driver, lines, sink, args.timeout))
        else:
            stats = driver.run(lines, sink)
    except CancellationError as e:
        print(f"CANCELLED: {e}", file=sys.stderr)
        return EXIT_CANCELLED
    except LogTallyError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        signal.signal(signal.SIGINT, previous)

    print(f"{stats.elapsed_seconds * 1000:.0f} ms", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
