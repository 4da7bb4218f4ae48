#!/usr/bin/env python3
"""
Traffic Cop CLI - Command Line Interface

Inspect captured HTTP traffic (HAR files) from the terminal.

Usage:
    trafficcop validate capture.har
    trafficcop summary capture.har --json
    trafficcop search capture.har --status-range 400 599
    trafficcop stats capture.har --by duration
    trafficcop tail capture.har -n 20
    trafficcop empty > blank.har
"""

import argparse
import logging
import sys
from pathlib import Path

import structlog
from rich.markup import escape

from trafficcop.analysis.errors import CaptureError
from trafficcop.analysis.live import LiveCaptureBuffer
from trafficcop.analysis.models import CaptureDocument, create_empty
from trafficcop.analysis.parser import format_entry, parse, stringify, validate
from trafficcop.analysis.repair import repair_and_parse
from trafficcop.analysis.search import (
    SearchCriteria,
    find_failures,
    find_large,
    find_slow,
    intersect,
    search,
)
from trafficcop.analysis.statistics import (
    calculate_duration_percentiles,
    calculate_total_bandwidth,
    find_auth_failures,
    group_by_duration,
    group_by_method,
    group_by_size,
    group_by_status,
    summarize,
)
from trafficcop.config import settings
from trafficcop.output.console import VERSION, CaptureConsole, get_console

logger = structlog.get_logger(__name__)


# =============================================================================
# Logging Configuration
# =============================================================================


def configure_logging(level: str, fmt: str) -> None:
    """Configure structured logging with structlog, rendered to stderr."""
    log_level = getattr(logging, level.upper(), logging.WARNING)

    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Loading
# =============================================================================


def load_document(path: Path, repair: bool) -> CaptureDocument:
    """
    Read, parse and validate a capture file.

    Raises:
        OSError: If the file cannot be read
        CaptureError: If the capture is malformed or invalid
    """
    text = path.read_text(encoding="utf-8")
    document = repair_and_parse(text) if repair else parse(text)
    validate(document)
    logger.info("capture_loaded", path=str(path), entries=len(document.entries))
    return document


# =============================================================================
# Commands
# =============================================================================


def cmd_validate(document: CaptureDocument, args: argparse.Namespace, console: CaptureConsole) -> int:
    if args.json:
        console.print_json({"valid": True, "entries": len(document.entries)})
    else:
        console.print_success(f"Valid capture with {len(document.entries):,} entries")
    return 0


def cmd_summary(document: CaptureDocument, args: argparse.Namespace, console: CaptureConsole) -> int:
    summary = summarize(document.entries, top_n=settings.top_n)
    if args.json:
        console.print_json(summary.to_dict())
    else:
        console.print_summary(summary, args.file.name)
    return 0


def _criteria_from_args(args: argparse.Namespace) -> SearchCriteria:
    return SearchCriteria(
        url=args.url,
        url_regex=args.url_regex,
        method=args.method,
        status_code=args.status,
        status_range=tuple(args.status_range) if args.status_range else None,
        min_duration=args.min_duration,
        max_duration=args.max_duration,
        min_size=args.min_size,
        max_size=args.max_size,
        content_type=args.content_type,
        after_date=args.after,
        before_date=args.before,
        traceparent=args.traceparent,
    )


def cmd_search(document: CaptureDocument, args: argparse.Namespace, console: CaptureConsole) -> int:
    entries = document.entries
    result_sets = []

    if args.failures:
        result_sets.append(find_failures(entries))
    if args.slow:
        result_sets.append(find_slow(entries, settings.slow_threshold_ms))
    if args.large:
        result_sets.append(find_large(entries, settings.large_threshold_bytes))

    criteria = _criteria_from_args(args)
    if not criteria.is_empty():
        result_sets.append(search(entries, criteria))

    if not result_sets:
        console.print_error("Give at least one search criterion")
        return 1

    results = intersect(*result_sets)

    if args.json:
        console.print_json([r.to_dict() for r in results])
    else:
        console.print_search_results(results)
    return 0


def cmd_stats(document: CaptureDocument, args: argparse.Namespace, console: CaptureConsole) -> int:
    entries = document.entries

    if args.by == "status":
        report = group_by_status(entries)
        render = console.print_status_stats
    elif args.by == "size":
        report = group_by_size(entries)
        render = console.print_size_stats
    elif args.by == "duration":
        report = group_by_duration(entries)
        render = console.print_duration_stats
    elif args.by == "method":
        report = group_by_method(entries)
        render = console.print_method_stats
    elif args.by == "auth":
        report = find_auth_failures(entries)
        render = console.print_auth_failures
    elif args.by == "percentiles":
        percentiles = calculate_duration_percentiles(entries)
        if args.json:
            console.print_json(percentiles)
        else:
            console.print_percentiles(percentiles)
        return 0
    else:
        bandwidth = calculate_total_bandwidth(entries)
        if args.json:
            console.print_json(bandwidth.to_dict())
        else:
            console.print_bandwidth(bandwidth)
        return 0

    if args.json:
        console.print_json([item.to_dict() for item in report])
    else:
        render(report)
    return 0


def cmd_tail(document: CaptureDocument, args: argparse.Namespace, console: CaptureConsole) -> int:
    buffer = LiveCaptureBuffer(
        capacity=settings.live_buffer_capacity,
        creator_name=settings.creator_name,
        creator_version=settings.creator_version,
    )
    buffer.start_session(args.file.name)
    buffer.add_batch(document.entries)

    lines = [format_entry(e) for e in buffer.get_last(args.lines)]
    if args.json:
        console.print_json({"stats": buffer.get_stats().to_dict(), "entries": lines})
    else:
        console.print_lines(lines)
    return 0


def cmd_empty(args: argparse.Namespace, console: CaptureConsole) -> int:
    document = create_empty(settings.creator_name, settings.creator_version)
    console.print_text(stringify(document, pretty=not args.json))
    return 0


COMMANDS = {
    "validate": cmd_validate,
    "summary": cmd_summary,
    "search": cmd_search,
    "stats": cmd_stats,
    "tail": cmd_tail,
}


# =============================================================================
# Main Entry Point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trafficcop",
        description="Traffic Cop - HTTP capture analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    trafficcop summary capture.har
    trafficcop search capture.har --failures
    trafficcop search capture.har --traceparent 4bf92f3577b34da6
    trafficcop stats capture.har --by percentiles --json
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("file", type=Path, help="Capture (HAR) file")
    common.add_argument("--json", action="store_true", help="Print JSON instead of tables")
    common.add_argument("--no-repair", action="store_true", help="Do not repair malformed files")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("validate", parents=[common], help="Parse and validate a capture")
    subparsers.add_parser("summary", parents=[common], help="Overview of a capture")

    search_parser = subparsers.add_parser("search", parents=[common], help="Find matching entries")
    search_parser.add_argument("--url", help="URL substring (case-insensitive)")
    search_parser.add_argument("--url-regex", help="URL regular expression (case-insensitive)")
    search_parser.add_argument("--method", help="HTTP method")
    search_parser.add_argument("--status", type=int, help="Exact status code")
    search_parser.add_argument("--status-range", type=int, nargs=2, metavar=("MIN", "MAX"))
    search_parser.add_argument("--min-duration", type=float, metavar="MS")
    search_parser.add_argument("--max-duration", type=float, metavar="MS")
    search_parser.add_argument("--min-size", type=int, metavar="BYTES")
    search_parser.add_argument("--max-size", type=int, metavar="BYTES")
    search_parser.add_argument("--content-type", help="Response content type substring")
    search_parser.add_argument("--after", metavar="ISO", help="Started at or after")
    search_parser.add_argument("--before", metavar="ISO", help="Started at or before")
    search_parser.add_argument("--traceparent", metavar="TRACE_ID", help="W3C trace id")
    search_parser.add_argument("--failures", action="store_true", help="4xx and 5xx responses")
    search_parser.add_argument("--slow", action="store_true", help="Requests over the slow threshold")
    search_parser.add_argument("--large", action="store_true", help="Responses over the large threshold")

    stats_parser = subparsers.add_parser("stats", parents=[common], help="Aggregate statistics")
    stats_parser.add_argument(
        "--by",
        choices=["status", "size", "duration", "method", "auth", "percentiles", "bandwidth"],
        default="status",
    )

    tail_parser = subparsers.add_parser("tail", parents=[common], help="Most recent entries, one per line")
    tail_parser.add_argument("-n", "--lines", type=int, default=10, help="Number of entries (default: 10)")

    empty_parser = subparsers.add_parser("empty", help="Print an empty capture document")
    empty_parser.add_argument("--json", action="store_true", help="Print compact JSON")
    empty_parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    configure_logging("DEBUG" if args.verbose else settings.log_level, settings.log_format)
    console = get_console()

    if args.command == "empty":
        return cmd_empty(args, console)

    try:
        document = load_document(args.file, repair=settings.auto_repair and not args.no_repair)
    except OSError as e:
        console.print_error(escape(f"Cannot read {args.file}: {e}"))
        return 1
    except CaptureError as e:
        console.print_error(escape(str(e)))
        return 1

    return COMMANDS[args.command](document, args, console)


if __name__ == "__main__":
    sys.exit(main())
