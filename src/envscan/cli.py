"""Command-line entry point: one environment scan per invocation."""

import argparse
import json
import logging
import os
import sys
from typing import TextIO

from envscan.emitter import ListSink
from envscan.entities import EntityError, Operation, PatternEntity
from envscan.logging_config import DEFAULT_LOG_LEVEL, setup_logging
from envscan.models import ResultItem
from envscan.procfs import DEFAULT_PROC_ROOT, ProcessRootError, ProcRoot
from envscan.scanner import SELF_PID, EnvironmentScanner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ACCESS = 1
EXIT_USAGE = 2

_OPERATIONS = [op.value for op in Operation]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envscan",
        description="Collect environment variables of running processes from /proc/<pid>/environ.",
    )
    parser.add_argument(
        "--pid",
        type=int,
        default=SELF_PID,
        help="Process id to match; 0 (the default) means the scanning process itself.",
    )
    parser.add_argument("--pid-operation", choices=_OPERATIONS, default=Operation.EQUALS.value)
    parser.add_argument("--name", required=True, help="Variable name to match.")
    parser.add_argument("--name-operation", choices=_OPERATIONS, default=Operation.EQUALS.value)
    parser.add_argument(
        "--proc-root",
        default=os.getenv("ENVSCAN_PROC_ROOT", DEFAULT_PROC_ROOT),
        help="Process root to scan (env: ENVSCAN_PROC_ROOT).",
    )
    parser.add_argument("--format", choices=["text", "json"], default="text")
    parser.add_argument("--browse", action="store_true", help="Open the interactive result browser.")
    parser.add_argument(
        "--log-level",
        default=os.getenv("ENVSCAN_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        help="Log level (env: ENVSCAN_LOG_LEVEL).",
    )
    return parser


def format_item(item: ResultItem) -> str:
    """Render one item as a line of the text report."""
    if item.collected:
        return f"{item.pid} {item.name}={item.value}"
    return f"{item.pid} [{item.status.value}] {item.message}"


def write_report(items: list[ResultItem], fmt: str, out: TextIO) -> None:
    if fmt == "json":
        json.dump([item.to_dict() for item in items], out, indent=2)
        out.write("\n")
        return
    for item in items:
        out.write(format_item(item) + "\n")


def main(argv: list[str] | None = None, out: TextIO | None = None) -> int:
    """Entry point for the envscan command."""
    args = build_parser().parse_args(argv)
    out = out if out is not None else sys.stdout
    setup_logging(args.log_level)

    try:
        pid_entity = PatternEntity(args.pid, Operation(args.pid_operation))
        name_entity = PatternEntity(args.name, Operation(args.name_operation))
    except EntityError as exc:
        logger.error("Invalid pattern: %s", exc)
        return EXIT_USAGE

    sink = ListSink()
    scanner = EnvironmentScanner(ProcRoot(args.proc_root), sink)
    try:
        summary = scanner.scan(pid_entity, name_entity)
    except EntityError as exc:
        logger.error("Invalid pattern: %s", exc)
        return EXIT_USAGE
    except ProcessRootError as exc:
        logger.error("Scan aborted: %s", exc.strerror)
        return EXIT_ACCESS

    if args.browse:
        from envscan.app import EnvScanApp

        EnvScanApp(sink.items, summary).run()
    else:
        write_report(sink.items, args.format, out)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
