import argparse
import sys
import threading
from pathlib import Path
from typing import List, Optional, TextIO

from tqdm import tqdm

from .core.classifier import classify
from .core.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_DESCRIPTION_MAX_LENGTH,
    DEFAULT_MAX_LINES_PER_SHARD,
    BatchConfig,
    parse_extensions,
)
from .core.errors import ConfigurationError, SvrlscanError
from .core.logs import configure_logging
from .core.models import RunStatus
from .core.orchestrator import BatchOrchestrator
from .core.progress import format_duration
from .core.shards import format_header, format_record
from .validators.xslt import XsltValidator

PAUSE_COMMANDS = {"p", "pause"}
RESUME_COMMANDS = {"r", "resume"}


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="svrlscan",
        description="Batch Schematron validation of XML documents with categorized CSV reports.",
    )
    sub = p.add_subparsers(dest="mode", required=True)

    # dir mode
    d = sub.add_parser("dir", help="Validate every matching file in a directory.")
    d.add_argument("path", type=Path, help="Directory holding the documents to validate.")
    d.add_argument("--rules", type=Path, required=True, help="Compiled Schematron stylesheet (XSLT producing SVRL).")
    d.add_argument("--out", type=Path, default=Path("./validation_report"), help="Output base path; reports are written as <base>_<kind>.csv.")
    d.add_argument("--workers", type=int, default=DEFAULT_CONCURRENCY, help="Number of worker threads.")
    d.add_argument("--max-lines", type=int, default=DEFAULT_MAX_LINES_PER_SHARD, help="Records per error/warning shard before rotating.")
    d.add_argument("--max-description", type=int, default=DEFAULT_DESCRIPTION_MAX_LENGTH, help="Characters kept from each assertion message.")
    d.add_argument("--ext", default="xml", help="Comma-delimited file extensions to validate.")
    d.add_argument("--recursive", action="store_true", help="Also validate files in subdirectories.")
    d.add_argument("--svrl-dir", type=Path, default=None, help="Keep the intermediate SVRL report of every file here.")
    d.add_argument("--interactive", action="store_true", help="Read 'pause'/'resume' (or 'p'/'r') commands from stdin while running.")
    d.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    d.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")
    d.add_argument("--log-file", type=Path, default=None, help="Also write INFO-level logs to this file.")

    # file mode
    f = sub.add_parser("file", help="Validate a single document and print its findings as CSV.")
    f.add_argument("path", type=Path, help="Document to validate.")
    f.add_argument("--rules", type=Path, required=True, help="Compiled Schematron stylesheet (XSLT producing SVRL).")
    f.add_argument("--max-description", type=int, default=DEFAULT_DESCRIPTION_MAX_LENGTH, help="Characters kept from each assertion message.")
    f.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")

    return p


def _print_progress(message: str) -> None:
    tqdm.write(message, file=sys.stderr)


def _start_console_controls(orchestrator: BatchOrchestrator, stream: TextIO) -> threading.Thread:
    def _read_commands() -> None:
        # commands typed before the batch starts apply to that batch
        orchestrator.wait_until_running()
        for line in stream:
            command = line.strip().lower()
            if command in PAUSE_COMMANDS:
                orchestrator.request_pause()
            elif command in RESUME_COMMANDS:
                orchestrator.request_resume()
            elif command:
                _print_progress(f"Unknown command: {command} (use 'pause' or 'resume')")

    thread = threading.Thread(target=_read_commands, name="svrlscan-controls", daemon=True)
    thread.start()
    return thread


def run_dir(args: argparse.Namespace) -> int:
    logger = configure_logging(verbose=args.verbose, log_file=args.log_file)
    try:
        config = BatchConfig(
            concurrency=args.workers,
            max_lines_per_shard=args.max_lines,
            description_max_length=args.max_description,
            extensions=parse_extensions(args.ext),
            recursive=args.recursive,
            show_progress=not args.no_progress,
        ).validate()
        validator = XsltValidator(args.rules, svrl_dir=args.svrl_dir, logger=logger)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    orchestrator = BatchOrchestrator(
        validator,
        config,
        progress_sink=_print_progress,
        logger=logger,
        verbose=args.verbose,
    )
    if args.interactive:
        _start_console_controls(orchestrator, sys.stdin)

    try:
        result = orchestrator.run_directory(args.path, args.out)
    except SvrlscanError as exc:
        logger.error("Batch failed: %s", exc)
        print(f"Batch failed: {exc}", file=sys.stderr)
        return 1

    if result.status is RunStatus.INPUT_ERROR:
        return 2
    if result.status is RunStatus.NO_FILES:
        return 0

    print(
        f"Files: {result.total_files}, processed: {result.processed_files}, "
        f"failed: {len(result.failed_files)}, skipped: {result.skipped_files}"
    )
    print(f"Errors: {result.error_count}, warnings: {result.warning_count}")
    print(f"Overall start: {result.started_at:%Y-%m-%d %H:%M:%S}, end: {result.finished_at:%Y-%m-%d %H:%M:%S}")
    print(f"Elapsed: {format_duration(result.elapsed_ms)}, average: {result.average_ms} ms/file")
    if result.status is RunStatus.ABORTED:
        print(f"Aborted: {result.fatal_error}", file=sys.stderr)
        return 1
    return 0


def run_file(args: argparse.Namespace) -> int:
    logger = configure_logging(verbose=args.verbose)
    try:
        validator = XsltValidator(args.rules, logger=logger)
        findings = classify(validator.validate(args.path))
    except SvrlscanError as exc:
        logger.error("%s", exc)
        print(f"Validation failed: {exc}", file=sys.stderr)
        return 1

    sys.stdout.write(format_header())
    for finding in findings:
        sys.stdout.write(format_record(args.path.name, finding, args.max_description))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    if args.mode == "dir":
        return run_dir(args)
    elif args.mode == "file":
        return run_file(args)
    else:
        parser.print_help()
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
