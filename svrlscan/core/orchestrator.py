from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from ..validators.base import Validator
from .aggregator import ResultAggregator, RunCounters
from .classifier import classify
from .config import BatchConfig
from .errors import InputError, OutputSinkError, SvrlscanError
from .gate import PauseGate
from .inputs import discover_input_files
from .logs import DEFAULT_LOGGER_NAME
from .models import BatchResult, FileOutcome, InputFile, RunStatus, Severity
from .progress import ProgressSnapshot, ProgressTracker, format_duration
from .reports import (
    DETAIL_HEADER,
    METRICS_HEADER,
    PROCESSING_ERRORS_HEADER,
    SUMMARY_HEADER,
    CsvReport,
    output_paths,
)
from .shards import ShardWriter

SLOW_FILE_THRESHOLD_SECONDS = 10.0

NO_FILES_MESSAGE = "No files found"
PAUSED_MESSAGE = "Paused"
RESUMED_MESSAGE = "Resumed"
COMPLETE_MESSAGE = "Complete"

ProgressSink = Callable[[str], None]


class RunContext:
    """Everything one batch run shares between its workers.

    Created at the start of :meth:`BatchOrchestrator.run` and dropped at the
    end, so two runs never see each other's gate or counters.
    """

    def __init__(self, total: int) -> None:
        self.total = total
        self.gate = PauseGate()
        self.counters = RunCounters()
        self.tracker = ProgressTracker(total)
        self.failures: List[Tuple[str, str]] = []
        self.fatal: Optional[OutputSinkError] = None

    def snapshot(self) -> ProgressSnapshot:
        snap = self.tracker.snapshot()
        return ProgressSnapshot(
            processed=snap.processed,
            total=snap.total,
            elapsed_ms=snap.elapsed_ms,
            eta_ms=snap.eta_ms,
            running_workers=self.counters.running_workers,
            paused_workers=self.gate.paused_workers,
        )


class BatchOrchestrator:
    def __init__(
        self,
        validator: Validator,
        config: Optional[BatchConfig] = None,
        *,
        progress_sink: Optional[ProgressSink] = None,
        logger: Optional[logging.Logger] = None,
        verbose: bool = False,
        progress_desc: str = "Validating files",
    ) -> None:
        self.validator = validator
        self.config = (config or BatchConfig()).validate()
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild(self.__class__.__name__.lower())
        self.verbose = verbose
        if verbose:
            self.logger.setLevel(logging.INFO)
        self.progress_desc = progress_desc
        self._sink = progress_sink
        self._progress_bar = None
        self._progress_lock = threading.Lock()
        self._context: Optional[RunContext] = None
        self._context_lock = threading.Lock()
        self._running = threading.Event()
        self._slow_log_threshold = SLOW_FILE_THRESHOLD_SECONDS

    # Run controls

    def request_pause(self) -> bool:
        context = self._current_context()
        if context is None:
            self.logger.warning("Pause requested but no batch is running")
            return False
        if context.gate.request_pause():
            self.logger.info("Pause requested; workers will stop at their next file")
            self._emit(PAUSED_MESSAGE)
            return True
        return False

    def request_resume(self) -> bool:
        context = self._current_context()
        if context is None:
            self.logger.warning("Resume requested but no batch is running")
            return False
        if context.gate.request_resume():
            self.logger.info("Resuming workers")
            self._emit(RESUMED_MESSAGE)
            return True
        return False

    def snapshot(self) -> Optional[ProgressSnapshot]:
        context = self._current_context()
        return context.snapshot() if context is not None else None

    @property
    def gate(self) -> Optional[PauseGate]:
        context = self._current_context()
        return context.gate if context is not None else None

    def wait_until_running(self, timeout: Optional[float] = None) -> bool:
        """Block until a batch is running. Returns False on timeout."""
        return self._running.wait(timeout)

    # Entry points

    def run_directory(self, input_dir: Path, output_base: Path) -> BatchResult:
        try:
            files = discover_input_files(
                input_dir,
                self.config.extensions,
                self.config.recursive,
                logger=self.logger,
            )
        except InputError as exc:
            self.logger.warning("%s", exc)
            self._emit(str(exc))
            return BatchResult(status=RunStatus.INPUT_ERROR, fatal_error=str(exc))

        if files:
            self._emit(f"{len(files)} files found")
        return self.run(files, output_base)

    def run(self, files: Iterable[InputFile], output_base: Path) -> BatchResult:
        files = list(files)
        total_files = len(files)
        if not total_files:
            self.logger.info("No input files; nothing to do")
            self._emit(NO_FILES_MESSAGE)
            return BatchResult(status=RunStatus.NO_FILES)

        names = [f.name for f in files]
        if len(set(names)) != total_files:
            raise InputError("Input file names must be unique within one batch")

        context = RunContext(total_files)
        with self._context_lock:
            if self._context is not None:
                raise RuntimeError("A batch is already running on this orchestrator")
            self._context = context
            self._running.set()
        try:
            return self._run(context, files, Path(output_base))
        finally:
            with self._context_lock:
                self._running.clear()
                self._context = None

    # Internals

    def _run(self, context: RunContext, files: List[InputFile], output_base: Path) -> BatchResult:
        cfg = self.config
        paths = output_paths(output_base)
        started_at = datetime.now()
        self.logger.info(
            "Validating %d file(s) with %d worker(s); reports at %s_*",
            context.total,
            cfg.concurrency,
            paths.base,
        )

        with ExitStack() as stack:
            metrics = stack.enter_context(CsvReport(paths.metrics, METRICS_HEADER, "metrics"))
            summary = stack.enter_context(CsvReport(paths.summary, SUMMARY_HEADER, "summary"))
            detail = stack.enter_context(CsvReport(paths.detail, DETAIL_HEADER, "detail"))
            processing_errors = stack.enter_context(
                CsvReport(paths.processing_errors, PROCESSING_ERRORS_HEADER, "processing_errors")
            )
            shards: Dict[Severity, ShardWriter] = {
                severity: stack.enter_context(
                    ShardWriter(
                        paths,
                        severity.category,
                        cfg.max_lines_per_shard,
                        cfg.description_max_length,
                        logger=self.logger,
                    )
                )
                for severity in Severity
            }
            aggregator = ResultAggregator(
                context.counters, shards, summary, detail, processing_errors, metrics
            )

            progress_bar = None
            if cfg.show_progress:
                progress_bar = tqdm(total=context.total, desc=self.progress_desc, unit="file")

            context.tracker.start()
            executor = ThreadPoolExecutor(max_workers=cfg.concurrency, thread_name_prefix="svrlscan")
            try:
                self._progress_bar = progress_bar
                futures = {
                    executor.submit(self._process_file, context, aggregator, f): f for f in files
                }
                for future in as_completed(futures):
                    input_file = futures[future]
                    try:
                        outcome = future.result()
                    except OutputSinkError as exc:
                        self._abort(context, aggregator, input_file, exc)
                        processed = context.counters.file_processed()
                    else:
                        if outcome is None:
                            context.counters.file_skipped()
                            continue
                        if not outcome.ok:
                            context.failures.append((input_file.name, outcome.error or ""))
                        processed = context.counters.file_processed()

                    snap = context.tracker.completed(processed)
                    self._report_progress(context, snap)
            except KeyboardInterrupt:
                self.logger.warning("Batch interrupted by user; releasing paused workers")
                context.gate.abort()
                raise
            finally:
                executor.shutdown(wait=True, cancel_futures=True)
                if progress_bar is not None:
                    progress_bar.close()
                self._progress_bar = None

            elapsed_ms = context.tracker.stop()
            artifacts = [
                paths.metrics,
                paths.summary,
                paths.detail,
                paths.processing_errors,
            ]
            for severity in Severity:
                artifacts.extend(shards[severity].shard_paths)

        finished_at = datetime.now()
        counters = context.counters
        status = RunStatus.ABORTED if context.fatal is not None else RunStatus.COMPLETE
        result = BatchResult(
            status=status,
            total_files=context.total,
            processed_files=counters.processed_files,
            failed_files=list(context.failures),
            skipped_files=counters.skipped_files,
            error_count=counters.error_count,
            warning_count=counters.warning_count,
            started_at=started_at,
            finished_at=finished_at,
            elapsed_ms=elapsed_ms,
            average_ms=elapsed_ms // context.total,
            artifacts=artifacts,
            fatal_error=str(context.fatal) if context.fatal is not None else None,
        )

        log = self.logger.error if status is RunStatus.ABORTED else self.logger.info
        log(
            "Batch %s: %d/%d file(s) processed, %d failed, %d skipped, %d error(s), "
            "%d warning(s) in %s (avg %d ms/file)",
            status.value,
            result.processed_files,
            result.total_files,
            len(result.failed_files),
            result.skipped_files,
            result.error_count,
            result.warning_count,
            format_duration(elapsed_ms),
            result.average_ms,
        )
        if status is RunStatus.COMPLETE:
            self._emit(COMPLETE_MESSAGE)
        return result

    def _process_file(
        self,
        context: RunContext,
        aggregator: ResultAggregator,
        input_file: InputFile,
    ) -> Optional[FileOutcome]:
        context.counters.worker_started()
        try:
            if not context.gate.wait_if_paused():
                return None

            outcome = FileOutcome(file=input_file, started_at=datetime.now())
            start_time = time.perf_counter()
            self._update_current_file_display(input_file)
            try:
                raw = self.validator.validate(input_file.path, input_file.name)
                outcome.findings = classify(raw)
            except SvrlscanError as exc:
                outcome.error = str(exc)
            except Exception as exc:
                # validators are third-party code; anything they raise stays per-file
                outcome.error = f"{exc.__class__.__name__}: {exc}"
                self.logger.debug("Unexpected failure validating %s", input_file.name, exc_info=True)

            if outcome.ok:
                aggregator.record(outcome)
            else:
                if self.verbose:
                    self.logger.warning("Failed to validate %s: %s", input_file.name, outcome.error)
                else:
                    self.logger.warning("Failed to validate %s", input_file.name)
                aggregator.record_failure(outcome)

            outcome.finished_at = datetime.now()
            duration = time.perf_counter() - start_time
            outcome.duration_ms = int(duration * 1000)
            aggregator.record_metrics(outcome)
            self._emit(
                f"File: {input_file.name}, Size: {input_file.size} bytes, "
                f"Duration: {outcome.duration_ms} ms"
            )
            self._maybe_log_slow_file(outcome, duration)
            return outcome
        finally:
            context.counters.worker_finished()

    def _abort(
        self,
        context: RunContext,
        aggregator: ResultAggregator,
        input_file: InputFile,
        exc: OutputSinkError,
    ) -> None:
        if context.fatal is None:
            context.fatal = exc
            self.logger.error("Output sink failed while recording %s: %s", input_file.name, exc)
            context.gate.abort()
            self._emit(f"Aborted: {exc}")
        context.failures.append((input_file.name, str(exc)))
        try:
            aggregator.record_failure(FileOutcome(file=input_file, error=str(exc)))
        except OutputSinkError as report_exc:
            self.logger.error("Could not record failure of %s: %s", input_file.name, report_exc)

    def _current_context(self) -> Optional[RunContext]:
        with self._context_lock:
            return self._context

    def _emit(self, message: str) -> None:
        with self._progress_lock:
            if self._sink is not None:
                self._sink(message)
            else:
                self.logger.info("%s", message)

    def _report_progress(self, context: RunContext, snap: ProgressSnapshot) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                "%d/%d done, elapsed %s, eta %s",
                snap.processed,
                snap.total,
                format_duration(snap.elapsed_ms),
                format_duration(snap.eta_ms),
            )
        if self._progress_bar is None:
            return
        live = context.snapshot()
        with self._progress_lock:
            self._progress_bar.update(1)
            self._progress_bar.set_postfix(
                eta=format_duration(snap.eta_ms),
                active=live.active_workers,
                paused=live.paused_workers,
                refresh=False,
            )
            self._progress_bar.refresh()

    def _update_current_file_display(self, input_file: InputFile) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(
                "Processing %s (%s bytes, validator=%s)",
                input_file.name,
                f"{input_file.size:,}",
                self.validator.NAME,
            )
        elif self.verbose:
            self.logger.info("Processing %s", input_file.name)

    def _maybe_log_slow_file(self, outcome: FileOutcome, duration: float) -> None:
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        if duration < self._slow_log_threshold:
            return

        reasons: List[str] = []
        if outcome.file.size >= 1_000_000:
            reasons.append("large file")
        if len(outcome.findings) >= 5_000:
            reasons.append("many findings")
        if not outcome.ok:
            reasons.append("validation failed")
        if not reasons:
            reasons.append("rule set workload")

        self.logger.debug(
            "Slow validation for %s took %.2fs (%s). size=%s bytes, findings=%d",
            outcome.file.name,
            duration,
            ", ".join(reasons),
            f"{outcome.file.size:,}",
            len(outcome.findings),
        )
