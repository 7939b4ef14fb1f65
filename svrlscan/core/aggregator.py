from __future__ import annotations
import threading
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from .models import FileOutcome, Severity
from .reports import CsvReport
from .shards import ShardWriter

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class RunCounters:
    """Counters for one batch run, guarded by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.processed_files = 0
        self.skipped_files = 0
        self.running_workers = 0
        self.error_count = 0
        self.warning_count = 0
        self.file_counts: Dict[str, Tuple[int, int]] = {}
        self.rule_counts: Dict[Tuple[str, str], Tuple[int, int]] = {}

    def worker_started(self) -> None:
        with self._lock:
            self.running_workers += 1

    def worker_finished(self) -> None:
        with self._lock:
            self.running_workers -= 1

    def file_processed(self) -> int:
        with self._lock:
            self.processed_files += 1
            return self.processed_files

    def file_skipped(self) -> None:
        with self._lock:
            self.skipped_files += 1

    def tally(
        self,
        file_name: str,
        errors: int,
        warnings: int,
        per_rule: Dict[str, Tuple[int, int]],
    ) -> None:
        with self._lock:
            if file_name in self.file_counts:
                raise ValueError(f"counts for {file_name} were already recorded")
            self.file_counts[file_name] = (errors, warnings)
            for rule_id, counts in per_rule.items():
                self.rule_counts[(file_name, rule_id)] = counts
            self.error_count += errors
            self.warning_count += warnings


class ResultAggregator:
    """Routes classified findings to the shard chains and count reports.

    Every count written to the summary and detail reports is computed in the
    same pass that feeds the shards, never re-derived from them afterwards.
    """

    def __init__(
        self,
        counters: RunCounters,
        shards: Dict[Severity, ShardWriter],
        summary: CsvReport,
        detail: CsvReport,
        processing_errors: CsvReport,
        metrics: Optional[CsvReport] = None,
    ) -> None:
        self.counters = counters
        self.shards = shards
        self.summary = summary
        self.detail = detail
        self.processing_errors = processing_errors
        self.metrics = metrics

    def record(self, outcome: FileOutcome) -> None:
        name = outcome.file.name
        per_rule: "OrderedDict[str, List[int]]" = OrderedDict()
        errors = warnings = 0
        for finding in outcome.findings:
            counts = per_rule.setdefault(finding.id, [0, 0])
            if finding.severity is Severity.WARNING:
                warnings += 1
                counts[1] += 1
            else:
                errors += 1
                counts[0] += 1
            self.shards[finding.severity].append(name, finding)

        self.counters.tally(
            name, errors, warnings, {rule_id: (c[0], c[1]) for rule_id, c in per_rule.items()}
        )
        self.summary.write_row([name, errors, warnings])
        self.detail.write_rows([name, rule_id, c[0], c[1]] for rule_id, c in per_rule.items())

    def record_failure(self, outcome: FileOutcome) -> None:
        self.processing_errors.write_row([outcome.file.name, outcome.error or "unknown error"])

    def record_metrics(self, outcome: FileOutcome) -> None:
        if self.metrics is None:
            return
        self.metrics.write_row(
            [
                outcome.file.name,
                outcome.file.size,
                outcome.started_at.strftime(TIMESTAMP_FORMAT) if outcome.started_at else "",
                outcome.finished_at.strftime(TIMESTAMP_FORMAT) if outcome.finished_at else "",
                outcome.duration_ms,
            ]
        )
