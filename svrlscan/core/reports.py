from __future__ import annotations
import csv
import io
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, List, Optional, Sequence

from .errors import OutputSinkError

METRICS_HEADER = ["file_name", "file_size", "process_start", "process_end", "duration_ms"]
SUMMARY_HEADER = ["file_name", "error_count", "warning_count"]
DETAIL_HEADER = ["file_name", "assertionId", "error_count", "warning_count"]
PROCESSING_ERRORS_HEADER = ["file_name", "error_message"]
SHARD_HEADER = ["file_name", "assertionId", "description", "path", "type"]


def csv_fields(values: Sequence[object]) -> str:
    """Render values as comma-joined CSV fields, without a line terminator."""
    buf = io.StringIO()
    csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n").writerow(values)
    return buf.getvalue()[:-2]


def output_base(path: Path) -> Path:
    # "report.csv" and "report" name the same family of artifacts
    if path.suffix.lower() == ".csv":
        return path.with_suffix("")
    return path


@dataclass(frozen=True)
class OutputPaths:
    base: Path
    metrics: Path
    summary: Path
    detail: Path
    processing_errors: Path

    def shard(self, category: str, index: int) -> Path:
        return self.base.parent / f"{self.base.name}_{category}_{index}.csv"


def output_paths(path: Path) -> OutputPaths:
    base = output_base(path)

    def sibling(suffix: str) -> Path:
        return base.parent / f"{base.name}_{suffix}.csv"

    return OutputPaths(
        base=base,
        metrics=sibling("metrics"),
        summary=sibling("summary"),
        detail=sibling("detail"),
        processing_errors=sibling("processing_errors"),
    )


class CsvReport:
    """Append-only CSV report shared by every worker.

    The header is written on open. Each ``write_row``/``write_rows`` call holds
    the report lock for its whole batch of rows, so rows written together stay
    contiguous in the file.
    """

    def __init__(self, path: Path, header: Sequence[str], name: Optional[str] = None) -> None:
        self.path = path
        self.header = list(header)
        self.name = name or path.stem
        self._lock = threading.Lock()
        self._fh: Optional[IO[str]] = None
        self._writer = None

    def open(self) -> "CsvReport":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("w", newline="", encoding="utf-8")
            self._writer = csv.writer(self._fh, lineterminator="\n")
            self._writer.writerow(self.header)
        except OSError as exc:
            raise OutputSinkError(self.name, f"cannot open {self.path}: {exc}") from exc
        return self

    def write_row(self, row: Sequence[object]) -> None:
        self.write_rows([row])

    def write_rows(self, rows: Iterable[Sequence[object]]) -> None:
        rows = list(rows)
        if not rows:
            return
        with self._lock:
            if self._writer is None:
                raise OutputSinkError(self.name, f"{self.path} is not open")
            try:
                self._writer.writerows(rows)
            except OSError as exc:
                raise OutputSinkError(self.name, f"cannot write {self.path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            fh, self._fh, self._writer = self._fh, None, None
        if fh is not None:
            try:
                fh.close()
            except OSError as exc:
                raise OutputSinkError(self.name, f"cannot close {self.path}: {exc}") from exc

    def __enter__(self) -> "CsvReport":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()


def read_rows(path: Path) -> List[List[str]]:
    """Read a report back, header excluded."""
    with path.open("r", newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    return rows[1:]
