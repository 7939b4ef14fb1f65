from __future__ import annotations
import logging
import re
import threading
from pathlib import Path
from typing import IO, List, Optional

from .config import DEFAULT_DESCRIPTION_MAX_LENGTH, DEFAULT_MAX_LINES_PER_SHARD
from .errors import OutputSinkError
from .logs import DEFAULT_LOGGER_NAME
from .models import Finding
from .reports import SHARD_HEADER, OutputPaths, csv_fields

ELLIPSIS = "..."
_WHITESPACE_RE = re.compile(r"\s+")


def clean_description(text: str, max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH) -> str:
    """Normalize an assertion message into one quoted CSV field.

    Whitespace runs (line breaks included) collapse to single spaces, the result
    is trimmed and, past ``max_length`` characters, cut and suffixed with
    ``...``. The field is always quoted with embedded quotes doubled.
    """
    cleaned = _WHITESPACE_RE.sub(" ", text or "").strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length] + ELLIPSIS
    return '"' + cleaned.replace('"', '""') + '"'


def format_record(file_name: str, finding: Finding, max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH) -> str:
    # the description is pre-quoted, so it is spliced between the writer's fields
    return ",".join(
        [
            csv_fields([file_name, finding.id]),
            clean_description(finding.message, max_length),
            csv_fields([finding.location, finding.severity.value]),
        ]
    ) + "\n"


def format_header() -> str:
    return csv_fields(SHARD_HEADER) + "\n"


class ShardWriter:
    """Rotating output chain for one finding category.

    Records go to ``<base>_<category>_<n>.csv``. Once ``max_lines`` data records
    have been appended to the current shard it is flushed and closed, the next
    index is opened and the header rewritten, so every shard holds at most
    ``max_lines`` records plus its header. A closed shard is never reopened.

    Each writer has its own lock; two categories never contend.
    """

    def __init__(
        self,
        paths: OutputPaths,
        category: str,
        max_lines: int = DEFAULT_MAX_LINES_PER_SHARD,
        description_max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        self.paths = paths
        self.category = category
        self.max_lines = max_lines
        self.description_max_length = description_max_length
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild(self.__class__.__name__.lower())

        self.shard_index = 0
        self.lines_in_shard = 0
        self.records_written = 0
        self.shard_paths: List[Path] = []
        self._fh: Optional[IO[str]] = None
        self._lock = threading.Lock()

    @property
    def current_path(self) -> Optional[Path]:
        return self.shard_paths[-1] if self.shard_paths else None

    def open(self) -> "ShardWriter":
        with self._lock:
            if self._fh is None:
                self._open_next()
        return self

    def append(self, file_name: str, finding: Finding) -> None:
        line = format_record(file_name, finding, self.description_max_length)
        with self._lock:
            if self._fh is None:
                raise OutputSinkError(self.category, "shard chain is closed")
            try:
                self._fh.write(line)
            except OSError as exc:
                raise OutputSinkError(
                    self.category, f"cannot write {self.current_path}: {exc}"
                ) from exc
            self.lines_in_shard += 1
            self.records_written += 1
            if self.lines_in_shard >= self.max_lines:
                self._rotate()

    def close(self) -> None:
        with self._lock:
            self._close_current()

    def _rotate(self) -> None:
        finished = self.current_path
        self._close_current()
        self._open_next()
        self.logger.info(
            "Rotated %s shard after %d records: %s -> %s",
            self.category,
            self.max_lines,
            finished,
            self.current_path,
        )

    def _close_current(self) -> None:
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fh.flush()
        except OSError as exc:
            raise OutputSinkError(self.category, f"cannot flush {self.current_path}: {exc}") from exc
        finally:
            fh.close()

    def _open_next(self) -> None:
        next_index = self.shard_index + 1
        path = self.paths.shard(self.category, next_index)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fh = path.open("w", newline="", encoding="utf-8")
        except OSError as exc:
            raise OutputSinkError(self.category, f"cannot open {path}: {exc}") from exc
        try:
            fh.write(format_header())
        except OSError as exc:
            fh.close()
            raise OutputSinkError(self.category, f"cannot write header to {path}: {exc}") from exc
        self._fh = fh
        self.shard_index = next_index
        self.lines_in_shard = 0
        self.shard_paths.append(path)

    def __enter__(self) -> "ShardWriter":
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()
