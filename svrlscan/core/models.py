from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"

    @property
    def category(self) -> str:
        # shard chain name: errors / warnings
        return f"{self.value}s"


class RunStatus(str, Enum):
    COMPLETE = "complete"
    NO_FILES = "no_files"
    INPUT_ERROR = "input_error"
    ABORTED = "aborted"


@dataclass(frozen=True)
class InputFile:
    path: Path
    name: str  # relative to the input directory
    size: int


@dataclass(frozen=True)
class Finding:
    id: str
    severity: Severity
    message: str
    location: str
    test: str = ""


@dataclass
class FileOutcome:
    file: InputFile
    findings: List[Finding] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    status: RunStatus
    total_files: int = 0
    processed_files: int = 0
    failed_files: List[Tuple[str, str]] = field(default_factory=list)
    skipped_files: int = 0
    error_count: int = 0
    warning_count: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    elapsed_ms: int = 0
    average_ms: int = 0
    artifacts: List[Path] = field(default_factory=list)
    fatal_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (RunStatus.COMPLETE, RunStatus.NO_FILES)
