from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .errors import ConfigurationError

DEFAULT_CONCURRENCY = 8
DEFAULT_MAX_LINES_PER_SHARD = 100_000
DEFAULT_DESCRIPTION_MAX_LENGTH = 300
DEFAULT_EXTENSIONS: Tuple[str, ...] = ("xml",)


@dataclass(frozen=True)
class BatchConfig:
    concurrency: int = DEFAULT_CONCURRENCY
    max_lines_per_shard: int = DEFAULT_MAX_LINES_PER_SHARD
    description_max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    recursive: bool = False
    show_progress: bool = True

    def validate(self) -> "BatchConfig":
        if self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_lines_per_shard < 1:
            raise ConfigurationError(
                f"max lines per shard must be at least 1, got {self.max_lines_per_shard}"
            )
        if self.description_max_length < 1:
            raise ConfigurationError(
                f"description max length must be at least 1, got {self.description_max_length}"
            )
        return self


def parse_extensions(raw: str) -> Tuple[str, ...]:
    """Turn ``"xml, .XML,cda"`` into ``("xml", "cda")``."""
    seen = []
    for token in (t.strip().lower().lstrip(".") for t in (raw or "").split(",")):
        if token and token not in seen:
            seen.append(token)
    return tuple(seen) or DEFAULT_EXTENSIONS
