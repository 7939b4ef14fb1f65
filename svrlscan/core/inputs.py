from __future__ import annotations
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .config import DEFAULT_EXTENSIONS
from .errors import InputError
from .logs import DEFAULT_LOGGER_NAME
from .models import InputFile


def _iter_candidates(root: Path, recursive: bool) -> Iterator[Path]:
    entries = root.rglob("*") if recursive else root.iterdir()
    for p in entries:
        if p.is_file():
            yield p


def discover_input_files(
    root: Path,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    recursive: bool = False,
    *,
    logger: Optional[logging.Logger] = None,
) -> List[InputFile]:
    """List the files under ``root`` whose extension is in ``extensions``.

    Matching is case-insensitive. Entries that vanish or cannot be stat'ed
    between listing and sizing are skipped with a warning. An empty list is a
    normal result.
    """
    log = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
    if not root.exists():
        raise InputError(f"Input directory not found: {root}")
    if not root.is_dir():
        raise InputError(f"Input path is not a directory: {root}")

    wanted = {e.lower().lstrip(".") for e in extensions}
    files: List[InputFile] = []
    try:
        candidates = list(_iter_candidates(root, recursive))
    except OSError as exc:
        raise InputError(f"Cannot list {root}: {exc}") from exc

    for p in candidates:
        if p.suffix.lower().lstrip(".") not in wanted:
            continue
        try:
            size = p.stat().st_size
        except OSError as exc:
            log.warning("Unable to stat %s: %s", p, exc)
            continue
        files.append(InputFile(path=p, name=p.relative_to(root).as_posix(), size=size))

    files.sort(key=lambda f: f.name)
    return files
