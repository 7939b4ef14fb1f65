from __future__ import annotations
from pathlib import Path
from typing import Optional, Union

RawReport = Union[bytes, str]


class Validator:
    """Turns one input document into a raw SVRL report.

    ``validate`` is called concurrently from several worker threads, once per
    file. Implementations must not share per-call state between those calls
    and should raise :class:`~svrlscan.core.errors.ValidationError` for
    documents they cannot process. ``name`` is the file's name within the
    batch (unique per run); it defaults to the bare file name.
    """

    NAME = "base"

    def validate(self, path: Path, name: Optional[str] = None) -> RawReport:
        raise NotImplementedError("validate must be implemented in subclasses")
