from __future__ import annotations


class SvrlscanError(Exception):
    """Base class for every error raised by svrlscan."""


class ConfigurationError(SvrlscanError):
    """Rule set or batch settings are unusable. Raised before any file is processed."""


class InputError(SvrlscanError):
    """The input directory is missing or unreadable."""


class ValidationError(SvrlscanError):
    """A single document could not be parsed or transformed."""


class ClassificationError(SvrlscanError):
    """A validation report could not be read as SVRL."""


class OutputSinkError(SvrlscanError):
    """A report or shard file could not be opened or written.

    Fatal to the whole run: once a sink is unusable the reports can no longer
    be trusted to add up.
    """

    def __init__(self, sink: str, message: str) -> None:
        super().__init__(f"{sink}: {message}")
        self.sink = sink
