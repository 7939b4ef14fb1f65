from __future__ import annotations
import logging
import threading
from pathlib import Path
from typing import Optional

from lxml import etree

from ..core.errors import ConfigurationError, ValidationError
from ..core.logs import DEFAULT_LOGGER_NAME
from .base import RawReport, Validator


def svrl_report_name(name: str) -> str:
    """File name for the kept SVRL report of batch entry ``name``.

    The whole relative name is kept, so ``a/doc.xml``, ``b/doc.xml`` and ``doc.cda``
    each get their own report.
    """
    return name.replace("/", "__") + ".svrl.xml"


class XsltValidator(Validator):
    """Runs a compiled Schematron stylesheet (XSLT 1.0) and returns SVRL.

    The stylesheet is read and compiled once up front so a broken rule set
    fails before any document is touched. Each worker thread then compiles its
    own transform on first use; transforms are never shared across threads.
    """

    NAME = "xslt"

    def __init__(
        self,
        rules_path: Path,
        *,
        svrl_dir: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.rules_path = rules_path
        self.svrl_dir = svrl_dir
        base_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        self.logger = base_logger.getChild(self.__class__.__name__.lower())
        self._local = threading.local()

        if not rules_path.is_file():
            raise ConfigurationError(f"Rule set not found: {rules_path}")
        try:
            self._stylesheet = rules_path.read_bytes()
        except OSError as exc:
            raise ConfigurationError(f"Cannot read rule set {rules_path}: {exc}") from exc
        self._compile()

        if svrl_dir is not None:
            try:
                svrl_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ConfigurationError(f"Cannot create SVRL directory {svrl_dir}: {exc}") from exc

    def _compile(self) -> etree.XSLT:
        try:
            doc = etree.fromstring(self._stylesheet, base_url=str(self.rules_path))
            return etree.XSLT(doc)
        except (etree.XMLSyntaxError, etree.XSLTParseError) as exc:
            raise ConfigurationError(f"Rule set {self.rules_path} does not compile: {exc}") from exc

    def _transform(self) -> etree.XSLT:
        transform = getattr(self._local, "transform", None)
        if transform is None:
            transform = self._compile()
            self._local.transform = transform
        return transform

    def validate(self, path: Path, name: Optional[str] = None) -> RawReport:
        transform = self._transform()
        try:
            source = etree.parse(str(path))
        except (OSError, etree.XMLSyntaxError) as exc:
            raise ValidationError(f"Cannot parse {path.name}: {exc}") from exc
        try:
            result = transform(source)
        except etree.XSLTApplyError as exc:
            raise ValidationError(f"Rule set failed on {path.name}: {exc}") from exc

        report = bytes(result)
        if not report.strip():
            raise ValidationError(f"Rule set produced no report for {path.name}")

        if self.svrl_dir is not None:
            target = self.svrl_dir / svrl_report_name(name or path.name)
            try:
                target.write_bytes(report)
            except OSError as exc:
                raise ValidationError(f"Cannot save SVRL report {target}: {exc}") from exc
            self.logger.info("SVRL report saved at: %s", target)
        return report
