import subprocess
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple
from xml.sax.saxutils import quoteattr, escape

import pytest

from svrlscan.core.models import InputFile

ASSETS = Path(__file__).parent / "assets"

# (assertion id, message, fired-rule id placed after it or None)
SvrlEntry = Tuple[str, str, Optional[str]]


def build_svrl(entries: Sequence[SvrlEntry]) -> str:
    parts = ['<svrl:schematron-output xmlns:svrl="http://purl.oclc.org/dsdl/svrl">']
    for i, (assert_id, message, rule_id) in enumerate(entries, start=1):
        id_attr = f" id={quoteattr(assert_id)}" if assert_id else ""
        parts.append(
            f'<svrl:failed-assert{id_attr} test="cda:id" location="/ClinicalDocument[1]/entry[{i}]">'
            f"<svrl:text>{escape(message)}</svrl:text>"
            "</svrl:failed-assert>"
        )
        if rule_id is not None:
            parts.append(f"<svrl:fired-rule id={quoteattr(rule_id)} context=\"cda:entry\"/>")
    parts.append("</svrl:schematron-output>")
    return "".join(parts)


@pytest.fixture()
def svrl() -> Callable[[Sequence[SvrlEntry]], str]:
    return build_svrl


@pytest.fixture()
def make_inputs(tmp_path: Path) -> Callable[..., List[InputFile]]:
    """Create ``count`` small XML files and return them as InputFile entries."""

    def _make(count: int, prefix: str = "doc") -> List[InputFile]:
        src = tmp_path / "input"
        src.mkdir(parents=True, exist_ok=True)
        files = []
        for i in range(count):
            p = src / f"{prefix}{i:03d}.xml"
            p.write_text(f"<doc n='{i}'/>")
            files.append(InputFile(path=p, name=p.name, size=p.stat().st_size))
        return files

    return _make


@pytest.fixture()
def rules_path() -> Path:
    return ASSETS / "rules.xsl"


@pytest.fixture()
def dataset_dir(tmp_path: Path) -> Path:
    """Copy the sample documents into a temporary directory and return its path."""
    dst = tmp_path / "dataset"
    dst.mkdir()
    for src in (ASSETS / "dataset").iterdir():
        (dst / src.name).write_bytes(src.read_bytes())
    return dst


def run_cli(args, cwd=None, env=None, timeout=60, input=None):
    """
    Run the CLI as a subprocess: python -m svrlscan.cli <args>
    Returns CompletedProcess with stdout/stderr text captured.
    """
    cmd = [sys.executable, "-m", "svrlscan.cli"] + list(map(str, args))
    return subprocess.run(
        cmd, cwd=cwd, env=env, capture_output=True, text=True, timeout=timeout, input=input
    )


@pytest.fixture()
def cli():
    return run_cli
