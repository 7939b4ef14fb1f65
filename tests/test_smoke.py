from pathlib import Path

from svrlscan.cli import main
from svrlscan.core.reports import read_rows

RULES = Path(__file__).parent / "assets" / "rules.xsl"


def test_smoke(tmp_path: Path):
    # One document with a missing code attribute
    src = tmp_path / "in"
    src.mkdir()
    (src / "sample.xml").write_text('<document><entry status="active"/></document>')
    out = tmp_path / "out" / "report"
    code = main(["dir", str(src), "--rules", str(RULES), "--out", str(out), "--no-progress"])
    assert code == 0
    rows = read_rows(tmp_path / "out" / "report_errors_1.csv")
    assert rows == [
        [
            "sample.xml",
            "1198-7345",
            'SHALL contain exactly one [1..1] @code, "coded" entries only (CONF:1198-7345).',
            "/document[1]/entry[1]",
            "error",
        ]
    ]
