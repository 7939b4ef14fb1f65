import csv
import io
from pathlib import Path


def test_file_mode_prints_findings(cli, dataset_dir: Path, rules_path: Path):
    proc = cli(["file", dataset_dir / "doc_mixed.xml", "--rules", rules_path])
    assert proc.returncode == 0, proc.stderr

    rows = list(csv.reader(io.StringIO(proc.stdout)))
    assert rows[0] == ["file_name", "assertionId", "description", "path", "type"]
    assert [(r[0], r[1], r[4]) for r in rows[1:]] == [
        ("doc_mixed.xml", "1198-7345", "error"),
        ("doc_mixed.xml", "1198-7345", "error"),
        ("doc_mixed.xml", "status-check", "warning"),
    ]


def test_file_mode_truncates_descriptions(cli, dataset_dir: Path, rules_path: Path):
    proc = cli(["file", dataset_dir / "doc_mixed.xml", "--rules", rules_path, "--max-description", "10"])
    assert proc.returncode == 0, proc.stderr
    rows = list(csv.reader(io.StringIO(proc.stdout)))
    assert rows[1][2] == "SHALL cont..."


def test_file_mode_broken_document(cli, dataset_dir: Path, rules_path: Path):
    proc = cli(["file", dataset_dir / "broken.xml", "--rules", rules_path])
    assert proc.returncode == 1
    assert "Validation failed" in proc.stderr
