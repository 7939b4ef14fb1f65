from pathlib import Path

import pytest

from svrlscan.core.config import parse_extensions
from svrlscan.core.errors import InputError
from svrlscan.core.inputs import discover_input_files


def _tree(root: Path) -> None:
    (root / "sub").mkdir(parents=True)
    (root / "b.xml").write_text("<b/>")
    (root / "a.XML").write_text("<a/>")
    (root / "c.cda").write_text("<c/>")
    (root / "notes.txt").write_text("skip")
    (root / "sub" / "d.xml").write_text("<d/>")


def test_lists_matching_files_sorted(tmp_path: Path):
    _tree(tmp_path)
    files = discover_input_files(tmp_path)
    assert [f.name for f in files] == ["a.XML", "b.xml"]
    assert files[1].size == len("<b/>")
    assert files[1].path == tmp_path / "b.xml"


def test_recursive_names_are_relative(tmp_path: Path):
    _tree(tmp_path)
    files = discover_input_files(tmp_path, ("xml", "cda"), recursive=True)
    assert [f.name for f in files] == ["a.XML", "b.xml", "c.cda", "sub/d.xml"]


def test_empty_directory_is_not_an_error(tmp_path: Path):
    assert discover_input_files(tmp_path) == []


def test_missing_directory(tmp_path: Path):
    with pytest.raises(InputError):
        discover_input_files(tmp_path / "missing")


def test_file_instead_of_directory(tmp_path: Path):
    f = tmp_path / "x.xml"
    f.write_text("<x/>")
    with pytest.raises(InputError):
        discover_input_files(f)


def test_parse_extensions():
    assert parse_extensions("xml, .XML,cda") == ("xml", "cda")
    assert parse_extensions("") == ("xml",)
