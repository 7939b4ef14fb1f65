from pathlib import Path

import pytest

from svrlscan.core.aggregator import ResultAggregator, RunCounters
from svrlscan.core.models import FileOutcome, Finding, InputFile, Severity
from svrlscan.core.reports import (
    DETAIL_HEADER,
    PROCESSING_ERRORS_HEADER,
    SUMMARY_HEADER,
    CsvReport,
    output_paths,
    read_rows,
)
from svrlscan.core.shards import ShardWriter


@pytest.fixture()
def aggregator(tmp_path: Path):
    paths = output_paths(tmp_path / "report")
    summary = CsvReport(paths.summary, SUMMARY_HEADER).open()
    detail = CsvReport(paths.detail, DETAIL_HEADER).open()
    errors = CsvReport(paths.processing_errors, PROCESSING_ERRORS_HEADER).open()
    shards = {s: ShardWriter(paths, s.category, max_lines=100).open() for s in Severity}
    agg = ResultAggregator(RunCounters(), shards, summary, detail, errors)
    yield agg
    for report in (summary, detail, errors):
        report.close()
    for writer in shards.values():
        writer.close()


def _outcome(name: str, findings) -> FileOutcome:
    return FileOutcome(file=InputFile(path=Path(name), name=name, size=10), findings=list(findings))


def _f(finding_id: str, severity: Severity) -> Finding:
    return Finding(id=finding_id, severity=severity, message=f"msg {finding_id}", location="/x")


def test_record_splits_counts_and_routes(aggregator):
    outcome = _outcome(
        "a.xml",
        [
            _f("1-1", Severity.ERROR),
            _f("1-2", Severity.WARNING),
            _f("1-1", Severity.ERROR),
            _f("1-2", Severity.ERROR),
            _f("", Severity.WARNING),
        ],
    )
    aggregator.record(outcome)
    aggregator.summary.close()
    aggregator.detail.close()
    for writer in aggregator.shards.values():
        writer.close()

    assert read_rows(aggregator.summary.path) == [["a.xml", "3", "2"]]
    assert read_rows(aggregator.detail.path) == [
        ["a.xml", "1-1", "2", "0"],
        ["a.xml", "1-2", "1", "1"],
        ["a.xml", "", "0", "1"],
    ]
    error_rows = read_rows(aggregator.shards[Severity.ERROR].shard_paths[0])
    warning_rows = read_rows(aggregator.shards[Severity.WARNING].shard_paths[0])
    assert [r[1] for r in error_rows] == ["1-1", "1-1", "1-2"]
    assert [r[4] for r in error_rows] == ["error"] * 3
    assert [r[1] for r in warning_rows] == ["1-2", ""]

    counters = aggregator.counters
    assert counters.file_counts["a.xml"] == (3, 2)
    assert counters.rule_counts[("a.xml", "1-2")] == (1, 1)
    assert (counters.error_count, counters.warning_count) == (3, 2)


def test_clean_file_still_gets_a_summary_row(aggregator):
    aggregator.record(_outcome("clean.xml", []))
    aggregator.summary.close()
    aggregator.detail.close()
    assert read_rows(aggregator.summary.path) == [["clean.xml", "0", "0"]]
    assert read_rows(aggregator.detail.path) == []


def test_counts_are_write_once_per_file(aggregator):
    aggregator.record(_outcome("a.xml", []))
    with pytest.raises(ValueError):
        aggregator.counters.tally("a.xml", 0, 0, {})


def test_record_failure_goes_to_processing_errors(aggregator):
    outcome = _outcome("bad.xml", [])
    outcome.error = "Cannot parse bad.xml: unexpected end, line 4"
    aggregator.record_failure(outcome)
    aggregator.processing_errors.close()
    assert read_rows(aggregator.processing_errors.path) == [
        ["bad.xml", "Cannot parse bad.xml: unexpected end, line 4"]
    ]
    assert aggregator.counters.file_counts == {}


def test_processed_count_includes_failed_files():
    counters = RunCounters()
    assert [counters.file_processed() for _ in range(3)] == [1, 2, 3]
    counters.file_skipped()
    assert (counters.processed_files, counters.skipped_files) == (3, 1)
