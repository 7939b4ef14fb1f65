import pytest

from svrlscan.core.progress import ProgressSnapshot, ProgressTracker, estimate_remaining_ms, format_duration


@pytest.mark.parametrize(
    "elapsed,processed,total,expected",
    [
        (1000, 2, 10, 4000),
        (3000, 3, 4, 1000),
        (500, 0, 10, None),
        (900, 10, 10, 0),
    ],
)
def test_linear_eta(elapsed, processed, total, expected):
    assert estimate_remaining_ms(elapsed, processed, total) == expected


def test_eta_follows_latest_average_without_smoothing():
    # a slow first file followed by a fast one: the estimate just uses the new mean
    assert estimate_remaining_ms(10_000, 1, 5) == 40_000
    assert estimate_remaining_ms(10_100, 2, 5) == 15_150


def test_tracker_snapshot_after_completion():
    tracker = ProgressTracker(total=4)
    assert tracker.snapshot().eta_ms is None
    tracker.start()
    snap = tracker.completed(1)
    assert snap.processed == 1 and snap.total == 4
    assert snap.eta_ms is not None and snap.eta_ms >= 0
    elapsed = tracker.stop()
    assert tracker.snapshot().elapsed_ms == elapsed


def test_active_workers_never_negative():
    assert ProgressSnapshot(0, 1, 0, None, running_workers=2, paused_workers=2).active_workers == 0
    assert ProgressSnapshot(0, 1, 0, None, running_workers=5, paused_workers=1).active_workers == 4


def test_format_duration():
    assert format_duration(None) == "--:--"
    assert format_duration(65_000) == "01:05"
    assert format_duration(3_723_000) == "1:02:03"
