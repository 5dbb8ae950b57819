"""Tests for compute_transfer_stats - pure shaping of status counts, no IO."""

from transfer_scheduler.core.transfer_stats import compute_transfer_stats


def test_empty_counts_return_zero_for_every_status():
    assert compute_transfer_stats({}) == {
        "total": 0, "scheduled": 0, "executing": 0,
        "completed": 0, "failed": 0, "cancelled": 0,
    }


def test_counts_are_copied_and_totalled():
    stats = compute_transfer_stats({"scheduled": 2, "completed": 5, "failed": 1})
    assert stats["total"] == 8
    assert stats["completed"] == 5
    assert stats["cancelled"] == 0


def test_unknown_status_counts_toward_total_only():
    stats = compute_transfer_stats({"scheduled": 1, "legacy": 4})
    assert stats["total"] == 5
    assert "legacy" not in stats
