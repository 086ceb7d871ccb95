"""Tests for snapshot comparison."""

from __future__ import annotations

import math

from footprint.compare import (
    TOP_CHANGES_LIMIT,
    compare_snapshots,
    percent_delta,
    round_kb,
    select_metric,
)
from footprint.models import FileChange, FileRecord

from conftest import make_snapshot


def test_snapshot_totals_match_file_sums():
    snapshot = make_snapshot(
        [
            FileRecord(path="a.js", name="a.js", size=300, gzip=120, brotli=100),
            FileRecord(path="b.css", name="b.css", size=50, gzip=30, brotli=25),
        ]
    )
    assert snapshot.total_size == sum(f.size for f in snapshot.files)
    assert snapshot.total_gzip == sum(f.gzip for f in snapshot.files)
    assert snapshot.total_brotli == sum(f.brotli for f in snapshot.files)


def test_metric_selection_priority():
    assert select_metric(True, True) == "brotli"
    assert select_metric(True, False) == "brotli"
    assert select_metric(False, True) == "gzip"
    assert select_metric(False, False) == "size"


def test_no_baseline_yields_zero_deltas():
    current = make_snapshot({"a.js": 5000, "b.js": 12000})
    diff = compare_snapshots(None, current, budget_kb=1, warn_kb=1, fail_kb=1)

    assert diff.status == "no-baseline"
    assert diff.baseline is None
    assert diff.current is current
    assert (diff.diff_size, diff.diff_gzip, diff.diff_brotli, diff.diff_metric) == (0, 0, 0, 0)
    assert diff.diff_percent == diff.diff_percent_size == 0
    assert diff.diff_percent_gzip == diff.diff_percent_brotli == 0
    assert diff.top_changes == ()
    assert diff.threshold_status == "ok"
    assert diff.worst_delta_kb == 0


def test_percent_is_zero_for_zero_baseline():
    assert percent_delta(500, 0) == 0
    baseline = make_snapshot(
        [FileRecord(path="a.js", name="a.js", size=100, gzip=0, brotli=0)]
    )
    current = make_snapshot(
        [FileRecord(path="a.js", name="a.js", size=150, gzip=40, brotli=30)]
    )
    diff = compare_snapshots(baseline, current)

    assert diff.diff_percent_gzip == 0
    assert diff.diff_percent_brotli == 0
    assert diff.diff_percent == 0
    assert diff.diff_percent_size == 50
    for value in (diff.diff_percent, diff.diff_percent_gzip, diff.diff_percent_brotli):
        assert math.isfinite(value)


def test_aggregate_deltas_use_current_minus_baseline():
    baseline = make_snapshot({"a.js": 1000})
    current = make_snapshot({"a.js": 750})
    diff = compare_snapshots(baseline, current, prefer_brotli=False, prefer_gzip=False)

    assert diff.compare_metric == "size"
    assert diff.diff_size == -250
    assert diff.diff_metric == -250
    assert diff.diff_percent == -25
    assert diff.status == "pass"


def test_removed_file_is_reported():
    baseline = make_snapshot({"A": 100, "keep.js": 10})
    current = make_snapshot({"keep.js": 10})
    diff = compare_snapshots(baseline, current)

    assert FileChange(file="A", before=100, after=0, diff=-100) in diff.top_changes


def test_new_file_is_reported():
    baseline = make_snapshot({"keep.js": 10})
    current = make_snapshot({"keep.js": 10, "B": 200})
    diff = compare_snapshots(baseline, current)

    assert FileChange(file="B", before=0, after=200, diff=200) in diff.top_changes


def test_unchanged_files_are_not_listed():
    baseline = make_snapshot({"same.js": 10, "grow.js": 10})
    current = make_snapshot({"same.js": 10, "grow.js": 11})
    diff = compare_snapshots(baseline, current)

    assert [change.file for change in diff.top_changes] == ["grow.js"]


def test_top_changes_capped_and_sorted():
    baseline = make_snapshot({f"f{i}.js": 100 for i in range(10)})
    current = make_snapshot({f"f{i}.js": 100 + (i - 5) * 37 for i in range(10)})
    diff = compare_snapshots(baseline, current)

    assert len(diff.top_changes) <= TOP_CHANGES_LIMIT
    magnitudes = [abs(change.diff) for change in diff.top_changes]
    assert magnitudes == sorted(magnitudes, reverse=True)
    assert magnitudes[0] == 185


def test_ties_keep_current_files_before_removed_ones():
    baseline = make_snapshot({"gone.js": 50, "x.js": 100})
    current = make_snapshot({"x.js": 150, "new.js": 50})
    diff = compare_snapshots(baseline, current)

    assert [change.file for change in diff.top_changes] == ["x.js", "new.js", "gone.js"]


def test_worst_delta_ignores_decreases():
    baseline = make_snapshot({"a.js": 10_000, "b.js": 100})
    current = make_snapshot({"a.js": 100, "b.js": 100 + 1536})
    diff = compare_snapshots(baseline, current)

    assert diff.worst_delta_kb == 1.5


def test_worst_delta_rounds_half_up():
    assert round_kb(1024 + 51) == 1.0
    assert round_kb(int(1024 * 1.25)) == 1.3
    assert round_kb(0) == 0


def _growth_diff(growth_kb: int):
    baseline = make_snapshot({"app.js": 1024})
    current = make_snapshot({"app.js": 1024 + growth_kb * 1024})
    return compare_snapshots(baseline, current, warn_kb=5, fail_kb=10)


def test_threshold_fail():
    diff = _growth_diff(12)
    assert diff.threshold_status == "fail"
    assert diff.status == "fail"
    assert diff.threshold_message == "Largest file +12 KB (fail at 10 KB)"


def test_threshold_warn():
    diff = _growth_diff(7)
    assert diff.threshold_status == "warn"
    assert diff.status == "pass"
    assert diff.threshold_message == "Largest file +7 KB (warn at 5 KB / fail at 10 KB)"


def test_threshold_ok():
    diff = _growth_diff(3)
    assert diff.threshold_status == "ok"
    assert diff.threshold_message is None
    assert diff.status == "pass"


def test_threshold_is_inclusive():
    diff = _growth_diff(10)
    assert diff.threshold_status == "fail"


def test_warn_message_without_fail_threshold():
    baseline = make_snapshot({"app.js": 0})
    current = make_snapshot({"app.js": 6 * 1024})
    diff = compare_snapshots(baseline, current, warn_kb=5)

    assert diff.threshold_status == "warn"
    assert diff.threshold_message == "Largest file +6 KB (warn at 5 KB / fail at - KB)"


def test_budget_alone_fails():
    baseline = make_snapshot({f"f{i}.js": 1000 for i in range(4)})
    current = make_snapshot({f"f{i}.js": 1000 + 512 for i in range(4)})
    diff = compare_snapshots(baseline, current, budget_kb=1, warn_kb=5, fail_kb=10)

    assert diff.diff_metric == 2048
    assert diff.threshold_status == "ok"
    assert diff.status == "fail"


def test_budget_not_exceeded_at_exact_limit():
    baseline = make_snapshot({"a.js": 0})
    current = make_snapshot({"a.js": 1024})
    diff = compare_snapshots(baseline, current, budget_kb=1)

    assert diff.status == "pass"


def test_effective_configuration_is_echoed():
    diff = compare_snapshots(make_snapshot({}), make_snapshot({}), budget_kb=2, warn_kb=3, fail_kb=4)
    assert (diff.budget_max_increase_kb, diff.warn_above_kb, diff.fail_above_kb) == (2, 3, 4)
