from __future__ import annotations

import math

from footprint.models import (
    CompareMetric,
    DiffResult,
    DiffStatus,
    FileChange,
    Snapshot,
    ThresholdStatus,
)


TOP_CHANGES_LIMIT = 5
KB = 1024


def select_metric(prefer_brotli: bool, prefer_gzip: bool) -> CompareMetric:
    if prefer_brotli:
        return "brotli"
    if prefer_gzip:
        return "gzip"
    return "size"


def percent_delta(delta: int, baseline_value: int) -> float:
    if baseline_value == 0:
        return 0.0
    return delta / baseline_value * 100


def round_kb(value_bytes: int) -> float:
    # Half-up, one decimal place.
    return math.floor(value_bytes / KB * 10 + 0.5) / 10


def format_kb(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def collect_file_changes(
    baseline: Snapshot,
    current: Snapshot,
    metric: CompareMetric,
) -> tuple[list[FileChange], int]:
    """Per-file deltas (current files first, then removed ones) and the largest increase."""
    baseline_map = baseline.file_map()
    current_paths = {record.path for record in current.files}
    changes: list[FileChange] = []
    max_increase = 0

    for record in current.files:
        previous = baseline_map.get(record.path)
        before = previous.metric(metric) if previous is not None else 0
        after = record.metric(metric)
        diff = after - before
        if diff != 0:
            changes.append(FileChange(file=record.path, before=before, after=after, diff=diff))
        max_increase = max(max_increase, diff)

    for path, previous in baseline_map.items():
        if path in current_paths:
            continue
        before = previous.metric(metric)
        if before != 0:
            changes.append(FileChange(file=path, before=before, after=0, diff=-before))

    return changes, max_increase


def rank_changes(changes: list[FileChange], limit: int = TOP_CHANGES_LIMIT) -> tuple[FileChange, ...]:
    # sorted() is stable, so ties keep enumeration order.
    return tuple(sorted(changes, key=lambda change: abs(change.diff), reverse=True)[:limit])


def evaluate_thresholds(
    worst_delta_kb: float,
    warn_kb: float | None,
    fail_kb: float | None,
) -> tuple[ThresholdStatus, str | None]:
    if fail_kb is not None and worst_delta_kb >= fail_kb:
        return "fail", f"Largest file +{format_kb(worst_delta_kb)} KB (fail at {format_kb(fail_kb)} KB)"
    if warn_kb is not None and worst_delta_kb >= warn_kb:
        fail_label = format_kb(fail_kb) if fail_kb is not None else "-"
        return (
            "warn",
            f"Largest file +{format_kb(worst_delta_kb)} KB "
            f"(warn at {format_kb(warn_kb)} KB / fail at {fail_label} KB)",
        )
    return "ok", None


def compare_snapshots(
    baseline: Snapshot | None,
    current: Snapshot,
    budget_kb: float | None = None,
    warn_kb: float | None = None,
    fail_kb: float | None = None,
    prefer_brotli: bool = True,
    prefer_gzip: bool = True,
) -> DiffResult:
    metric = select_metric(prefer_brotli, prefer_gzip)

    if baseline is None:
        return DiffResult(
            baseline=None,
            current=current,
            diff_size=0,
            diff_gzip=0,
            diff_brotli=0,
            diff_metric=0,
            diff_percent=0.0,
            diff_percent_size=0.0,
            diff_percent_gzip=0.0,
            diff_percent_brotli=0.0,
            top_changes=(),
            compare_metric=metric,
            status="no-baseline",
            worst_delta_kb=0.0,
            threshold_status="ok",
            threshold_message=None,
            budget_max_increase_kb=budget_kb,
            warn_above_kb=warn_kb,
            fail_above_kb=fail_kb,
        )

    diff_size = current.total_size - baseline.total_size
    diff_gzip = current.total_gzip - baseline.total_gzip
    diff_brotli = current.total_brotli - baseline.total_brotli
    diff_metric = current.total(metric) - baseline.total(metric)

    changes, max_increase = collect_file_changes(baseline, current, metric)
    worst_delta_kb = round_kb(max_increase)
    threshold_status, threshold_message = evaluate_thresholds(worst_delta_kb, warn_kb, fail_kb)

    over_budget = budget_kb is not None and diff_metric > budget_kb * KB
    status: DiffStatus = "fail" if over_budget or threshold_status == "fail" else "pass"

    return DiffResult(
        baseline=baseline,
        current=current,
        diff_size=diff_size,
        diff_gzip=diff_gzip,
        diff_brotli=diff_brotli,
        diff_metric=diff_metric,
        diff_percent=percent_delta(diff_metric, baseline.total(metric)),
        diff_percent_size=percent_delta(diff_size, baseline.total_size),
        diff_percent_gzip=percent_delta(diff_gzip, baseline.total_gzip),
        diff_percent_brotli=percent_delta(diff_brotli, baseline.total_brotli),
        top_changes=rank_changes(changes),
        compare_metric=metric,
        status=status,
        worst_delta_kb=worst_delta_kb,
        threshold_status=threshold_status,
        threshold_message=threshold_message,
        budget_max_increase_kb=budget_kb,
        warn_above_kb=warn_kb,
        fail_above_kb=fail_kb,
    )
