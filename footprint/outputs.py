from __future__ import annotations

import os
from pathlib import Path

from footprint.models import DiffResult, Snapshot


def build_outputs(current: Snapshot, diff: DiffResult | None = None) -> dict[str, str]:
    outputs = {
        "total-size": str(current.total_size),
        "total-gzip": str(current.total_gzip),
        "total-brotli": str(current.total_brotli),
    }
    if diff is None:
        return outputs

    outputs.update(
        {
            "diff-size": str(diff.diff_size),
            "diff-gzip": str(diff.diff_gzip),
            "diff-brotli": str(diff.diff_brotli),
            "diff-percent": f"{diff.diff_percent:.2f}",
            "compare-metric": diff.compare_metric,
            "threshold-status": diff.threshold_status,
            "status": diff.status,
        }
    )
    return outputs


def output_path() -> Path | None:
    value = os.getenv("GITHUB_OUTPUT", "").strip()
    return Path(value) if value else None


def write_outputs(outputs: dict[str, str], path: Path | None = None) -> Path | None:
    """Append `key=value` lines to the step output file, if there is one."""
    path = path or output_path()
    if path is None:
        return None
    with path.open("a", encoding="utf-8") as fh:
        for key, value in outputs.items():
            fh.write(f"{key}={value}\n")
    return path
