from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


CompareMetric = Literal["size", "gzip", "brotli"]
DiffStatus = Literal["pass", "fail", "no-baseline"]
ThresholdStatus = Literal["ok", "warn", "fail"]


@dataclass(slots=True, frozen=True)
class FileRecord:
    path: str
    name: str
    size: int
    gzip: int
    brotli: int

    def metric(self, metric: CompareMetric) -> int:
        if metric == "brotli":
            return self.brotli
        if metric == "gzip":
            return self.gzip
        return self.size


@dataclass(slots=True, frozen=True)
class Snapshot:
    files: tuple[FileRecord, ...]
    total_size: int
    total_gzip: int
    total_brotli: int
    timestamp: str
    commit: str

    def total(self, metric: CompareMetric) -> int:
        if metric == "brotli":
            return self.total_brotli
        if metric == "gzip":
            return self.total_gzip
        return self.total_size

    def file_map(self) -> dict[str, FileRecord]:
        return {record.path: record for record in self.files}


@dataclass(slots=True, frozen=True)
class ArtifactCandidate:
    id: int
    name: str
    expired: bool
    head_branch: str | None


@dataclass(slots=True, frozen=True)
class FileChange:
    file: str
    before: int
    after: int
    diff: int


@dataclass(slots=True, frozen=True)
class DiffResult:
    baseline: Snapshot | None
    current: Snapshot
    diff_size: int
    diff_gzip: int
    diff_brotli: int
    diff_metric: int
    diff_percent: float
    diff_percent_size: float
    diff_percent_gzip: float
    diff_percent_brotli: float
    top_changes: tuple[FileChange, ...]
    compare_metric: CompareMetric
    status: DiffStatus
    worst_delta_kb: float
    threshold_status: ThresholdStatus
    threshold_message: str | None
    budget_max_increase_kb: float | None
    warn_above_kb: float | None
    fail_above_kb: float | None
