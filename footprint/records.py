from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from footprint.models import FileRecord, Snapshot


ARTIFACT_NAME = "bundle-stats"
STATS_FILE = "bundle-stats.json"


class SnapshotFormatError(ValueError):
    """Raised when a stored record is not a structurally valid snapshot."""


def _require_int(data: dict[str, Any], key: str, where: str) -> int:
    value = data.get(key)
    # bool is an int subclass, but `true` is never a byte count.
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotFormatError(f"{where}.{key} must be an integer, got {value!r}")
    if value < 0:
        raise SnapshotFormatError(f"{where}.{key} must not be negative, got {value}")
    return value


def _require_str(data: dict[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise SnapshotFormatError(f"{where}.{key} must be a string, got {value!r}")
    return value


def _parse_file(entry: Any, index: int) -> FileRecord:
    where = f"files[{index}]"
    if not isinstance(entry, dict):
        raise SnapshotFormatError(f"{where} must be an object")
    return FileRecord(
        path=_require_str(entry, "path", where),
        name=_require_str(entry, "name", where),
        size=_require_int(entry, "size", where),
        gzip=_require_int(entry, "gzip", where),
        brotli=_require_int(entry, "brotli", where),
    )


def parse_snapshot(data: Any) -> Snapshot:
    if not isinstance(data, dict):
        raise SnapshotFormatError("snapshot record must be a JSON object")

    raw_files = data.get("files")
    if not isinstance(raw_files, list):
        raise SnapshotFormatError("snapshot.files must be a list")

    files = tuple(_parse_file(entry, index) for index, entry in enumerate(raw_files))
    seen: set[str] = set()
    for record in files:
        if record.path in seen:
            raise SnapshotFormatError(f"duplicate file path in snapshot: {record.path}")
        seen.add(record.path)

    return Snapshot(
        files=files,
        total_size=_require_int(data, "totalSize", "snapshot"),
        total_gzip=_require_int(data, "totalGzip", "snapshot"),
        total_brotli=_require_int(data, "totalBrotli", "snapshot"),
        timestamp=_require_str(data, "timestamp", "snapshot"),
        commit=_require_str(data, "commit", "snapshot"),
    )


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "files": [
            {
                "path": record.path,
                "name": record.name,
                "size": record.size,
                "gzip": record.gzip,
                "brotli": record.brotli,
            }
            for record in snapshot.files
        ],
        "totalSize": snapshot.total_size,
        "totalGzip": snapshot.total_gzip,
        "totalBrotli": snapshot.total_brotli,
        "timestamp": snapshot.timestamp,
        "commit": snapshot.commit,
    }


def load_snapshot(path: Path) -> Snapshot:
    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise SnapshotFormatError(f"{path.name} is not valid JSON: {exc}") from exc
    return parse_snapshot(data)


def save_snapshot(snapshot: Snapshot, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(snapshot_to_dict(snapshot), fh, indent=2)
        fh.write("\n")
    return path
