"""Shared test fixtures for footprint."""

from __future__ import annotations

import io
import json
import zipfile
from collections.abc import Callable

import pytest

from footprint.models import FileRecord, Snapshot
from footprint.records import snapshot_to_dict


def make_snapshot(
    files: dict[str, int] | list[FileRecord],
    *,
    commit: str = "abcdef1234567890",
) -> Snapshot:
    """Build a snapshot; a {path: size} mapping uses the size for every metric."""
    if isinstance(files, dict):
        records = [
            FileRecord(path=path, name=path.rsplit("/", 1)[-1], size=size, gzip=size, brotli=size)
            for path, size in files.items()
        ]
    else:
        records = list(files)
    return Snapshot(
        files=tuple(records),
        total_size=sum(r.size for r in records),
        total_gzip=sum(r.gzip for r in records),
        total_brotli=sum(r.brotli for r in records),
        timestamp="2026-10-01T12:00:00+00:00",
        commit=commit,
    )


def make_zip(entries: dict[str, bytes | None]) -> bytes:
    """Zip bytes from {name: data}; a None value writes a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries.items():
            if data is None:
                archive.writestr(zipfile.ZipInfo(name.rstrip("/") + "/"), b"")
            else:
                archive.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def snapshot_factory() -> Callable[..., Snapshot]:
    return make_snapshot


@pytest.fixture
def zip_factory() -> Callable[[dict[str, bytes | None]], bytes]:
    return make_zip


@pytest.fixture
def baseline_archive() -> bytes:
    """A well-formed baseline artifact holding one stats record."""
    snapshot = make_snapshot({"assets/app.js": 1000, "assets/app.css": 200})
    return make_zip({"bundle-stats.json": json.dumps(snapshot_to_dict(snapshot)).encode()})
