from __future__ import annotations

import gzip as gzip_codec
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable

import brotli as brotli_codec

from footprint.filters import PathFilter
from footprint.models import FileRecord, Snapshot

if TYPE_CHECKING:
    from rich.console import Console


GZIP_LEVEL = 9
BROTLI_QUALITY = 11
UNKNOWN_COMMIT = "unknown"


def _discover_candidates(root: Path, path_filter: PathFilter) -> tuple[list[tuple[Path, str, int]], int]:
    candidates: list[tuple[Path, str, int]] = []
    total_bytes = 0

    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file():
            continue
        relative_path = file_path.relative_to(root).as_posix()
        if not path_filter.matches(relative_path):
            continue
        size = file_path.stat().st_size
        candidates.append((file_path, relative_path, size))
        total_bytes += size

    return candidates, total_bytes


def measure_file(
    file_path: Path,
    relative_path: str,
    *,
    gzip: bool = True,
    brotli: bool = True,
) -> FileRecord:
    data = file_path.read_bytes()
    return FileRecord(
        path=relative_path,
        name=file_path.name,
        size=len(data),
        gzip=len(gzip_codec.compress(data, compresslevel=GZIP_LEVEL)) if gzip else 0,
        brotli=len(brotli_codec.compress(data, quality=BROTLI_QUALITY)) if brotli else 0,
    )


def build_snapshot(records: list[FileRecord], *, commit: str | None = None, timestamp: str | None = None) -> Snapshot:
    return Snapshot(
        files=tuple(records),
        total_size=sum(record.size for record in records),
        total_gzip=sum(record.gzip for record in records),
        total_brotli=sum(record.brotli for record in records),
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        commit=commit or os.getenv("GITHUB_SHA", "") or UNKNOWN_COMMIT,
    )


def scan_build_output(
    root: Path,
    *,
    gzip: bool = True,
    brotli: bool = True,
    path_filter: PathFilter | None = None,
    commit: str | None = None,
    on_file: Callable[[FileRecord], None] | None = None,
) -> Snapshot:
    root = root.resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Build output directory does not exist: {root}")
    path_filter = path_filter or PathFilter()
    candidates, _ = _discover_candidates(root, path_filter)

    records: list[FileRecord] = []
    for file_path, relative_path, _ in candidates:
        record = measure_file(file_path, relative_path, gzip=gzip, brotli=brotli)
        records.append(record)
        if on_file is not None:
            on_file(record)
    return build_snapshot(records, commit=commit)


def scan_build_output_with_progress(
    root: Path,
    *,
    gzip: bool = True,
    brotli: bool = True,
    path_filter: PathFilter | None = None,
    commit: str | None = None,
    console: "Console | None" = None,
) -> Snapshot:
    from rich.progress import (
        BarColumn,
        DownloadColumn,
        Progress,
        SpinnerColumn,
        TaskProgressColumn,
        TextColumn,
    )

    root = root.resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Build output directory does not exist: {root}")
    path_filter = path_filter or PathFilter()
    _, total_bytes = _discover_candidates(root, path_filter)

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold]Measuring"),
        BarColumn(),
        TaskProgressColumn(),
        DownloadColumn(binary_units=True),
        TextColumn("{task.fields[path]}"),
        console=console,
        transient=True,
        expand=True,
    ) as progress:
        task_id = progress.add_task("scan", total=total_bytes or None, path="")

        def _advance(record: FileRecord) -> None:
            progress.update(task_id, advance=record.size, path=record.path)

        return scan_build_output(
            root,
            gzip=gzip,
            brotli=brotli,
            path_filter=path_filter,
            commit=commit,
            on_file=_advance,
        )
