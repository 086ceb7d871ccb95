from __future__ import annotations

import io
import logging
import os
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path


logger = logging.getLogger(__name__)

MIB = 1024 * 1024

_EXTRACTION_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    zlib.error,
    OSError,
    EOFError,
    RuntimeError,
    NotImplementedError,
    ValueError,
)


class _BudgetExceeded(Exception):
    pass


@dataclass(slots=True)
class ExtractResult:
    extracted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    aborted: bool = False
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return not self.aborted


def _is_contained(target: Path, root: Path) -> bool:
    # Prefix check includes the separator so `/out-evil` never passes for `/out`.
    return str(target).startswith(str(root) + os.sep)


def _format_limit(limit: int) -> str:
    if limit >= MIB and limit % MIB == 0:
        return f"{limit // MIB} MB"
    return f"{limit} bytes"


def _admit(written_total: int, entry_size: int, max_unzipped_bytes: int) -> int:
    total = written_total + entry_size
    if total > max_unzipped_bytes:
        raise _BudgetExceeded(
            f"Artifact unzipped size exceeds {_format_limit(max_unzipped_bytes)}; "
            "aborting extraction."
        )
    return total


def _read_entry(archive: zipfile.ZipFile, info: zipfile.ZipInfo) -> bytes:
    # zipfile never yields more than the declared size, so the admitted size bounds the output.
    with archive.open(info) as src:
        return src.read(info.file_size)


def _discard(paths: list[Path]) -> None:
    for path in reversed(paths):
        try:
            path.unlink()
        except FileNotFoundError:
            continue


def extract_archive(
    archive_bytes: bytes,
    destination: Path,
    *,
    max_archive_bytes: int,
    max_unzipped_bytes: int,
) -> ExtractResult:
    """Unpack an untrusted zip into `destination`.

    Entries resolving outside `destination` are skipped. Exceeding
    `max_unzipped_bytes` aborts the whole extraction and removes every file
    written so far. Failures are reported through the result, never raised.
    """
    result = ExtractResult()
    size = len(archive_bytes)
    if size == 0:
        result.aborted = True
        result.reason = "Archive is empty"
        return result
    if size > max_archive_bytes:
        result.aborted = True
        result.reason = f"Archive is too large ({size} bytes > {max_archive_bytes} bytes)"
        return result

    written: list[Path] = []
    written_total = 0

    try:
        destination.mkdir(parents=True, exist_ok=True)
        root = destination.resolve()
        with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
            for info in archive.infolist():
                target = (root / info.filename).resolve()
                if not _is_contained(target, root):
                    logger.warning("Skipping path traversal: %s", info.filename)
                    result.skipped.append(info.filename)
                    continue

                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                written_total = _admit(written_total, info.file_size, max_unzipped_bytes)
                data = _read_entry(archive, info)

                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
                written.append(target)
                result.extracted.append(target.relative_to(root).as_posix())
    except _BudgetExceeded as exc:
        logger.warning("%s", exc)
        _discard(written)
        result.aborted = True
        result.reason = str(exc)
        result.extracted.clear()
    except _EXTRACTION_ERRORS as exc:
        logger.warning("Failed to extract artifact zip: %s", exc)
        _discard(written)
        result.aborted = True
        result.reason = f"Failed to extract artifact zip: {exc}"
        result.extracted.clear()

    return result
