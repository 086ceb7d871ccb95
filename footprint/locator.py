from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

from footprint.extractor import MIB, extract_archive
from footprint.models import ArtifactCandidate, Snapshot
from footprint.records import ARTIFACT_NAME, STATS_FILE, SnapshotFormatError, load_snapshot
from footprint.retry import RetryPolicy
from footprint.store import PAGE_SIZE, ArtifactPage


logger = logging.getLogger(__name__)

DEFAULT_BRANCHES = ("main", "master")
DEFAULT_MAX_PAGES = 10
MAX_ARCHIVE_BYTES = 50 * MIB
MAX_UNZIPPED_BYTES = 200 * MIB
EXTRACT_DIRNAME = "baseline-extracted"


class ArtifactTooLargeError(RuntimeError):
    """The store handed back an archive bigger than any baseline could be."""


class SnapshotSource(Protocol):
    async def list_artifacts_page(self, page: int, *, per_page: int = PAGE_SIZE) -> ArtifactPage: ...

    async def download_artifact(self, artifact_id: int) -> bytes: ...


@dataclass(slots=True, frozen=True)
class CandidateSearch:
    candidate: ArtifactCandidate | None
    scanned: int
    pages: int
    exhausted: bool


def is_baseline_candidate(candidate: ArtifactCandidate, accepted_branches: frozenset[str]) -> bool:
    if candidate.name != ARTIFACT_NAME or candidate.expired:
        return False
    # Missing branch metadata never means "any branch".
    if candidate.head_branch is None:
        return False
    return candidate.head_branch in accepted_branches


async def find_baseline_candidate(
    store: SnapshotSource,
    accepted_branches: Iterable[str],
    max_pages: int,
) -> CandidateSearch:
    """Walk the listing newest-first and stop at the first accepted-branch baseline."""
    if max_pages < 1:
        raise ValueError("max_pages must be a positive integer")
    branches = frozenset(accepted_branches)
    scanned = 0
    page = 0

    while page < max_pages:
        page += 1
        listing = await store.list_artifacts_page(page, per_page=PAGE_SIZE)
        scanned += listing.raw_count
        for candidate in listing.candidates:
            if is_baseline_candidate(candidate, branches):
                return CandidateSearch(candidate=candidate, scanned=scanned, pages=page, exhausted=False)
        # A short page, or reaching the reported total, means nothing is left.
        if listing.raw_count < PAGE_SIZE or (
            listing.total_count is not None and scanned >= listing.total_count
        ):
            return CandidateSearch(candidate=None, scanned=scanned, pages=page, exhausted=False)

    return CandidateSearch(candidate=None, scanned=scanned, pages=page, exhausted=True)


def _read_extracted_snapshot(extract_dir: Path) -> Snapshot | None:
    stats_path = extract_dir / STATS_FILE
    if not stats_path.is_file():
        logger.warning("%s not found in artifact", STATS_FILE)
        return None
    try:
        return load_snapshot(stats_path)
    except (SnapshotFormatError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Baseline record is malformed: %s", exc)
        return None


async def locate_baseline(
    store: SnapshotSource,
    *,
    work_dir: Path,
    accepted_branches: Iterable[str] = DEFAULT_BRANCHES,
    max_pages: int = DEFAULT_MAX_PAGES,
    retry_policy: RetryPolicy | None = None,
    max_archive_bytes: int = MAX_ARCHIVE_BYTES,
    max_unzipped_bytes: int = MAX_UNZIPPED_BYTES,
) -> Snapshot | None:
    """Return the stored baseline snapshot, or None when none can be used.

    Every failure short of an oversized archive is logged and collapses to
    None, so callers treat "no history" and "history unavailable" alike.
    `work_dir` must be owned by this run alone.
    """
    retry_policy = retry_policy or RetryPolicy()
    branches = tuple(accepted_branches)

    try:
        search = await find_baseline_candidate(store, branches, max_pages)
        if search.candidate is None:
            if search.exhausted:
                logger.warning(
                    "No baseline artifact found in the first %d page(s) (%d artifacts scanned). "
                    "Increase the max page count or reduce artifact retention.",
                    search.pages,
                    search.scanned,
                )
            else:
                logger.info(
                    "No baseline artifact found for branch(es) %s (%d artifacts scanned)",
                    ", ".join(branches) or "-",
                    search.scanned,
                )
            return None

        artifact = search.candidate
        logger.info(
            "Using baseline artifact %d from branch %s",
            artifact.id,
            artifact.head_branch,
        )
        archive_bytes = await retry_policy.run(
            lambda: store.download_artifact(artifact.id),
            operation="downloadArtifact",
        )

        if len(archive_bytes) == 0:
            logger.warning("Downloaded artifact is empty")
            return None
        if len(archive_bytes) > max_archive_bytes:
            raise ArtifactTooLargeError(
                f"Artifact is too large ({round(len(archive_bytes) / MIB)} MB)"
            )

        extract_dir = work_dir / EXTRACT_DIRNAME
        extraction = extract_archive(
            archive_bytes,
            extract_dir,
            max_archive_bytes=max_archive_bytes,
            max_unzipped_bytes=max_unzipped_bytes,
        )
        if extraction.aborted:
            logger.warning("Baseline extraction aborted: %s", extraction.reason)
            return None

        snapshot = _read_extracted_snapshot(extract_dir)
        if snapshot is None:
            return None
    except ArtifactTooLargeError:
        raise
    except Exception as exc:
        logger.warning("Failed to download baseline: %s", exc)
        return None

    logger.info(
        "Baseline loaded: %d bytes gzip from commit %s",
        snapshot.total_gzip,
        snapshot.commit[:7],
    )
    return snapshot
