from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from footprint.models import ArtifactCandidate


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
PAGE_SIZE = 100
DEFAULT_TIMEOUT_SECONDS = 30.0


class StoreError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True, frozen=True)
class ArtifactPage:
    candidates: tuple[ArtifactCandidate, ...]
    total_count: int | None
    raw_count: int


def _extract_artifact_entries(payload: Any) -> list[Any]:
    if isinstance(payload, dict):
        artifacts = payload.get("artifacts")
        return artifacts if isinstance(artifacts, list) else []
    return payload if isinstance(payload, list) else []


def _extract_head_branch(entry: dict[str, Any]) -> str | None:
    workflow_run = entry.get("workflow_run")
    if not isinstance(workflow_run, dict):
        return None
    value = workflow_run.get("head_branch")
    if not isinstance(value, str) or not value:
        return None
    return value


def normalize_candidate(entry: Any) -> ArtifactCandidate | None:
    if not isinstance(entry, dict):
        return None
    artifact_id = entry.get("id")
    name = entry.get("name")
    if isinstance(artifact_id, bool) or not isinstance(artifact_id, int):
        return None
    if not isinstance(name, str):
        return None
    return ArtifactCandidate(
        id=artifact_id,
        name=name,
        expired=bool(entry.get("expired", False)),
        head_branch=_extract_head_branch(entry),
    )


def normalize_listing(payload: Any) -> ArtifactPage:
    entries = _extract_artifact_entries(payload)
    candidates = tuple(
        candidate
        for candidate in (normalize_candidate(entry) for entry in entries)
        if candidate is not None
    )
    total_count = payload.get("total_count") if isinstance(payload, dict) else None
    if isinstance(total_count, bool) or not isinstance(total_count, int):
        total_count = None
    return ArtifactPage(candidates=candidates, total_count=total_count, raw_count=len(entries))


def to_bytes(data: Any) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, str):
        return data.encode("utf-8")
    raise StoreError("Unsupported artifact download response")


class ArtifactStore:
    """Minimal async client for a repository's workflow artifacts."""

    def __init__(
        self,
        repo: str,
        token: str | None,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not repo or "/" not in repo:
            raise ValueError(f"Repository must look like `owner/name`, got {repo!r}")
        self.repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "ArtifactStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, url: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise StoreError(f"GET {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise StoreError(
                f"GET {url} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    async def list_artifacts_page(self, page: int, *, per_page: int = PAGE_SIZE) -> ArtifactPage:
        response = await self._get(
            f"/repos/{self.repo}/actions/artifacts",
            params={"per_page": per_page, "page": page},
        )
        try:
            payload = response.json()
        except ValueError as exc:
            raise StoreError(f"Artifact listing page {page} is not valid JSON") from exc
        listing = normalize_listing(payload)
        logger.debug(
            "Artifact listing page %d: %d entries (%d usable)",
            page,
            listing.raw_count,
            len(listing.candidates),
        )
        return listing

    async def download_artifact(self, artifact_id: int) -> bytes:
        response = await self._get(f"/repos/{self.repo}/actions/artifacts/{artifact_id}/zip")
        return to_bytes(response.content)
