"""Tests for the artifact store client and payload normalization."""

from __future__ import annotations

import httpx
import pytest

from footprint.models import ArtifactCandidate
from footprint.store import ArtifactStore, StoreError, normalize_listing, to_bytes


def _artifact(artifact_id, name="bundle-stats", expired=False, branch="main"):
    entry = {"id": artifact_id, "name": name, "expired": expired}
    if branch is not ...:
        entry["workflow_run"] = {"head_branch": branch}
    return entry


def test_normalize_listing_object_payload():
    page = normalize_listing({"total_count": 2, "artifacts": [_artifact(1), _artifact(2, branch=None)]})

    assert page.total_count == 2
    assert page.raw_count == 2
    assert page.candidates == (
        ArtifactCandidate(id=1, name="bundle-stats", expired=False, head_branch="main"),
        ArtifactCandidate(id=2, name="bundle-stats", expired=False, head_branch=None),
    )


def test_normalize_listing_bare_list_and_garbage():
    assert len(normalize_listing([_artifact(1)]).candidates) == 1
    assert normalize_listing({"artifacts": "nope"}).candidates == ()
    assert normalize_listing("nope").candidates == ()
    assert normalize_listing(None).raw_count == 0


def test_normalize_listing_drops_malformed_entries():
    page = normalize_listing(
        {
            "artifacts": [
                {"id": "7", "name": "bundle-stats"},
                {"id": True, "name": "bundle-stats"},
                {"id": 8},
                "junk",
                {"id": 9, "name": "bundle-stats", "workflow_run": "main"},
            ]
        }
    )
    assert page.raw_count == 5
    assert page.candidates == (
        ArtifactCandidate(id=9, name="bundle-stats", expired=False, head_branch=None),
    )


def test_to_bytes_accepts_binary_shapes():
    assert to_bytes(b"ab") == b"ab"
    assert to_bytes(bytearray(b"ab")) == b"ab"
    assert to_bytes(memoryview(b"ab")) == b"ab"
    assert to_bytes("ab") == b"ab"
    with pytest.raises(StoreError):
        to_bytes(12)


def test_store_requires_owner_and_name():
    with pytest.raises(ValueError):
        ArtifactStore("just-a-name", token=None)


@pytest.mark.asyncio
async def test_list_artifacts_page_sends_pagination_and_auth():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"total_count": 1, "artifacts": [_artifact(42)]})

    async with ArtifactStore("acme/web", "secret", transport=httpx.MockTransport(handler)) as store:
        page = await store.list_artifacts_page(3)

    assert page.candidates[0].id == 42
    request = seen[0]
    assert request.url.path == "/repos/acme/web/actions/artifacts"
    assert request.url.params["per_page"] == "100"
    assert request.url.params["page"] == "3"
    assert request.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_download_follows_redirect():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.github.com":
            return httpx.Response(302, headers={"Location": "https://blobs.example.com/a.zip"})
        return httpx.Response(200, content=b"PK\x03\x04zip")

    async with ArtifactStore("acme/web", "secret", transport=httpx.MockTransport(handler)) as store:
        data = await store.download_artifact(42)

    assert data == b"PK\x03\x04zip"


@pytest.mark.asyncio
async def test_http_errors_become_store_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(410)

    async with ArtifactStore("acme/web", None, transport=httpx.MockTransport(handler)) as store:
        with pytest.raises(StoreError) as excinfo:
            await store.download_artifact(1)

    assert excinfo.value.status_code == 410


@pytest.mark.asyncio
async def test_transport_errors_become_store_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with ArtifactStore("acme/web", None, transport=httpx.MockTransport(handler)) as store:
        with pytest.raises(StoreError) as excinfo:
            await store.list_artifacts_page(1)

    assert excinfo.value.status_code is None


@pytest.mark.asyncio
async def test_non_json_listing_is_a_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    async with ArtifactStore("acme/web", None, transport=httpx.MockTransport(handler)) as store:
        with pytest.raises(StoreError):
            await store.list_artifacts_page(1)
