"""Tests for the read API and admin endpoints."""

from unittest.mock import AsyncMock

import httpx
import pytest

from launch_scanner.delivery.invalidation import ViewInvalidator
from launch_scanner.delivery.web.app import create_app
from launch_scanner.ingestion.gateway import UpsertGateway
from launch_scanner.ingestion.models import DebugResult
from launch_scanner.scoring.models import LaunchScore

SCORE = LaunchScore(analysis="Fair launch.", rating=8, summary="Agent")


def _gateway(session_factory, scorer=None) -> UpsertGateway:
    return UpsertGateway(
        session_factory,
        scorer=scorer or AsyncMock(return_value=SCORE),
        invalidator=ViewInvalidator(local_views=True),
        overwrite_existing=True,
        force_rescoring=False,
    )


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health(session_factory):
    async with _client(create_app(session_factory)) as client:
        resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_list_and_detail(session_factory, launch_factory):
    gateway = _gateway(session_factory)
    await gateway.upsert(launch_factory())
    await gateway.upsert(launch_factory(
        title="Other ($OTH)", launchpad_specific_id="1002", chain="SOLANA", status="GENESIS",
    ))

    async with _client(create_app(session_factory, gateway)) as client:
        everything = (await client.get("/api/launches")).json()
        solana = (await client.get("/api/launches", params={"chain": "solana"})).json()
        launchpads = (await client.get("/api/launchpads")).json()
        detail = (await client.get(f"/api/launches/{solana[0]['id']}")).json()
        missing = await client.get("/api/launches/9999")

    assert len(everything) == 2
    assert [row["title"] for row in solana] == ["Other ($OTH)"]
    assert launchpads == ["Virtuals Protocol"]
    assert detail["rating"] == 8
    assert detail["creator_tokens_held"] == str(150_000_000 * 10**18)
    assert detail["creator_token_holding_percentage"] == "15.00"
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_cached_list_refreshes_after_write(session_factory, launch_factory):
    gateway = _gateway(session_factory)
    async with _client(create_app(session_factory, gateway)) as client:
        assert (await client.get("/api/launches")).json() == []

        await gateway.upsert(launch_factory())

        assert len((await client.get("/api/launches")).json()) == 1


@pytest.mark.asyncio
async def test_revalidate_endpoint(session_factory, launch_factory):
    silent = UpsertGateway(session_factory, scorer=AsyncMock(return_value=SCORE))
    async with _client(create_app(session_factory)) as client:
        assert (await client.get("/api/launches")).json() == []
        await silent.upsert(launch_factory())
        # no invalidator: the cached view is still served
        assert (await client.get("/api/launches")).json() == []

        resp = await client.post("/api/revalidate")
        assert resp.json()["revalidated"] is True
        assert len((await client.get("/api/launches")).json()) == 1


@pytest.mark.asyncio
async def test_reanalyze(session_factory, launch_factory):
    gateway = _gateway(session_factory, scorer=AsyncMock(return_value=None))
    await gateway.upsert(launch_factory())
    rescoring = _gateway(session_factory)

    async with _client(create_app(session_factory, rescoring)) as client:
        [row] = (await client.get("/api/launches")).json()
        assert row["rating"] == -1

        resp = await client.post(f"/api/launches/{row['id']}/reanalyze")
        assert resp.json() == {"id": row["id"], "result": "scored"}
        assert (await client.get(f"/api/launches/{row['id']}")).json()["rating"] == 8

        assert (await client.post("/api/launches/9999/reanalyze")).status_code == 404


@pytest.mark.asyncio
async def test_admin_endpoints_need_pipeline(session_factory):
    async with _client(create_app(session_factory)) as client:
        assert (await client.post("/api/launches/1/reanalyze")).status_code == 503
        assert (await client.post("/api/launches/1/refresh-stats")).status_code == 503


@pytest.mark.asyncio
async def test_debug_endpoint(session_factory):
    listener = AsyncMock()
    listener.debug_launch = AsyncMock(return_value=DebugResult(success=True, message="Launch 5 processed (inserted)."))
    app = create_app(session_factory, listeners={"Virtuals Protocol": listener})

    async with _client(app) as client:
        resp = await client.post("/api/debug/Virtuals Protocol/5", params={"delete_existing": "true"})
        unknown = await client.post("/api/debug/Nope/5")

    assert resp.json() == {"success": True, "message": "Launch 5 processed (inserted)."}
    listener.debug_launch.assert_awaited_once_with("5", delete_existing=True)
    assert unknown.status_code == 404
