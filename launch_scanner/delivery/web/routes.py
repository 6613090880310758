import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from launch_scanner.delivery.web import views
from launch_scanner.delivery.web.dependencies import get_db, get_gateway
from launch_scanner.errors import NotFoundError
from launch_scanner.ingestion.gateway import UpsertGateway
from launch_scanner.storage.models import Launch
from launch_scanner.storage.repository import get_distinct_launchpads, get_launch, list_launches

logger = logging.getLogger(__name__)

router = APIRouter()


def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _launch_summary(launch: Launch) -> dict:
    return {
        "id": launch.id,
        "launchpad": launch.launchpad,
        "launchpad_specific_id": launch.launchpad_specific_id,
        "title": launch.title,
        "url": launch.url,
        "image_url": launch.image_url,
        "chain": launch.chain,
        "status": launch.status,
        "summary": launch.summary,
        "rating": launch.rating,
        "creator_address": launch.creator_address,
        "token_address": launch.token_address,
        "creator_token_holding_percentage": (
            str(launch.creator_token_holding_percentage)
            if launch.creator_token_holding_percentage is not None else None
        ),
        "launched_at": _iso(launch.launched_at),
    }


def _launch_detail(launch: Launch) -> dict:
    return {
        **_launch_summary(launch),
        "description": launch.description,
        "analysis": launch.analysis,
        "creator_tokens_held": launch.creator_tokens_held,
        "creator_initial_tokens_held": launch.creator_initial_tokens_held,
        "tokens_for_sale": launch.tokens_for_sale,
        "total_token_supply": launch.total_token_supply,
        "creator_token_movement_details": launch.creator_token_movement_details,
        "main_selling_address": launch.main_selling_address,
        "sent_to_zero_address": launch.sent_to_zero_address,
        "basic_info_updated_at": _iso(launch.basic_info_updated_at),
        "token_stats_updated_at": _iso(launch.token_stats_updated_at),
        "llm_analysis_updated_at": _iso(launch.llm_analysis_updated_at),
        "created_at": _iso(launch.created_at),
        "updated_at": _iso(launch.updated_at),
    }


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/api/launches")
async def api_launches(
    db: AsyncSession = Depends(get_db),
    launchpad: str | None = None,
    chain: str | None = None,
    status: str | None = None,
    min_rating: int | None = Query(None, ge=-1, le=10),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    key = ("launches", launchpad, chain, status, min_rating, limit, offset)
    cached = views.get_cached(key)
    if cached is not None:
        return cached
    rows = await list_launches(
        db, launchpad=launchpad, chain=chain, status=status,
        min_rating=min_rating, limit=limit, offset=offset,
    )
    payload = [_launch_summary(r) for r in rows]
    views.set_cached(key, payload)
    return payload


@router.get("/api/launchpads")
async def api_launchpads(db: AsyncSession = Depends(get_db)):
    key = ("launchpads",)
    cached = views.get_cached(key)
    if cached is not None:
        return cached
    payload = await get_distinct_launchpads(db)
    views.set_cached(key, payload)
    return payload


@router.get("/api/launches/{launch_id}")
async def api_launch(launch_id: int, db: AsyncSession = Depends(get_db)):
    launch = await get_launch(db, launch_id)
    if launch is None:
        raise HTTPException(status_code=404, detail="Launch not found")
    return _launch_detail(launch)


@router.post("/api/revalidate")
async def api_revalidate():
    cleared = views.clear_cache()
    return {"revalidated": True, "cleared": cleared}


@router.post("/api/launches/{launch_id}/reanalyze")
async def api_reanalyze(launch_id: int, gateway: UpsertGateway = Depends(get_gateway)):
    try:
        action = await gateway.reanalyze(launch_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Launch not found")
    return {"id": launch_id, "result": action.value}


@router.post("/api/launches/{launch_id}/refresh-stats")
async def api_refresh_stats(launch_id: int, gateway: UpsertGateway = Depends(get_gateway)):
    try:
        refreshed = await gateway.refresh_token_stats(launch_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Launch not found")
    return {"id": launch_id, "refreshed": refreshed}


@router.post("/api/debug/{launchpad}/{external_id}")
async def api_debug_launch(
    launchpad: str,
    external_id: str,
    request: Request,
    delete_existing: bool = False,
):
    listener = request.app.state.listeners.get(launchpad)
    if listener is None:
        raise HTTPException(status_code=404, detail=f"No listener for {launchpad}")
    result = await listener.debug_launch(external_id, delete_existing=delete_existing)
    logger.info("Debug %s/%s: %s", launchpad, external_id, result.message)
    return result.model_dump()
