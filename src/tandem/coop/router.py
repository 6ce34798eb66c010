"""Element Soup co-op router: /api/daily-alchemy/*."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.account import profile
from tandem.auth.dependencies import get_current_user
from tandem.config import get_settings
from tandem.coop import matchmaking, service
from tandem.coop.schemas import (
    CoopSaveRequest,
    CreateSessionRequest,
    CreativeSaveRequest,
    Element,
    JoinSessionRequest,
    MatchmakeRequest,
    SessionProgressRequest,
)
from tandem.database import get_session
from tandem.db.models import User

router = APIRouter(prefix="/api/daily-alchemy", tags=["Element Soup"])


def _bank(elements: list[Element] | None) -> list[dict[str, Any]] | None:
    if elements is None:
        return None
    return [e.model_dump(by_alias=True, exclude_none=True) for e in elements]


@router.post("/coop/create", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    session = await service.create_session(db, user.id, mode=body.mode, seed_slot=body.seed_slot)
    return {"success": True, "session": await service.session_view(db, session)}


@router.post("/coop/join")
async def join_session(
    body: JoinSessionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Claim a waiting session by invite code; 409 if someone else got there first."""
    session = await service.join_session(db, user.id, body.invite_code)
    return {"success": True, "session": await service.session_view(db, session)}


@router.post("/coop/matchmake")
async def matchmake(
    body: MatchmakeRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Quick Match: join the queue, poll it, or leave it."""
    if body.action == "join":
        await profile.capture_country(db, user.id, request.headers.get(get_settings().country_header))
        return await matchmaking.join_queue(db, user.id, body.mode)
    if body.action == "heartbeat":
        return await matchmaking.heartbeat(db, user.id)
    return await matchmaking.cancel(db, user.id)


@router.get("/coop/session")
async def read_session(
    session_id: str = Query(alias="id", min_length=1, max_length=64),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    return {"success": True, "session": await service.get_session_for(db, session_id, user.id)}


@router.post("/coop/session")
async def update_session(
    body: SessionProgressRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    session = await service.apply_progress(
        db,
        body.session_id,
        user.id,
        element_bank=_bank(body.element_bank),
        total_moves=body.total_moves,
        total_discoveries=body.total_discoveries,
        first_discovery_elements=body.first_discovery_elements,
        end_status=body.end,
    )
    return {"success": True, "session": await service.session_view(db, session)}


@router.post("/coop/save")
async def save_from_session(
    body: CoopSaveRequest,
    slot: int = Query(ge=1, le=3),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Stream the caller's bank into their private save slot."""
    save = await service.save_from_session(
        db,
        body.session_id,
        user.id,
        slot,
        element_bank=_bank(body.element_bank) or [],
        total_moves=body.total_moves,
        total_discoveries=body.total_discoveries,
        first_discoveries=body.first_discoveries,
        first_discovery_elements=body.first_discovery_elements,
    )
    return {"success": True, "save": service.creative_save_view(save, slot)}


@router.get("/creative/save")
async def read_creative_save(
    slot: int = Query(default=1, ge=1, le=3),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    save = await service.get_creative_save(db, user.id, slot)
    return {"success": True, "save": service.creative_save_view(save, slot)}


@router.post("/creative/save")
async def write_creative_save(
    body: CreativeSaveRequest,
    slot: int = Query(default=1, ge=1, le=3),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    save = await service.write_creative_save(
        db,
        user.id,
        slot,
        element_bank=_bank(body.element_bank) or [],
        total_moves=body.total_moves,
        total_discoveries=body.total_discoveries,
        first_discoveries=body.first_discoveries,
        first_discovery_elements=body.first_discovery_elements,
    )
    await db.commit()
    return {"success": True, "save": service.creative_save_view(save, slot)}
