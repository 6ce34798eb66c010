"""User puzzle submissions and their admin review."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.dependencies import get_current_user, require_admin
from tandem.auth.identity import Identity
from tandem.config import get_settings
from tandem.database import get_session
from tandem.db.models import User
from tandem.notifications.discord import get_notifier
from tandem.submissions import service
from tandem.submissions.schemas import ApproveRequest, RejectRequest, SubmissionRequest

router = APIRouter(tags=["Submissions"])


@router.post("/api/puzzles/submit", status_code=201)
async def submit_puzzle(
    body: SubmissionRequest,
    background: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Submit a Reel Connections puzzle for review (subscribers only, limited per day)."""
    submission = await service.submit(
        db,
        user.id,
        display_name=body.display_name,
        is_anonymous=body.is_anonymous,
        groups=[g.model_dump(by_alias=True, exclude_none=True) for g in body.groups],
        per_day=get_settings().submissions_per_day,
    )
    notifier = get_notifier()
    if notifier.enabled:
        background.add_task(
            notifier.puzzle_submitted,
            submission.id,
            "Anonymous" if submission.is_anonymous else submission.display_name,
            [g["connection"] for g in submission.groups],
        )
    return {"success": True, "submission": service.submission_view(submission)}


@router.get("/api/admin/submissions")
async def list_submissions(
    status: str | None = Query(default=None, pattern="^(pending|approved|rejected)$"),
    limit: int = Query(default=50, ge=1, le=200),
    _admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    submissions = await service.list_submissions(db, status=status, limit=limit)
    return {"success": True, "submissions": [service.submission_view(s) for s in submissions]}


@router.post("/api/admin/submissions/{submission_id}/approve")
async def approve_submission(
    submission_id: int,
    body: ApproveRequest,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Promote into the Reel catalog on the given date."""
    submission = await service.approve(
        db,
        submission_id,
        date.fromisoformat(body.date),
        reviewer=admin.admin_name,
        admin_notes=body.admin_notes,
    )
    return {"success": True, "submission": service.submission_view(submission)}


@router.post("/api/admin/submissions/{submission_id}/reject")
async def reject_submission(
    submission_id: int,
    body: RejectRequest,
    _admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    submission = await service.reject(db, submission_id, admin_notes=body.admin_notes)
    return {"success": True, "submission": service.submission_view(submission)}
