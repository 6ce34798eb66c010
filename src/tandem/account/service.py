"""Account deletion.

Deletes every row the user owns, then the user. Subscriptions are not
cancelled here (billing happens on the store side), so an active one is
reported back as a warning.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.db.models import (
    CoopSession,
    CreativeSave,
    LeaderboardEntry,
    LeaderboardPreference,
    MatchmakingEntry,
    PuzzleResult,
    PuzzleSubmission,
    Subscription,
    User,
    UserGameStats,
)
from tandem.db.types import utcnow
from tandem.submissions.service import find_active_subscription

logger = logging.getLogger(__name__)

DATA_RETENTION = {
    "authAccount": "Deleted immediately",
    "subscriptionRecords": "Deleted (billing history retained for 7 years per legal requirements)",
    "gameStats": "Deleted or anonymized",
    "localData": "Please clear app data or browser cache manually",
}

SUBSCRIPTION_WARNING = {
    "warning": "You have an active subscription",
    "action": "Your subscription will continue to bill until you cancel it separately",
    "iOS": "Cancel via App Store > Subscriptions",
    "web": "Cancel via Stripe billing portal",
}

WILL_BE_DELETED = [
    "Your account credentials and authentication data",
    "Your game statistics and progress",
    "Your leaderboard entries and preferences",
    "Your Element Soup saves and co-op sessions",
    "Your puzzle submissions",
    "Your subscription records (billing history retained for legal compliance)",
]

WILL_NOT_BE_DELETED = [
    "Active subscriptions (must be cancelled separately)",
    "Billing history (retained for 7 years per legal requirements)",
    "Puzzles already published from your submissions",
    "Anonymized analytics data",
]

# Child tables first; the users row goes last.
_OWNED = (
    (PuzzleResult, PuzzleResult.user_id),
    (UserGameStats, UserGameStats.user_id),
    (LeaderboardEntry, LeaderboardEntry.user_id),
    (LeaderboardPreference, LeaderboardPreference.user_id),
    (CreativeSave, CreativeSave.user_id),
    (PuzzleSubmission, PuzzleSubmission.user_id),
    (MatchmakingEntry, MatchmakingEntry.user_id),
    (CoopSession, CoopSession.host_user_id),
    (Subscription, Subscription.user_id),
)


async def deletion_preview(db: AsyncSession, user: User) -> dict[str, Any]:
    subscription = await find_active_subscription(db, user.id, utcnow())
    return {
        "success": True,
        "accountInfo": {
            "email": user.email,
            "createdAt": user.created_at.isoformat() if user.created_at else None,
            "hasActiveSubscription": subscription is not None,
        },
        "deletionInfo": {
            "whatWillBeDeleted": WILL_BE_DELETED,
            "whatWillNotBeDeleted": WILL_NOT_BE_DELETED,
            "timeline": "Immediate deletion upon confirmation",
            "irreversible": True,
        },
        "subscriptionInfo": (
            {
                "platform": subscription.platform,
                "status": subscription.status,
                "expiryDate": (
                    subscription.current_period_end.isoformat() if subscription.current_period_end else None
                ),
            }
            if subscription is not None
            else None
        ),
    }


async def delete_account(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """Remove the user and everything they own in one transaction."""
    now = utcnow()
    had_subscription = await find_active_subscription(db, user_id, now) is not None

    await db.execute(
        update(CoopSession)
        .where(CoopSession.partner_user_id == user_id)
        .values({CoopSession.partner_user_id: None})
        .execution_options(synchronize_session=False)
    )
    counts: dict[str, int] = {}
    for model, column in _OWNED:
        result = await db.execute(delete(model).where(column == user_id).execution_options(synchronize_session=False))
        counts[model.__tablename__] = int(result.rowcount or 0)
    await db.execute(delete(User).where(User.id == user_id).execution_options(synchronize_session=False))
    await db.commit()
    logger.info("Deleted account %s (%s)", user_id, counts)

    response: dict[str, Any] = {
        "success": True,
        "message": "Your account has been successfully deleted",
        "deletedAt": now.isoformat(),
        "dataRetention": DATA_RETENTION,
    }
    if had_subscription:
        response["subscription"] = SUBSCRIPTION_WARNING
    return response
