"""ORM models for the puzzle service.

Table shapes match alembic/versions. Column types come from ``tandem.db.types``
so the same models run on PostgreSQL and on the SQLite test database.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    literal_column,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tandem.db.base import Base
from tandem.db.types import BigIntPK, JSONType, UTCDateTime, utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class Avatar(Base):
    """Canonical avatar catalogue. ``image_path`` is the only avatar source of truth."""

    __tablename__ = "avatars"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    image_path: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


class User(Base):
    """Maps to the 'users' table. The id is issued by the auth provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(32), nullable=True, unique=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    selected_avatar_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("avatars.id", ondelete="SET NULL"), nullable=True
    )
    country_code: Mapped[str | None] = mapped_column(String(2), nullable=True)
    country_flag: Mapped[str | None] = mapped_column(String(8), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member", server_default="member")
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    avatar: Mapped[Avatar | None] = relationship("Avatar", lazy="joined")


class Subscription(Base):
    """Maps to the 'subscriptions' table. Written by the billing integrations."""

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    platform: Mapped[str] = mapped_column(String(16), nullable=False, default="web")
    current_period_start: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    apple_original_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("tier IN ('buddypass', 'bestfriends', 'soulmates')", name="subscriptions_tier_check"),
    )


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class Puzzle(Base):
    """One puzzle of record per (game, date). ``payload`` is game specific."""

    __tablename__ = "puzzles"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    game: Mapped[str] = mapped_column(String(16), nullable=False)
    puzzle_date: Mapped[date] = mapped_column(Date, nullable=False)
    puzzle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    theme: Mapped[str | None] = mapped_column(String(128), nullable=True)
    difficulty: Mapped[str | None] = mapped_column(String(16), nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    creator_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_user_submitted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("game", "puzzle_date", name="puzzles_game_date_key"),
    )


class PuzzlePlayStats(Base):
    """Anonymous per-puzzle counters fed by stats pings."""

    __tablename__ = "puzzle_play_stats"

    game: Mapped[str] = mapped_column(String(16), primary_key=True)
    puzzle_date: Mapped[date] = mapped_column(Date, primary_key=True)
    views: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    played: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    completed: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    perfect: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_time: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    hints_used: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    shared: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


class PuzzleSubmission(Base):
    """User-generated Reel Connections puzzle awaiting review."""

    __tablename__ = "puzzle_submissions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    is_anonymous: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    groups: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", server_default="pending")
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    promoted_puzzle_id: Mapped[int | None] = mapped_column(
        BigIntPK, ForeignKey("puzzles.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    __table_args__ = (Index("idx_submissions_user_created", "user_id", "created_at"),)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


class PuzzleResult(Base):
    """One row per (user, game, date). Completed rows are never rewritten."""

    __tablename__ = "puzzle_results"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game: Mapped[str] = mapped_column(String(16), nullable=False)
    puzzle_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    time_taken: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mistakes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hints_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    extra: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "game", "puzzle_date", name="puzzle_results_user_game_date_key"),
    )


class UserGameStats(Base):
    """Aggregate stats per (user, game), maintained alongside PuzzleResult."""

    __tablename__ = "user_game_stats"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    game: Mapped[str] = mapped_column(String(16), primary_key=True)
    played: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    perfect_solves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    best_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_played_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_puzzles: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "longest_streak >= current_streak AND current_streak >= 0",
            name="user_game_stats_streak_check",
        ),
    )


# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------


class LeaderboardEntry(Base):
    """Best score per (game, board, date?, user). Scores never regress."""

    __tablename__ = "leaderboard_entries"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    game: Mapped[str] = mapped_column(String(16), nullable=False)
    board: Mapped[str] = mapped_column(String(16), nullable=False)
    puzzle_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    __table_args__ = (
        Index("idx_leaderboard_board_score", "game", "board", "puzzle_date", "score"),
        Index("idx_leaderboard_user_recent", "user_id", "game", "board", "updated_at"),
    )


# One entry per user and board; the streak board has no date.
Index(
    "leaderboard_entries_user_board_key",
    LeaderboardEntry.game,
    LeaderboardEntry.board,
    func.coalesce(LeaderboardEntry.puzzle_date, literal_column("'1970-01-01'")),
    LeaderboardEntry.user_id,
    unique=True,
)


class LeaderboardPreference(Base):
    __tablename__ = "leaderboard_preferences"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    show_on_global: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)


# ---------------------------------------------------------------------------
# Element Soup co-op
# ---------------------------------------------------------------------------


class CoopSession(Base):
    """Two-player Element Soup session joined by invite code."""

    __tablename__ = "alchemy_coop_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    invite_code: Mapped[str] = mapped_column(String(6), nullable=False)
    host_user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    partner_user_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting")
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default="creative")
    element_bank: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    total_moves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_discoveries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_discovery_elements: Mapped[list[str]] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_activity_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("idx_coop_invite_status", "invite_code", "status"),
        Index("idx_coop_last_activity", "status", "last_activity_at"),
    )


class CreativeSave(Base):
    """Private Element Soup creative-mode save slot."""

    __tablename__ = "alchemy_creative_saves"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    slot: Mapped[int] = mapped_column(Integer, primary_key=True)
    element_bank: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    total_moves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_discoveries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_discoveries: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    first_discovery_elements: Mapped[list[str]] = mapped_column(JSONType, default=list)
    last_played_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)


class MatchmakingEntry(Base):
    """Quick Match queue entry. A user holds at most one waiting entry."""

    __tablename__ = "matchmaking_queue"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mode: Mapped[str] = mapped_column(String(16), nullable=False, default="creative")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="waiting")
    session_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("alchemy_coop_sessions.id", ondelete="SET NULL"), nullable=True
    )
    matched_with: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    last_heartbeat: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    __table_args__ = (
        Index("idx_matchmaking_waiting", "status", "mode", "created_at"),
        Index(
            "matchmaking_queue_user_waiting_key",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'waiting'"),
            sqlite_where=text("status = 'waiting'"),
        ),
    )
