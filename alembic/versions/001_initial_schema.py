"""Initial schema: users, catalog, progress, leaderboards, co-op.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-08-10
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables and indices."""
    # --- Users ---
    op.execute("""
        CREATE TABLE avatars (
            id VARCHAR(64) PRIMARY KEY,
            display_name VARCHAR(64) NOT NULL,
            image_path TEXT NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE TABLE users (
            id VARCHAR(36) PRIMARY KEY,
            username VARCHAR(32) UNIQUE,
            email VARCHAR(320),
            selected_avatar_id VARCHAR(64) REFERENCES avatars(id) ON DELETE SET NULL,
            country_code VARCHAR(2),
            country_flag VARCHAR(8),
            role VARCHAR(16) NOT NULL DEFAULT 'member',
            onboarding_completed BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)
    op.execute("CREATE INDEX idx_users_username_lower ON users (lower(username)) WHERE username IS NOT NULL")

    op.execute("""
        CREATE TABLE subscriptions (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
            tier VARCHAR(16) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            platform VARCHAR(16) NOT NULL DEFAULT 'web',
            current_period_start TIMESTAMPTZ,
            current_period_end TIMESTAMPTZ,
            cancel_at_period_end BOOLEAN NOT NULL DEFAULT false,
            apple_original_transaction_id VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT subscriptions_tier_check CHECK (tier IN ('buddypass', 'bestfriends', 'soulmates'))
        )
    """)

    # --- Catalog ---
    op.execute("""
        CREATE TABLE puzzles (
            id BIGSERIAL PRIMARY KEY,
            game VARCHAR(16) NOT NULL,
            puzzle_date DATE NOT NULL,
            puzzle_number INTEGER NOT NULL,
            theme VARCHAR(128),
            difficulty VARCHAR(16),
            payload JSONB NOT NULL,
            creator_name VARCHAR(64),
            is_user_submitted BOOLEAN NOT NULL DEFAULT false,
            created_by VARCHAR(64),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT puzzles_game_date_key UNIQUE (game, puzzle_date),
            CONSTRAINT puzzles_game_check CHECK (game IN ('tandem', 'cryptic', 'mini', 'reel', 'soup'))
        )
    """)
    op.execute("CREATE INDEX idx_puzzles_game_number ON puzzles (game, puzzle_number)")

    op.execute("""
        CREATE TABLE puzzle_play_stats (
            game VARCHAR(16) NOT NULL,
            puzzle_date DATE NOT NULL,
            views INTEGER NOT NULL DEFAULT 0,
            played INTEGER NOT NULL DEFAULT 0,
            completed INTEGER NOT NULL DEFAULT 0,
            perfect INTEGER NOT NULL DEFAULT 0,
            total_time INTEGER NOT NULL DEFAULT 0,
            hints_used INTEGER NOT NULL DEFAULT 0,
            shared INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (game, puzzle_date)
        )
    """)

    op.execute("""
        CREATE TABLE puzzle_submissions (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            display_name VARCHAR(64) NOT NULL,
            is_anonymous BOOLEAN NOT NULL DEFAULT false,
            groups JSONB NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            admin_notes TEXT,
            promoted_puzzle_id BIGINT REFERENCES puzzles(id) ON DELETE SET NULL,
            reviewed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT puzzle_submissions_status_check CHECK (status IN ('pending', 'approved', 'rejected'))
        )
    """)
    op.execute("CREATE INDEX idx_submissions_user_created ON puzzle_submissions (user_id, created_at)")
    op.execute("CREATE INDEX idx_submissions_pending ON puzzle_submissions (created_at) WHERE status = 'pending'")

    # --- Progress ---
    op.execute("""
        CREATE TABLE puzzle_results (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            game VARCHAR(16) NOT NULL,
            puzzle_date DATE NOT NULL,
            completed BOOLEAN NOT NULL DEFAULT false,
            time_taken INTEGER CHECK (time_taken IS NULL OR time_taken >= 0),
            mistakes INTEGER NOT NULL DEFAULT 0,
            hints_used INTEGER NOT NULL DEFAULT 0,
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT puzzle_results_user_game_date_key UNIQUE (user_id, game, puzzle_date)
        )
    """)
    op.execute("""
        CREATE INDEX idx_puzzle_results_rank
        ON puzzle_results (game, puzzle_date, time_taken)
        WHERE completed
    """)

    op.execute("""
        CREATE TABLE user_game_stats (
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            game VARCHAR(16) NOT NULL,
            played INTEGER NOT NULL DEFAULT 0,
            total_completed INTEGER NOT NULL DEFAULT 0,
            perfect_solves INTEGER NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            average_time DOUBLE PRECISION,
            best_time INTEGER,
            last_played_date DATE,
            completed_puzzles JSONB NOT NULL DEFAULT '{}'::jsonb,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (user_id, game),
            CONSTRAINT user_game_stats_streak_check
                CHECK (longest_streak >= current_streak AND current_streak >= 0)
        )
    """)

    # --- Leaderboards ---
    op.execute("""
        CREATE TABLE leaderboard_entries (
            id BIGSERIAL PRIMARY KEY,
            game VARCHAR(16) NOT NULL,
            board VARCHAR(16) NOT NULL,
            puzzle_date DATE,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            score INTEGER NOT NULL CHECK (score > 0),
            metadata JSONB NOT NULL DEFAULT '{}'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT leaderboard_entries_board_check CHECK (board IN ('daily_speed', 'best_streak')),
            CONSTRAINT leaderboard_entries_date_check
                CHECK ((board = 'daily_speed') = (puzzle_date IS NOT NULL))
        )
    """)
    # One entry per user and board; the streak board has no date.
    op.execute("""
        CREATE UNIQUE INDEX leaderboard_entries_user_board_key
        ON leaderboard_entries (game, board, COALESCE(puzzle_date, DATE '1970-01-01'), user_id)
    """)
    op.execute("""
        CREATE INDEX idx_leaderboard_daily_score
        ON leaderboard_entries (game, puzzle_date, score ASC, updated_at ASC)
        WHERE board = 'daily_speed'
    """)
    op.execute("""
        CREATE INDEX idx_leaderboard_streak_score
        ON leaderboard_entries (game, score DESC, updated_at ASC)
        WHERE board = 'best_streak'
    """)
    op.execute("CREATE INDEX idx_leaderboard_user_recent ON leaderboard_entries (user_id, game, board, updated_at)")

    op.execute("""
        CREATE TABLE leaderboard_preferences (
            user_id VARCHAR(36) PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            enabled BOOLEAN NOT NULL DEFAULT true,
            show_on_global BOOLEAN NOT NULL DEFAULT true,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    """)

    # --- Element Soup ---
    op.execute("""
        CREATE TABLE alchemy_coop_sessions (
            id VARCHAR(36) PRIMARY KEY,
            invite_code VARCHAR(6) NOT NULL,
            host_user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            partner_user_id VARCHAR(36) REFERENCES users(id) ON DELETE SET NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'waiting',
            mode VARCHAR(16) NOT NULL DEFAULT 'creative',
            element_bank JSONB NOT NULL DEFAULT '[]'::jsonb,
            total_moves INTEGER NOT NULL DEFAULT 0,
            total_discoveries INTEGER NOT NULL DEFAULT 0,
            first_discovery_elements JSONB NOT NULL DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            started_at TIMESTAMPTZ,
            last_activity_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            ended_at TIMESTAMPTZ,
            CONSTRAINT alchemy_coop_sessions_status_check
                CHECK (status IN ('waiting', 'active', 'completed', 'abandoned'))
        )
    """)
    op.execute("CREATE INDEX idx_coop_invite_status ON alchemy_coop_sessions (invite_code, status)")
    op.execute("""
        CREATE UNIQUE INDEX idx_coop_waiting_invite
        ON alchemy_coop_sessions (invite_code)
        WHERE status = 'waiting'
    """)
    op.execute("CREATE INDEX idx_coop_last_activity ON alchemy_coop_sessions (status, last_activity_at)")

    op.execute("""
        CREATE TABLE alchemy_creative_saves (
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            slot INTEGER NOT NULL CHECK (slot BETWEEN 1 AND 3),
            element_bank JSONB NOT NULL DEFAULT '[]'::jsonb,
            total_moves INTEGER NOT NULL DEFAULT 0,
            total_discoveries INTEGER NOT NULL DEFAULT 0,
            first_discoveries INTEGER NOT NULL DEFAULT 0,
            first_discovery_elements JSONB NOT NULL DEFAULT '[]'::jsonb,
            last_played_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            PRIMARY KEY (user_id, slot)
        )
    """)


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    for table in (
        "alchemy_creative_saves",
        "alchemy_coop_sessions",
        "leaderboard_preferences",
        "leaderboard_entries",
        "user_game_stats",
        "puzzle_results",
        "puzzle_submissions",
        "puzzle_play_stats",
        "puzzles",
        "subscriptions",
        "users",
        "avatars",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
