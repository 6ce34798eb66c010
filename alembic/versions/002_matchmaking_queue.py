"""Quick Match queue for Element Soup co-op.

Revision ID: 002_matchmaking_queue
Revises: 001_initial_schema
Create Date: 2025-12-20
"""

from collections.abc import Sequence

from alembic import op

revision: str = "002_matchmaking_queue"
down_revision: str | None = "001_initial_schema"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create matchmaking_queue."""
    op.execute("""
        CREATE TABLE matchmaking_queue (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            mode VARCHAR(16) NOT NULL DEFAULT 'creative',
            status VARCHAR(16) NOT NULL DEFAULT 'waiting',
            session_id VARCHAR(36) REFERENCES alchemy_coop_sessions(id) ON DELETE SET NULL,
            matched_with VARCHAR(36),
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            last_heartbeat TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT matchmaking_queue_mode_check CHECK (mode IN ('daily', 'creative')),
            CONSTRAINT matchmaking_queue_status_check
                CHECK (status IN ('waiting', 'matched', 'cancelled', 'expired'))
        )
    """)
    op.execute("CREATE INDEX idx_matchmaking_waiting ON matchmaking_queue (status, mode, created_at)")
    op.execute("""
        CREATE UNIQUE INDEX matchmaking_queue_user_waiting_key
        ON matchmaking_queue (user_id)
        WHERE status = 'waiting'
    """)


def downgrade() -> None:
    """Drop matchmaking_queue."""
    op.execute("DROP TABLE IF EXISTS matchmaking_queue CASCADE")
