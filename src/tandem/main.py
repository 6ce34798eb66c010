"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tandem.account.router import router as account_router
from tandem.ai.router import router as ai_router
from tandem.auth.router import router as admin_auth_router
from tandem.config import get_settings
from tandem.coop.router import router as coop_router
from tandem.database import close_db, init_db
from tandem.health.router import router as health_router
from tandem.leaderboard.router import router as leaderboard_router
from tandem.middleware import setup_middleware
from tandem.middleware.rate_limit import RateLimitStore
from tandem.progress.router import router as progress_router
from tandem.puzzles.admin_router import router as admin_puzzles_router
from tandem.puzzles.router import router as puzzles_router
from tandem.redis_client import close_redis, init_redis
from tandem.submissions.router import router as submissions_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    app.state.rate_limits = RateLimitStore()

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Tandem Daily API",
        description="Daily puzzle delivery, progress and leaderboards for Tandem Daily",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router)
    # Fixed /api/admin/* and /api/<name>/* paths go before the /api/{game_slug}/* routes.
    app.include_router(admin_auth_router)
    app.include_router(ai_router)
    app.include_router(admin_puzzles_router)
    app.include_router(submissions_router)
    app.include_router(leaderboard_router)
    app.include_router(coop_router)
    app.include_router(account_router)
    app.include_router(progress_router)
    app.include_router(puzzles_router)

    return app


app = create_app()
