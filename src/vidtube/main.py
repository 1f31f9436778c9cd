"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis pool, database engine).
Middleware, CORS, exception handlers and routers are all registered here.
"""

from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from vidtube import __version__
from vidtube.api import api_router
from vidtube.api.errors import register_exception_handlers
from vidtube.cache import close_redis, init_redis
from vidtube.config import settings
from vidtube.log import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    logger.info(
        "vidtube.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    Path(settings.upload_tmp_dir).mkdir(parents=True, exist_ok=True)

    try:
        await init_redis()
        logger.info("vidtube.redis_connected", url=settings.redis_url)
    except (RedisError, OSError) as e:
        # Redis is optional; without it there is no rate limiting
        logger.warning("vidtube.redis_unavailable", error=str(e))

    yield

    logger.info("vidtube.shutdown")
    await close_redis()

    from vidtube.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title="VidTube Accounts",
        description="Accounts, sessions and channel profiles for a video-sharing app",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from vidtube.middleware.rate_limit import RateLimitMiddleware
    from vidtube.middleware.request_id import RequestIdMiddleware
    from vidtube.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/")
    async def root():
        return {"message": "VidTube accounts API", "docs": "/docs", "health": "/api/v1/health"}

    return app


# Default app instance (used by uvicorn: vidtube.main:app)
app = create_app()
