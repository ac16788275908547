"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api import router as api_router
from app.api.deps import build_rate_limiters
from app.core.config import Settings, get_settings
from app.core.database import Database
from app.core.errors import register_exception_handlers
from app.services.roles import seed_default_roles

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    # Timestamps carry a Z suffix, so render them in UTC.
    logging.Formatter.converter = time.gmtime
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the database at startup and dispose of it at shutdown."""
    settings: Settings = app.state.settings
    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.database = database
    if settings.AUTO_CREATE_TABLES:
        database.create_all()
        with database.session() as db:
            seed_default_roles(db)
    logger.info("InmoTech API started (env=%s)", settings.APP_ENV)
    try:
        yield
    finally:
        database.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application for the given settings (defaults to environment settings)."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="InmoTech API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_limiters = build_rate_limiters(settings)

    origins = settings.CORS_ORIGINS or (["*"] if settings.APP_ENV == "dev" else [])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(
            "%s %s %s %.3fs", request.method, request.url.path, response.status_code, elapsed
        )
        return response

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "InmoTech API"}

    return app


app = create_app()
