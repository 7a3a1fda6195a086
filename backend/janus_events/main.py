"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from janus_events.config import settings
from janus_events.database import build_session_maker, lifespan_db
from janus_events.services.sequencer import IngestionSequencer
from janus_events.services.sink import SqlAlchemySink
from janus_events.utils.logging import get_logger, setup_logging

# Setup logging
setup_logging(debug=settings.debug)

# Import routers
from janus_events.api.queries import router as queries_router
from janus_events.api.webhook import router as webhook_router

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    async with lifespan_db() as engine:
        app.state.engine = engine
        app.state.session_maker = build_session_maker(engine)
        app.state.sequencer = IngestionSequencer(SqlAlchemySink(app.state.session_maker))
        logger.info(
            "event_sink_started",
            auth_enabled=settings.webhook_auth_enabled,
            max_body_bytes=settings.max_body_bytes,
        )
        yield
        logger.info("event_sink_stopping")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Stores Janus event handler notifications in a relational database",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(queries_router)
app.include_router(webhook_router)


async def _health(request: Request):
    try:
        async with request.app.state.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("health_check_failed", error=str(e), error_type=type(e).__name__)
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return {"ok": True}


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """Database round trip."""
    return await _health(request)


@app.get("/api/health", tags=["Health"])
async def api_health_check(request: Request):
    return await _health(request)
