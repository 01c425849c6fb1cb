"""DropQuest FastAPI application.

Airdrop task tracker with a daily crypto price race betting game.
"""

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import admin, articles, betting, health, plans
from app.config import get_settings
from app.config.logs import configure_logging
from app.services.betting import BettingError

VERSION = "0.1.0"
REQUEST_ID_HEADER = "X-Request-Id"

settings = get_settings()
configure_logging(settings)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("dropquest_api_starting", version=VERSION)
    yield
    logger.info("dropquest_api_stopped")


app = FastAPI(
    title="DropQuest",
    description="Airdrop task tracker and daily coin race",
    version=VERSION,
    lifespan=lifespan,
)

for module in (health, articles, plans, betting, admin):
    app.include_router(module.router)


@app.middleware("http")
async def bind_request_id(request: Request, call_next):
    """Tag every log line of a request with its id and echo the id back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(BettingError)
async def betting_error_handler(request: Request, exc: BettingError):
    """A rejected bet carries its own status code and message."""
    logger.info(
        "betting_request_rejected",
        path=request.url.path,
        reason=str(exc),
        status_code=exc.status_code,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    logger.error("unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
