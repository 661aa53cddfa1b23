"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.st_admin.api.router import router as admin_router
from src.st_common.database import engine
from src.st_common.errors import AppError
from src.st_common.redis_client import close_redis, get_redis
from src.st_common.response import error_response
from src.st_confirmation.api.router import router as confirmation_router
from src.st_dispute.api.router import router as dispute_router
from src.st_gateway.middleware.request_log import RequestLogMiddleware
from src.st_payout.api.router import router as payout_router
from src.st_scheduler.runner import JobRunner
from src.st_wallet.api.router import router as wallet_router

logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections, start jobs. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    runner = JobRunner() if settings.SCHEDULER_ENABLED else None
    if runner is not None:
        runner.start()
    yield
    # Shutdown
    if runner is not None:
        await runner.stop()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, getattr(request.state, "request_id", None))
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(confirmation_router, prefix="/api/v1")
app.include_router(dispute_router, prefix="/api/v1")
app.include_router(wallet_router, prefix="/api/v1")
app.include_router(payout_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
