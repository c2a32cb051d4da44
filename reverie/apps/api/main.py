"""FastAPI application entrypoint for Reverie."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from reverie.libs.logging_utils import configure_logging

configure_logging()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reverie.apps.api.routes.entries import router as entries_router
from reverie.apps.api.routes.stats import router as stats_router
from reverie.apps.api.routes.vapi_webhook import router as vapi_webhook_router
from reverie.libs.schemas import get_settings
from reverie.libs.schemas.db import close_async_pool
from reverie.libs.security import FixedWindowRateLimiter

LOGGER = logging.getLogger(__name__)
SETTINGS = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    app.state.entries_limiter = FixedWindowRateLimiter(
        SETTINGS.entries_rate_limit,
        SETTINGS.entries_rate_window_seconds,
    )
    app.state.stats_limiter = FixedWindowRateLimiter(
        SETTINGS.stats_rate_limit,
        SETTINGS.entries_rate_window_seconds,
    )
    app.state.webhook_limiter = FixedWindowRateLimiter(
        SETTINGS.webhook_rate_limit,
        SETTINGS.entries_rate_window_seconds,
    )
    LOGGER.info("%s API starting (environment=%s)", SETTINGS.app_name, SETTINGS.environment)
    try:
        yield
    finally:
        await close_async_pool()


app = FastAPI(title="Reverie API", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"status": "ok"}


app.include_router(entries_router)
app.include_router(stats_router)
app.include_router(vapi_webhook_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("reverie.apps.api.main:app", host="0.0.0.0", port=8000, reload=True)
