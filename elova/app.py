"""FastAPI application for the Elova sync service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .database import init_db
from .scheduler import start_schedulers, stop_schedulers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level.upper())
    await init_db()
    if settings.scheduler_enabled:
        start_schedulers()
    yield
    await stop_schedulers()


app = FastAPI(title=settings.app_title, lifespan=lifespan)

# Import and register routers
from .routers import executions, health, sync, workflows  # noqa: E402

app.include_router(sync.router)
app.include_router(workflows.router)
app.include_router(executions.router)
app.include_router(health.router)
