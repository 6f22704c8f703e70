from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from candlechart.api import charts, health, sessions
from candlechart.core.config import get_settings
from candlechart.services.chart_session import session_registry
from candlechart.services.scheduler import start_scheduler, stop_scheduler

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.live_feed_enabled:
        start_scheduler()
    yield
    if settings.live_feed_enabled:
        stop_scheduler()
    session_registry.close_all()


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_origin_regex=settings.cors_allow_origin_regex or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(charts.router, prefix=settings.api_prefix)
app.include_router(sessions.router, prefix=settings.api_prefix)
