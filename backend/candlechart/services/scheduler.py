from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from candlechart.core.config import get_settings
from candlechart.services.chart_session import session_registry

logger = logging.getLogger(__name__)

scheduler: BackgroundScheduler | None = None


def _feed_tick() -> None:
    try:
        appended = session_registry.advance_live_all()
        if appended:
            logger.debug("live feed appended bars to %d sessions", appended)
    except Exception as exc:
        logger.exception("live feed tick failed: %s", exc)


def start_scheduler() -> None:
    global scheduler
    if scheduler is not None:
        return

    seconds = max(1, get_settings().live_feed_seconds)
    scheduler = BackgroundScheduler()
    scheduler.add_job(_feed_tick, "interval", seconds=seconds, id="live-feed", max_instances=1, coalesce=True)
    scheduler.start()
    logger.info("Live feed scheduler started (every %ss)", seconds)


def stop_scheduler() -> None:
    global scheduler
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Live feed scheduler stopped")
