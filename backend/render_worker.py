from __future__ import annotations

import logging
import os
import signal
import time
from pathlib import Path

from candlechart.core.config import get_settings
from candlechart.services.chart_session import SessionRegistry
from candlechart.services.chart_store import AddIndicator

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [render-worker] %(message)s")
logger = logging.getLogger("render_worker")


class _Stop:
    value = False


def _handle_stop(signum, frame):  # type: ignore[no-untyped-def]
    _Stop.value = True


def main() -> None:
    poll_seconds = max(1, int(os.environ.get("WORKER_POLL_SECONDS", "5")))
    symbol = os.environ.get("WORKER_SYMBOL", "DEMO")
    time_frame = os.environ.get("WORKER_TIME_FRAME", "1m")
    output = Path(os.environ.get("WORKER_OUTPUT", "chart.png"))

    signal.signal(signal.SIGINT, _handle_stop)
    signal.signal(signal.SIGTERM, _handle_stop)

    registry = SessionRegistry(get_settings())
    session = registry.create(
        symbol,
        time_frame,  # type: ignore[arg-type]
        indicators=[
            AddIndicator(type="MA", params={"period": 20}, color="#2196f3"),
            AddIndicator(type="BOLLINGER", params={"period": 20, "multiplier": 2.0}, color="#9c27b0"),
        ],
        autostart=False,
    )
    logger.info("render worker started; symbol=%s poll interval=%ss output=%s", symbol, poll_seconds, output)

    try:
        while not _Stop.value:
            started = time.time()
            try:
                if session.advance_live():
                    logger.info("appended bar; %d bars loaded", len(session.state.bars))
                session.loop.render_now()
                output.write_bytes(session.loop.frame_png())
            except Exception as exc:  # noqa: BLE001
                logger.exception("render loop failed: %s", exc)

            elapsed = time.time() - started
            sleep_for = max(0.5, poll_seconds - elapsed)
            time.sleep(sleep_for)
    finally:
        registry.close_all()

    logger.info("render worker stopped")


if __name__ == "__main__":
    main()
