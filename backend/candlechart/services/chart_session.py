from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Iterable

import numpy as np

from candlechart.chart.loop import RenderLoop
from candlechart.core.config import Settings, get_settings
from candlechart.schemas.chart_state import (
    ChartDimensions,
    ChartSettings,
    ChartState,
    OHLCBar,
    TimeFrame,
)
from candlechart.services.chart_store import (
    AddIndicator,
    AppendBar,
    ChartStore,
    ScrollToLatest,
    SetData,
    SetTimeFrame,
    UpdateLastBar,
)
from candlechart.services.market_data import BarSource, fetch_bars, next_live_tick

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    pass


class SessionLimitError(RuntimeError):
    pass


@dataclass
class ChartSession:
    """One interactive chart: its state store plus the loop painting it."""

    id: str
    store: ChartStore
    loop: RenderLoop
    source: BarSource = "mock"
    bar_count: int = 1000
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rng: np.random.Generator = field(default_factory=np.random.default_rng)

    @property
    def state(self) -> ChartState:
        return self.store.snapshot()

    def load(self, bars: Iterable[OHLCBar] | None = None) -> ChartState:
        state = self.store.snapshot()
        if bars is None:
            bars = fetch_bars(state.symbol, state.time_frame, self.source, count=self.bar_count)
        self.store.dispatch(SetData(bars=list(bars)))
        return self.store.dispatch(ScrollToLatest())

    def change_time_frame(self, time_frame: TimeFrame) -> ChartState:
        """Switch frames only once the new bars are in hand."""
        symbol = self.store.snapshot().symbol
        bars = fetch_bars(symbol, time_frame, self.source, count=self.bar_count)
        self.store.dispatch(SetTimeFrame(time_frame=time_frame))
        return self.load(bars)

    def advance_live(self, now_ms: int | None = None) -> bool:
        """Apply one simulated live tick. Returns True if a new bar was appended."""
        state = self.store.snapshot()
        now = int(time.time() * 1000) if now_ms is None else now_ms
        tick = next_live_tick(state.bars, state.time_frame, now, self.rng)
        if tick is None:
            return False
        bar, is_new = tick
        if is_new:
            self.store.dispatch(AppendBar(bar=bar))
        else:
            self.store.dispatch(UpdateLastBar(bar=bar))
        return is_new

    def close(self) -> None:
        self.loop.stop()


def _initial_state(
    settings: Settings,
    symbol: str,
    time_frame: TimeFrame,
    width: float | None,
    height: float | None,
    chart_settings: ChartSettings | None,
) -> ChartState:
    dimensions = ChartDimensions.from_size(
        width or settings.chart_width,
        height or settings.chart_height,
        margin_top=settings.chart_margin_top,
        margin_bottom=settings.chart_margin_bottom,
        margin_left=settings.chart_margin_left,
        margin_right=settings.chart_margin_right,
    )
    chart_settings = chart_settings or ChartSettings(
        candle_width=settings.candle_width,
        candle_spacing=settings.candle_spacing,
        grid_lines=settings.grid_lines,
        show_volume=settings.show_volume,
        theme=settings.chart_theme,
    )
    return ChartState(
        symbol=symbol.upper().strip(),
        time_frame=time_frame,
        dimensions=dimensions,
        settings=chart_settings,
    )


class SessionRegistry:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._sessions: dict[str, ChartSession] = {}
        self._pending = 0
        self._lock = Lock()

    def create(
        self,
        symbol: str,
        time_frame: TimeFrame = "1h",
        *,
        width: float | None = None,
        height: float | None = None,
        device_pixel_ratio: float | None = None,
        chart_settings: ChartSettings | None = None,
        indicators: Iterable[AddIndicator] = (),
        bars: Iterable[OHLCBar] | None = None,
        source: BarSource | None = None,
        autostart: bool = True,
    ) -> ChartSession:
        # Reserve a slot before the (possibly slow) bar load.
        with self._lock:
            if len(self._sessions) + self._pending >= self.settings.max_sessions:
                raise SessionLimitError(f"session limit reached ({self.settings.max_sessions})")
            self._pending += 1

        try:
            store = ChartStore(_initial_state(self.settings, symbol, time_frame, width, height, chart_settings))
            loop = RenderLoop(
                store,
                device_pixel_ratio=device_pixel_ratio or self.settings.device_pixel_ratio,
                frame_rate=self.settings.frame_rate,
            )
            session = ChartSession(
                id=uuid.uuid4().hex,
                store=store,
                loop=loop,
                source=source or self.settings.bar_source,
                bar_count=self.settings.mock_bar_count,
            )
            for action in indicators:
                store.dispatch(action)
            session.load(bars)
        except Exception:
            with self._lock:
                self._pending -= 1
            raise

        with self._lock:
            self._pending -= 1
            self._sessions[session.id] = session
        if autostart:
            loop.start()
        else:
            loop.mount()
        logger.info("chart session %s created for %s %s", session.id, store.snapshot().symbol, time_frame)
        return session

    def get(self, session_id: str) -> ChartSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def sessions(self) -> list[ChartSession]:
        with self._lock:
            return list(self._sessions.values())

    def close(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.close()
        logger.info("chart session %s closed", session_id)

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def advance_live_all(self, now_ms: int | None = None) -> int:
        """Tick every session; returns how many appended a new bar."""
        appended = 0
        for session in self.sessions():
            try:
                if session.advance_live(now_ms):
                    appended += 1
            except Exception as exc:  # noqa: BLE001
                logger.exception("live tick failed for session %s: %s", session.id, exc)
        return appended


session_registry = SessionRegistry()
