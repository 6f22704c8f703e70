"""Single-owner chart state container.

All writes go through :meth:`ChartStore.dispatch`, which reduces an action
into a new immutable :class:`ChartState` under a lock. Renderers only ever
read the committed snapshot, so input handling and painting never see a
half-applied update.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Sequence, Union

from candlechart.chart.coords import x_to_index, y_to_price
from candlechart.chart.viewport import (
    calculate_price_range,
    calculate_time_range,
    calculate_visible_range,
    clamp_translate_x,
    effective_candle_geometry,
    intersect_with_data,
    zoom_scale,
)
from candlechart.schemas.chart_state import (
    ChartSettings,
    ChartState,
    CrosshairData,
    IndicatorType,
    OHLCBar,
    TechnicalIndicator,
    TimeFrame,
    TooltipData,
    ViewportState,
)

logger = logging.getLogger(__name__)

TOOLTIP_OFFSET = 10


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SetData:
    bars: Sequence[OHLCBar]
    symbol: str | None = None
    last_update: int | None = None


@dataclass(frozen=True)
class AppendBar:
    bar: OHLCBar


@dataclass(frozen=True)
class UpdateLastBar:
    bar: OHLCBar


@dataclass(frozen=True)
class Resize:
    width: float
    height: float


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    pass


@dataclass(frozen=True)
class PointerLeave:
    pass


@dataclass(frozen=True)
class Wheel:
    delta_y: float


@dataclass(frozen=True)
class SetTimeFrame:
    time_frame: TimeFrame


@dataclass(frozen=True)
class AddIndicator:
    type: IndicatorType
    params: dict[str, float] = field(default_factory=dict)
    color: str = "#f5c518"
    name: str = ""
    visible: bool = True
    id: str | None = None


@dataclass(frozen=True)
class ToggleIndicator:
    indicator_id: str


@dataclass(frozen=True)
class RemoveIndicator:
    indicator_id: str


@dataclass(frozen=True)
class UpdateSettings:
    changes: dict[str, Any]


@dataclass(frozen=True)
class ScrollToLatest:
    pass


Action = Union[
    SetData,
    AppendBar,
    UpdateLastBar,
    Resize,
    PointerDown,
    PointerMove,
    PointerUp,
    PointerLeave,
    Wheel,
    SetTimeFrame,
    AddIndicator,
    ToggleIndicator,
    RemoveIndicator,
    UpdateSettings,
    ScrollToLatest,
]


@dataclass(frozen=True)
class Change:
    """A committed state plus which layers it invalidated."""

    state: ChartState
    base: bool
    overlay: bool


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------

def _slot(state: ChartState) -> float:
    candle_width, candle_spacing = effective_candle_geometry(state.settings, state.viewport.scale)
    return candle_width + candle_spacing


def derive(state: ChartState) -> ChartState:
    """Recompute the visible window and the price/time ranges."""
    candle_width, candle_spacing = effective_candle_geometry(state.settings, state.viewport.scale)
    start, end = calculate_visible_range(state.viewport, state.dimensions.chart_width, candle_width, candle_spacing)
    start, end = intersect_with_data(start, end, len(state.bars))
    viewport = state.viewport.model_copy(update={"start_index": start, "end_index": end})
    return state.model_copy(
        update={
            "viewport": viewport,
            "price_range": calculate_price_range(state.bars, start, end),
            "time_range": calculate_time_range(state.bars, start, end, now_ms=state.last_update or None),
        }
    )


def _with_translate(state: ChartState, translate_x: float) -> ChartState:
    clamped = clamp_translate_x(translate_x, len(state.bars), state.dimensions.chart_width, _slot(state))
    return state.model_copy(update={"viewport": state.viewport.model_copy(update={"translate_x": clamped})})


def _hidden_pointer(state: ChartState) -> ChartState:
    return state.model_copy(update={"crosshair": CrosshairData(), "tooltip": TooltipData()})


def _now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Reducers -- each returns (state, base_dirty, overlay_dirty)
# ---------------------------------------------------------------------------

Reduced = tuple[ChartState, bool, bool]


def _set_data(state: ChartState, action: SetData) -> Reduced:
    bars = tuple(action.bars)
    for prev, cur in zip(bars, bars[1:]):
        if cur.timestamp <= prev.timestamp:
            raise ValueError(f"bars must be in ascending timestamp order (at {cur.timestamp})")
    update: dict[str, Any] = {
        "bars": bars,
        "last_update": action.last_update or _now_ms(),
    }
    if action.symbol is not None:
        update["symbol"] = action.symbol
    state = state.model_copy(update=update)
    return derive(_with_translate(state, state.viewport.translate_x)), True, False


def _append_bar(state: ChartState, action: AppendBar) -> Reduced:
    if state.bars and action.bar.timestamp <= state.bars[-1].timestamp:
        raise ValueError(
            f"appended bar at {action.bar.timestamp} is not after the last bar at {state.bars[-1].timestamp}"
        )
    state = state.model_copy(update={"bars": state.bars + (action.bar,), "last_update": _now_ms()})
    return derive(state), True, False


def _update_last_bar(state: ChartState, action: UpdateLastBar) -> Reduced:
    if not state.bars:
        return state, False, False
    if action.bar.timestamp != state.bars[-1].timestamp:
        raise ValueError(
            f"last bar is at {state.bars[-1].timestamp}, got an update for {action.bar.timestamp}"
        )
    state = state.model_copy(update={"bars": state.bars[:-1] + (action.bar,), "last_update": _now_ms()})
    return derive(state), True, False


def _resize(state: ChartState, action: Resize) -> Reduced:
    state = state.model_copy(update={"dimensions": state.dimensions.resized(action.width, action.height)})
    return derive(state), True, True


def _pointer_down(state: ChartState, action: PointerDown) -> Reduced:
    state = state.model_copy(
        update={
            "is_dragging": True,
            "drag_origin_x": action.x,
            "drag_start_translate_x": state.viewport.translate_x,
        }
    )
    return state, False, False


def _pointer_move(state: ChartState, action: PointerMove) -> Reduced:
    if state.is_dragging:
        delta_x = action.x - state.drag_origin_x
        moved = _with_translate(state, state.drag_start_translate_x - delta_x)
        return derive(moved), True, False

    dims = state.dimensions
    if not state.bars or not dims.contains(action.x, action.y):
        return _hidden_pointer(state), False, True

    candle_width, candle_spacing = effective_candle_geometry(state.settings, state.viewport.scale)
    index = x_to_index(action.x, candle_width, candle_spacing, dims.margin_left)
    adjusted = max(0, min(len(state.bars) - 1, index + state.viewport.start_index))
    candle = state.bars[adjusted]
    price = y_to_price(action.y, state.price_range, dims.chart_height, dims.margin_top)

    crosshair = CrosshairData(x=action.x, y=action.y, timestamp=candle.timestamp, price=price, visible=True)
    tooltip = TooltipData(x=action.x + TOOLTIP_OFFSET, y=action.y - TOOLTIP_OFFSET, ohlc=candle, visible=True)
    return state.model_copy(update={"crosshair": crosshair, "tooltip": tooltip}), False, True


def _pointer_up(state: ChartState, action: PointerUp) -> Reduced:
    return state.model_copy(update={"is_dragging": False}), False, False


def _pointer_leave(state: ChartState, action: PointerLeave) -> Reduced:
    return _hidden_pointer(state.model_copy(update={"is_dragging": False})), False, True


def _wheel(state: ChartState, action: Wheel) -> Reduced:
    old_scale = state.viewport.scale
    new_scale = zoom_scale(old_scale, action.delta_y)
    if new_scale == old_scale:
        return state, False, False
    # Keep the same bar under the window centre.
    translate_x = state.viewport.translate_x * new_scale / old_scale
    viewport = state.viewport.model_copy(update={"scale": new_scale})
    state = state.model_copy(update={"viewport": viewport})
    return derive(_with_translate(state, translate_x)), True, False


def _set_time_frame(state: ChartState, action: SetTimeFrame) -> Reduced:
    state = state.model_copy(
        update={
            "time_frame": action.time_frame,
            "bars": (),
            "viewport": ViewportState(),
            "is_dragging": False,
        }
    )
    return derive(_hidden_pointer(state)), True, True


def _add_indicator(state: ChartState, action: AddIndicator) -> Reduced:
    indicator_id = action.id or f"{action.type}-{_now_ms()}"
    existing = {item.id for item in state.indicators}
    base_id = indicator_id
    suffix = 1
    while indicator_id in existing:
        suffix += 1
        indicator_id = f"{base_id}-{suffix}"

    indicator = TechnicalIndicator(
        id=indicator_id,
        name=action.name or action.type,
        type=action.type,
        params=action.params,
        color=action.color,
        visible=action.visible,
    )
    return state.model_copy(update={"indicators": state.indicators + (indicator,)}), True, False


def _require_indicator(state: ChartState, indicator_id: str) -> TechnicalIndicator:
    indicator = state.indicator(indicator_id)
    if indicator is None:
        raise KeyError(indicator_id)
    return indicator


def _toggle_indicator(state: ChartState, action: ToggleIndicator) -> Reduced:
    target = _require_indicator(state, action.indicator_id)
    toggled = target.model_copy(update={"visible": not target.visible})
    indicators = tuple(toggled if item.id == target.id else item for item in state.indicators)
    return state.model_copy(update={"indicators": indicators}), True, False


def _remove_indicator(state: ChartState, action: RemoveIndicator) -> Reduced:
    _require_indicator(state, action.indicator_id)
    indicators = tuple(item for item in state.indicators if item.id != action.indicator_id)
    return state.model_copy(update={"indicators": indicators}), True, False


def _update_settings(state: ChartState, action: UpdateSettings) -> Reduced:
    settings = ChartSettings.model_validate({**state.settings.model_dump(), **action.changes})
    state = state.model_copy(update={"settings": settings})
    return derive(_with_translate(state, state.viewport.translate_x)), True, True


def _scroll_to_latest(state: ChartState, action: ScrollToLatest) -> Reduced:
    return derive(_with_translate(state, float("inf"))), True, False


_REDUCERS: dict[type, Callable[[ChartState, Any], Reduced]] = {
    SetData: _set_data,
    AppendBar: _append_bar,
    UpdateLastBar: _update_last_bar,
    Resize: _resize,
    PointerDown: _pointer_down,
    PointerMove: _pointer_move,
    PointerUp: _pointer_up,
    PointerLeave: _pointer_leave,
    Wheel: _wheel,
    SetTimeFrame: _set_time_frame,
    AddIndicator: _add_indicator,
    ToggleIndicator: _toggle_indicator,
    RemoveIndicator: _remove_indicator,
    UpdateSettings: _update_settings,
    ScrollToLatest: _scroll_to_latest,
}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ChartStore:
    def __init__(
        self,
        initial: ChartState | None = None,
        *,
        on_viewport_change: Callable[[ViewportState], None] | None = None,
        on_crosshair_change: Callable[[CrosshairData], None] | None = None,
        on_tooltip_change: Callable[[TooltipData], None] | None = None,
    ) -> None:
        self._lock = Lock()
        self._state = derive(initial or ChartState())
        self._subscribers: list[Callable[[Change], None]] = []
        self.on_viewport_change = on_viewport_change
        self.on_crosshair_change = on_crosshair_change
        self.on_tooltip_change = on_tooltip_change

    def snapshot(self) -> ChartState:
        with self._lock:
            return self._state

    def subscribe(self, callback: Callable[[Change], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, action: Action) -> ChartState:
        reducer = _REDUCERS.get(type(action))
        if reducer is None:
            raise TypeError(f"unsupported chart action: {type(action).__name__}")

        with self._lock:
            prev = self._state
            state, base, overlay = reducer(prev, action)
            if state is prev:
                return prev
            state = state.model_copy(update={"revision": prev.revision + 1})
            self._state = state
            subscribers = list(self._subscribers)

        logger.debug("%s -> revision %d (base=%s overlay=%s)", type(action).__name__, state.revision, base, overlay)

        if self.on_viewport_change and state.viewport != prev.viewport:
            self.on_viewport_change(state.viewport)
        if self.on_crosshair_change and state.crosshair != prev.crosshair:
            self.on_crosshair_change(state.crosshair)
        if self.on_tooltip_change and state.tooltip != prev.tooltip:
            self.on_tooltip_change(state.tooltip)

        change = Change(state=state, base=base, overlay=overlay)
        for callback in subscribers:
            callback(change)
        return state
