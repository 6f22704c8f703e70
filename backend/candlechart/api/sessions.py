from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from candlechart.schemas.chart_state import ChartSettings
from candlechart.schemas.charts import (
    IndicatorCreate,
    PointerEvent,
    ResizeRequest,
    SessionCreate,
    SessionDeleteResponse,
    SessionView,
    SettingsPatch,
    TimeFrameRequest,
    WheelEvent,
)
from candlechart.services.chart_session import (
    ChartSession,
    SessionLimitError,
    SessionNotFoundError,
    SessionRegistry,
    session_registry,
)
from candlechart.services.chart_store import (
    AddIndicator,
    PointerDown,
    PointerLeave,
    PointerMove,
    PointerUp,
    RemoveIndicator,
    ToggleIndicator,
    UpdateSettings,
    Wheel,
)
from candlechart.services.market_data import MarketDataError

router = APIRouter(prefix="/charts/sessions", tags=["chart-sessions"])


def get_registry() -> SessionRegistry:
    return session_registry


def _session(session_id: str, registry: SessionRegistry) -> ChartSession:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc


def _view(session: ChartSession) -> SessionView:
    state = session.state
    return SessionView(
        id=session.id,
        created_at=session.created_at,
        symbol=state.symbol,
        time_frame=state.time_frame,
        revision=state.revision,
        bar_count=len(state.bars),
        last_bar=state.bars[-1] if state.bars else None,
        viewport=state.viewport,
        dimensions=state.dimensions,
        settings=state.settings,
        price_range=state.price_range,
        time_range=state.time_range,
        indicators=list(state.indicators),
        crosshair=state.crosshair,
        tooltip=state.tooltip,
    )


def _add_action(payload: IndicatorCreate) -> AddIndicator:
    return AddIndicator(
        type=payload.type,
        params=payload.params,
        color=payload.color,
        name=payload.name,
        visible=payload.visible,
    )


@router.post("", response_model=SessionView)
def create_session(payload: SessionCreate, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    chart_settings = None
    if payload.theme is not None:
        defaults = registry.settings
        chart_settings = ChartSettings(
            candle_width=defaults.candle_width,
            candle_spacing=defaults.candle_spacing,
            grid_lines=defaults.grid_lines,
            show_volume=defaults.show_volume,
            theme=payload.theme,
        )
    try:
        session = registry.create(
            payload.symbol,
            payload.time_frame,
            width=payload.width,
            height=payload.height,
            device_pixel_ratio=payload.device_pixel_ratio,
            chart_settings=chart_settings,
            indicators=[_add_action(item) for item in payload.indicators],
            source=payload.source,
        )
    except SessionLimitError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc
    except MarketDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _view(session)


@router.get("", response_model=list[SessionView])
def list_sessions(registry: SessionRegistry = Depends(get_registry)) -> list[SessionView]:
    return [_view(session) for session in registry.sessions()]


@router.get("/{session_id}", response_model=SessionView)
def get_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    return _view(_session(session_id, registry))


@router.delete("/{session_id}", response_model=SessionDeleteResponse)
def delete_session(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> SessionDeleteResponse:
    try:
        registry.close(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc
    return SessionDeleteResponse(id=session_id, deleted=True)


@router.get(
    "/{session_id}/frame.png",
    response_class=Response,
    responses={200: {"content": {"image/png": {}}}},
)
def frame(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> Response:
    session = _session(session_id, registry)
    return Response(content=session.loop.frame_png(), media_type="image/png")


@router.post("/{session_id}/pointer", response_model=SessionView)
def pointer(session_id: str, payload: PointerEvent, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    session = _session(session_id, registry)
    if payload.kind == "down":
        session.store.dispatch(PointerDown(x=payload.x, y=payload.y))
    elif payload.kind == "move":
        session.store.dispatch(PointerMove(x=payload.x, y=payload.y))
    elif payload.kind == "up":
        session.store.dispatch(PointerUp())
    else:
        session.store.dispatch(PointerLeave())
    return _view(session)


@router.post("/{session_id}/wheel", response_model=SessionView)
def wheel(session_id: str, payload: WheelEvent, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    session = _session(session_id, registry)
    session.store.dispatch(Wheel(delta_y=payload.delta_y))
    return _view(session)


@router.post("/{session_id}/resize", response_model=SessionView)
def resize(session_id: str, payload: ResizeRequest, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    session = _session(session_id, registry)
    if not session.loop.resize(payload.width, payload.height, payload.device_pixel_ratio):
        raise HTTPException(status_code=409, detail="chart surfaces are not mounted")
    return _view(session)


@router.post("/{session_id}/indicators", response_model=SessionView)
def add_indicator(
    session_id: str,
    payload: IndicatorCreate,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    session = _session(session_id, registry)
    try:
        session.store.dispatch(_add_action(payload))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _view(session)


@router.post("/{session_id}/indicators/{indicator_id}/toggle", response_model=SessionView)
def toggle_indicator(
    session_id: str,
    indicator_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    session = _session(session_id, registry)
    try:
        session.store.dispatch(ToggleIndicator(indicator_id=indicator_id))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="indicator not found") from exc
    return _view(session)


@router.delete("/{session_id}/indicators/{indicator_id}", response_model=SessionView)
def remove_indicator(
    session_id: str,
    indicator_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    session = _session(session_id, registry)
    try:
        session.store.dispatch(RemoveIndicator(indicator_id=indicator_id))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="indicator not found") from exc
    return _view(session)


@router.patch("/{session_id}/settings", response_model=SessionView)
def patch_settings(
    session_id: str,
    payload: SettingsPatch,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    session = _session(session_id, registry)
    changes = payload.model_dump(exclude_none=True)
    if changes:
        session.store.dispatch(UpdateSettings(changes=changes))
    return _view(session)


@router.post("/{session_id}/timeframe", response_model=SessionView)
def change_time_frame(
    session_id: str,
    payload: TimeFrameRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    session = _session(session_id, registry)
    try:
        session.change_time_frame(payload.time_frame)
    except MarketDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _view(session)
