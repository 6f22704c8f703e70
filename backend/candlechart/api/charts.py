from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, HTTPException, Query

import candlechart.quant as quant
from candlechart.core.config import get_settings
from candlechart.schemas.chart_state import TechnicalIndicator, TimeFrame
from candlechart.schemas.charts import ChartResponse
from candlechart.services.market_data import MarketDataError, fetch_bars, normalize_symbol

router = APIRouter(prefix="/charts", tags=["charts"])

_OVERLAY_PERIODS = {"sma20": 20, "sma50": 50, "sma200": 200}


@router.get("/candles", response_model=ChartResponse)
def get_candles(
    ticker: str = Query(..., description="Ticker symbol"),
    time_frame: TimeFrame = Query("1d", description="Candle time frame, e.g. 1h, 1d"),
    source: Literal["mock", "yfinance"] | None = Query(None, description="Bar source; defaults to BAR_SOURCE"),
    indicators: str = Query("", description="Comma-separated indicator keys: sma20,sma50,sma200,bollinger,rsi"),
) -> ChartResponse:
    # ------------------------------------------------------------------
    # 1. Load bars
    # ------------------------------------------------------------------
    settings = get_settings()
    bar_source = source or settings.bar_source
    try:
        bars = fetch_bars(ticker, time_frame, bar_source, count=settings.mock_bar_count)
    except MarketDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not bars:
        raise HTTPException(status_code=404, detail=f"No data for {ticker}")

    candles = [
        {
            "time": bar.timestamp,
            "open": bar.open,
            "high": bar.high,
            "low": bar.low,
            "close": bar.close,
            "volume": bar.volume,
        }
        for bar in bars
    ]
    timestamps = [bar.timestamp for bar in bars]

    # ------------------------------------------------------------------
    # 2. Parse requested indicators
    # ------------------------------------------------------------------
    requested = {k.strip().lower() for k in indicators.split(",") if k.strip()}

    # ------------------------------------------------------------------
    # 3. Price-pane overlays
    # ------------------------------------------------------------------
    overlays: dict[str, list] = {}

    for key, period in _OVERLAY_PERIODS.items():
        if key in requested:
            overlays[key] = quant.indicator_to_points(timestamps, quant.calculate_sma(bars, period))

    if "bollinger" in requested:
        bands = quant.series_for(TechnicalIndicator(id="bollinger", type="BOLLINGER"), bars)
        for name, values in bands.items():
            overlays[f"bollinger_{name}"] = quant.indicator_to_points(timestamps, values)

    # ------------------------------------------------------------------
    # 4. Separate panels
    # ------------------------------------------------------------------
    panels: dict[str, list] = {}

    if "rsi" in requested:
        panels["rsi"] = quant.indicator_to_points(timestamps, quant.calculate_rsi(bars, 14))

    return ChartResponse(
        ok=True,
        ticker=normalize_symbol(ticker),
        time_frame=time_frame,
        source=bar_source,
        candles=candles,
        overlays=overlays,
        panels=panels,
    )
