from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Literal

import numpy as np
import pandas as pd
import yfinance as yf

from candlechart.schemas.chart_state import TIME_FRAME_MS, OHLCBar, TimeFrame


class MarketDataError(RuntimeError):
    pass


logger = logging.getLogger(__name__)

BarSource = Literal["mock", "yfinance"]

CACHE_TTL_SECONDS = 5 * 60
MAX_CACHE_ITEMS = 256
_cache_lock = Lock()
_HISTORY_CACHE: dict[tuple[str, str], tuple[float, tuple[OHLCBar, ...]]] = {}

# yfinance interval / lookback period per chart time frame. 4h bars are
# resampled from hourly data because yfinance has no native 4h interval.
_YF_FRAMES: dict[str, tuple[str, str]] = {
    "1m": ("1m", "5d"),
    "5m": ("5m", "1mo"),
    "15m": ("15m", "1mo"),
    "1h": ("60m", "3mo"),
    "4h": ("60m", "6mo"),
    "1d": ("1d", "2y"),
    "1w": ("1wk", "10y"),
}

# Avoid flooding logs when provider throttles.
logging.getLogger("yfinance").setLevel(logging.CRITICAL)


def normalize_symbol(symbol: str) -> str:
    value = str(symbol or "").strip().upper()
    value = "".join(ch for ch in value if ch.isalnum() or ch in ".-^=")
    return value


def _now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Synthetic bars
# ---------------------------------------------------------------------------

def generate_mock_bars(
    symbol: str,
    time_frame: TimeFrame,
    count: int = 1000,
    *,
    seed: int | None = None,
    now_ms: int | None = None,
) -> list[OHLCBar]:
    """Random-walk bars ending at the current interval.

    Each bar opens at the previous close and moves up to 1% either way; wicks
    are widened to keep ``low <= open, close <= high``.
    """
    if count <= 0:
        return []
    interval = TIME_FRAME_MS[time_frame]
    now = _now_ms() if now_ms is None else now_ms
    end = now - now % interval
    rng = np.random.default_rng(seed if seed is not None else abs(hash(symbol)) % (2**32))

    base_price = 100 + rng.random() * 100
    volatility = 0.02
    bars: list[OHLCBar] = []
    for i in range(count - 1, -1, -1):
        change = (rng.random() - 0.5) * volatility * base_price
        open_ = base_price
        close = open_ + change
        high = open_ + rng.random() * abs(change) * 2
        low = open_ - rng.random() * abs(change) * 2
        bars.append(
            OHLCBar(
                timestamp=end - i * interval,
                open=float(open_),
                high=float(max(open_, close, high)),
                low=float(min(open_, close, low)),
                close=float(close),
                volume=int(rng.integers(100_000, 1_100_000)),
            )
        )
        base_price = close
    return bars


def next_live_tick(
    bars: list[OHLCBar] | tuple[OHLCBar, ...],
    time_frame: TimeFrame,
    now_ms: int,
    rng: np.random.Generator,
) -> tuple[OHLCBar, bool] | None:
    """Simulated live update: ``(bar, True)`` for a new bar, ``(bar, False)`` to replace the last one."""
    if not bars:
        return None
    last = bars[-1]
    interval = TIME_FRAME_MS[time_frame]

    if now_ms - last.timestamp >= interval:
        change = (rng.random() - 0.5) * 0.01 * last.close
        close = last.close + change
        high = last.close + rng.random() * abs(change)
        low = last.close - rng.random() * abs(change)
        bar = OHLCBar(
            timestamp=last.timestamp + interval,
            open=last.close,
            high=float(max(last.close, close, high)),
            low=float(min(last.close, close, low)),
            close=float(close),
            volume=int(rng.integers(100_000, 1_100_000)),
        )
        return bar, True

    change = (rng.random() - 0.5) * 0.005 * last.close
    close = float(last.close + change)
    bar = last.model_copy(
        update={
            "close": close,
            "high": max(last.high, close),
            "low": min(last.low, close),
            "volume": last.volume + int(rng.integers(0, 10_000)),
        }
    )
    return bar, False


# ---------------------------------------------------------------------------
# yfinance history
# ---------------------------------------------------------------------------

def _fetch_via_ticker(ticker: str, period: str, interval: str) -> pd.DataFrame:
    t = yf.Ticker(ticker)
    return t.history(
        period=period,
        interval=interval,
        auto_adjust=True,
        timeout=10,
        raise_errors=True,
    )


def _download_history_frame(ticker: str, time_frame: TimeFrame) -> pd.DataFrame:
    interval, period = _YF_FRAMES[time_frame]
    frame = pd.DataFrame()
    last_err: Exception | None = None

    for attempt in range(2):
        try:
            frame = _fetch_via_ticker(ticker, period, interval)
        except Exception as exc:  # noqa: BLE001
            last_err = exc
            logger.warning("yfinance attempt %d failed for %s: %s", attempt + 1, ticker, exc)
            if attempt == 0:
                time.sleep(0.5)
                continue
            raise MarketDataError(f"yfinance request failed for {ticker}: {exc}") from exc

        if not frame.empty:
            break
        if attempt == 0:
            logger.warning("yfinance returned empty frame for %s, retrying", ticker)
            time.sleep(0.5)

    if frame.empty:
        msg = f"No price history for {ticker} ({time_frame})"
        if last_err:
            msg += f" (last error: {last_err})"
        raise MarketDataError(msg)
    return frame


def frame_to_bars(frame: pd.DataFrame, time_frame: TimeFrame | None = None) -> list[OHLCBar]:
    """Normalise an OHLCV history frame into ascending, validated bars."""
    df = frame.copy()
    if not isinstance(df.index, pd.DatetimeIndex):
        date_col = next((c for c in df.columns if str(c).lower() in ("date", "datetime", "timestamp")), None)
        if date_col is None:
            raise MarketDataError("history frame has no date column")
        df.index = pd.DatetimeIndex(pd.to_datetime(df[date_col], utc=True))
    df.columns = [str(c).lower() for c in df.columns]

    missing = [c for c in ("open", "high", "low", "close") if c not in df.columns]
    if missing:
        raise MarketDataError(f"history frame missing columns: {missing}")
    if "volume" not in df.columns:
        df["volume"] = 0

    if df.index.tz is None:
        df.index = df.index.tz_localize("UTC")
    else:
        df.index = df.index.tz_convert("UTC")

    if time_frame == "4h":
        df = (
            df.resample("4h")
            .agg({"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"})
        )

    df = df[~df.index.duplicated(keep="last")]
    df = df.dropna(subset=["open", "high", "low", "close"]).sort_index()

    bars: list[OHLCBar] = []
    for ts, row in df.iterrows():
        open_, close = float(row["open"]), float(row["close"])
        volume = row["volume"]
        bars.append(
            OHLCBar(
                timestamp=int(ts.timestamp() * 1000),
                open=open_,
                high=max(float(row["high"]), open_, close),
                low=min(float(row["low"]), open_, close),
                close=close,
                volume=int(volume) if pd.notna(volume) else 0,
            )
        )
    return bars


def _get_cached(key: tuple[str, str]) -> tuple[OHLCBar, ...] | None:
    with _cache_lock:
        cached = _HISTORY_CACHE.get(key)
        if not cached:
            return None
        ts, bars = cached
        if time.time() - ts > CACHE_TTL_SECONDS:
            _HISTORY_CACHE.pop(key, None)
            return None
        return bars


def _set_cache(key: tuple[str, str], bars: list[OHLCBar]) -> None:
    with _cache_lock:
        if len(_HISTORY_CACHE) >= MAX_CACHE_ITEMS:
            oldest_key = min(_HISTORY_CACHE.items(), key=lambda item: item[1][0])[0]
            _HISTORY_CACHE.pop(oldest_key, None)
        _HISTORY_CACHE[key] = (time.time(), tuple(bars))


def fetch_bars(
    symbol: str,
    time_frame: TimeFrame,
    source: BarSource = "mock",
    *,
    count: int = 1000,
) -> list[OHLCBar]:
    ticker = normalize_symbol(symbol)
    if not ticker:
        raise MarketDataError(f"Invalid symbol for market data: {symbol!r}")

    if source == "mock":
        return generate_mock_bars(ticker, time_frame, count)

    key = (ticker, time_frame)
    cached = _get_cached(key)
    if cached is not None:
        return list(cached)

    bars = frame_to_bars(_download_history_frame(ticker, time_frame), time_frame)
    if not bars:
        raise MarketDataError(f"No usable bars for {ticker} ({time_frame})")
    _set_cache(key, bars)
    logger.info("loaded %d %s bars for %s from yfinance", len(bars), time_frame, ticker)
    return bars
