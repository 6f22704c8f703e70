import numpy as np
import pandas as pd
import pytest

import candlechart.services.market_data as market_data
from candlechart.schemas.chart_state import TIME_FRAME_MS
from candlechart.services.market_data import (
    MarketDataError,
    fetch_bars,
    frame_to_bars,
    generate_mock_bars,
    next_live_tick,
    normalize_symbol,
)

NOW_MS = 1_709_649_123_456


def test_mock_bars_are_valid_and_aligned():
    bars = generate_mock_bars("TEST", "15m", 200, seed=7, now_ms=NOW_MS)
    interval = TIME_FRAME_MS["15m"]
    assert len(bars) == 200
    assert bars[-1].timestamp == NOW_MS - NOW_MS % interval
    for prev, cur in zip(bars, bars[1:]):
        assert cur.timestamp - prev.timestamp == interval
        assert cur.open == pytest.approx(prev.close)
    for bar in bars:
        assert bar.low <= min(bar.open, bar.close)
        assert max(bar.open, bar.close) <= bar.high
        assert 100_000 <= bar.volume < 1_100_000


def test_mock_bars_are_reproducible_with_seed():
    first = generate_mock_bars("TEST", "1h", 50, seed=11, now_ms=NOW_MS)
    second = generate_mock_bars("TEST", "1h", 50, seed=11, now_ms=NOW_MS)
    assert first == second
    assert generate_mock_bars("TEST", "1h", 0) == []


def test_live_tick_updates_then_appends():
    bars = generate_mock_bars("TEST", "1m", 10, seed=1, now_ms=NOW_MS)
    rng = np.random.default_rng(0)
    last = bars[-1]

    bar, is_new = next_live_tick(bars, "1m", last.timestamp + 10_000, rng)
    assert is_new is False
    assert bar.timestamp == last.timestamp
    assert bar.high >= last.high
    assert bar.low <= last.low
    assert bar.volume >= last.volume

    bar, is_new = next_live_tick(bars, "1m", last.timestamp + 60_000, rng)
    assert is_new is True
    assert bar.timestamp == last.timestamp + 60_000
    assert bar.open == last.close

    assert next_live_tick([], "1m", NOW_MS, rng) is None


def test_normalize_symbol():
    assert normalize_symbol(" brk.b ") == "BRK.B"
    assert normalize_symbol("$$$") == ""


def test_frame_to_bars_cleans_provider_frame():
    index = pd.to_datetime(
        ["2024-03-05 10:00", "2024-03-05 09:00", "2024-03-05 11:00", "2024-03-05 11:00", "2024-03-05 12:00"]
    )
    frame = pd.DataFrame(
        {
            "Open": [11.0, 10.0, 12.0, 12.5, np.nan],
            "High": [11.5, 10.5, 12.2, 13.0, 14.0],
            "Low": [10.8, 9.5, 11.9, 12.1, 13.0],
            "Close": [11.2, 10.9, 12.1, 12.8, 13.5],
            "Volume": [100, 200, np.nan, 400, 500],
        },
        index=index,
    )
    bars = frame_to_bars(frame, "1h")
    assert [bar.timestamp for bar in bars] == [
        int(pd.Timestamp("2024-03-05 09:00", tz="UTC").timestamp() * 1000),
        int(pd.Timestamp("2024-03-05 10:00", tz="UTC").timestamp() * 1000),
        int(pd.Timestamp("2024-03-05 11:00", tz="UTC").timestamp() * 1000),
    ]
    # duplicate timestamps keep the last row
    assert bars[-1].close == 12.8
    assert bars[-1].volume == 400
    assert bars[0].volume == 200


def test_frame_to_bars_resamples_four_hour_bars():
    index = pd.date_range("2024-03-05 00:00", periods=8, freq="60min", tz="UTC")
    frame = pd.DataFrame(
        {
            "Open": [float(i) + 1 for i in range(8)],
            "High": [float(i) + 3 for i in range(8)],
            "Low": [float(i) for i in range(8)],
            "Close": [float(i) + 2 for i in range(8)],
            "Volume": [10] * 8,
        },
        index=index,
    )
    bars = frame_to_bars(frame, "4h")
    assert len(bars) == 2
    assert (bars[0].open, bars[0].high, bars[0].low, bars[0].close) == (1.0, 6.0, 0.0, 5.0)
    assert bars[0].volume == 40
    assert bars[1].timestamp - bars[0].timestamp == TIME_FRAME_MS["4h"]


def test_frame_to_bars_requires_ohlc_columns():
    frame = pd.DataFrame({"Close": [1.0]}, index=pd.to_datetime(["2024-03-05"]))
    with pytest.raises(MarketDataError):
        frame_to_bars(frame)


def test_fetch_bars_mock_source():
    bars = fetch_bars("demo", "1d", "mock", count=30)
    assert len(bars) == 30


def test_fetch_bars_rejects_blank_symbol():
    with pytest.raises(MarketDataError):
        fetch_bars("  ", "1d")


def test_fetch_bars_yfinance_uses_cache(monkeypatch):
    calls = []
    index = pd.date_range("2024-03-01", periods=3, freq="D", tz="UTC")
    frame = pd.DataFrame(
        {"Open": [1.0, 2.0, 3.0], "High": [2.0, 3.0, 4.0], "Low": [0.5, 1.5, 2.5], "Close": [1.5, 2.5, 3.5], "Volume": [1, 2, 3]},
        index=index,
    )

    def fake_fetch(ticker, period, interval):
        calls.append((ticker, period, interval))
        return frame

    monkeypatch.setattr(market_data, "_fetch_via_ticker", fake_fetch)
    monkeypatch.setattr(market_data, "_HISTORY_CACHE", {})

    first = fetch_bars("aapl", "1d", "yfinance")
    second = fetch_bars("AAPL", "1d", "yfinance")
    assert len(first) == 3
    assert first == second
    assert calls == [("AAPL", "2y", "1d")]


def test_fetch_bars_yfinance_empty_history(monkeypatch):
    monkeypatch.setattr(market_data, "_fetch_via_ticker", lambda ticker, period, interval: pd.DataFrame())
    monkeypatch.setattr(market_data, "_HISTORY_CACHE", {})
    monkeypatch.setattr(market_data.time, "sleep", lambda seconds: None)
    with pytest.raises(MarketDataError, match="No price history"):
        fetch_bars("ZZZZ", "1h", "yfinance")


def test_fetch_bars_yfinance_errors_are_wrapped(monkeypatch):
    def boom(ticker, period, interval):
        raise ConnectionError("offline")

    monkeypatch.setattr(market_data, "_fetch_via_ticker", boom)
    monkeypatch.setattr(market_data, "_HISTORY_CACHE", {})
    monkeypatch.setattr(market_data.time, "sleep", lambda seconds: None)
    with pytest.raises(MarketDataError, match="offline"):
        fetch_bars("ZZZZ", "1h", "yfinance")
