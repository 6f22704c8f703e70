import threading
import time

import pytest

import candlechart.services.chart_session as chart_session
from candlechart.core.config import Settings
from candlechart.services.chart_session import SessionLimitError, SessionNotFoundError, SessionRegistry
from candlechart.services.chart_store import AddIndicator
from candlechart.services.market_data import MarketDataError, generate_mock_bars

NOW_MS = 1_709_649_000_000


@pytest.fixture
def registry():
    registry = SessionRegistry(Settings(MAX_SESSIONS=2, MOCK_BAR_COUNT=200))
    yield registry
    registry.close_all()


def test_create_loads_bars_and_scrolls_to_latest(registry):
    session = registry.create("demo", "1h", autostart=False)
    state = session.state
    assert state.symbol == "DEMO"
    assert len(state.bars) == 200
    assert state.viewport.end_index == 199
    assert session.loop.mounted
    assert not session.loop.running


def test_create_with_explicit_bars_and_indicators(registry):
    bars = generate_mock_bars("X", "1m", 50, seed=9, now_ms=NOW_MS)
    session = registry.create(
        "x",
        "1m",
        bars=bars,
        indicators=[AddIndicator(type="BOLLINGER", id="bb")],
        autostart=False,
    )
    assert session.state.bars == tuple(bars)
    assert session.state.indicator("bb") is not None


def test_session_limit(registry):
    registry.create("a", autostart=False)
    registry.create("b", autostart=False)
    with pytest.raises(SessionLimitError):
        registry.create("c", autostart=False)


def test_get_and_close(registry):
    session = registry.create("demo", autostart=False)
    assert registry.get(session.id) is session
    registry.close(session.id)
    assert not session.loop.mounted
    with pytest.raises(SessionNotFoundError):
        registry.get(session.id)
    with pytest.raises(SessionNotFoundError):
        registry.close(session.id)


def test_advance_live_appends_after_interval(registry):
    bars = generate_mock_bars("X", "1m", 20, seed=9, now_ms=NOW_MS)
    session = registry.create("x", "1m", bars=bars, autostart=False)
    last = bars[-1]

    assert session.advance_live(last.timestamp + 1_000) is False
    assert len(session.state.bars) == 20

    assert session.advance_live(last.timestamp + 60_000) is True
    assert len(session.state.bars) == 21
    assert session.state.viewport.end_index == 20


def test_advance_live_all_counts_new_bars(registry):
    bars = generate_mock_bars("X", "1m", 20, seed=9, now_ms=NOW_MS)
    registry.create("x", "1m", bars=bars, autostart=False)
    registry.create("y", "1m", bars=bars, autostart=False)
    assert registry.advance_live_all(bars[-1].timestamp + 60_000) == 2


def test_change_time_frame_reloads(registry):
    session = registry.create("demo", "1h", autostart=False)
    state = session.change_time_frame("1d")
    assert state.time_frame == "1d"
    assert len(state.bars) == 200
    assert state.viewport.end_index == 199


def test_failed_time_frame_switch_keeps_current_bars(registry, monkeypatch):
    session = registry.create("demo", "1h", autostart=False)
    before = session.state

    def unavailable(symbol, time_frame, source="mock", *, count=1000):
        raise MarketDataError("provider down")

    monkeypatch.setattr(chart_session, "fetch_bars", unavailable)
    with pytest.raises(MarketDataError):
        session.change_time_frame("1d")

    after = session.state
    assert after.time_frame == "1h"
    assert after.bars == before.bars
    assert after.viewport == before.viewport


def test_session_limit_holds_under_concurrent_creates(registry, monkeypatch):
    bars = generate_mock_bars("X", "1h", 50, seed=9, now_ms=NOW_MS)

    def slow_fetch(symbol, time_frame, source="mock", *, count=1000):
        time.sleep(0.2)
        return bars

    monkeypatch.setattr(chart_session, "fetch_bars", slow_fetch)
    created, rejected = [], []

    def worker(symbol):
        try:
            created.append(registry.create(symbol, "1h", autostart=False))
        except SessionLimitError:
            rejected.append(symbol)

    threads = [threading.Thread(target=worker, args=(f"s{i}",)) for i in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(created) == 2
    assert len(rejected) == 4
    assert len(registry.sessions()) == 2


def test_failed_create_releases_its_slot(registry, monkeypatch):
    def unavailable(symbol, time_frame, source="mock", *, count=1000):
        raise MarketDataError("provider down")

    monkeypatch.setattr(chart_session, "fetch_bars", unavailable)
    for _ in range(3):
        with pytest.raises(MarketDataError):
            registry.create("demo", autostart=False)

    monkeypatch.undo()
    registry.create("a", autostart=False)
    registry.create("b", autostart=False)
    assert len(registry.sessions()) == 2
