import math

import pytest

from candlechart.quant import (
    calculate_bollinger_bands,
    calculate_rsi,
    calculate_sma,
    indicator_to_points,
    resolve_params,
    series_for,
)
from candlechart.schemas.chart_state import OHLCBar, TechnicalIndicator


def _bars(closes, start=1_700_000_000_000, step=60_000):
    bars = []
    for i, close in enumerate(closes):
        bars.append(
            OHLCBar(
                timestamp=start + i * step,
                open=close,
                high=close + 1,
                low=close - 1,
                close=close,
                volume=1000,
            )
        )
    return bars


def test_sma_warm_up_is_none_then_trailing_mean():
    result = calculate_sma(_bars([10, 12, 14, 16, 18]), 3)
    assert result[:2] == [None, None]
    assert result[2:] == pytest.approx([12.0, 14.0, 16.0])


def test_sma_on_five_ohlc_bars():
    rows = [(1, 5, 0, 3), (3, 6, 2, 5), (5, 5, 1, 2), (2, 8, 1, 7), (7, 9, 6, 8)]
    bars = [
        OHLCBar(timestamp=1_700_000_000_000 + i * 60_000, open=o, high=h, low=l, close=c, volume=100)
        for i, (o, h, l, c) in enumerate(rows)
    ]
    result = calculate_sma(bars, 3)
    assert result[:2] == [None, None]
    assert result[2:] == pytest.approx([10 / 3, 14 / 3, 17 / 3])


def test_sma_length_matches_input_and_empty_input():
    assert len(calculate_sma(_bars(range(1, 30)), 5)) == 29
    assert calculate_sma([], 5) == []


def test_sma_period_longer_than_data_is_all_none():
    assert calculate_sma(_bars([1, 2, 3]), 10) == [None, None, None]


@pytest.mark.parametrize("period", [0, -3, 2.5])
def test_invalid_period_raises(period):
    with pytest.raises(ValueError):
        calculate_sma(_bars([1, 2, 3]), period)


def test_rsi_monotonic_up_is_100():
    result = calculate_rsi(_bars(range(1, 31)), 14)
    assert all(v is None for v in result[:14])
    assert result[14:] == pytest.approx([100.0] * 16)


def test_rsi_monotonic_down_is_0():
    result = calculate_rsi(_bars(range(60, 30, -1)), 14)
    assert all(v is None for v in result[:14])
    assert result[14:] == pytest.approx([0.0] * 16)


def test_rsi_stays_between_0_and_100():
    closes = [100 + 5 * math.sin(i / 3) for i in range(80)]
    values = [v for v in calculate_rsi(_bars(closes), 14) if v is not None]
    assert values
    assert all(0.0 <= v <= 100.0 for v in values)


def test_rsi_uses_simple_average_of_changes():
    # changes: +2, -1, +2, -1  -> avg gain 1.0, avg loss 0.5 -> rs 2
    result = calculate_rsi(_bars([10, 12, 11, 13, 12]), 4)
    assert result[:4] == [None, None, None, None]
    assert result[4] == pytest.approx(100 - 100 / 3)


def test_bollinger_middle_is_sma_and_bands_are_symmetric():
    bars = _bars([2, 4, 4, 4, 5, 5, 7, 9])
    bands = calculate_bollinger_bands(bars, 8, 2.0)
    assert bands.middle[-1] == pytest.approx(5.0)
    # population std of the series above is exactly 2
    assert bands.upper[-1] == pytest.approx(9.0)
    assert bands.lower[-1] == pytest.approx(1.0)
    assert bands.upper[:7] == [None] * 7
    assert bands.middle == calculate_sma(bars, 8)


def test_bollinger_flat_series_collapses_bands():
    bands = calculate_bollinger_bands(_bars([50] * 25), 20, 2.0)
    assert bands.upper[-1] == pytest.approx(50.0)
    assert bands.lower[-1] == pytest.approx(50.0)


def test_bollinger_empty_input():
    bands = calculate_bollinger_bands([], 20, 2.0)
    assert bands.upper == bands.middle == bands.lower == []


def test_resolve_params_fills_defaults():
    indicator = TechnicalIndicator(id="bb", type="BOLLINGER", params={"period": 10})
    assert resolve_params(indicator) == {"period": 10, "multiplier": 2.0}


def test_series_for_orders_bollinger_lines():
    bars = _bars(range(1, 40))
    lines = series_for(TechnicalIndicator(id="bb", type="BOLLINGER"), bars)
    assert list(lines) == ["upper", "lower", "middle"]
    ma = series_for(TechnicalIndicator(id="ma", type="MA", params={"period": 5}), bars)
    assert list(ma) == ["value"]
    assert ma["value"] == calculate_sma(bars, 5)


def test_indicator_to_points_skips_warm_up():
    points = indicator_to_points([1, 2, 3], [None, 1.5, 2.5])
    assert points == [{"time": 2, "value": 1.5}, {"time": 3, "value": 2.5}]


def test_invalid_indicator_params_rejected():
    with pytest.raises(ValueError):
        TechnicalIndicator(id="x", type="MA", params={"period": 0})
    with pytest.raises(ValueError):
        TechnicalIndicator(id="x", type="BOLLINGER", params={"multiplier": -1})
