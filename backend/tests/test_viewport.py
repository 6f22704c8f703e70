import pytest

from candlechart.chart.viewport import (
    MAX_SCALE,
    MIN_SCALE,
    calculate_price_range,
    calculate_time_range,
    calculate_visible_range,
    clamp_translate_x,
    intersect_with_data,
    zoom_scale,
)
from candlechart.schemas.chart_state import DAY_MS, OHLCBar, ViewportState


def _bar(ts, low, high):
    return OHLCBar(timestamp=ts, open=low, high=high, low=low, close=high, volume=10)


def test_visible_range_at_origin_keeps_full_width():
    assert calculate_visible_range(ViewportState(translate_x=0), 500, 8, 2) == (0, 50)


def test_visible_range_centred_on_translate():
    start, end = calculate_visible_range(ViewportState(translate_x=1000), 500, 8, 2)
    assert (start, end) == (75, 125)


@pytest.mark.parametrize("translate_x", [-500, 0, 13, 240, 5000])
def test_visible_range_start_never_negative(translate_x):
    start, end = calculate_visible_range(ViewportState(translate_x=translate_x), 660, 8, 2)
    assert start >= 0
    assert end >= start


def test_visible_range_degenerate_geometry():
    assert calculate_visible_range(ViewportState(), 0, 8, 2) == (0, 0)
    assert calculate_visible_range(ViewportState(), 500, 0, 0) == (0, 0)


def test_intersect_with_data():
    assert intersect_with_data(0, 50, 10) == (0, 9)
    assert intersect_with_data(20, 40, 10) == (9, 9)
    assert intersect_with_data(0, 50, 0) == (0, 0)


def test_price_range_pads_ten_percent():
    bars = [_bar(1, 100, 110), _bar(2, 90, 105), _bar(3, 95, 120)]
    price_range = calculate_price_range(bars, 0, 2)
    assert price_range.min == pytest.approx(87.0)
    assert price_range.max == pytest.approx(123.0)
    assert price_range.range == pytest.approx(36.0)


def test_price_range_only_uses_visible_slice():
    bars = [_bar(1, 1, 2), _bar(2, 100, 110), _bar(3, 100, 110)]
    price_range = calculate_price_range(bars, 1, 2)
    assert price_range.min == pytest.approx(99.0)


def test_price_range_empty_default():
    price_range = calculate_price_range([], 0, 10)
    assert (price_range.min, price_range.max, price_range.range) == (0.0, 100.0, 100.0)


def test_time_range_from_visible_window():
    bars = [_bar(1000 * i, 1, 2) for i in range(10)]
    time_range = calculate_time_range(bars, 2, 50)
    assert (time_range.start, time_range.end) == (2000, 9000)


def test_time_range_empty_is_last_day():
    time_range = calculate_time_range([], 0, 0, now_ms=10 * DAY_MS)
    assert (time_range.start, time_range.end) == (9 * DAY_MS, 10 * DAY_MS)


def test_zoom_scale_direction_and_bounds():
    assert zoom_scale(1.0, 1) == pytest.approx(0.9)
    assert zoom_scale(1.0, -1) == pytest.approx(1.1)
    assert zoom_scale(MIN_SCALE, 1) == MIN_SCALE
    assert zoom_scale(MAX_SCALE, -1) == MAX_SCALE


def test_clamp_translate_x():
    # 100 bars, 660px wide, 10px slots -> 66 per screen, max centre at bar 67
    assert clamp_translate_x(-50, 100, 660, 10) == 0.0
    assert clamp_translate_x(300, 100, 660, 10) == 300
    assert clamp_translate_x(10_000, 100, 660, 10) == pytest.approx(670)
    assert clamp_translate_x(500, 10, 660, 10) == 0.0
