import pytest

from candlechart.schemas.chart_state import ChartDimensions, OHLCBar


def _bar(open_, high, low, close):
    return OHLCBar(timestamp=1_700_000_000_000, open=open_, high=high, low=low, close=close, volume=1)


@pytest.mark.parametrize(
    "open_,high,low,close",
    [
        (5.0, 6.0, 5.5, 5.8),  # low above open
        (5.8, 6.0, 5.5, 5.0),  # low above close
        (5.0, 5.5, 4.0, 5.8),  # high below close
        (6.0, 5.5, 4.0, 5.0),  # high below open
        (5.0, 4.0, 6.0, 5.0),  # low above high
    ],
)
def test_bar_outside_its_range_is_rejected(open_, high, low, close):
    with pytest.raises(ValueError):
        _bar(open_, high, low, close)


@pytest.mark.parametrize(
    "open_,high,low,close",
    [
        (5.0, 6.0, 4.0, 5.5),
        (5.0, 5.0, 5.0, 5.0),  # flat bar
        (4.0, 8.0, 4.0, 8.0),  # open at low, close at high
    ],
)
def test_bar_inside_its_range_is_accepted(open_, high, low, close):
    bar = _bar(open_, high, low, close)
    assert bar.low <= min(bar.open, bar.close) <= max(bar.open, bar.close) <= bar.high


def test_bars_are_immutable():
    bar = _bar(5.0, 6.0, 4.0, 5.5)
    with pytest.raises(ValueError):
        bar.close = 7.0


def test_dimensions_subtract_margins():
    dims = ChartDimensions.from_size(800, 600)
    assert (dims.chart_width, dims.chart_height) == (660, 520)
    assert dims.contains(60, 20)
    assert not dims.contains(59, 20)
    assert ChartDimensions.from_size(100, 50).chart_height == 0
