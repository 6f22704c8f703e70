"""Pure-computation technical indicators.

The pandas functions take a close series and return ``pd.Series`` with NaN in
the warm-up region. The ``calculate_*`` functions take OHLC bars and return
plain lists where warm-up entries are ``None``, which is what the renderers
consume.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd

from candlechart.schemas.chart_state import OHLCBar

from ._helpers import _check_period, _close_series, _to_optional


# ---------------------------------------------------------------------------
# Moving average
# ---------------------------------------------------------------------------

def sma(close: pd.Series, window: int) -> pd.Series:
    """Simple moving average of the trailing *window* closes."""
    return close.rolling(window=window, min_periods=window).mean()


# ---------------------------------------------------------------------------
# RSI
# ---------------------------------------------------------------------------

def rsi(close: pd.Series, window: int = 14) -> pd.Series:
    """Relative Strength Index over the trailing *window* price changes.

    Gains and losses are plain averages of the last *window* changes. When the
    average loss is zero the value is 100. The first *window* entries are NaN.
    """
    delta = close.diff()
    gains = delta.where(delta > 0, 0.0)
    losses = -delta.where(delta < 0, 0.0)
    # diff() leaves the first entry NaN; keep it so the window needs a full history.
    gains.iloc[:1] = np.nan
    losses.iloc[:1] = np.nan

    avg_gain = gains.rolling(window=window, min_periods=window).mean()
    avg_loss = losses.rolling(window=window, min_periods=window).mean()

    rs = avg_gain / avg_loss.replace(0, np.nan)
    result = 100 - (100 / (1 + rs))
    return result.where(avg_loss != 0, 100.0).where(avg_loss.notna())


# ---------------------------------------------------------------------------
# Bollinger Bands
# ---------------------------------------------------------------------------

def bollinger_bands(
    close: pd.Series,
    window: int = 20,
    num_std: float = 2.0,
) -> tuple[pd.Series, pd.Series, pd.Series]:
    """Upper band, middle (SMA), lower band. Uses the population std."""
    middle = sma(close, window)
    std = close.rolling(window=window, min_periods=window).std(ddof=0)
    upper = middle + num_std * std
    lower = middle - num_std * std
    return upper, middle, lower


# ---------------------------------------------------------------------------
# Bar-level API
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BollingerBands:
    upper: list[float | None]
    middle: list[float | None]
    lower: list[float | None]


def calculate_sma(data: Sequence[OHLCBar], period: int) -> list[float | None]:
    period = _check_period(period)
    if not data:
        return []
    return _to_optional(sma(_close_series(data), period))


def calculate_rsi(data: Sequence[OHLCBar], period: int) -> list[float | None]:
    period = _check_period(period)
    if not data:
        return []
    return _to_optional(rsi(_close_series(data), period))


def calculate_bollinger_bands(
    data: Sequence[OHLCBar],
    period: int,
    multiplier: float,
) -> BollingerBands:
    period = _check_period(period)
    if not data:
        return BollingerBands(upper=[], middle=[], lower=[])
    upper, middle, lower = bollinger_bands(_close_series(data), period, multiplier)
    return BollingerBands(
        upper=_to_optional(upper),
        middle=_to_optional(middle),
        lower=_to_optional(lower),
    )
