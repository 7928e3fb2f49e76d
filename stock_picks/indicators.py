"""
Technical Indicator Library.

Pure functions that reduce a price/volume history to a single indicator
reading as of the last bar. Price-only indicators take any sequence of
floats; history-based indicators take a DataFrame with the
Date/Open/High/Low/Close/Volume columns produced by
``StockSnapshot.history_frame``.

Every function degrades to a neutral value (50 for oscillators, 0 or False
elsewhere) when the history is too short instead of raising.

Indicators implemented:
    - Trend/Momentum: SMA, RSI, RS rating, Stage-2 uptrend, Breakout, ADX,
      Awesome Oscillator
    - Volatility: ATR, Bollinger Bands, VCP
    - Volume: VWAP, Z-scores
    - Performance: YTD, MTD
"""

from typing import Sequence

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view

from stock_picks.models import BollingerBands

# Constants
TRADING_DAYS_PER_YEAR = 252
TRADING_DAYS_PER_QUARTER = 63
RS_QUARTER_WEIGHTS = (0.2, 0.2, 0.2, 0.4)
NEUTRAL_RSI = 50.0
NEUTRAL_RS_RATING = 50.0
BREAKOUT_TOLERANCE = 0.98
SQUEEZE_WIDTH = 0.1
VCP_TIGHT_RANGE = 0.02


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _column(history: pd.DataFrame, name: str) -> np.ndarray:
    return history[name].to_numpy(dtype=float)


# =============================================================================
# Moving Averages
# =============================================================================


def calculate_sma(prices: Sequence[float], period: int) -> float:
    """
    Calculate the Simple Moving Average of the last ``period`` values.

    Args:
        prices: Price series, oldest first.
        period: Lookback period.

    Returns:
        Mean of the last ``period`` prices, the last price if the series is
        shorter than ``period``, or 0 for an empty series.
    """
    values = _as_array(prices)
    if values.size == 0:
        return 0.0
    if values.size < period:
        return float(values[-1])
    return float(values[-period:].mean())


# =============================================================================
# RSI (Relative Strength Index)
# =============================================================================


def calculate_rsi(prices: Sequence[float], period: int = 14) -> float:
    """
    Calculate the simple (non-smoothed) Relative Strength Index.

    RSI = 100 - (100 / (1 + RS)), RS = average gain / average loss over the
    last ``period`` price changes.

    Args:
        prices: Close price series, oldest first.
        period: Lookback period (default 14).

    Returns:
        RSI rounded to 2 decimals; 50 if fewer than ``period + 1`` prices,
        100 if there was no loss in the window.
    """
    values = _as_array(prices)
    if values.size < period + 1:
        return NEUTRAL_RSI

    deltas = np.diff(values[-(period + 1):])
    avg_gain = np.where(deltas > 0, deltas, 0.0).sum() / period
    avg_loss = np.where(deltas < 0, -deltas, 0.0).sum() / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return round(float(100.0 - 100.0 / (1.0 + rs)), 2)


def calculate_rsi_series(prices: Sequence[float], period: int = 14) -> np.ndarray:
    """
    Calculate the RSI reading at every bar that has a full window.

    Element ``k`` is the RSI of ``prices[: period + 1 + k]``.

    Args:
        prices: Close price series, oldest first.
        period: Lookback period (default 14).

    Returns:
        Array of RSI values rounded to 2 decimals (empty if too short).
    """
    values = _as_array(prices)
    if values.size < period + 1:
        return np.array([], dtype=float)

    deltas = np.diff(values)
    gains = sliding_window_view(np.where(deltas > 0, deltas, 0.0), period).sum(axis=1) / period
    losses = sliding_window_view(np.where(deltas < 0, -deltas, 0.0), period).sum(axis=1) / period

    with np.errstate(divide="ignore", invalid="ignore"):
        rsi = 100.0 - 100.0 / (1.0 + gains / losses)
    rsi = np.where(losses == 0, 100.0, rsi)

    return np.round(rsi, 2)


# =============================================================================
# ATR (Average True Range)
# =============================================================================


def calculate_true_range(
    high: np.ndarray, low: np.ndarray, close: np.ndarray
) -> np.ndarray:
    """
    Calculate True Range for every bar after the first.

    TR = max(high - low, |high - prev_close|, |low - prev_close|)

    Returns:
        Array of length ``len(close) - 1``.
    """
    prev_close = close[:-1]
    h = high[1:]
    l = low[1:]
    return np.maximum.reduce([h - l, np.abs(h - prev_close), np.abs(l - prev_close)])


def calculate_atr(history: pd.DataFrame, period: int = 14) -> float:
    """
    Calculate Average True Range as the mean of the last ``period`` true ranges.

    Args:
        history: OHLCV DataFrame.
        period: Lookback period (default 14).

    Returns:
        ATR in price units, 0 if fewer than ``period + 1`` bars.
    """
    if len(history) < period + 1:
        return 0.0

    true_range = calculate_true_range(
        _column(history, "High"), _column(history, "Low"), _column(history, "Close")
    )
    return float(true_range[-period:].sum() / period)


# =============================================================================
# Bollinger Bands
# =============================================================================


def calculate_bollinger_bands(
    prices: Sequence[float], period: int = 20, std_dev: float = 2.0
) -> BollingerBands:
    """
    Calculate Bollinger Bands over the last ``period`` prices.

    width = (upper - lower) / middle; squeeze when width < 0.1.

    Args:
        prices: Close price series.
        period: SMA period (default 20).
        std_dev: Standard deviation multiplier (default 2).

    Returns:
        BollingerBands, all zero if fewer than ``period`` prices.
    """
    values = _as_array(prices)
    if values.size < period:
        return BollingerBands()

    recent = values[-period:]
    middle = float(recent.mean())
    std = float(recent.std())

    upper = middle + std_dev * std
    lower = middle - std_dev * std
    width = (upper - lower) / middle if middle else 0.0

    return BollingerBands(
        upper=upper,
        middle=middle,
        lower=lower,
        width=width,
        squeeze=width < SQUEEZE_WIDTH,
    )


# =============================================================================
# Z-Scores
# =============================================================================


def calculate_zscore(value: float, series: Sequence[float]) -> float:
    """
    Calculate (value - mean) / stddev against a reference series.

    Uses the population standard deviation.

    Returns:
        Z-score, 0 if the series has fewer than 2 values or no dispersion.
    """
    values = _as_array(series)
    if values.size < 2:
        return 0.0

    mean = float(values.mean())
    std = float(values.std())
    # Float noise on a constant series is not dispersion
    if std <= 1e-12 * max(1.0, abs(mean)):
        return 0.0

    return (value - mean) / std


def calculate_volume_zscore(current_volume: float, volume_history: Sequence[float]) -> float:
    """Z-score of the current volume against recent volumes."""
    return calculate_zscore(current_volume, volume_history)


# =============================================================================
# Trend Structure
# =============================================================================


def calculate_relative_strength(history: pd.DataFrame) -> float:
    """
    Calculate a relative-strength rating from four trailing quarters.

    Quarter returns (percent) are blended oldest to newest with weights
    0.2 / 0.2 / 0.2 / 0.4.

    Returns:
        Weighted return rounded to 2 decimals, 50 if fewer than 252 bars.
    """
    if len(history) < TRADING_DAYS_PER_YEAR:
        return NEUTRAL_RS_RATING

    closes = _column(history, "Close")
    q = TRADING_DAYS_PER_QUARTER
    anchors = closes[[-4 * q, -3 * q, -2 * q, -q, -1]]

    rs = 0.0
    for weight, start, end in zip(RS_QUARTER_WEIGHTS, anchors[:-1], anchors[1:]):
        quarter_return = (end - start) / start * 100 if start > 0 else 0.0
        rs += weight * quarter_return

    return round(float(rs), 2)


def check_stage2_uptrend(history: pd.DataFrame) -> bool:
    """
    Check the Stage-2 uptrend template.

    Criteria:
        1. Price >= 50-day SMA
        2. Price >= 200-day SMA
        3. 10-day SMA >= 20-day SMA >= 50-day SMA
        4. Price >= 50% of the 52-week closing high

    Returns:
        True if all criteria hold, False if fewer than 200 bars.
    """
    if len(history) < 200:
        return False

    closes = _column(history, "Close")
    price = closes[-1]

    sma10 = calculate_sma(closes, 10)
    sma20 = calculate_sma(closes, 20)
    sma50 = calculate_sma(closes, 50)
    sma200 = calculate_sma(closes, 200)
    high_52_week = closes[-TRADING_DAYS_PER_YEAR:].max()

    return bool(
        price >= sma50
        and price >= sma200
        and sma10 >= sma20 >= sma50
        and price >= 0.5 * high_52_week
    )


def check_breakout(history: pd.DataFrame, period: int = 20) -> bool:
    """
    Check whether the last close is within 2% of (or above) the trailing high.

    Returns:
        True if close >= 0.98 * max(high) over the last ``period`` bars.
    """
    if len(history) < period:
        return False

    max_high = _column(history, "High")[-period:].max()
    return bool(_column(history, "Close")[-1] >= max_high * BREAKOUT_TOLERANCE)


# =============================================================================
# Volume
# =============================================================================


def calculate_vwap(history: pd.DataFrame) -> float:
    """
    Calculate the Volume Weighted Average Price anchored at the first bar.

    Uses the typical price (high + low + close) / 3.

    Returns:
        VWAP, 0 for an empty window or zero total volume.
    """
    if history.empty:
        return 0.0

    typical = (
        _column(history, "High") + _column(history, "Low") + _column(history, "Close")
    ) / 3.0
    volume = _column(history, "Volume")

    total_volume = volume.sum()
    if total_volume == 0:
        return 0.0

    return float((typical * volume).sum() / total_volume)


# =============================================================================
# Volatility Contraction
# =============================================================================


def check_vcp(history: pd.DataFrame) -> bool:
    """
    Check for a Volatility Contraction Pattern.

    The last 60 bars are split into three 20-bar blocks. The pattern holds
    when the mean daily range (high - low) / low contracts from the oldest
    block to the newest, or when the newest block is already tighter
    than 2%.

    Returns:
        True on contraction, False if fewer than 60 bars.
    """
    if len(history) < 60:
        return False

    highs = _column(history, "High")[-60:]
    lows = _column(history, "Low")[-60:]

    with np.errstate(divide="ignore", invalid="ignore"):
        ranges = np.where(lows > 0, (highs - lows) / lows, 0.0)

    oldest, middle, recent = (block.mean() for block in np.split(ranges, 3))

    is_contracting = recent < middle < oldest
    is_tight = recent < VCP_TIGHT_RANGE
    return bool(is_contracting or is_tight)


# =============================================================================
# ADX (Average Directional Index)
# =============================================================================


def calculate_adx(history: pd.DataFrame, period: int = 14) -> float:
    """
    Calculate the Average Directional Index with Wilder smoothing.

    ADX > 25 usually indicates a strong trend.

    Args:
        history: OHLCV DataFrame.
        period: Smoothing period (default 14).

    Returns:
        ADX rounded to 2 decimals, 0 if there is not enough history to seed
        both smoothing passes.
    """
    if len(history) < period * 2:
        return 0.0

    high = _column(history, "High")
    low = _column(history, "Low")
    close = _column(history, "Close")

    true_range = calculate_true_range(high, low, close)
    up_move = high[1:] - high[:-1]
    down_move = low[:-1] - low[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

    smooth_tr = true_range[:period].sum()
    smooth_plus = plus_dm[:period].sum()
    smooth_minus = minus_dm[:period].sum()

    dx_values = []
    for i in range(period, true_range.size):
        smooth_tr = smooth_tr - smooth_tr / period + true_range[i]
        smooth_plus = smooth_plus - smooth_plus / period + plus_dm[i]
        smooth_minus = smooth_minus - smooth_minus / period + minus_dm[i]

        if smooth_tr == 0:
            dx_values.append(0.0)
            continue

        di_plus = smooth_plus / smooth_tr * 100
        di_minus = smooth_minus / smooth_tr * 100
        di_sum = di_plus + di_minus
        dx_values.append(abs(di_plus - di_minus) / di_sum * 100 if di_sum else 0.0)

    if len(dx_values) < period:
        return 0.0

    adx = sum(dx_values[:period]) / period
    for dx in dx_values[period:]:
        adx = (adx * (period - 1) + dx) / period

    return round(float(adx), 2)


# =============================================================================
# Awesome Oscillator
# =============================================================================


def calculate_awesome_oscillator(history: pd.DataFrame) -> float:
    """
    Calculate the Awesome Oscillator.

    AO = SMA(median price, 5) - SMA(median price, 34)

    Returns:
        AO in price units, 0 if fewer than 35 bars.
    """
    if len(history) < 35:
        return 0.0

    median = (_column(history, "High") + _column(history, "Low")) / 2.0
    return calculate_sma(median, 5) - calculate_sma(median, 34)


# =============================================================================
# Period Performance
# =============================================================================


def _performance_since(
    history: pd.DataFrame, current_price: float, same_period: pd.Series
) -> float:
    start_price = history["Close"][same_period.to_numpy()].iloc[0]
    if start_price == 0:
        return 0.0
    return float((current_price - start_price) / start_price * 100)


def calculate_ytd_performance(history: pd.DataFrame, current_price: float) -> float:
    """
    Calculate year-to-date performance in percent.

    The base is the first close in the calendar year of the last bar.
    """
    if history.empty:
        return 0.0

    dates = pd.to_datetime(history["Date"])
    last = dates.iloc[-1]
    return _performance_since(history, current_price, dates.dt.year == last.year)


def calculate_mtd_performance(history: pd.DataFrame, current_price: float) -> float:
    """
    Calculate month-to-date performance in percent.

    The base is the first close in the calendar month of the last bar.
    """
    if history.empty:
        return 0.0

    dates = pd.to_datetime(history["Date"])
    last = dates.iloc[-1]
    same_month = (dates.dt.year == last.year) & (dates.dt.month == last.month)
    return _performance_since(history, current_price, same_month)
