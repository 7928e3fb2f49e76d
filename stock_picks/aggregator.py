"""
Indicator Aggregator.

Computes the full IndicatorBundle for one snapshot. Snapshots with fewer
than 200 bars are excluded from scoring altogether.
"""

import logging
from functools import lru_cache
from typing import Optional

from stock_picks.indicators import (
    calculate_adx,
    calculate_atr,
    calculate_awesome_oscillator,
    calculate_bollinger_bands,
    calculate_mtd_performance,
    calculate_relative_strength,
    calculate_rsi,
    calculate_rsi_series,
    calculate_sma,
    calculate_volume_zscore,
    calculate_vwap,
    calculate_ytd_performance,
    calculate_zscore,
    check_breakout,
    check_stage2_uptrend,
    check_vcp,
)
from stock_picks.models import IndicatorBundle, StockRegime, StockSnapshot

logger = logging.getLogger(__name__)

MIN_HISTORY_BARS = 200
ZSCORE_LOOKBACK = 20
VWAP_LOOKBACK = 63
STRESS_REL_VOL = 0.04


def classify_stock_regime(price: float, sma50: float, rel_vol: float) -> StockRegime:
    """Label a single stock as stress / bull / neutral."""
    if rel_vol > STRESS_REL_VOL:
        return "stress"
    if price > sma50:
        return "bull"
    return "neutral"


@lru_cache(maxsize=1024)
def calculate_all_indicators(snapshot: StockSnapshot) -> Optional[IndicatorBundle]:
    """
    Compute every indicator the scorers consume.

    Args:
        snapshot: Stock snapshot; its history is the only price input.

    Returns:
        IndicatorBundle, or None if the history has fewer than 200 bars.
    """
    if len(snapshot.history) < MIN_HISTORY_BARS:
        logger.debug(
            f"{snapshot.symbol}: {len(snapshot.history)} bars, "
            f"need {MIN_HISTORY_BARS} to score"
        )
        return None

    history = snapshot.history_frame()
    closes = history["Close"].to_numpy(dtype=float)
    volumes = history["Volume"].to_numpy(dtype=float)
    price = snapshot.price

    rsi = calculate_rsi(closes)
    # Reference readings end at the previous bar
    rsi_history = calculate_rsi_series(closes[:-1])[-ZSCORE_LOOKBACK:]
    sma50 = calculate_sma(closes, 50)
    atr = calculate_atr(history)
    rel_vol = atr / price if price > 0 else 0.0
    vwap = calculate_vwap(history.tail(VWAP_LOOKBACK))

    return IndicatorBundle(
        rsi=rsi,
        rsi_z_score=calculate_zscore(rsi, rsi_history),
        sma5=calculate_sma(closes, 5),
        sma20=calculate_sma(closes, 20),
        sma50=sma50,
        sma200=calculate_sma(closes, 200),
        atr=atr,
        rel_vol=rel_vol,
        vol_z=calculate_volume_zscore(snapshot.volume, volumes[-ZSCORE_LOOKBACK:]),
        bollinger=calculate_bollinger_bands(closes),
        rs_rating=calculate_relative_strength(history),
        stage2=check_stage2_uptrend(history),
        breakout=check_breakout(history),
        regime=classify_stock_regime(price, sma50, rel_vol),
        ytd_perf=calculate_ytd_performance(history, price),
        mtd_perf=calculate_mtd_performance(history, price),
        vcp=check_vcp(history),
        vwap=vwap,
        institutional_footprint=price > vwap,
        adx=calculate_adx(history),
        ao=calculate_awesome_oscillator(history),
    )
