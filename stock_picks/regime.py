"""
Market regime detection from a benchmark index.
"""

import logging
from typing import Optional

from stock_picks.data_fetcher import StockDataProvider
from stock_picks.exceptions import DataFetchError
from stock_picks.indicators import calculate_sma
from stock_picks.models import MarketRegime, StockSnapshot

logger = logging.getLogger(__name__)

DEFAULT_BENCHMARK = "SPY"
MIN_REGIME_BARS = 200


def classify_regime(snapshot: Optional[StockSnapshot]) -> MarketRegime:
    """
    Classify the market from a benchmark snapshot.

    Returns:
        ``bull`` if price > SMA200, ``bear`` otherwise, ``neutral`` if the
        snapshot is missing or has fewer than 200 bars.
    """
    if snapshot is None or len(snapshot.history) < MIN_REGIME_BARS:
        bars = 0 if snapshot is None else len(snapshot.history)
        logger.warning(
            f"Regime benchmark has {bars} bars (need {MIN_REGIME_BARS}), defaulting to neutral"
        )
        return "neutral"

    sma200 = calculate_sma([bar.close for bar in snapshot.history], 200)
    return "bull" if snapshot.price > sma200 else "bear"


def detect_market_regime(
    provider: StockDataProvider, benchmark: str = DEFAULT_BENCHMARK
) -> MarketRegime:
    """
    Fetch the benchmark and classify the market regime.

    A failed fetch is logged and treated as ``neutral``.
    """
    try:
        snapshot = provider.fetch_one(benchmark)
    except DataFetchError as e:
        logger.warning(f"Could not fetch regime benchmark {benchmark}: {e}")
        snapshot = None

    regime = classify_regime(snapshot)
    logger.info(f"Market regime from {benchmark}: {regime}")
    return regime
