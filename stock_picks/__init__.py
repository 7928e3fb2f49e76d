"""
Quantitative Stock Picks Engine

Turns daily price/volume history into technical indicators, runs six
independent scoring algorithms over them, and deduplicates and ranks the
results into a bounded list of daily picks. Algorithm quality is measured by
historical replay (backtest) and by a stress audit of signals fired during
sharp drops.

Usage as library:
    from stock_picks import YFinanceProvider, generate_picks

    report = generate_picks(YFinanceProvider())
    for pick in report.picks:
        print(f"{pick.symbol}: {pick.score}/100 {pick.rating} ({pick.algorithm})")

    # Or score one snapshot directly
    from stock_picks import score_canslim
    score = score_canslim(snapshot, regime="bull")

Usage as CLI:
    python -m stock_picks generate
    python -m stock_picks backtest --workers 4
    python -m stock_picks sectors
    python -m stock_picks.score_one AAPL "CAN SLIM"
"""

from stock_picks.adversarial import run_adversarial_audit
from stock_picks.aggregator import calculate_all_indicators
from stock_picks.backtest import run_backtest
from stock_picks.config import (
    AuditConfig,
    BacktestConfig,
    EngineConfig,
    SectorConfig,
    StockPicksConfig,
    load_config,
)
from stock_picks.data_fetcher import InMemoryProvider, StockDataProvider, YFinanceProvider
from stock_picks.models import (
    BacktestResult,
    IndicatorBundle,
    Pick,
    PriceBar,
    Score,
    StockSnapshot,
    StressEvent,
)
from stock_picks.pipeline import PickReport, generate_picks
from stock_picks.ranking import rank_picks, stamp_picks
from stock_picks.regime import classify_regime, detect_market_regime
from stock_picks.scorers import (
    ALGORITHMS,
    get_algorithm,
    score_alpha_predator,
    score_canslim,
    score_composite,
    score_penny_sniper,
    score_technical_momentum,
    score_value_sleeper,
)
from stock_picks.sectors import SectorReport, analyze_sectors

__version__ = "1.0.0"

__all__ = [
    "ALGORITHMS",
    "AuditConfig",
    "BacktestConfig",
    "BacktestResult",
    "EngineConfig",
    "InMemoryProvider",
    "IndicatorBundle",
    "Pick",
    "PickReport",
    "PriceBar",
    "Score",
    "SectorConfig",
    "SectorReport",
    "StockDataProvider",
    "StockPicksConfig",
    "StockSnapshot",
    "StressEvent",
    "YFinanceProvider",
    "analyze_sectors",
    "calculate_all_indicators",
    "classify_regime",
    "detect_market_regime",
    "generate_picks",
    "get_algorithm",
    "load_config",
    "rank_picks",
    "run_adversarial_audit",
    "run_backtest",
    "score_alpha_predator",
    "score_canslim",
    "score_composite",
    "score_penny_sniper",
    "score_technical_momentum",
    "score_value_sleeper",
    "stamp_picks",
]
