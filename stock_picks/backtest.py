"""
Backtest simulator.

Replays each ticker's history at a fixed stride, scores the snapshot
truncated at each replay bar and measures the forward return of every
signal that clears a score threshold.

The truncated snapshot only holds bars up to the replay bar; the forward
close is read from the full history after scoring.
"""

import logging
from concurrent.futures import ProcessPoolExecutor
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np

from stock_picks.aggregator import MIN_HISTORY_BARS
from stock_picks.artifacts import PathLike, utc_timestamp, write_json
from stock_picks.config import BACKTEST_ALGORITHMS, BACKTEST_THRESHOLDS
from stock_picks.models import BacktestResult, StockSnapshot
from stock_picks.scorers import get_algorithm

logger = logging.getLogger(__name__)

# (score, forward return %) per algorithm name
Signals = dict[str, list[tuple[int, float]]]


def replay_indices(length: int, stride: int, lookback: int, horizon: int) -> range:
    """Replay bars from ``max(0, length - lookback)`` up to, excluding, ``length - horizon - 1``."""
    return range(max(0, length - lookback), length - horizon - 1, stride)


def forward_return(snapshot: StockSnapshot, index: int, horizon: int) -> float:
    """Percent change from the close at ``index`` to the close ``horizon`` bars later."""
    entry = snapshot.history[index].close
    exit_ = snapshot.history[index + horizon].close
    return (exit_ - entry) / entry * 100


def simulate_ticker(
    snapshot: StockSnapshot,
    algorithms: Sequence[str],
    stride: int = 10,
    lookback: int = 504,
    horizon: int = 7,
) -> Signals:
    """
    Collect every scored replay point for one ticker.

    Each replay snapshot is scored once per algorithm with a neutral regime.

    Returns:
        Mapping of algorithm name to (score, forward return) pairs in replay order.
    """
    resolved = [get_algorithm(name) for name in algorithms]
    signals: Signals = {algorithm.name: [] for algorithm in resolved}

    for i in replay_indices(len(snapshot.history), stride, lookback, horizon):
        past = snapshot.as_of(i)
        for algorithm in resolved:
            score = algorithm.score(past, "neutral")
            if score is None:
                continue
            signals[algorithm.name].append(
                (score.score, forward_return(snapshot, i, horizon))
            )

    return signals


def summarize_trades(algorithm: str, threshold: int, returns: Sequence[float]) -> BacktestResult:
    """
    Aggregate trade returns into a BacktestResult.

    Win rate is a percentage; Sharpe is mean / population stddev of returns.
    """
    if not returns:
        return BacktestResult(algorithm=algorithm, threshold=threshold)

    values = np.asarray(returns, dtype=float)
    mean = float(values.mean())
    std = float(values.std())
    wins = int((values > 0).sum())

    return BacktestResult(
        algorithm=algorithm,
        threshold=threshold,
        total_trades=len(values),
        win_rate=wins / len(values) * 100,
        avg_return=mean,
        sharpe_ratio=mean / std if std > 0 else 0.0,
    )


def run_backtest(
    snapshots: Iterable[StockSnapshot],
    algorithms: Sequence[str] = BACKTEST_ALGORITHMS,
    thresholds: Sequence[int] = BACKTEST_THRESHOLDS,
    stride: int = 10,
    lookback: int = 504,
    horizon: int = 7,
    max_workers: int = 1,
) -> list[BacktestResult]:
    """
    Run the threshold sweep over a set of tickers.

    Args:
        snapshots: Full-history snapshots; those under 200 bars are skipped
        algorithms: Algorithm names, in report order
        thresholds: Score thresholds, in report order
        stride: Bars between replay points
        lookback: Bars replayed from the end of each history
        horizon: Forward-return horizon in bars
        max_workers: Worker processes over tickers; 1 runs in-process

    Returns:
        One BacktestResult per (algorithm, threshold), algorithm-major.
    """
    names = [get_algorithm(name).name for name in algorithms]
    usable = [s for s in snapshots if len(s.history) >= MIN_HISTORY_BARS]
    logger.info(f"Backtesting {len(names)} algorithms on {len(usable)} tickers")

    worker = partial(
        simulate_ticker,
        algorithms=names,
        stride=stride,
        lookback=lookback,
        horizon=horizon,
    )
    if max_workers > 1 and len(usable) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            per_ticker = list(executor.map(worker, usable))
    else:
        per_ticker = [worker(snapshot) for snapshot in usable]

    results = []
    for name in names:
        for threshold in thresholds:
            returns = [
                ret
                for signals in per_ticker
                for score, ret in signals[name]
                if score >= threshold
            ]
            result = summarize_trades(name, threshold, returns)
            logger.info(
                f"{name} threshold {threshold}: {result.total_trades} trades, "
                f"WR {result.win_rate:.1f}%, avg {result.avg_return:.2f}%"
            )
            results.append(result)

    return results


def write_backtest_report(
    results: Iterable[BacktestResult],
    path: PathLike,
    now: Optional[datetime] = None,
) -> Path:
    """Write ``{lastRun, results}`` to ``path``."""
    payload = {
        "lastRun": utc_timestamp(now),
        "results": [result.to_dict() for result in results],
    }
    written = write_json(path, payload)
    logger.info(f"Backtest results saved to {written}")
    return written
