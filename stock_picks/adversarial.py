"""
Adversarial stress audit.

Finds sharp multi-day drops in each target's history, re-scores the
snapshot at each such bar under a ``stress`` regime and records any signal
that fires, together with what happened next (max adverse excursion and
10-day forward return). A signal fired into a falling market that keeps
falling is a falling knife.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from stock_picks.artifacts import PathLike, utc_timestamp, write_json
from stock_picks.models import StockSnapshot, StressEvent
from stock_picks.scorers import score_alpha_predator, score_canslim

logger = logging.getLogger(__name__)

WARMUP_BARS = 20
EXCURSION_BARS = 5
RECOVERY_BARS = 10

STRESS_SCORERS = (
    ("canslim", score_canslim),
    ("predator", score_alpha_predator),
)


def window_change(snapshot: StockSnapshot, index: int, window: int) -> float:
    """Close-to-close percent change over the ``window`` bars ending at ``index``."""
    start = snapshot.history[index - window].close
    return (snapshot.history[index].close - start) / start * 100


def audit_snapshot(
    snapshot: StockSnapshot,
    drop_threshold: float = -3.0,
    window: int = 5,
    signal_threshold: int = 50,
) -> list[StressEvent]:
    """
    Audit one ticker's history.

    Returns:
        StressEvent for every stress bar at which any scorer exceeded
        ``signal_threshold``, in date order.
    """
    history = snapshot.history
    events = []

    for i in range(max(WARMUP_BARS, window), len(history) - RECOVERY_BARS):
        drop = window_change(snapshot, i, window)
        if drop >= drop_threshold:
            continue

        past = snapshot.as_of(i)
        signals = {}
        for key, scorer in STRESS_SCORERS:
            score = scorer(past, "stress")
            signals[key] = score.score if score is not None else 0

        if max(signals.values()) <= signal_threshold:
            continue

        price = history[i].close
        lowest = min(bar.low for bar in history[i + 1: i + 1 + EXCURSION_BARS])
        recovery = history[i + RECOVERY_BARS].close

        events.append(
            StressEvent(
                date=history[i].date,
                symbol=snapshot.symbol,
                drop_at_signal=drop,
                max_drawdown_after=(lowest - price) / price * 100,
                ten_day_result=(recovery - price) / price * 100,
                signals=signals,
            )
        )

    return events


def run_adversarial_audit(
    snapshots: Iterable[StockSnapshot],
    drop_threshold: float = -3.0,
    window: int = 5,
    signal_threshold: int = 50,
) -> list[StressEvent]:
    """
    Audit every target for signals fired inside stress windows.

    Args:
        snapshots: Full-history snapshots of the audit targets
        drop_threshold: Percent change below which a bar is a stress bar
        window: Bars the drop is measured over
        signal_threshold: Score a signal must exceed to be recorded

    Returns:
        Stress events, ticker by ticker in input order
    """
    events = []
    for snapshot in snapshots:
        found = audit_snapshot(snapshot, drop_threshold, window, signal_threshold)
        logger.info(f"{snapshot.symbol}: {len(found)} stress signals")
        events.extend(found)

    logger.info(f"Audit complete. {len(events)} stress signals captured")
    return events


def write_audit_report(
    events: Iterable[StressEvent],
    path: PathLike,
    now: Optional[datetime] = None,
) -> Path:
    """Write ``{lastRun, stressEventsFound, results}`` to ``path``."""
    results = [event.to_dict() for event in events]
    payload = {
        "lastRun": utc_timestamp(now),
        "stressEventsFound": len(results),
        "results": results,
    }
    return write_json(path, payload)
