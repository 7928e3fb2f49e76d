"""
Pick aggregation and ranking.

Merges raw scores into one pick per symbol, tags cross-algorithm
confirmation, orders by rating tier then score and truncates to the top N.
"""

import hashlib
import logging
from dataclasses import replace
from functools import reduce
from typing import Iterable

from stock_picks.models import RATING_ORDER, Pick, Score

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 30
DEFAULT_SLIPPAGE = 0.005

# Longer horizons win score ties
TIMEFRAME_ORDER = {"24h": 1, "3d": 2, "7d": 2, "1m": 3, "3m": 3, "6m": 4, "1y": 5}

SymbolGroups = dict[str, tuple[Score, tuple[str, ...]]]


def timeframe_rank(timeframe: str) -> int:
    return TIMEFRAME_ORDER.get(timeframe, 0)


def _outranks(candidate: Score, kept: Score) -> bool:
    if candidate.score != kept.score:
        return candidate.score > kept.score
    return timeframe_rank(candidate.timeframe) > timeframe_rank(kept.timeframe)


def _merge_score(groups: SymbolGroups, score: Score) -> SymbolGroups:
    """Fold step: merge ``score`` into its symbol's entry of the accumulator."""
    current = groups.get(score.symbol)
    if current is None:
        groups[score.symbol] = (score, (score.algorithm,))
        return groups

    kept, algorithms = current
    if score.algorithm not in algorithms:
        algorithms = algorithms + (score.algorithm,)
    if _outranks(score, kept):
        kept = score
    groups[score.symbol] = (kept, algorithms)
    return groups


def merge_scores(scores: Iterable[Score]) -> SymbolGroups:
    """
    Group scores by symbol.

    Returns:
        Mapping of symbol to (best score, algorithms that fired), where
        algorithms are listed in first-seen order.
    """
    return reduce(_merge_score, scores, {})


def _to_pick(kept: Score, algorithms: tuple[str, ...]) -> Pick:
    pick = Pick.from_score(kept, all_algorithms=algorithms)
    if len(algorithms) > 1:
        pick = replace(pick, algorithm=f"{kept.algorithm} + {len(algorithms) - 1}")
    return pick


def rank_picks(scores: Iterable[Score], top_n: int = DEFAULT_TOP_N) -> list[Pick]:
    """
    Deduplicate, tag and rank scores.

    Args:
        scores: Every score that passed its algorithm's threshold
        top_n: Maximum number of picks to return

    Returns:
        Picks sorted by rating tier then score, both descending
    """
    scores = list(scores)
    groups = merge_scores(scores)

    picks = [_to_pick(kept, algorithms) for kept, algorithms in groups.values()]
    picks.sort(key=lambda p: (RATING_ORDER[p.rating], p.score), reverse=True)

    ranked = picks[:top_n]
    logger.info(
        f"Ranked {len(ranked)} picks from {len(scores)} scores "
        f"across {len(groups)} symbols"
    )
    return ranked


def compute_pick_hash(pick: Score, timestamp: str) -> str:
    """SHA-256 over symbol, score, algorithm, rating and timestamp."""
    content = f"{pick.symbol}-{pick.score}-{pick.algorithm}-{pick.rating}-{timestamp}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def stamp_picks(
    picks: Iterable[Pick], timestamp: str, slippage: float = DEFAULT_SLIPPAGE
) -> list[Pick]:
    """
    Attach the publication timestamp, simulated entry price and pick hash.

    Args:
        picks: Ranked picks
        timestamp: ISO-8601 run timestamp
        slippage: Adverse entry slippage as a fraction of price

    Returns:
        New Pick objects; the input picks are not modified
    """
    return [
        replace(
            pick,
            picked_at=timestamp,
            slippage_simulated=True,
            simulated_entry_price=pick.price * (1 + slippage),
            pick_hash=compute_pick_hash(pick, timestamp),
        )
        for pick in picks
    ]
