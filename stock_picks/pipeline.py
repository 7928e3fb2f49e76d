"""
Daily pick generation.

Detects the market regime, fetches the combined universe once, runs every
algorithm over its own universe, then ranks and stamps the survivors.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from stock_picks.artifacts import PathLike, utc_timestamp, write_json
from stock_picks.config import EngineConfig
from stock_picks.data_fetcher import StockDataProvider
from stock_picks.models import MarketRegime, Pick, Score, StockSnapshot
from stock_picks.ranking import rank_picks, stamp_picks
from stock_picks.regime import detect_market_regime
from stock_picks.scorers import ALGORITHMS
from stock_picks.universe import UNIVERSE_BY_STRATEGY, get_full_universe

logger = logging.getLogger(__name__)

LIVE_FILENAME = "daily-stocks.json"
ARCHIVE_DIRNAME = "picks-archive"


@dataclass(frozen=True)
class PickReport:
    """Result of one daily run."""

    last_updated: str
    picks: tuple[Pick, ...] = ()
    regime: MarketRegime = "neutral"
    candidates: int = 0

    @property
    def date_key(self) -> str:
        return self.last_updated[:10]

    def to_dict(self) -> dict:
        return {
            "lastUpdated": self.last_updated,
            "totalPicks": len(self.picks),
            "stocks": [pick.to_dict() for pick in self.picks],
        }


def score_snapshots(
    snapshots: Iterable[StockSnapshot],
    regime: MarketRegime,
    config: EngineConfig,
) -> list[Score]:
    """
    Run every algorithm over the snapshots in its universe.

    Returns:
        Scores at or above each algorithm's minimum, symbol by symbol in
        snapshot order and algorithm registry order within a symbol.
    """
    universes = {name: set(symbols) for name, symbols in UNIVERSE_BY_STRATEGY.items()}
    scores = []

    for snapshot in snapshots:
        for algorithm in ALGORITHMS:
            if snapshot.symbol not in universes[algorithm.name]:
                continue
            timeframes = config.momentum_timeframes if algorithm.timeframes else (None,)
            for timeframe in timeframes:
                score = algorithm.score(snapshot, regime, timeframe)
                if score is None:
                    continue
                if score.score < config.min_score(algorithm.name):
                    continue
                logger.debug(
                    f"{snapshot.symbol}: {algorithm.name} {score.timeframe} "
                    f"scored {score.score} ({score.rating})"
                )
                scores.append(score)

    return scores


def generate_picks(
    provider: StockDataProvider,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> PickReport:
    """
    Produce the daily pick report.

    Args:
        provider: Source of snapshots
        config: Engine configuration (default: EngineConfig())
        now: Run timestamp (default: current UTC time)

    Returns:
        PickReport with ranked, stamped picks
    """
    config = config or EngineConfig()

    regime = detect_market_regime(provider, config.benchmark)
    snapshots = provider.fetch_many(get_full_universe())
    scores = score_snapshots(snapshots, regime, config)
    logger.info(f"Found {len(scores)} candidate scores from {len(snapshots)} snapshots")

    last_updated = utc_timestamp(now)
    ranked = rank_picks(scores, top_n=config.top_n)
    picks = stamp_picks(ranked, last_updated, slippage=config.slippage)

    return PickReport(
        last_updated=last_updated,
        picks=tuple(picks),
        regime=regime,
        candidates=len(scores),
    )


def write_pick_report(
    report: PickReport,
    output_dir: PathLike,
    public_dir: Optional[PathLike] = None,
) -> list[Path]:
    """
    Write the archive copy and the live copies of a pick report.

    The archive file ``picks-archive/YYYY-MM-DD.json`` is never overwritten.

    Returns:
        Paths written, archive first.

    Raises:
        ReportWriteError: If the archive already exists or a write fails.
    """
    payload = report.to_dict()
    output_dir = Path(output_dir)

    archive_path = output_dir / ARCHIVE_DIRNAME / f"{report.date_key}.json"
    written = [write_json(archive_path, payload, overwrite=False)]
    logger.info(f"Archived to {archive_path}")

    live_dirs = [output_dir] + ([Path(public_dir)] if public_dir else [])
    for directory in live_dirs:
        path = write_json(directory / LIVE_FILENAME, payload)
        logger.info(f"Saved to {path}")
        written.append(path)

    return written


@dataclass
class _AlgorithmSummary:
    count: int = 0
    top: Optional[Pick] = None


@dataclass
class PickSummary:
    """Counts by rating and by algorithm for a report."""

    total: int = 0
    by_rating: dict = field(default_factory=dict)
    by_algorithm: dict = field(default_factory=dict)


def summarize_picks(picks: Iterable[Pick]) -> PickSummary:
    summary = PickSummary(by_rating={"STRONG BUY": 0, "BUY": 0, "HOLD": 0, "SELL": 0})
    for pick in picks:
        summary.total += 1
        summary.by_rating[pick.rating] += 1
        entry = summary.by_algorithm.setdefault(pick.algorithm, _AlgorithmSummary())
        entry.count += 1
        if entry.top is None or pick.score > entry.top.score:
            entry.top = pick
    return summary


def format_summary(report: PickReport) -> str:
    """Format a human-readable run summary."""
    summary = summarize_picks(report.picks)
    lines = [
        "=" * 60,
        f"DAILY PICKS {report.last_updated} (regime: {report.regime})",
        "=" * 60,
        f"Total picks: {summary.total} (from {report.candidates} candidates)",
    ]
    for rating, count in summary.by_rating.items():
        lines.append(f"  {rating}: {count}")

    lines.append("")
    lines.append("Picks by algorithm:")
    for algorithm, entry in summary.by_algorithm.items():
        lines.append(f"  {algorithm}: {entry.count} picks")
        lines.append(f"    Top: {entry.top.symbol} ({entry.top.score}/100, {entry.top.rating})")

    if report.picks:
        top = report.picks[0]
        lines.append("")
        lines.append(f"Top overall pick: {top.symbol} ({top.score}/100, {top.rating})")

    lines.append("=" * 60)
    return "\n".join(lines)
