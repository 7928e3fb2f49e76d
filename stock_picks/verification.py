"""
Retroactive pick verification.

Reads published picks (the live file plus the date-keyed archive) and
checks each one against the prices that followed it: return over the
predicted timeframe, the range traded in that window, return to date and
whether the call was a hit.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

from stock_picks.artifacts import PathLike, read_json, utc_timestamp, write_json
from stock_picks.data_fetcher import StockDataProvider
from stock_picks.models import PriceBar
from stock_picks.pipeline import ARCHIVE_DIRNAME, LIVE_FILENAME

logger = logging.getLogger(__name__)

TIMEFRAME_TO_DAYS = {
    "24h": 1,
    "3d": 3,
    "7d": 5,
    "2w": 10,
    "1m": 21,
    "3m": 63,
    "6m": 126,
    "1y": 252,
}
DEFAULT_WINDOW_DAYS = 21
HOLD_TOLERANCE_PCT = -5.0
MIN_SAMPLE_FOR_RANKING = 2
LOW_SAMPLE = 5
REPORT_FILENAME = "backtest-report.json"


@dataclass(frozen=True)
class ArchivedPick:
    """The fields of a published pick that verification needs."""

    symbol: str
    name: str
    price: float
    rating: str
    timeframe: str
    algorithm: str
    score: float
    picked_at: str

    @property
    def pick_date(self) -> date:
        return date.fromisoformat(self.picked_at[:10])

    @classmethod
    def from_dict(cls, data: dict, default_picked_at: str) -> "ArchivedPick":
        symbol = str(data["symbol"]).upper()
        return cls(
            symbol=symbol,
            name=data.get("name") or symbol,
            price=float(data.get("price") or 0),
            rating=data.get("rating") or "HOLD",
            timeframe=data.get("timeframe") or "1m",
            algorithm=data.get("algorithm") or "",
            score=float(data.get("score") or 0),
            picked_at=data.get("pickedAt") or default_picked_at,
        )


@dataclass(frozen=True)
class PickOutcome:
    """What happened after a pick was published."""

    pick: ArchivedPick
    return_in_timeframe: Optional[float] = None
    return_since_pick: Optional[float] = None
    min_in_window: Optional[float] = None
    max_in_window: Optional[float] = None
    hit: Optional[bool] = None
    latest_price: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "symbol": self.pick.symbol,
            "name": self.pick.name,
            "algorithm": self.pick.algorithm,
            "timeframe": self.pick.timeframe,
            "rating": self.pick.rating,
            "score": self.pick.score,
            "pickedAt": self.pick.picked_at,
            "priceAtPick": self.pick.price,
            "returnInTimeframePct": self.return_in_timeframe,
            "returnSincePickPct": self.return_since_pick,
            "minInWindow": self.min_in_window,
            "maxInWindow": self.max_in_window,
            "hit": self.hit,
            "latestPrice": self.latest_price,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class AlgorithmRecord:
    algorithm: str
    hit_rate: float
    avg_return: float
    count: int

    @property
    def low_sample(self) -> bool:
        return self.count < LOW_SAMPLE

    def to_dict(self) -> dict:
        return {
            "algorithm": self.algorithm,
            "hitRatePct": self.hit_rate,
            "avgReturnPct": self.avg_return,
            "count": self.count,
            "lowSample": self.low_sample,
        }


@dataclass
class VerificationReport:
    """Aggregate verification results."""

    generated_at: str
    outcomes: list = field(default_factory=list)
    algorithm_ranking: list = field(default_factory=list)

    @property
    def with_return(self) -> list[PickOutcome]:
        return [o for o in self.outcomes if o.return_in_timeframe is not None]

    @property
    def hit_count(self) -> int:
        return sum(1 for o in self.outcomes if o.hit is True)

    @property
    def hit_rate(self) -> Optional[float]:
        valid = len(self.with_return)
        return self.hit_count / valid * 100 if valid else None

    @property
    def avg_return(self) -> Optional[float]:
        valid = self.with_return
        if not valid:
            return None
        return sum(o.return_in_timeframe for o in valid) / len(valid)

    def to_dict(self) -> dict:
        return {
            "generatedAt": self.generated_at,
            "totalPicks": len(self.outcomes),
            "withValidReturn": len(self.with_return),
            "hitCount": self.hit_count,
            "hitRatePct": self.hit_rate,
            "avgReturnInTimeframePct": self.avg_return,
            "algorithmRanking": [r.to_dict() for r in self.algorithm_ranking],
            "minSampleForRanking": MIN_SAMPLE_FOR_RANKING,
            "rows": [o.to_dict() for o in self.outcomes],
        }


def _picks_from_artifact(payload: dict, fallback_picked_at: str) -> list[ArchivedPick]:
    stocks = payload.get("stocks")
    if not isinstance(stocks, list):
        return []
    picked_at = payload.get("lastUpdated") or fallback_picked_at
    return [
        ArchivedPick.from_dict(item, picked_at)
        for item in stocks
        if isinstance(item, dict) and item.get("symbol")
    ]


def load_archived_picks(data_dir: PathLike) -> list[ArchivedPick]:
    """
    Load every published pick from ``data_dir``.

    Reads ``daily-stocks.json`` and ``picks-archive/*.json`` (archive files in
    name order), keeping the first of any picks that share symbol, algorithm,
    timeframe and publication time.

    Raises:
        ReportWriteError: If an artifact exists but cannot be parsed.
    """
    data_dir = Path(data_dir)
    picks: list[ArchivedPick] = []

    live_path = data_dir / LIVE_FILENAME
    if live_path.exists():
        picks.extend(_picks_from_artifact(read_json(live_path), ""))

    archive_dir = data_dir / ARCHIVE_DIRNAME
    if archive_dir.is_dir():
        for path in sorted(archive_dir.glob("*.json")):
            picks.extend(_picks_from_artifact(read_json(path), path.stem))

    unique = {}
    for pick in picks:
        if not pick.picked_at:
            continue
        key = (pick.symbol, pick.algorithm, pick.timeframe, pick.picked_at)
        unique.setdefault(key, pick)

    logger.info(f"Loaded {len(unique)} unique picks from {data_dir}")
    return list(unique.values())


def verify_pick(pick: ArchivedPick, history: Optional[Sequence[PriceBar]]) -> PickOutcome:
    """
    Measure a pick against the bars that followed it.

    The window is the pick's timeframe in calendar days (default 21),
    counted from the pick date. A BUY / STRONG BUY is a hit if the window
    return is positive; any other rating is a hit unless it lost more than 5%.
    """
    try:
        start = pick.pick_date
    except ValueError:
        logger.warning(f"{pick.symbol}: unreadable pickedAt {pick.picked_at!r}, skipping")
        return PickOutcome(pick=pick, error="Invalid pickedAt")

    if not history:
        return PickOutcome(pick=pick, error="No history")

    after = [bar for bar in history if bar.date >= start]
    window_days = TIMEFRAME_TO_DAYS.get(pick.timeframe, DEFAULT_WINDOW_DAYS)
    in_window = [bar for bar in after if (bar.date - start).days <= window_days]

    if not in_window:
        return PickOutcome(pick=pick, error="No bars since pick")

    start_price = in_window[0].close
    closes = [bar.close for bar in in_window]
    window_return = (closes[-1] - start_price) / start_price * 100 if start_price else None

    hit = None
    if window_return is not None:
        if pick.rating in ("STRONG BUY", "BUY"):
            hit = window_return > 0
        else:
            hit = window_return >= HOLD_TOLERANCE_PCT

    latest = after[-1].close
    return PickOutcome(
        pick=pick,
        return_in_timeframe=window_return,
        return_since_pick=(latest - start_price) / start_price * 100 if start_price else None,
        min_in_window=min(closes),
        max_in_window=max(closes),
        hit=hit,
        latest_price=latest,
    )


def rank_algorithms(outcomes: Iterable[PickOutcome]) -> list[AlgorithmRecord]:
    """Rank algorithms by hit rate, ignoring those with fewer than 2 measured picks."""
    grouped: dict[str, list[PickOutcome]] = {}
    for outcome in outcomes:
        if outcome.return_in_timeframe is None:
            continue
        grouped.setdefault(outcome.pick.algorithm or "Unknown", []).append(outcome)

    records = [
        AlgorithmRecord(
            algorithm=algorithm,
            hit_rate=sum(1 for o in items if o.hit) / len(items) * 100,
            avg_return=sum(o.return_in_timeframe for o in items) / len(items),
            count=len(items),
        )
        for algorithm, items in grouped.items()
        if len(items) >= MIN_SAMPLE_FOR_RANKING
    ]
    return sorted(records, key=lambda r: r.hit_rate, reverse=True)


def verify_picks(
    picks: Sequence[ArchivedPick],
    provider: StockDataProvider,
    now: Optional[datetime] = None,
) -> VerificationReport:
    """Fetch history once per symbol and verify every pick."""
    outcomes = []
    symbols = list(dict.fromkeys(pick.symbol for pick in picks))
    for symbol in symbols:
        snapshot = provider.fetch_one(symbol)
        history = snapshot.history if snapshot is not None else None
        outcomes.extend(
            verify_pick(pick, history) for pick in picks if pick.symbol == symbol
        )

    report = VerificationReport(
        generated_at=utc_timestamp(now),
        outcomes=outcomes,
        algorithm_ranking=rank_algorithms(outcomes),
    )
    hit_rate = report.hit_rate
    logger.info(
        f"Verified {len(outcomes)} picks: hit rate "
        f"{'n/a' if hit_rate is None else f'{hit_rate:.1f}%'} "
        f"({report.hit_count}/{len(report.with_return)})"
    )
    return report


def write_verification_report(
    report: VerificationReport,
    output_dir: PathLike,
    public_dir: Optional[PathLike] = None,
) -> list[Path]:
    """Write ``backtest-report.json`` to the output and public directories."""
    payload = report.to_dict()
    directories = [Path(output_dir)] + ([Path(public_dir)] if public_dir else [])
    return [write_json(directory / REPORT_FILENAME, payload) for directory in directories]
