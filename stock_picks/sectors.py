"""
Sector rotation.

Compares each SPDR sector ETF with the benchmark over the last month and
places it in a rotation quadrant: Leading and Weakening sectors trade
above their 50-day average, Improving and Lagging ones below it, and
momentum of the sector/benchmark ratio splits each pair.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional, Sequence

from stock_picks.artifacts import PathLike, utc_timestamp, write_json
from stock_picks.data_fetcher import StockDataProvider
from stock_picks.exceptions import DataFetchError
from stock_picks.indicators import calculate_sma
from stock_picks.models import StockSnapshot
from stock_picks.regime import DEFAULT_BENCHMARK
from stock_picks.universe import SECTOR_ETFS

logger = logging.getLogger(__name__)

Quadrant = Literal["Leading", "Weakening", "Lagging", "Improving"]

QUADRANTS = ("Leading", "Improving", "Weakening", "Lagging")
DEFAULT_LOOKBACK = 20
TREND_BARS = 50
MIN_SECTOR_BARS = 50
REPORT_FILENAME = "sector-rotation.json"

_NAME_NOISE = ("Select Sector SPDR", "ETF", "Fund")


@dataclass(frozen=True)
class SectorAnalysis:
    """Where one sector sits relative to the benchmark."""

    symbol: str
    name: str
    price: float
    change_1m: float
    rs_ratio: float
    rs_momentum: float
    quadrant: Quadrant
    score: int

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change1m": round(self.change_1m, 2),
            "rsRatio": round(self.rs_ratio, 4),
            "rsMomentum": round(self.rs_momentum, 2),
            "quadrant": self.quadrant,
            "score": self.score,
        }


@dataclass
class SectorReport:
    scan_date: str
    benchmark: str
    benchmark_price: float
    benchmark_change: float
    sectors: list = field(default_factory=list)

    def in_quadrant(self, quadrant: Quadrant) -> list[SectorAnalysis]:
        return [s for s in self.sectors if s.quadrant == quadrant]

    def to_dict(self) -> dict:
        return {
            "scanDate": self.scan_date,
            "benchmark": {
                "symbol": self.benchmark,
                "price": self.benchmark_price,
                "change1m": round(self.benchmark_change, 2),
            },
            "sectors": [s.to_dict() for s in self.sectors],
        }


def lookback_close(snapshot: StockSnapshot, lookback: int) -> float:
    """Close ``lookback`` bars back, or the current price if history is shorter."""
    history = snapshot.history
    if len(history) < lookback:
        return snapshot.price
    return history[-lookback].close or snapshot.price


def _pct_change(current: float, past: float) -> float:
    return (current - past) / past * 100 if past else 0.0


def classify_quadrant(above_trend: bool, rs_momentum: float) -> Quadrant:
    if above_trend:
        return "Leading" if rs_momentum > 0 else "Weakening"
    return "Improving" if rs_momentum > 0 else "Lagging"


def _short_name(name: str) -> str:
    for noise in _NAME_NOISE:
        name = name.replace(noise, "")
    return " ".join(name.split())


def analyze_sector(
    sector: StockSnapshot,
    benchmark: StockSnapshot,
    lookback: int = DEFAULT_LOOKBACK,
) -> Optional[SectorAnalysis]:
    """
    Measure one sector ETF against the benchmark.

    Args:
        sector: Sector ETF snapshot
        benchmark: Benchmark snapshot (normally SPY)
        lookback: Bars the relative-strength momentum is measured over

    Returns:
        SectorAnalysis, or None if the sector has fewer than 50 bars.
    """
    if len(sector.history) < MIN_SECTOR_BARS or benchmark.price <= 0:
        logger.debug(f"{sector.symbol}: {len(sector.history)} bars, skipping")
        return None

    price = sector.price
    past = lookback_close(sector, lookback)
    benchmark_past = lookback_close(benchmark, lookback)

    rs_ratio = price / benchmark.price * 100
    rs_ratio_past = past / benchmark_past * 100 if benchmark_past else rs_ratio
    rs_momentum = _pct_change(rs_ratio, rs_ratio_past)

    sma50 = calculate_sma([bar.close for bar in sector.history], TREND_BARS)
    above_trend = price > sma50

    return SectorAnalysis(
        symbol=sector.symbol,
        name=_short_name(sector.name) or sector.symbol,
        price=price,
        change_1m=_pct_change(price, past),
        rs_ratio=rs_ratio,
        rs_momentum=rs_momentum,
        quadrant=classify_quadrant(above_trend, rs_momentum),
        score=(50 if above_trend else 0) + (50 if rs_momentum > 0 else 0),
    )


def analyze_sectors(
    provider: StockDataProvider,
    symbols: Sequence[str] = SECTOR_ETFS,
    benchmark: str = DEFAULT_BENCHMARK,
    lookback: int = DEFAULT_LOOKBACK,
    now: Optional[datetime] = None,
) -> SectorReport:
    """
    Classify every sector ETF into a rotation quadrant.

    Raises:
        DataFetchError: If the benchmark is missing or has fewer than 50 bars.
    """
    reference = provider.fetch_one(benchmark)
    if reference is None or len(reference.history) < MIN_SECTOR_BARS:
        raise DataFetchError(f"Failed to fetch {benchmark} benchmark data")
    logger.info(f"Benchmark {benchmark} loaded: ${reference.price:.2f}")

    snapshots = provider.fetch_many(symbols)
    analysis = [
        result
        for result in (analyze_sector(s, reference, lookback) for s in snapshots)
        if result is not None
    ]
    analysis.sort(key=lambda s: (s.score, s.rs_momentum), reverse=True)
    logger.info(f"Analyzed {len(analysis)} of {len(symbols)} sectors")

    return SectorReport(
        scan_date=utc_timestamp(now),
        benchmark=reference.symbol,
        benchmark_price=reference.price,
        benchmark_change=_pct_change(reference.price, lookback_close(reference, lookback)),
        sectors=analysis,
    )


def write_sector_report(
    report: SectorReport,
    output_dir: PathLike,
    public_dir: Optional[PathLike] = None,
) -> list[Path]:
    """Write ``sector-rotation.json`` to the output and public directories."""
    payload = report.to_dict()
    directories = [Path(output_dir)] + ([Path(public_dir)] if public_dir else [])
    return [write_json(directory / REPORT_FILENAME, payload) for directory in directories]


def format_sector_summary(report: SectorReport) -> str:
    """Format the quadrant lists for the console."""
    lines = [
        "=" * 60,
        f"SECTOR ROTATION vs {report.benchmark} ({report.benchmark_change:+.2f}% 1m)",
        "=" * 60,
    ]
    for quadrant in QUADRANTS:
        lines.append(f"{quadrant.upper()}:")
        members = report.in_quadrant(quadrant)
        for sector in members:
            lines.append(f"  - {sector.symbol} ({sector.name}): {sector.change_1m:+.2f}% 1m")
        if not members:
            lines.append("  (none)")
    lines.append("=" * 60)
    return "\n".join(lines)
