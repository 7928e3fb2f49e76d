"""
Pytest fixtures for stock picks tests.
"""

from datetime import date, timedelta
from typing import Optional, Sequence

import pandas as pd
import pytest

from stock_picks.models import HISTORY_COLUMNS, PriceBar, StockSnapshot

START_DATE = date(2025, 1, 2)


def make_bars(
    closes: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    spread: float = 1.0,
    start: date = START_DATE,
) -> tuple[PriceBar, ...]:
    """Build daily bars with high/low at close +/- spread."""
    if volumes is None:
        volumes = [1_000_000] * len(closes)
    return tuple(
        PriceBar(
            date=start + timedelta(days=i),
            open=close,
            high=close + spread,
            low=close - spread,
            close=close,
            volume=volume,
        )
        for i, (close, volume) in enumerate(zip(closes, volumes))
    )


def make_snapshot(
    closes: Sequence[float],
    volumes: Optional[Sequence[float]] = None,
    symbol: str = "TEST",
    spread: float = 1.0,
    **overrides,
) -> StockSnapshot:
    """Build a snapshot whose price, volume and 52-week range come from its bars."""
    bars = make_bars(closes, volumes, spread)
    recent = [bar.volume for bar in bars[-50:]]
    fields = dict(
        symbol=symbol,
        name=f"{symbol} Inc.",
        price=bars[-1].close,
        change=bars[-1].close - bars[-2].close if len(bars) > 1 else 0.0,
        change_percent=0.0,
        volume=bars[-1].volume,
        avg_volume=sum(recent) / len(recent),
        history=bars,
        market_cap=50_000_000_000,
        pe=25.0,
        high_52_week=max(bar.high for bar in bars[-252:]),
        low_52_week=min(bar.low for bar in bars[-252:]),
    )
    fields.update(overrides)
    return StockSnapshot(**fields)


def history_frame(bars: Sequence[PriceBar]) -> pd.DataFrame:
    return pd.DataFrame(
        [(b.date, b.open, b.high, b.low, b.close, b.volume) for b in bars],
        columns=HISTORY_COLUMNS,
    )


def linear(start: float, end: float, n: int = 252) -> list[float]:
    step = (end - start) / (n - 1)
    return [start + step * i for i in range(n)]


@pytest.fixture
def rising_volumes() -> list[float]:
    return [1_000_000 + 10_000 * i for i in range(252)]


@pytest.fixture
def uptrend(rising_volumes) -> StockSnapshot:
    """252 bars, close rising linearly from 80 to 150 on rising volume."""
    return make_snapshot(linear(80, 150), rising_volumes, symbol="UP")


@pytest.fixture
def downtrend(rising_volumes) -> StockSnapshot:
    """252 bars, close falling linearly from 150 to 80 on rising volume."""
    return make_snapshot(linear(150, 80), rising_volumes, symbol="DOWN")


@pytest.fixture
def short_history(rising_volumes) -> StockSnapshot:
    """199 bars: one short of the scoring floor."""
    return make_snapshot(linear(80, 150, 199), rising_volumes[:199], symbol="SHORT")


@pytest.fixture
def penny_stock() -> StockSnapshot:
    """Low-priced, low-float stock with a 10x volume spike on the last bar."""
    closes = [2.0 + 0.01 * i for i in range(252)]
    volumes = [1_000_000] * 251 + [10_000_000]
    return make_snapshot(
        closes,
        volumes,
        symbol="PNY",
        spread=0.05,
        market_cap=300_000_000,
        pe=None,
        shares_outstanding=15_000_000,
    )


@pytest.fixture
def sector_snapshots() -> list[StockSnapshot]:
    """Flat SPY plus one sector ETF in each rotation quadrant and one too short to use."""
    return [
        make_snapshot([100.0] * 60, symbol="SPY"),
        make_snapshot(
            linear(50, 80, 60), symbol="XLK", name="Technology Select Sector SPDR Fund"
        ),
        make_snapshot([50.0] * 30 + [100.0] * 20 + [95.0] * 10, symbol="XLU"),
        make_snapshot([100.0] * 30 + [50.0] * 20 + [55.0] * 10, symbol="XLF"),
        make_snapshot(linear(80, 50, 60), symbol="XLE"),
        make_snapshot(linear(50, 60, 30), symbol="XLB"),
    ]
