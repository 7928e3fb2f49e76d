"""
Data models for the stock picks engine.

All records are frozen value objects. ``to_dict`` methods emit the camelCase
keys used by the JSON artifacts consumed by the front-end.
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import date
from typing import Literal, Optional, Union

import pandas as pd

Rating = Literal["STRONG BUY", "BUY", "HOLD", "SELL"]
Risk = Literal["Low", "Medium", "High", "Very High"]
MarketRegime = Literal["bull", "bear", "neutral", "stress"]
StockRegime = Literal["stress", "bull", "neutral"]

RATING_ORDER = {"STRONG BUY": 3, "BUY": 2, "HOLD": 1, "SELL": 0}
RISK_ORDER = {"Low": 0, "Medium": 1, "High": 2, "Very High": 3}

HISTORY_COLUMNS = ["Date", "Open", "High", "Low", "Close", "Volume"]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _round(value: Optional[float], digits: int = 4) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), digits)


@dataclass(frozen=True)
class PriceBar:
    """One trading day of OHLCV data. ``open`` is optional."""

    date: date
    high: float
    low: float
    close: float
    volume: float
    open: Optional[float] = None

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0

    @property
    def median_price(self) -> float:
        return (self.high + self.low) / 2.0

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class StockSnapshot:
    """
    State of a stock as of a point in time.

    Attributes:
        symbol: Ticker symbol
        name: Display name
        price: Price at the snapshot time
        change: Absolute change versus the previous close
        change_percent: Percent change versus the previous close
        volume: Volume traded in the snapshot session
        avg_volume: Average daily volume
        history: Daily bars, oldest first, never later than the snapshot time
        market_cap: Market capitalisation in dollars
        pe: Trailing price/earnings ratio
        high_52_week: 52-week high
        low_52_week: 52-week low
        shares_outstanding: Share count (float proxy)
        roe: Return on equity in percent (e.g. 18.5)
        debt_to_equity: Debt/equity as a ratio or as a percentage
        days_to_earnings: Calendar days until the next earnings release
    """

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    volume: float
    avg_volume: float
    history: tuple[PriceBar, ...] = ()
    market_cap: Optional[float] = None
    pe: Optional[float] = None
    high_52_week: Optional[float] = None
    low_52_week: Optional[float] = None
    shares_outstanding: Optional[float] = None
    roe: Optional[float] = None
    debt_to_equity: Optional[float] = None
    days_to_earnings: Optional[int] = None

    def __post_init__(self) -> None:
        history = tuple(self.history)
        object.__setattr__(self, "history", history)
        for prev, bar in zip(history, history[1:]):
            if bar.date <= prev.date:
                raise ValueError(
                    f"History for {self.symbol} must have strictly increasing dates "
                    f"({prev.date} followed by {bar.date})"
                )

    def history_frame(self) -> pd.DataFrame:
        """Return the history as a Date/Open/High/Low/Close/Volume DataFrame."""
        return pd.DataFrame(
            [
                (bar.date, bar.open, bar.high, bar.low, bar.close, bar.volume)
                for bar in self.history
            ],
            columns=HISTORY_COLUMNS,
        )

    def as_of(self, index: int) -> "StockSnapshot":
        """
        Truncate the snapshot to history bar ``index``.

        Price, change and volume come from bar ``index``; average volume and the
        52-week range are recomputed from the truncated bars and the earnings
        date is dropped, so nothing later than ``index`` survives.

        Raises:
            IndexError: If ``index`` is outside the history.
        """
        if not 0 <= index < len(self.history):
            raise IndexError(
                f"Bar {index} outside history of {len(self.history)} bars for {self.symbol}"
            )

        bars = self.history[: index + 1]
        bar = bars[-1]
        prev_close = bars[-2].close if len(bars) > 1 else bar.close
        change = bar.close - prev_close
        change_percent = (change / prev_close * 100) if prev_close else 0.0

        recent_volumes = [b.volume for b in bars[-50:] if b.volume > 0]
        avg_volume = (
            sum(recent_volumes) / len(recent_volumes) if recent_volumes else bar.volume
        )
        year = bars[-252:]

        return StockSnapshot(
            symbol=self.symbol,
            name=self.name,
            price=bar.close,
            change=change,
            change_percent=change_percent,
            volume=bar.volume,
            avg_volume=avg_volume,
            history=bars,
            market_cap=self.market_cap,
            pe=self.pe,
            high_52_week=max(b.high for b in year),
            low_52_week=min(b.low for b in year),
            shares_outstanding=self.shares_outstanding,
            roe=self.roe,
            debt_to_equity=self.debt_to_equity,
            days_to_earnings=None,
        )


@dataclass(frozen=True)
class BollingerBands:
    """Bollinger band levels; all zero when history is too short."""

    upper: float = 0.0
    middle: float = 0.0
    lower: float = 0.0
    width: float = 0.0
    squeeze: bool = False


@dataclass(frozen=True)
class IndicatorBundle:
    """Every indicator the scorers consume, computed once per snapshot."""

    rsi: float
    rsi_z_score: float
    sma5: float
    sma20: float
    sma50: float
    sma200: float
    atr: float
    rel_vol: float
    vol_z: float
    bollinger: BollingerBands
    rs_rating: float
    stage2: bool
    breakout: bool
    regime: StockRegime
    ytd_perf: float
    mtd_perf: float
    vcp: bool
    vwap: float
    institutional_footprint: bool
    adx: float
    ao: float

    def to_dict(self) -> dict:
        data = {_camel(k): v for k, v in asdict(self).items() if k != "bollinger"}
        data["bollinger"] = {
            "bandWidth": self.bollinger.width,
            "squeeze": self.bollinger.squeeze,
        }
        return data


class _Detail:
    """camelCase serialisation shared by the per-algorithm detail records."""

    def to_dict(self) -> dict:
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[_camel(f.name)] = _round(value) if isinstance(value, float) else value
        return data


@dataclass(frozen=True)
class CanSlimDetail(_Detail):
    rs_rating: float
    rsi: float
    stage2: bool
    vol_z: float
    vcp: bool
    institutional_footprint: bool
    sma200: float
    atr: float


@dataclass(frozen=True)
class MomentumDetail(_Detail):
    rsi: float
    rsi_z_score: float
    vol_z: float
    breakout: bool
    squeeze: bool
    atr: float


@dataclass(frozen=True)
class CompositeDetail(_Detail):
    rsi: float
    vol_z: float
    ytd_perf: float
    sma50: float
    sma200: float
    regime: str


@dataclass(frozen=True)
class PennySniperDetail(_Detail):
    vol_z: float
    sma5: float
    sma20: float
    sma50: float
    rel_vol: float


@dataclass(frozen=True)
class ValueSleeperDetail(_Detail):
    pe: float
    roe: Optional[float]
    debt_ratio: Optional[float]
    range_position: Optional[float]
    sma200: float
    atr: float


@dataclass(frozen=True)
class AlphaPredatorDetail(_Detail):
    adx: float
    rsi: float
    ao: float
    vcp: bool
    institutional_footprint: bool
    atr: float


ScoreDetail = Union[
    CanSlimDetail,
    MomentumDetail,
    CompositeDetail,
    PennySniperDetail,
    ValueSleeperDetail,
    AlphaPredatorDetail,
]


@dataclass(frozen=True)
class Score:
    """
    One scorer's verdict on one snapshot.

    ``score`` is clamped to [0, 100]; ``raw_score`` keeps the unclamped value
    the rating was decided on.
    """

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    rating: Rating
    timeframe: str
    algorithm: str
    score: int
    risk: Risk
    stop_loss: Optional[float] = None
    indicators: Optional[ScoreDetail] = None
    raw_score: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "price": self.price,
            "change": round(self.change, 4),
            "changePercent": round(self.change_percent, 4),
            "rating": self.rating,
            "timeframe": self.timeframe,
            "algorithm": self.algorithm,
            "score": self.score,
            "risk": self.risk,
            "stopLoss": self.stop_loss,
            "indicators": self.indicators.to_dict() if self.indicators else {},
        }


@dataclass(frozen=True)
class Pick(Score):
    """A ranked, deduplicated score, optionally stamped for publication."""

    all_algorithms: tuple[str, ...] = ()
    picked_at: Optional[str] = None
    slippage_simulated: bool = False
    simulated_entry_price: Optional[float] = None
    pick_hash: Optional[str] = None

    @classmethod
    def from_score(cls, score: Score, all_algorithms: tuple[str, ...] = ()) -> "Pick":
        values = {f.name: getattr(score, f.name) for f in fields(Score)}
        return cls(**values, all_algorithms=tuple(all_algorithms))

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.all_algorithms:
            data["allAlgorithms"] = list(self.all_algorithms)
        if self.picked_at is not None:
            data["pickedAt"] = self.picked_at
        if self.slippage_simulated:
            data["slippageSimulated"] = True
            data["simulatedEntryPrice"] = _round(self.simulated_entry_price)
        if self.pick_hash is not None:
            data["pickHash"] = self.pick_hash
        return data


@dataclass(frozen=True)
class BacktestResult:
    """Aggregate replay statistics for one (algorithm, threshold) pair."""

    algorithm: str
    threshold: int
    total_trades: int = 0
    win_rate: float = 0.0
    avg_return: float = 0.0
    sharpe_ratio: float = 0.0

    def to_dict(self) -> dict:
        return {
            "algorithm": self.algorithm,
            "threshold": self.threshold,
            "totalTrades": self.total_trades,
            "winRate": round(self.win_rate, 4),
            "avgReturn": round(self.avg_return, 4),
            "sharpeRatio": round(self.sharpe_ratio, 4),
        }


@dataclass(frozen=True)
class StressEvent:
    """A signal fired inside a stress window, with its aftermath."""

    date: date
    symbol: str
    drop_at_signal: float
    max_drawdown_after: float
    ten_day_result: float
    signals: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "symbol": self.symbol,
            "dropAtSignal": round(self.drop_at_signal, 4),
            "maxDrawdownAfter": round(self.max_drawdown_after, 4),
            "tenDayResult": round(self.ten_day_result, 4),
            "signals": dict(self.signals),
        }
