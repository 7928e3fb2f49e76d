"""
Scoring algorithms for daily stock picks.

Six independent strategies turn a snapshot plus its IndicatorBundle into a
Score, or None when the snapshot cannot be scored or the strategy only
publishes actionable (BUY / STRONG BUY) ratings. Each strategy keeps its
weights and thresholds in a read-only table next to its scoring function.

Ratings are always decided on the raw score; only the returned ``score``
field is clamped to [0, 100].
"""

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Optional

from stock_picks.aggregator import calculate_all_indicators
from stock_picks.exceptions import UnknownAlgorithmError
from stock_picks.models import (
    RISK_ORDER,
    AlphaPredatorDetail,
    CanSlimDetail,
    CompositeDetail,
    MarketRegime,
    MomentumDetail,
    PennySniperDetail,
    Rating,
    Risk,
    Score,
    ScoreDetail,
    StockSnapshot,
    ValueSleeperDetail,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingThresholds:
    """Score cut-offs for STRONG BUY / BUY, and the SELL ceiling."""

    strong_buy: int
    buy: int
    sell: int


@dataclass(frozen=True)
class EarningsRisk:
    """Effect of an upcoming earnings release on a score."""

    disqualify: bool = False
    warning: bool = False


# Shared risk policy
PENNY_PRICE = 5.0
SMALL_CAP = 1_000_000_000
LARGE_CAP = 10_000_000_000
STRESS_STOP_WIDENING = 1.5
EARNINGS_DISQUALIFY_DAYS = 2
EARNINGS_WARNING_DAYS = 6


# =============================================================================
# Shared helpers
# =============================================================================


def rate(score: float, thresholds: RatingThresholds) -> Rating:
    """Map a raw score onto the four rating tiers."""
    if score >= thresholds.strong_buy:
        return "STRONG BUY"
    if score >= thresholds.buy:
        return "BUY"
    if score < thresholds.sell:
        return "SELL"
    return "HOLD"


def assess_earnings_risk(days_to_earnings: Optional[int]) -> EarningsRisk:
    """
    Classify an upcoming earnings release.

    A release 0-2 days ahead disqualifies the snapshot; 3-6 days ahead only
    raises its risk. Unknown or past dates have no effect.
    """
    if days_to_earnings is None or days_to_earnings < 0:
        return EarningsRisk()
    if days_to_earnings <= EARNINGS_DISQUALIFY_DAYS:
        return EarningsRisk(disqualify=True, warning=True)
    if days_to_earnings <= EARNINGS_WARNING_DAYS:
        return EarningsRisk(warning=True)
    return EarningsRisk()


def classify_risk(
    snapshot: StockSnapshot,
    floor: Risk = "Low",
    regime: MarketRegime = "neutral",
    earnings_warning: bool = False,
) -> Risk:
    """
    Classify risk from price level and market capitalisation.

    Args:
        snapshot: Scored snapshot.
        floor: Minimum risk the strategy ever reports.
        regime: Market regime; ``stress`` always means Very High.
        earnings_warning: An earnings release is close.

    Returns:
        The higher of the price/cap tier and ``floor``.
    """
    if regime == "stress" or earnings_warning:
        return "Very High"

    market_cap = snapshot.market_cap
    if snapshot.price < PENNY_PRICE:
        risk: Risk = "Very High"
    elif market_cap is None or market_cap < SMALL_CAP:
        risk = "High"
    elif market_cap < LARGE_CAP:
        risk = "Medium"
    else:
        risk = "Low"

    return risk if RISK_ORDER[risk] >= RISK_ORDER[floor] else floor


def calculate_stop_loss(
    price: float, atr: float, multiplier: float, regime: MarketRegime = "neutral"
) -> float:
    """ATR stop: price - k * ATR, with k widened 1.5x in a stress regime."""
    if regime == "stress":
        multiplier *= STRESS_STOP_WIDENING
    return round(price - atr * multiplier, 2)


def clamp_score(raw_score: int) -> int:
    return max(0, min(100, raw_score))


def _tier(value: float, tiers: tuple) -> int:
    """Return the weight of the first (cutoff, weight) tier that ``value`` reaches."""
    for cutoff, weight in tiers:
        if value >= cutoff:
            return weight
    return 0


def _make_score(
    snapshot: StockSnapshot,
    *,
    algorithm: str,
    raw_score: int,
    rating: Rating,
    timeframe: str,
    risk: Risk,
    stop_loss: float,
    detail: ScoreDetail,
) -> Score:
    return Score(
        symbol=snapshot.symbol,
        name=snapshot.name,
        price=snapshot.price,
        change=snapshot.change,
        change_percent=snapshot.change_percent,
        rating=rating,
        timeframe=timeframe,
        algorithm=algorithm,
        score=clamp_score(raw_score),
        risk=risk,
        stop_loss=stop_loss,
        indicators=detail,
        raw_score=raw_score,
    )


# =============================================================================
# CAN SLIM
# =============================================================================

CANSLIM = MappingProxyType(
    {
        "rs_tiers": ((90, 40), (80, 30), (70, 20), (60, 10)),
        "stage2_weight": 30,
        "price_vs_high_tiers": ((0.9, 20), (0.8, 15), (0.7, 10), (0.5, 5)),
        "rsi_band": (50, 70),
        "rsi_weight": 10,
        "vol_z_min": 2.0,
        "vol_z_bonus": 5,
        "vcp_bonus": 20,
        "institutional_bonus": 10,
        "bear_penalty": 30,
        "thresholds": RatingThresholds(strong_buy=80, buy=60, sell=40),
        "risk_floor": "Medium",
        "stop_multiplier": 2.0,
    }
)


def score_canslim(
    snapshot: StockSnapshot, regime: MarketRegime = "neutral"
) -> Optional[Score]:
    """
    Score a snapshot with the CAN SLIM growth template.

    A stock trading below its 200-day SMA is always SELL and can never be
    BUY or STRONG BUY. A bear market costs 30 points.
    """
    ind = calculate_all_indicators(snapshot)
    if ind is None:
        return None
    earnings = assess_earnings_risk(snapshot.days_to_earnings)
    if earnings.disqualify:
        return None

    C = CANSLIM
    price = snapshot.price

    score = _tier(ind.rs_rating, C["rs_tiers"])
    if ind.stage2:
        score += C["stage2_weight"]
    if snapshot.high_52_week:
        score += _tier(price / snapshot.high_52_week, C["price_vs_high_tiers"])
    low, high = C["rsi_band"]
    if low <= ind.rsi <= high:
        score += C["rsi_weight"]
    if ind.vol_z > C["vol_z_min"]:
        score += C["vol_z_bonus"]
    if ind.vcp:
        score += C["vcp_bonus"]
    if ind.institutional_footprint:
        score += C["institutional_bonus"]

    if regime == "bear":
        score -= C["bear_penalty"]

    thresholds = C["thresholds"]
    above_trend = price >= ind.sma200
    if score < thresholds.sell or not above_trend:
        rating: Rating = "SELL"
    elif score >= thresholds.strong_buy:
        rating = "STRONG BUY"
    elif score >= thresholds.buy:
        rating = "BUY"
    else:
        rating = "HOLD"

    if ind.rs_rating >= 95 and ind.stage2:
        timeframe = "1y"
    elif ind.rs_rating >= 85:
        timeframe = "6m"
    else:
        timeframe = "3m"

    return _make_score(
        snapshot,
        algorithm="CAN SLIM",
        raw_score=score,
        rating=rating,
        timeframe=timeframe,
        risk=classify_risk(snapshot, C["risk_floor"], regime, earnings.warning),
        stop_loss=calculate_stop_loss(price, ind.atr, C["stop_multiplier"], regime),
        detail=CanSlimDetail(
            rs_rating=ind.rs_rating,
            rsi=ind.rsi,
            stage2=ind.stage2,
            vol_z=ind.vol_z,
            vcp=ind.vcp,
            institutional_footprint=ind.institutional_footprint,
            sma200=ind.sma200,
            atr=ind.atr,
        ),
    )


# =============================================================================
# Technical Momentum
# =============================================================================

MOMENTUM = MappingProxyType(
    {
        "24h": MappingProxyType({"vol_z": 40, "rsi_z": 30, "breakout": 30}),
        "3d": MappingProxyType({"vol_z": 30, "breakout": 30, "rsi": 25, "rel_vol": 15}),
        "7d": MappingProxyType({"squeeze": 30, "rsi": 25, "vol_z": 25, "stability": 20}),
        "stability_min_cap": LARGE_CAP,
        "thresholds": RatingThresholds(strong_buy=75, buy=50, sell=30),
        "risk_floor": "High",
        "stop_multiplier": 1.5,
    }
)
MOMENTUM_TIMEFRAMES = ("24h", "3d", "7d")


def score_technical_momentum(
    snapshot: StockSnapshot,
    regime: MarketRegime = "neutral",
    timeframe: str = "3d",
) -> Optional[Score]:
    """
    Score short-term momentum over a 24h, 3d or 7d horizon.

    Each horizon has its own weight table:
        24h: volume spike, oversold RSI Z-score, breakout
        3d:  volume, breakout, RSI 50-70, relative volatility
        7d:  Bollinger squeeze, RSI 50-65, volume, large-cap stability

    Returns:
        Score, or None for short history, imminent earnings or a timeframe
        other than 24h / 3d / 7d.
    """
    if timeframe not in MOMENTUM_TIMEFRAMES:
        logger.debug(
            f"{snapshot.symbol}: unknown momentum timeframe {timeframe!r}, "
            f"expected one of {MOMENTUM_TIMEFRAMES}"
        )
        return None

    ind = calculate_all_indicators(snapshot)
    if ind is None:
        return None
    earnings = assess_earnings_risk(snapshot.days_to_earnings)
    if earnings.disqualify:
        return None

    C = MOMENTUM
    weights = C[timeframe]
    score = 0
    if timeframe == "24h":
        if ind.vol_z > 2.0:
            score += weights["vol_z"]
        if ind.rsi_z_score < -1.5:
            score += weights["rsi_z"]
        if ind.breakout:
            score += weights["breakout"]
    elif timeframe == "3d":
        if ind.vol_z > 1.5:
            score += weights["vol_z"]
        if ind.breakout:
            score += weights["breakout"]
        if 50 <= ind.rsi <= 70:
            score += weights["rsi"]
        if ind.rel_vol > 0.03:
            score += weights["rel_vol"]
    else:
        if ind.bollinger.squeeze:
            score += weights["squeeze"]
        if 50 <= ind.rsi <= 65:
            score += weights["rsi"]
        if ind.vol_z > 1.0:
            score += weights["vol_z"]
        if (snapshot.market_cap or 0) >= C["stability_min_cap"]:
            score += weights["stability"]

    return _make_score(
        snapshot,
        algorithm="Technical Momentum",
        raw_score=score,
        rating=rate(score, C["thresholds"]),
        timeframe=timeframe,
        risk=classify_risk(snapshot, C["risk_floor"], regime, earnings.warning),
        stop_loss=calculate_stop_loss(
            snapshot.price, ind.atr, C["stop_multiplier"], regime
        ),
        detail=MomentumDetail(
            rsi=ind.rsi,
            rsi_z_score=ind.rsi_z_score,
            vol_z=ind.vol_z,
            breakout=ind.breakout,
            squeeze=ind.bollinger.squeeze,
            atr=ind.atr,
        ),
    )


# =============================================================================
# Composite Rating
# =============================================================================

COMPOSITE = MappingProxyType(
    {
        "above_sma50": 20,
        "above_sma200": 10,
        "rsi_band": (40, 70),
        "rsi_weight": 10,
        "vol_z_tiers": ((2.0, 20), (1.0, 15), (0.0, 10)),
        "max_pe": 25,
        "pe_weight": 10,
        "min_market_cap": SMALL_CAP,
        "market_cap_weight": 10,
        "min_ytd_perf": 10.0,
        "ytd_weight": 10,
        "regime_bonus": MappingProxyType({"bull": 10, "neutral": 5, "stress": 0}),
        "bear_cap": 40,
        "thresholds": RatingThresholds(strong_buy=70, buy=50, sell=30),
        "risk_floor": "Medium",
        "stop_multiplier": 2.5,
    }
)


def score_composite(
    snapshot: StockSnapshot, regime: MarketRegime = "neutral"
) -> Optional[Score]:
    """
    Blend trend, RSI, volume, fundamentals and YTD performance.

    The regime bonus follows the stock's own regime label. A bear market
    caps the score at 40 instead of subtracting points.
    """
    ind = calculate_all_indicators(snapshot)
    if ind is None:
        return None
    earnings = assess_earnings_risk(snapshot.days_to_earnings)
    if earnings.disqualify:
        return None

    C = COMPOSITE
    price = snapshot.price

    score = 0
    if price >= ind.sma50:
        score += C["above_sma50"]
    if price >= ind.sma200:
        score += C["above_sma200"]
    low, high = C["rsi_band"]
    if low <= ind.rsi <= high:
        score += C["rsi_weight"]
    for cutoff, weight in C["vol_z_tiers"]:
        if ind.vol_z > cutoff:
            score += weight
            break
    if snapshot.pe is not None and 0 < snapshot.pe < C["max_pe"]:
        score += C["pe_weight"]
    if (snapshot.market_cap or 0) > C["min_market_cap"]:
        score += C["market_cap_weight"]
    if ind.ytd_perf > C["min_ytd_perf"]:
        score += C["ytd_weight"]
    score += C["regime_bonus"][ind.regime]

    if regime == "bear":
        score = min(score, C["bear_cap"])

    return _make_score(
        snapshot,
        algorithm="Composite Rating",
        raw_score=score,
        rating=rate(score, C["thresholds"]),
        timeframe="1m",
        risk=classify_risk(snapshot, C["risk_floor"], regime, earnings.warning),
        stop_loss=calculate_stop_loss(price, ind.atr, C["stop_multiplier"], regime),
        detail=CompositeDetail(
            rsi=ind.rsi,
            vol_z=ind.vol_z,
            ytd_perf=ind.ytd_perf,
            sma50=ind.sma50,
            sma200=ind.sma200,
            regime=ind.regime,
        ),
    )


# =============================================================================
# Penny Sniper
# =============================================================================

PENNY_SNIPER = MappingProxyType(
    {
        "price_range": (0.5, 15.0),
        "min_volume": 500_000,
        "vol_spike_tiers": ((3.0, 30), (1.5, 15)),
        "ma_crossover": 30,
        "above_sma50": 20,
        "low_float_shares": 20_000_000,
        "low_float_bonus": 20,
        "low_float_proxy_bonus": 10,
        "thresholds": RatingThresholds(strong_buy=80, buy=60, sell=40),
        "risk_floor": "Very High",
        "stop_multiplier": 1.5,
    }
)


def score_penny_sniper(
    snapshot: StockSnapshot, regime: MarketRegime = "neutral"
) -> Optional[Score]:
    """
    Hunt liquid low-priced stocks with a volume spike and a fresh crossover.

    Only STRONG BUY / BUY ratings are returned.
    """
    ind = calculate_all_indicators(snapshot)
    if ind is None:
        return None
    earnings = assess_earnings_risk(snapshot.days_to_earnings)
    if earnings.disqualify:
        return None

    C = PENNY_SNIPER
    price = snapshot.price
    min_price, max_price = C["price_range"]
    if not min_price <= price <= max_price:
        return None
    if max(snapshot.avg_volume, snapshot.volume) < C["min_volume"]:
        return None

    score = 0
    for cutoff, weight in C["vol_spike_tiers"]:
        if ind.vol_z > cutoff:
            score += weight
            break
    if ind.sma5 > ind.sma20:
        score += C["ma_crossover"]
    if price > ind.sma50:
        score += C["above_sma50"]
    if snapshot.shares_outstanding is not None:
        if snapshot.shares_outstanding < C["low_float_shares"]:
            score += C["low_float_bonus"]
    elif snapshot.market_cap is not None and snapshot.market_cap < SMALL_CAP:
        score += C["low_float_proxy_bonus"]

    rating = rate(score, C["thresholds"])
    if rating not in ("STRONG BUY", "BUY"):
        return None

    return _make_score(
        snapshot,
        algorithm="Penny Sniper",
        raw_score=score,
        rating=rating,
        timeframe="24h",
        risk=classify_risk(snapshot, C["risk_floor"], regime, earnings.warning),
        stop_loss=calculate_stop_loss(price, ind.atr, C["stop_multiplier"], regime),
        detail=PennySniperDetail(
            vol_z=ind.vol_z,
            sma5=ind.sma5,
            sma20=ind.sma20,
            sma50=ind.sma50,
            rel_vol=ind.rel_vol,
        ),
    )


# =============================================================================
# Value Sleeper
# =============================================================================

VALUE_SLEEPER = MappingProxyType(
    {
        "min_market_cap": SMALL_CAP,
        "pe_range": (2.0, 20.0),
        "min_roe": 15.0,
        "roe_weight": 30,
        "max_debt_ratio": 0.8,
        "debt_weight": 10,
        "range_tiers": ((0.2, 30), (0.4, 15)),
        "above_sma200": 20,
        "thresholds": RatingThresholds(strong_buy=75, buy=60, sell=40),
        "risk_floor": "Low",
        "stop_multiplier": 3.0,
    }
)


def normalize_debt_ratio(debt_to_equity: Optional[float]) -> Optional[float]:
    """Values above 10 are percentages (e.g. 85.0 means 0.85)."""
    if debt_to_equity is None:
        return None
    return debt_to_equity / 100 if debt_to_equity > 10 else debt_to_equity


def score_value_sleeper(
    snapshot: StockSnapshot, regime: MarketRegime = "neutral"
) -> Optional[Score]:
    """
    Find profitable, modestly levered companies near the bottom of their range.

    Stocks under $1B market cap or with a P/E outside [2, 20] are rejected
    outright. Only STRONG BUY / BUY ratings are returned.
    """
    ind = calculate_all_indicators(snapshot)
    if ind is None:
        return None
    earnings = assess_earnings_risk(snapshot.days_to_earnings)
    if earnings.disqualify:
        return None

    C = VALUE_SLEEPER
    price = snapshot.price
    min_pe, max_pe = C["pe_range"]
    if snapshot.market_cap is None or snapshot.market_cap < C["min_market_cap"]:
        return None
    if snapshot.pe is None or not min_pe <= snapshot.pe <= max_pe:
        return None

    score = 0
    if snapshot.roe is not None and snapshot.roe > C["min_roe"]:
        score += C["roe_weight"]

    debt_ratio = normalize_debt_ratio(snapshot.debt_to_equity)
    if debt_ratio is not None and debt_ratio < C["max_debt_ratio"]:
        score += C["debt_weight"]

    range_position = None
    high, low = snapshot.high_52_week, snapshot.low_52_week
    if high is not None and low is not None and high > low:
        range_position = (price - low) / (high - low)
        for cutoff, weight in C["range_tiers"]:
            if range_position <= cutoff:
                score += weight
                break

    if price > ind.sma200:
        score += C["above_sma200"]

    rating = rate(score, C["thresholds"])
    if rating not in ("STRONG BUY", "BUY"):
        return None

    return _make_score(
        snapshot,
        algorithm="Value Sleeper",
        raw_score=score,
        rating=rating,
        timeframe="3m",
        risk=classify_risk(snapshot, C["risk_floor"], regime, earnings.warning),
        stop_loss=calculate_stop_loss(price, ind.atr, C["stop_multiplier"], regime),
        detail=ValueSleeperDetail(
            pe=snapshot.pe,
            roe=snapshot.roe,
            debt_ratio=debt_ratio,
            range_position=range_position,
            sma200=ind.sma200,
            atr=ind.atr,
        ),
    )


# =============================================================================
# Alpha Predator
# =============================================================================

ALPHA_PREDATOR = MappingProxyType(
    {
        "adx_tiers": ((25, 20), (20, 10)),
        "rsi_band": (50, 75),
        "rsi_weight": 15,
        "ao_weight": 15,
        "vcp_weight": 20,
        "institutional_weight": 10,
        "trend_weight": 10,
        "bear_penalty": 30,
        "thresholds": RatingThresholds(strong_buy=85, buy=65, sell=40),
        "risk_floor": "Medium",
        "stop_multiplier": 2.0,
    }
)


def score_alpha_predator(
    snapshot: StockSnapshot, regime: MarketRegime = "neutral"
) -> Optional[Score]:
    """
    Score trend strength (ADX), momentum (RSI, AO) and accumulation.

    A bear market costs 30 points. SELL ratings are discarded.
    """
    ind = calculate_all_indicators(snapshot)
    if ind is None:
        return None
    earnings = assess_earnings_risk(snapshot.days_to_earnings)
    if earnings.disqualify:
        return None

    C = ALPHA_PREDATOR
    price = snapshot.price

    score = 0
    for cutoff, weight in C["adx_tiers"]:
        if ind.adx > cutoff:
            score += weight
            break
    low, high = C["rsi_band"]
    if low <= ind.rsi <= high:
        score += C["rsi_weight"]
    if ind.ao > 0:
        score += C["ao_weight"]
    if ind.vcp:
        score += C["vcp_weight"]
    if ind.institutional_footprint:
        score += C["institutional_weight"]
    if price > ind.sma50:
        score += C["trend_weight"]

    if regime == "bear":
        score -= C["bear_penalty"]

    rating = rate(score, C["thresholds"])
    if rating == "SELL":
        return None

    return _make_score(
        snapshot,
        algorithm="Alpha Predator",
        raw_score=score,
        rating=rating,
        timeframe="3d",
        risk=classify_risk(snapshot, C["risk_floor"], regime, earnings.warning),
        stop_loss=calculate_stop_loss(price, ind.atr, C["stop_multiplier"], regime),
        detail=AlphaPredatorDetail(
            adx=ind.adx,
            rsi=ind.rsi,
            ao=ind.ao,
            vcp=ind.vcp,
            institutional_footprint=ind.institutional_footprint,
            atr=ind.atr,
        ),
    )


# =============================================================================
# Algorithm registry
# =============================================================================


@dataclass(frozen=True)
class Algorithm:
    """
    A named scoring strategy.

    Attributes:
        name: Display name used in picks and artifacts
        scorer: Scoring function ``(snapshot, regime[, timeframe]) -> Score | None``
        min_score: Default score a pick needs to enter the daily run
        timeframes: Selectable horizons (only Technical Momentum has any)
        default_timeframe: Horizon used when none is requested
        aliases: Extra normalised names accepted by ``get_algorithm``
    """

    name: str
    scorer: Callable[..., Optional[Score]]
    min_score: int
    timeframes: tuple[str, ...] = ()
    default_timeframe: Optional[str] = None
    aliases: tuple[str, ...] = ()

    def score(
        self,
        snapshot: StockSnapshot,
        regime: MarketRegime = "neutral",
        timeframe: Optional[str] = None,
    ) -> Optional[Score]:
        if not self.timeframes:
            return self.scorer(snapshot, regime)
        return self.scorer(snapshot, regime, timeframe or self.default_timeframe)


ALGORITHMS: tuple[Algorithm, ...] = (
    Algorithm("CAN SLIM", score_canslim, min_score=40, aliases=("canslim",)),
    Algorithm(
        "Technical Momentum",
        score_technical_momentum,
        min_score=45,
        timeframes=MOMENTUM_TIMEFRAMES,
        default_timeframe="7d",
        aliases=("momentum", "technical"),
    ),
    Algorithm("Composite Rating", score_composite, min_score=50, aliases=("composite",)),
    Algorithm("Penny Sniper", score_penny_sniper, min_score=60, aliases=("penny",)),
    Algorithm("Value Sleeper", score_value_sleeper, min_score=50, aliases=("value",)),
    Algorithm(
        "Alpha Predator",
        score_alpha_predator,
        min_score=60,
        aliases=("alpha", "predator"),
    ),
)


def _normalize(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def get_algorithm(name: str) -> Algorithm:
    """
    Resolve an algorithm by display name, case-insensitively, or by alias.

    Raises:
        UnknownAlgorithmError: If nothing matches.
    """
    key = _normalize(name)
    if key:
        for algorithm in ALGORITHMS:
            if key == _normalize(algorithm.name) or key in algorithm.aliases:
                return algorithm
    raise UnknownAlgorithmError(name, [a.name for a in ALGORITHMS])
