"""Tests for the six scoring algorithms and their shared policy."""

from dataclasses import replace

import pytest

from conftest import make_snapshot
from stock_picks.exceptions import UnknownAlgorithmError
from stock_picks.scorers import (
    ALGORITHMS,
    CANSLIM,
    RatingThresholds,
    assess_earnings_risk,
    calculate_stop_loss,
    clamp_score,
    classify_risk,
    get_algorithm,
    normalize_debt_ratio,
    rate,
    score_alpha_predator,
    score_canslim,
    score_composite,
    score_penny_sniper,
    score_technical_momentum,
    score_value_sleeper,
)

ALL_SCORERS = [
    score_canslim,
    score_technical_momentum,
    score_composite,
    score_penny_sniper,
    score_value_sleeper,
    score_alpha_predator,
]


class TestSharedPolicy:
    """Tests for rating, risk, stop-loss and earnings helpers."""

    def test_rate_tiers(self):
        thresholds = RatingThresholds(strong_buy=80, buy=60, sell=40)
        assert rate(80, thresholds) == "STRONG BUY"
        assert rate(60, thresholds) == "BUY"
        assert rate(40, thresholds) == "HOLD"
        assert rate(39, thresholds) == "SELL"
        assert rate(-25, thresholds) == "SELL"

    def test_clamp_score(self):
        assert clamp_score(-25) == 0
        assert clamp_score(120) == 100
        assert clamp_score(55) == 55

    def test_earnings_risk(self):
        assert assess_earnings_risk(None).disqualify is False
        assert assess_earnings_risk(-3).warning is False
        assert assess_earnings_risk(0).disqualify is True
        assert assess_earnings_risk(2).disqualify is True
        assert assess_earnings_risk(3).disqualify is False
        assert assess_earnings_risk(6).warning is True
        assert assess_earnings_risk(7).warning is False

    def test_risk_by_price_and_cap(self, uptrend):
        assert classify_risk(uptrend) == "Low"
        assert classify_risk(replace(uptrend, market_cap=5e9)) == "Medium"
        assert classify_risk(replace(uptrend, market_cap=5e8)) == "High"
        assert classify_risk(replace(uptrend, market_cap=None)) == "High"
        assert classify_risk(replace(uptrend, price=3.0)) == "Very High"

    def test_risk_floor_and_overrides(self, uptrend):
        assert classify_risk(uptrend, floor="High") == "High"
        assert classify_risk(uptrend, regime="stress") == "Very High"
        assert classify_risk(uptrend, earnings_warning=True) == "Very High"

    def test_stop_loss(self):
        assert calculate_stop_loss(150.0, 2.0, 2.0) == 146.0
        assert calculate_stop_loss(150.0, 2.0, 2.0, regime="stress") == 144.0

    def test_normalize_debt_ratio(self):
        assert normalize_debt_ratio(None) is None
        assert normalize_debt_ratio(0.5) == 0.5
        assert normalize_debt_ratio(85.0) == pytest.approx(0.85)


class TestScorerContract:
    """Properties every scorer shares."""

    @pytest.mark.parametrize("scorer", ALL_SCORERS)
    def test_short_history_returns_none(self, scorer, short_history):
        assert scorer(short_history) is None

    @pytest.mark.parametrize("scorer", ALL_SCORERS)
    def test_imminent_earnings_disqualifies(self, scorer, uptrend, penny_stock):
        snapshot = penny_stock if scorer is score_penny_sniper else uptrend
        snapshot = replace(snapshot, pe=15.0, roe=20.0, days_to_earnings=1)
        assert scorer(snapshot) is None

    @pytest.mark.parametrize("regime", ["bull", "bear", "neutral", "stress"])
    def test_scores_are_bounded(self, regime, uptrend, downtrend, penny_stock):
        for snapshot in (uptrend, downtrend, penny_stock):
            for scorer in ALL_SCORERS:
                score = scorer(snapshot, regime)
                if score is not None:
                    assert 0 <= score.score <= 100

    def test_deterministic(self, uptrend):
        assert score_canslim(uptrend) == score_canslim(uptrend)


class TestCanSlim:
    """Tests for the CAN SLIM scorer."""

    def test_uptrend_strong_buy(self, uptrend):
        score = score_canslim(uptrend, "bull")

        assert score.score == 80
        assert score.rating == "STRONG BUY"
        assert score.algorithm == "CAN SLIM"
        assert score.timeframe == "3m"
        assert score.risk == "Medium"
        assert score.stop_loss == 146.0
        assert score.indicators.stage2 is True

    def test_bear_penalty(self, uptrend):
        score = score_canslim(uptrend, "bear")
        assert score.score == 80 - CANSLIM["bear_penalty"]
        assert score.rating == "HOLD"

    def test_below_sma200_is_always_sell(self, uptrend):
        sma200 = sum(bar.close for bar in uptrend.history[-200:]) / 200
        below = replace(uptrend, price=sma200 - 1)
        score = score_canslim(below, "bull")
        assert score.rating == "SELL"

    def test_negative_raw_score_rates_sell_and_clamps(self, downtrend):
        score = score_canslim(downtrend, "bear")
        assert score.raw_score == 5 - 30
        assert score.score == 0
        assert score.rating == "SELL"

    def test_stress_widens_stop(self, uptrend):
        score = score_canslim(uptrend, "stress")
        assert score.stop_loss == 144.0
        assert score.risk == "Very High"

    def test_earnings_warning_raises_risk(self, uptrend):
        score = score_canslim(replace(uptrend, days_to_earnings=5))
        assert score is not None
        assert score.risk == "Very High"

    def test_to_dict(self, uptrend):
        data = score_canslim(uptrend).to_dict()
        assert data["stopLoss"] == 146.0
        assert data["indicators"]["rsRating"] == pytest.approx(16.26, abs=0.02)
        assert "rawScore" not in data


class TestTechnicalMomentum:
    """Tests for the Technical Momentum scorer."""

    def test_timeframe_weights(self, uptrend):
        assert score_technical_momentum(uptrend, timeframe="24h").score == 30
        assert score_technical_momentum(uptrend, timeframe="3d").score == 60
        assert score_technical_momentum(uptrend, timeframe="7d").score == 75

    def test_ratings(self, uptrend):
        assert score_technical_momentum(uptrend, timeframe="24h").rating == "HOLD"
        assert score_technical_momentum(uptrend, timeframe="3d").rating == "BUY"
        assert score_technical_momentum(uptrend, timeframe="7d").rating == "STRONG BUY"

    def test_timeframe_is_reported(self, uptrend):
        assert score_technical_momentum(uptrend, timeframe="24h").timeframe == "24h"

    def test_risk_floor_high(self, uptrend):
        assert score_technical_momentum(uptrend).risk == "High"

    def test_unknown_timeframe_gives_no_score(self, uptrend):
        assert score_technical_momentum(uptrend, timeframe="1m") is None

    def test_unknown_timeframe_through_registry(self, uptrend):
        assert get_algorithm("momentum").score(uptrend, "neutral", "1y") is None

    def test_bear_market_has_no_effect(self, uptrend):
        bull = score_technical_momentum(uptrend, "bull", "7d")
        bear = score_technical_momentum(uptrend, "bear", "7d")
        assert bull.score == bear.score


class TestComposite:
    """Tests for the Composite Rating scorer."""

    def test_uptrend(self, uptrend):
        score = score_composite(uptrend)
        assert score.score == 75
        assert score.rating == "STRONG BUY"
        assert score.timeframe == "1m"
        assert score.indicators.regime == "bull"

    def test_bear_caps_score(self, uptrend):
        score = score_composite(uptrend, "bear")
        assert score.score == 40
        assert score.rating == "HOLD"

    def test_low_pe_bonus(self, uptrend):
        assert score_composite(replace(uptrend, pe=15.0)).score == 85


class TestPennySniper:
    """Tests for the Penny Sniper scorer."""

    def test_volume_spike(self, penny_stock):
        score = score_penny_sniper(penny_stock)
        assert score.score == 100
        assert score.rating == "STRONG BUY"
        assert score.timeframe == "24h"
        assert score.risk == "Very High"
        assert score.indicators.vol_z > 3

    def test_price_outside_range(self, penny_stock):
        assert score_penny_sniper(replace(penny_stock, price=20.0)) is None

    def test_illiquid(self, penny_stock):
        thin = make_snapshot(
            [bar.close for bar in penny_stock.history],
            [100_000] * 252,
            spread=0.05,
            market_cap=300_000_000,
        )
        assert score_penny_sniper(thin) is None

    def test_hold_is_not_returned(self, penny_stock):
        quiet = make_snapshot(
            [bar.close for bar in penny_stock.history],
            [1_000_000] * 252,
            spread=0.05,
            market_cap=5_000_000_000,
        )
        # Crossover + above SMA50 only = 50, a HOLD
        assert score_penny_sniper(quiet) is None


class TestValueSleeper:
    """Tests for the Value Sleeper scorer."""

    @pytest.fixture
    def value_stock(self, uptrend):
        return replace(uptrend, pe=15.0, roe=20.0, debt_to_equity=50.0)

    def test_buy(self, value_stock):
        score = score_value_sleeper(value_stock)
        assert score.score == 60
        assert score.rating == "BUY"
        assert score.timeframe == "3m"
        assert score.indicators.debt_ratio == pytest.approx(0.5)

    def test_near_52_week_low(self, value_stock):
        score = score_value_sleeper(replace(value_stock, high_52_week=300.0, low_52_week=140.0))
        assert score.score == 90
        assert score.rating == "STRONG BUY"

    def test_pe_gate(self, value_stock):
        assert score_value_sleeper(replace(value_stock, pe=25.0)) is None
        assert score_value_sleeper(replace(value_stock, pe=None)) is None

    def test_market_cap_gate(self, value_stock):
        assert score_value_sleeper(replace(value_stock, market_cap=5e8)) is None

    def test_hold_is_not_returned(self, value_stock):
        assert score_value_sleeper(replace(value_stock, roe=5.0)) is None


class TestAlphaPredator:
    """Tests for the Alpha Predator scorer."""

    def test_uptrend(self, uptrend):
        score = score_alpha_predator(uptrend)
        assert score.score == 75
        assert score.rating == "BUY"
        assert score.timeframe == "3d"
        assert score.indicators.adx > 25

    def test_bear_penalty_keeps_hold(self, uptrend):
        score = score_alpha_predator(uptrend, "bear")
        assert score.score == 45
        assert score.rating == "HOLD"

    def test_sell_is_discarded(self, downtrend):
        assert score_alpha_predator(downtrend) is None


class TestRegistry:
    """Tests for the algorithm registry."""

    def test_order(self):
        assert [a.name for a in ALGORITHMS] == [
            "CAN SLIM",
            "Technical Momentum",
            "Composite Rating",
            "Penny Sniper",
            "Value Sleeper",
            "Alpha Predator",
        ]

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("CAN SLIM", "CAN SLIM"),
            ("can slim", "CAN SLIM"),
            ("canslim", "CAN SLIM"),
            ("technical-momentum", "Technical Momentum"),
            ("momentum", "Technical Momentum"),
            ("Alpha Predator", "Alpha Predator"),
        ],
    )
    def test_get_algorithm(self, name, expected):
        assert get_algorithm(name).name == expected

    def test_unknown_algorithm(self):
        with pytest.raises(UnknownAlgorithmError, match="Unknown algorithm: Magic"):
            get_algorithm("Magic")

    def test_momentum_default_timeframe(self, uptrend):
        score = get_algorithm("Technical Momentum").score(uptrend)
        assert score.timeframe == "7d"

    def test_timeframe_ignored_without_timeframes(self, uptrend):
        score = get_algorithm("CAN SLIM").score(uptrend, "neutral", "24h")
        assert score.timeframe == "3m"
