"""Tests for the indicator aggregator."""

from dataclasses import replace

import pytest

from conftest import linear, make_snapshot
from stock_picks.aggregator import calculate_all_indicators, classify_stock_regime
from stock_picks.indicators import calculate_rsi, calculate_zscore


class TestClassifyStockRegime:
    """Tests for the per-stock regime label."""

    def test_high_volatility_is_stress(self):
        assert classify_stock_regime(price=100, sma50=90, rel_vol=0.05) == "stress"

    def test_above_sma50_is_bull(self):
        assert classify_stock_regime(price=100, sma50=90, rel_vol=0.01) == "bull"

    def test_otherwise_neutral(self):
        assert classify_stock_regime(price=80, sma50=90, rel_vol=0.01) == "neutral"


class TestCalculateAllIndicators:
    """Tests for calculate_all_indicators."""

    def test_short_history_is_excluded(self, short_history):
        assert calculate_all_indicators(short_history) is None

    def test_uptrend_bundle(self, uptrend):
        ind = calculate_all_indicators(uptrend)

        assert ind is not None
        assert ind.rsi == 100.0
        assert ind.rsi_z_score == 0.0
        assert ind.sma200 < ind.sma50 < ind.sma20 < ind.sma5 < uptrend.price
        assert ind.atr == pytest.approx(2.0)
        assert ind.rel_vol == pytest.approx(2.0 / 150.0)
        assert ind.vol_z == pytest.approx(1.6475, abs=1e-3)
        assert ind.stage2 is True
        assert ind.breakout is True
        assert ind.vcp is True
        assert ind.institutional_footprint is True
        assert ind.vwap < uptrend.price
        assert ind.regime == "bull"
        assert ind.ytd_perf == pytest.approx(87.5)
        assert ind.adx > 25
        assert ind.ao > 0
        assert ind.bollinger.squeeze is True

    def test_downtrend_bundle(self, downtrend):
        ind = calculate_all_indicators(downtrend)

        assert ind.rsi == 0.0
        assert ind.stage2 is False
        assert ind.vcp is False
        assert ind.institutional_footprint is False
        assert ind.regime == "neutral"
        assert ind.ao < 0

    def test_exactly_200_bars_is_scored(self, uptrend):
        assert calculate_all_indicators(uptrend.as_of(199)) is not None
        assert calculate_all_indicators(uptrend.as_of(198)) is None

    def test_equal_snapshots_share_a_bundle(self, uptrend):
        first = calculate_all_indicators(uptrend)
        second = calculate_all_indicators(replace(uptrend))
        assert second is first

    def test_recomputation_is_idempotent(self, uptrend):
        first = calculate_all_indicators(uptrend)
        calculate_all_indicators.cache_clear()
        second = calculate_all_indicators(replace(uptrend))

        assert second is not first
        assert second == first

    def test_rsi_zscore_against_previous_readings(self):
        """The current RSI is compared with the 20 readings before it."""
        closes = linear(80, 150, 247) + [148.0, 145.0, 141.0]
        ind = calculate_all_indicators(make_snapshot(closes))

        previous = [calculate_rsi(closes[:i]) for i in range(len(closes) - 20, len(closes))]
        expected = calculate_zscore(calculate_rsi(closes), previous)

        assert ind.rsi == pytest.approx(25.80, abs=0.01)
        assert ind.rsi_z_score == pytest.approx(expected)
        assert ind.rsi_z_score < -4.5

    def test_to_dict_keys(self, uptrend):
        data = calculate_all_indicators(uptrend).to_dict()
        assert data["rsRating"] == pytest.approx(16.26, abs=0.02)
        assert data["institutionalFootprint"] is True
        assert data["bollinger"]["squeeze"] is True
        assert "bandWidth" in data["bollinger"]
        assert "volZ" in data
