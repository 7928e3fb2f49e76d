"""Tests for data models."""

from dataclasses import FrozenInstanceError
from datetime import date, timedelta

import pytest

from conftest import START_DATE, make_bars, make_snapshot
from stock_picks.models import (
    HISTORY_COLUMNS,
    BacktestResult,
    Pick,
    PriceBar,
    Score,
    StockSnapshot,
    StressEvent,
)


class TestPriceBar:
    """Tests for PriceBar."""

    def test_derived_prices(self):
        bar = PriceBar(date=date(2026, 1, 5), high=12.0, low=8.0, close=10.0, volume=100)
        assert bar.typical_price == pytest.approx(10.0)
        assert bar.median_price == pytest.approx(10.0)
        assert bar.open is None

    def test_frozen(self):
        bar = PriceBar(date=date(2026, 1, 5), high=12.0, low=8.0, close=10.0, volume=100)
        with pytest.raises(FrozenInstanceError):
            bar.close = 11.0


class TestStockSnapshot:
    """Tests for StockSnapshot."""

    def test_dates_must_increase(self):
        bars = make_bars([10.0, 11.0])
        with pytest.raises(ValueError, match="strictly increasing"):
            StockSnapshot(
                symbol="X",
                name="X",
                price=10.0,
                change=0.0,
                change_percent=0.0,
                volume=1,
                avg_volume=1,
                history=(bars[1], bars[0]),
            )

    def test_history_is_a_tuple(self):
        bars = make_bars([10.0, 11.0])
        snapshot = StockSnapshot(
            symbol="X",
            name="X",
            price=11.0,
            change=1.0,
            change_percent=10.0,
            volume=1,
            avg_volume=1,
            history=list(bars),
        )
        assert snapshot.history == bars
        assert hash(snapshot) == hash(snapshot)

    def test_history_frame(self):
        snapshot = make_snapshot([10.0, 11.0, 12.0])
        frame = snapshot.history_frame()
        assert list(frame.columns) == HISTORY_COLUMNS
        assert frame["Close"].tolist() == [10.0, 11.0, 12.0]
        assert frame["High"].tolist() == [11.0, 12.0, 13.0]

    def test_as_of_truncates(self):
        snapshot = make_snapshot(
            [10.0, 11.0, 12.0, 20.0],
            volumes=[100, 200, 300, 10_000],
            days_to_earnings=3,
        )
        past = snapshot.as_of(2)

        assert len(past.history) == 3
        assert past.history[-1].date == START_DATE + timedelta(days=2)
        assert past.price == 12.0
        assert past.change == pytest.approx(1.0)
        assert past.change_percent == pytest.approx(1 / 11 * 100)
        assert past.volume == 300
        assert past.avg_volume == pytest.approx(200.0)
        assert past.high_52_week == 13.0
        assert past.low_52_week == 9.0
        assert past.days_to_earnings is None
        assert past.market_cap == snapshot.market_cap

    def test_as_of_first_bar(self):
        past = make_snapshot([10.0, 11.0]).as_of(0)
        assert past.change == 0.0
        assert past.change_percent == 0.0

    def test_as_of_out_of_range(self):
        snapshot = make_snapshot([10.0, 11.0])
        with pytest.raises(IndexError):
            snapshot.as_of(2)
        with pytest.raises(IndexError):
            snapshot.as_of(-1)


def create_score(**overrides):
    """Helper to create a score for testing."""
    values = dict(
        symbol="AAPL",
        name="Apple Inc.",
        price=150.0,
        change=1.23456,
        change_percent=0.8234567,
        rating="BUY",
        timeframe="3m",
        algorithm="CAN SLIM",
        score=65,
        risk="Medium",
        stop_loss=146.0,
    )
    values.update(overrides)
    return Score(**values)


class TestScore:
    """Tests for Score and Pick serialisation."""

    def test_to_dict(self):
        data = create_score().to_dict()
        assert data == {
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "price": 150.0,
            "change": 1.2346,
            "changePercent": 0.8235,
            "rating": "BUY",
            "timeframe": "3m",
            "algorithm": "CAN SLIM",
            "score": 65,
            "risk": "Medium",
            "stopLoss": 146.0,
            "indicators": {},
        }

    def test_pick_from_score(self):
        score = create_score()
        pick = Pick.from_score(score, ("CAN SLIM",))
        assert pick.symbol == score.symbol
        assert pick.score == score.score
        assert pick.all_algorithms == ("CAN SLIM",)
        assert pick.picked_at is None

    def test_unstamped_pick_omits_stamp_keys(self):
        data = Pick.from_score(create_score()).to_dict()
        assert "pickedAt" not in data
        assert "pickHash" not in data
        assert "slippageSimulated" not in data
        assert "allAlgorithms" not in data


class TestReportRecords:
    """Tests for backtest and stress records."""

    def test_backtest_result_to_dict(self):
        result = BacktestResult("CAN SLIM", 60, 3, 66.666666, 1.0, 0.61237243)
        assert result.to_dict() == {
            "algorithm": "CAN SLIM",
            "threshold": 60,
            "totalTrades": 3,
            "winRate": 66.6667,
            "avgReturn": 1.0,
            "sharpeRatio": 0.6124,
        }

    def test_stress_event_to_dict(self):
        event = StressEvent(
            date=date(2026, 1, 5),
            symbol="SPY",
            drop_at_signal=-4.123456,
            max_drawdown_after=-2.0,
            ten_day_result=1.5,
            signals={"canslim": 60, "predator": 0},
        )
        data = event.to_dict()
        assert data["date"] == "2026-01-05"
        assert data["dropAtSignal"] == -4.1235
        assert data["signals"] == {"canslim": 60, "predator": 0}
