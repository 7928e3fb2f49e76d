"""Tests for sector rotation."""

import json
from datetime import datetime

import pytest

from conftest import make_snapshot
from stock_picks.data_fetcher import InMemoryProvider
from stock_picks.exceptions import DataFetchError
from stock_picks.sectors import (
    SectorReport,
    analyze_sector,
    analyze_sectors,
    classify_quadrant,
    format_sector_summary,
    lookback_close,
    write_sector_report,
)

SECTORS = ("XLK", "XLU", "XLF", "XLE", "XLB", "XLC")


@pytest.fixture
def provider(sector_snapshots):
    return InMemoryProvider(sector_snapshots)


@pytest.fixture
def report(provider):
    return analyze_sectors(provider, symbols=SECTORS, now=datetime(2026, 1, 5, 14, 30))


class TestClassifyQuadrant:
    """Tests for the quadrant rules."""

    @pytest.mark.parametrize(
        "above_trend, momentum, expected",
        [
            (True, 1.0, "Leading"),
            (True, 0.0, "Weakening"),
            (True, -1.0, "Weakening"),
            (False, 0.0, "Lagging"),
            (False, -1.0, "Lagging"),
            (False, 1.0, "Improving"),
        ],
    )
    def test_quadrants(self, above_trend, momentum, expected):
        assert classify_quadrant(above_trend, momentum) == expected


class TestAnalyzeSector:
    """Tests for analyze_sector."""

    def test_leading_sector(self, sector_snapshots):
        spy, xlk = sector_snapshots[0], sector_snapshots[1]
        result = analyze_sector(xlk, spy)

        past = 50 + 30 * 40 / 59
        assert result.quadrant == "Leading"
        assert result.score == 100
        assert result.name == "Technology"
        assert result.rs_ratio == pytest.approx(80.0)
        assert result.rs_momentum == pytest.approx((80 / past - 1) * 100)
        assert result.change_1m == pytest.approx((80 / past - 1) * 100)

    def test_momentum_is_relative_to_benchmark(self, sector_snapshots):
        xlk = sector_snapshots[1]
        # Benchmark rose faster than the sector over the lookback
        spy = make_snapshot([100.0] * 41 + [200.0] * 19, symbol="SPY")
        result = analyze_sector(xlk, spy)

        assert result.change_1m > 0
        assert result.rs_momentum < 0
        assert result.quadrant == "Weakening"

    def test_short_history_is_skipped(self, sector_snapshots):
        assert analyze_sector(sector_snapshots[5], sector_snapshots[0]) is None

    def test_lookback_longer_than_history(self, sector_snapshots):
        spy, xlk = sector_snapshots[0], sector_snapshots[1]
        assert lookback_close(xlk, 100) == xlk.price
        assert analyze_sector(xlk, spy, lookback=100).rs_momentum == 0.0

    def test_name_falls_back_to_symbol(self, sector_snapshots):
        spy = sector_snapshots[0]
        etf = make_snapshot([10.0] * 60, symbol="XLRE", name="Select Sector SPDR ETF")
        assert analyze_sector(etf, spy).name == "XLRE"


class TestAnalyzeSectors:
    """Tests for analyze_sectors."""

    def test_order_and_quadrants(self, report):
        assert [(s.symbol, s.quadrant, s.score) for s in report.sectors] == [
            ("XLK", "Leading", 100),
            ("XLF", "Improving", 50),
            ("XLU", "Weakening", 50),
            ("XLE", "Lagging", 0),
        ]

    def test_quadrant_values(self, report):
        xlu, xlf = report.sectors[2], report.sectors[1]
        assert xlu.rs_momentum == pytest.approx(-5.0)
        assert xlf.rs_momentum == pytest.approx(10.0)
        assert report.in_quadrant("Lagging")[0].symbol == "XLE"

    def test_benchmark(self, report):
        assert report.benchmark == "SPY"
        assert report.benchmark_price == 100.0
        assert report.benchmark_change == 0.0

    def test_missing_benchmark(self, sector_snapshots):
        provider = InMemoryProvider(sector_snapshots[1:])
        with pytest.raises(DataFetchError, match="SPY"):
            analyze_sectors(provider, symbols=SECTORS)

    def test_short_benchmark(self, sector_snapshots):
        provider = InMemoryProvider([make_snapshot([100.0] * 30, symbol="SPY")])
        with pytest.raises(DataFetchError):
            analyze_sectors(provider, symbols=SECTORS)

    def test_to_dict(self, report):
        data = report.to_dict()
        assert data["scanDate"] == "2026-01-05T14:30:00.000Z"
        assert data["benchmark"] == {"symbol": "SPY", "price": 100.0, "change1m": 0.0}
        assert data["sectors"][1] == {
            "symbol": "XLF",
            "name": "XLF Inc.",
            "price": 55.0,
            "change1m": 10.0,
            "rsRatio": 55.0,
            "rsMomentum": 10.0,
            "quadrant": "Improving",
            "score": 50,
        }


class TestSectorReportOutput:
    """Tests for writing and printing the sector report."""

    def test_write(self, report, tmp_path):
        paths = write_sector_report(report, tmp_path / "data", tmp_path / "public")

        assert [p.name for p in paths] == ["sector-rotation.json"] * 2
        payload = json.loads(paths[1].read_text())
        assert [s["symbol"] for s in payload["sectors"]] == ["XLK", "XLF", "XLU", "XLE"]

    def test_summary(self, report):
        text = format_sector_summary(report)
        assert "SECTOR ROTATION vs SPY" in text
        assert "LEADING:" in text
        assert "  - XLK (Technology): +13.73% 1m" in text
        assert "  - XLU (XLU Inc.): -5.00% 1m" in text

    def test_summary_marks_empty_quadrants(self):
        empty = SectorReport(
            scan_date="2026-01-05T14:30:00.000Z",
            benchmark="SPY",
            benchmark_price=100.0,
            benchmark_change=0.0,
        )
        assert format_sector_summary(empty).count("(none)") == 4
