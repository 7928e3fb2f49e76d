"""
History providers.

The engine only depends on the StockDataProvider interface. YFinanceProvider
downloads daily OHLCV history and fundamentals with yfinance;
InMemoryProvider serves fixed snapshots for tests and offline replays.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Iterable, Optional

import pandas as pd

from stock_picks.exceptions import DataFetchError
from stock_picks.models import HISTORY_COLUMNS, PriceBar, StockSnapshot

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 730
AVG_VOLUME_BARS = 50


def _safe_float(value, default: Optional[float] = None) -> Optional[float]:
    """Safely convert value to float, handling NaN and None."""
    if value is None:
        return default
    try:
        result = float(value)
        if math.isnan(result):
            return default
        return result
    except (ValueError, TypeError):
        return default


def frame_to_bars(df: pd.DataFrame) -> tuple[PriceBar, ...]:
    """
    Convert a Date/Open/High/Low/Close/Volume DataFrame into price bars.

    Rows without a positive close are dropped, as are repeated dates, so the
    result always has strictly increasing dates.
    """
    bars: list[PriceBar] = []
    for row in df.sort_values("Date").itertuples(index=False):
        close = _safe_float(row.Close)
        if close is None or close <= 0:
            continue
        bar_date = pd.Timestamp(row.Date).date()
        if bars and bar_date <= bars[-1].date:
            continue
        bars.append(
            PriceBar(
                date=bar_date,
                open=_safe_float(row.Open),
                high=_safe_float(row.High, close),
                low=_safe_float(row.Low, close),
                close=close,
                volume=_safe_float(row.Volume, 0.0),
            )
        )
    return tuple(bars)


def average_volume(bars: tuple[PriceBar, ...], lookback: int = AVG_VOLUME_BARS) -> float:
    """Mean of the positive volumes among the last ``lookback`` bars."""
    volumes = [bar.volume for bar in bars[-lookback:] if bar.volume > 0]
    return sum(volumes) / len(volumes) if volumes else 0.0


class StockDataProvider(ABC):
    """Abstract source of stock snapshots."""

    rate_limit_delay: float = 0.0

    @abstractmethod
    def fetch_one(self, symbol: str) -> Optional[StockSnapshot]:
        """Fetch one snapshot, or None if the symbol cannot be served."""
        pass

    def fetch_many(self, symbols: Iterable[str]) -> list[StockSnapshot]:
        """
        Fetch snapshots sequentially, sleeping ``rate_limit_delay`` between calls.

        Symbols that cannot be fetched are skipped.
        """
        symbols = list(symbols)
        snapshots = []
        for i, symbol in enumerate(symbols):
            if i > 0 and self.rate_limit_delay > 0:
                time.sleep(self.rate_limit_delay)
            snapshot = self.fetch_one(symbol)
            if snapshot is None:
                logger.debug(f"Skipping {symbol}: no data")
                continue
            snapshots.append(snapshot)

        logger.info(f"Fetched {len(snapshots)} of {len(symbols)} symbols")
        return snapshots


class InMemoryProvider(StockDataProvider):
    """Serves pre-built snapshots keyed by upper-case symbol."""

    def __init__(self, snapshots: Iterable[StockSnapshot] = ()) -> None:
        self._snapshots = {s.symbol.upper(): s for s in snapshots}

    def fetch_one(self, symbol: str) -> Optional[StockSnapshot]:
        return self._snapshots.get(symbol.upper())


class YFinanceProvider(StockDataProvider):
    """
    Snapshot provider backed by yfinance.

    Price history comes from ``Ticker.history`` (split/dividend adjusted);
    fundamentals and the next earnings date come from ``Ticker.info`` and
    ``Ticker.calendar`` and are optional.
    """

    def __init__(
        self,
        history_days: int = DEFAULT_HISTORY_DAYS,
        rate_limit_delay: float = 0.5,
        end_date: Optional[datetime] = None,
    ) -> None:
        try:
            import yfinance as yf
            self._yf = yf
        except ImportError:
            raise ImportError(
                "yfinance not installed. Install with: pip install yfinance"
            )
        self.history_days = history_days
        self.rate_limit_delay = rate_limit_delay
        self.end_date = end_date

    def download_history(self, ticker, symbol: str) -> pd.DataFrame:
        """
        Download daily OHLCV history for a symbol.

        Raises:
            DataFetchError: If the download fails or returns no data.
        """
        end_date = self.end_date or datetime.now()
        start_date = end_date - timedelta(days=self.history_days)

        try:
            df = ticker.history(
                start=start_date.strftime("%Y-%m-%d"),
                end=(end_date + timedelta(days=1)).strftime("%Y-%m-%d"),
                auto_adjust=True,
            )
        except Exception as e:
            raise DataFetchError(f"Failed to download data for {symbol}: {e}") from e

        if df.empty:
            raise DataFetchError(
                f"No data returned for {symbol} from {start_date.date()} to {end_date.date()}"
            )

        df = df.reset_index()
        missing_cols = [c for c in HISTORY_COLUMNS if c not in df.columns]
        if missing_cols:
            raise DataFetchError(
                f"Downloaded data for {symbol} missing required columns: {missing_cols}"
            )

        df = df[HISTORY_COLUMNS].copy()
        df["Date"] = pd.to_datetime(df["Date"]).dt.tz_localize(None)
        return df

    def _info(self, ticker, symbol: str) -> dict:
        try:
            return ticker.info or {}
        except Exception as e:
            logger.warning(f"Fundamentals unavailable for {symbol}: {e}")
            return {}

    def _days_to_earnings(self, ticker, symbol: str) -> Optional[int]:
        try:
            calendar = ticker.calendar
        except Exception as e:
            logger.debug(f"Earnings calendar unavailable for {symbol}: {e}")
            return None

        if not isinstance(calendar, dict):
            return None

        today = (self.end_date or datetime.now()).date()
        days = [
            (pd.Timestamp(d).date() - today).days
            for d in calendar.get("Earnings Date") or []
        ]
        upcoming = [d for d in days if d >= 0]
        return min(upcoming) if upcoming else None

    def fetch_one(self, symbol: str) -> Optional[StockSnapshot]:
        symbol = symbol.upper()
        ticker = self._yf.Ticker(symbol)

        try:
            bars = frame_to_bars(self.download_history(ticker, symbol))
        except DataFetchError as e:
            logger.warning(str(e))
            return None

        if not bars:
            logger.warning(f"No usable bars for {symbol}")
            return None

        info = self._info(ticker, symbol)
        last = bars[-1]
        price = _safe_float(info.get("regularMarketPrice")) or last.close
        previous_close = _safe_float(info.get("regularMarketPreviousClose")) or (
            bars[-2].close if len(bars) > 1 else price
        )
        change = price - previous_close
        change_percent = change / previous_close * 100 if previous_close else 0.0

        roe = _safe_float(info.get("returnOnEquity"))
        if roe is not None:
            roe *= 100

        return StockSnapshot(
            symbol=symbol,
            name=info.get("longName") or info.get("shortName") or symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            volume=_safe_float(info.get("regularMarketVolume")) or last.volume,
            avg_volume=average_volume(bars),
            history=bars,
            market_cap=_safe_float(info.get("marketCap")),
            pe=_safe_float(info.get("trailingPE")),
            high_52_week=_safe_float(info.get("fiftyTwoWeekHigh")),
            low_52_week=_safe_float(info.get("fiftyTwoWeekLow")),
            shares_outstanding=_safe_float(
                info.get("floatShares") or info.get("sharesOutstanding")
            ),
            roe=roe,
            debt_to_equity=_safe_float(info.get("debtToEquity")),
            days_to_earnings=self._days_to_earnings(ticker, symbol),
        )

