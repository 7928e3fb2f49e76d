"""
Custom exceptions for the stock picks engine.

Indicator and scorer code never raises these for data-quality problems;
they surface only at file I/O and CLI boundaries.
"""

from typing import Iterable


class StockPicksError(Exception):
    """Base exception for all stock picks errors."""

    pass


class DataFetchError(StockPicksError):
    """Error downloading market data for a symbol."""

    pass


class UnknownAlgorithmError(StockPicksError):
    """Raised when an algorithm name does not resolve to a scorer."""

    def __init__(self, name: str, available: Iterable[str] = ()) -> None:
        self.name = name
        self.available = list(available)
        message = f"Unknown algorithm: {name}"
        if self.available:
            message += ". Use " + ", ".join(f'"{a}"' for a in self.available)
        super().__init__(message)


class ConfigurationError(StockPicksError):
    """Invalid configuration."""

    pass


class ReportWriteError(StockPicksError):
    """Error writing or reading a JSON artifact."""

    pass
