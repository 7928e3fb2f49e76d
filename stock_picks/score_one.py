"""
Score a single symbol with one algorithm.

Used by the front-end for live re-scoring. Prints exactly one JSON object to
stdout: the score, or ``{"error": "..."}`` with exit code 1.

Usage:
    python -m stock_picks.score_one AAPL "CAN SLIM"
    python -m stock_picks.score_one NVDA "Technical Momentum" 24h
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from stock_picks.data_fetcher import StockDataProvider, YFinanceProvider
from stock_picks.exceptions import StockPicksError
from stock_picks.scorers import get_algorithm

logger = logging.getLogger(__name__)

USAGE = "Usage: score-one SYMBOL ALGORITHM [TIMEFRAME]"


class UsageError(Exception):
    """Raised instead of exiting when the command line is malformed."""

    pass


class _JsonArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise UsageError(message)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = _JsonArgumentParser(
        prog="score-one",
        description="Score one symbol with one algorithm and print the result as JSON.",
    )
    parser.add_argument("symbol", help="Stock ticker symbol (e.g., AAPL)")
    parser.add_argument(
        "algorithm",
        help='Algorithm name (e.g., "CAN SLIM", "Technical Momentum", "Composite Rating")',
    )
    parser.add_argument(
        "timeframe",
        nargs="?",
        default=None,
        help="Horizon for Technical Momentum: 24h, 3d or 7d (default: 7d)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")
    return parser


def _emit(payload: dict) -> None:
    print(json.dumps(payload))


def _fail(message: str) -> int:
    _emit({"error": message})
    return 1


def main(
    argv: Optional[List[str]] = None,
    provider: Optional[StockDataProvider] = None,
) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments. If None, uses sys.argv.
        provider: Snapshot source. If None, uses yfinance.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        args = create_parser().parse_args(argv)
    except UsageError:
        return _fail(USAGE)

    symbol = args.symbol.strip().upper()
    if not symbol or not args.algorithm.strip():
        return _fail(USAGE)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        algorithm = get_algorithm(args.algorithm.strip())

        timeframe = None
        if algorithm.timeframes:
            timeframe = (args.timeframe or algorithm.default_timeframe).strip().lower()
            if timeframe not in algorithm.timeframes:
                return _fail(
                    f"Invalid timeframe {args.timeframe!r} for {algorithm.name}. "
                    f"Use {', '.join(algorithm.timeframes)}"
                )

        provider = provider or YFinanceProvider(rate_limit_delay=0)
        snapshot = provider.fetch_one(symbol)
        if snapshot is None:
            return _fail(f"No data for symbol {symbol}")

        score = algorithm.score(snapshot, "neutral", timeframe)
        if score is None:
            return _fail(
                f"Algorithm returned no score for {symbol} (e.g. insufficient history)"
            )

        _emit(score.to_dict())
        return 0

    except StockPicksError as e:
        return _fail(str(e))
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        return _fail(str(e) or e.__class__.__name__)


if __name__ == "__main__":
    sys.exit(main())
