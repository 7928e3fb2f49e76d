"""
CLI interface for the stock picks engine.

Usage:
    python -m stock_picks generate
    python -m stock_picks backtest --output public/data/scientific-tuning.json
    python -m stock_picks audit --output public/data/adversarial-audit.json
    python -m stock_picks verify --data-dir data
    python -m stock_picks sectors
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from stock_picks.adversarial import run_adversarial_audit, write_audit_report
from stock_picks.backtest import run_backtest, write_backtest_report
from stock_picks.config import StockPicksConfig, load_config
from stock_picks.data_fetcher import StockDataProvider, YFinanceProvider
from stock_picks.exceptions import StockPicksError
from stock_picks.pipeline import format_summary, generate_picks, write_pick_report
from stock_picks.sectors import analyze_sectors, format_sector_summary, write_sector_report
from stock_picks.verification import (
    load_archived_picks,
    verify_picks,
    write_verification_report,
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="stock_picks",
        description="Quantitative stock scoring, ranking and backtesting.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate today's picks into data/ and public/data/
  python -m stock_picks generate --verbose

  # Threshold sweep over the backtest tickers using 4 processes
  python -m stock_picks backtest --workers 4

  # Look for signals fired during sharp drops
  python -m stock_picks audit

  # Check published picks against what prices did next
  python -m stock_picks verify

  # Place the sector ETFs in rotation quadrants against SPY
  python -m stock_picks sectors

  # Use a YAML config with engine/backtest/audit/sectors sections
  python -m stock_picks --config picks.yaml generate
        """,
    )
    parser.add_argument("--config", "-c", help="Path to YAML configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate and publish daily picks")
    generate.add_argument("--output-dir", help="Directory for daily-stocks.json and the archive")
    generate.add_argument("--public-dir", help="Directory for the front-end copy")

    backtest = subparsers.add_parser("backtest", help="Run the threshold sweep")
    backtest.add_argument(
        "--output",
        default="public/data/scientific-tuning.json",
        help="Output JSON path (default: public/data/scientific-tuning.json)",
    )
    backtest.add_argument("--workers", type=int, help="Worker processes (overrides config)")

    audit = subparsers.add_parser("audit", help="Run the adversarial stress audit")
    audit.add_argument(
        "--output",
        default="public/data/adversarial-audit.json",
        help="Output JSON path (default: public/data/adversarial-audit.json)",
    )

    verify = subparsers.add_parser("verify", help="Verify published picks retroactively")
    verify.add_argument("--data-dir", help="Directory holding the published picks")
    verify.add_argument("--public-dir", help="Directory for the front-end copy")

    sectors = subparsers.add_parser("sectors", help="Classify sector ETFs by rotation quadrant")
    sectors.add_argument("--output-dir", help="Directory for sector-rotation.json")
    sectors.add_argument("--public-dir", help="Directory for the front-end copy")

    return parser


def cmd_generate(args, config: StockPicksConfig, provider: StockDataProvider) -> int:
    engine = config.engine
    report = generate_picks(provider, engine)
    paths = write_pick_report(
        report,
        args.output_dir or engine.output_dir,
        args.public_dir or engine.public_dir,
    )
    print(format_summary(report))
    for path in paths:
        print(f"Saved to: {path}")
    return 0


def cmd_backtest(args, config: StockPicksConfig, provider: StockDataProvider) -> int:
    settings = config.backtest
    snapshots = provider.fetch_many(settings.tickers)
    results = run_backtest(
        snapshots,
        algorithms=settings.algorithms,
        thresholds=settings.thresholds,
        stride=settings.stride,
        lookback=settings.lookback,
        horizon=settings.horizon,
        max_workers=args.workers or settings.max_workers,
    )
    path = write_backtest_report(results, args.output)

    for result in results:
        print(
            f"{result.algorithm:<18} >= {result.threshold:>3}: "
            f"{result.total_trades:>4} trades, WR {result.win_rate:5.1f}%, "
            f"avg {result.avg_return:+.2f}%, sharpe {result.sharpe_ratio:.2f}"
        )
    print(f"Results saved to {path}")
    return 0


def cmd_audit(args, config: StockPicksConfig, provider: StockDataProvider) -> int:
    settings = config.audit
    snapshots = provider.fetch_many(settings.targets)
    events = run_adversarial_audit(
        snapshots,
        drop_threshold=settings.drop_threshold,
        window=settings.window,
        signal_threshold=settings.signal_threshold,
    )
    path = write_audit_report(events, args.output)
    print(f"Audit complete. {len(events)} stress signals captured. Saved to {path}")
    return 0


def cmd_verify(args, config: StockPicksConfig, provider: StockDataProvider) -> int:
    engine = config.engine
    data_dir = Path(args.data_dir or engine.output_dir)
    picks = load_archived_picks(data_dir)
    report = verify_picks(picks, provider)
    paths = write_verification_report(report, data_dir, args.public_dir or engine.public_dir)

    hit_rate = report.hit_rate
    print(
        f"Hit rate: {'n/a' if hit_rate is None else f'{hit_rate:.1f}%'} "
        f"({report.hit_count}/{len(report.with_return)})"
    )
    for i, record in enumerate(report.algorithm_ranking, start=1):
        note = ", low sample" if record.low_sample else ""
        print(
            f"  {i}. {record.algorithm}: {record.hit_rate:.1f}% hit, "
            f"{record.avg_return:+.2f}% avg (n={record.count}{note})"
        )
    for path in paths:
        print(f"Saved to: {path}")
    return 0


def cmd_sectors(args, config: StockPicksConfig, provider: StockDataProvider) -> int:
    settings = config.sectors
    report = analyze_sectors(
        provider,
        symbols=settings.symbols,
        benchmark=settings.benchmark,
        lookback=settings.lookback,
    )
    paths = write_sector_report(
        report,
        args.output_dir or config.engine.output_dir,
        args.public_dir or config.engine.public_dir,
    )
    print(format_sector_summary(report))
    for path in paths:
        print(f"Saved to: {path}")
    return 0


COMMANDS = {
    "generate": cmd_generate,
    "backtest": cmd_backtest,
    "audit": cmd_audit,
    "verify": cmd_verify,
    "sectors": cmd_sectors,
}


def _history_days(command: str, config: StockPicksConfig) -> int:
    if command == "backtest":
        return config.backtest.history_days
    if command == "audit":
        return config.audit.history_days
    if command == "sectors":
        return config.sectors.history_days
    return config.engine.history_days


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
    args = create_parser().parse_args(argv)
    setup_logging(args.verbose, args.debug)

    try:
        config = load_config(args.config)
        if provider is None:
            provider = YFinanceProvider(
                history_days=_history_days(args.command, config),
                rate_limit_delay=config.engine.rate_limit_delay,
            )
        return COMMANDS[args.command](args, config, provider)

    except StockPicksError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Unexpected error")
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
