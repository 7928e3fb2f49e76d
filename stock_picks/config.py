"""
Configuration classes for the stock picks engine.

Every run reads its knobs from these dataclasses. ``load_config`` fills
them from an optional YAML file with ``engine``, ``backtest``, ``audit``
and ``sectors`` sections; anything left out keeps its default.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from stock_picks.exceptions import ConfigurationError, UnknownAlgorithmError
from stock_picks.scorers import ALGORITHMS, MOMENTUM_TIMEFRAMES, get_algorithm
from stock_picks.universe import SECTOR_ETFS

BACKTEST_TICKERS = (
    "SPY", "QQQ", "NVDA", "AAPL", "MSFT", "AMD", "TSLA", "META", "AMZN", "GOOGL",
)
BACKTEST_ALGORITHMS = ("CAN SLIM", "Alpha Predator", "Composite Rating")
BACKTEST_THRESHOLDS = (40, 50, 60, 70, 80, 85, 90)
AUDIT_TARGETS = ("SPY", "QQQ", "NVDA")


def _resolve_algorithms(names) -> tuple[str, ...]:
    try:
        return tuple(get_algorithm(name).name for name in names)
    except UnknownAlgorithmError as e:
        raise ConfigurationError(str(e)) from e


def _check_score(value, label: str) -> None:
    if not 0 <= value <= 100:
        raise ConfigurationError(f"{label} must be between 0 and 100, got {value}")


@dataclass
class EngineConfig:
    """
    Configuration for the daily pick run.

    Attributes:
        top_n: Maximum number of published picks (default: 30)
        min_scores: Minimum score per algorithm for a pick to be considered
        momentum_timeframes: Horizons Technical Momentum is run over
        slippage: Simulated adverse entry slippage as a fraction (default: 0.005)
        benchmark: Symbol used for market regime detection (default: "SPY")
        rate_limit_delay: Seconds to sleep between symbol fetches (default: 0.5)
        history_days: Calendar days of history to download (default: 730)
        output_dir: Directory for the live artifact and the archive
        public_dir: Directory for the front-end copy of the live artifact
    """

    top_n: int = 30
    min_scores: dict = field(
        default_factory=lambda: {a.name: a.min_score for a in ALGORITHMS}
    )
    momentum_timeframes: tuple = MOMENTUM_TIMEFRAMES
    slippage: float = 0.005
    benchmark: str = "SPY"
    rate_limit_delay: float = 0.5
    history_days: int = 730
    output_dir: str = "data"
    public_dir: str = "public/data"

    def __post_init__(self) -> None:
        if self.top_n <= 0:
            raise ConfigurationError(f"top_n must be positive, got {self.top_n}")
        if not 0 <= self.slippage < 0.1:
            raise ConfigurationError(f"slippage must be in [0, 0.1), got {self.slippage}")
        if self.rate_limit_delay < 0:
            raise ConfigurationError("rate_limit_delay cannot be negative")
        if self.history_days < 300:
            raise ConfigurationError(
                f"history_days must be at least 300 to yield 200 bars, got {self.history_days}"
            )

        defaults = {a.name: a.min_score for a in ALGORITHMS}
        overrides = {}
        for name, value in self.min_scores.items():
            resolved = _resolve_algorithms([name])[0]
            _check_score(value, f"min_scores[{name!r}]")
            overrides[resolved] = value
        self.min_scores = {**defaults, **overrides}

        self.momentum_timeframes = tuple(self.momentum_timeframes)
        invalid = [t for t in self.momentum_timeframes if t not in MOMENTUM_TIMEFRAMES]
        if invalid or not self.momentum_timeframes:
            raise ConfigurationError(
                f"momentum_timeframes must be a non-empty subset of {MOMENTUM_TIMEFRAMES}"
            )

    def min_score(self, algorithm: str) -> int:
        return self.min_scores[algorithm]


@dataclass
class BacktestConfig:
    """
    Configuration for the historical replay.

    Attributes:
        tickers: Symbols to replay
        algorithms: Algorithms to evaluate, in report order
        thresholds: Score thresholds to evaluate, in report order
        stride: Bars between replay points (default: 10)
        lookback: Bars of history replayed per ticker (default: 504)
        horizon: Forward-return horizon in bars (default: 7)
        max_workers: Worker processes; 1 runs sequentially (default: 1)
        history_days: Calendar days of history to download (default: 1100)
    """

    tickers: tuple = BACKTEST_TICKERS
    algorithms: tuple = BACKTEST_ALGORITHMS
    thresholds: tuple = BACKTEST_THRESHOLDS
    stride: int = 10
    lookback: int = 504
    horizon: int = 7
    max_workers: int = 1
    history_days: int = 1100

    def __post_init__(self) -> None:
        self.tickers = tuple(self.tickers)
        self.algorithms = _resolve_algorithms(self.algorithms)
        self.thresholds = tuple(self.thresholds)
        for threshold in self.thresholds:
            _check_score(threshold, "threshold")
        for name in ("stride", "lookback", "horizon", "max_workers"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")


@dataclass
class AuditConfig:
    """
    Configuration for the stress audit.

    Attributes:
        targets: Symbols to audit (default: SPY, QQQ, NVDA)
        drop_threshold: Percent drop that defines a stress window (default: -3.0)
        window: Length of the drop window in bars (default: 5)
        signal_threshold: Score a stress-regime signal must exceed (default: 50)
        history_days: Calendar days of history to download (default: 730)
    """

    targets: tuple = AUDIT_TARGETS
    drop_threshold: float = -3.0
    window: int = 5
    signal_threshold: int = 50
    history_days: int = 730

    def __post_init__(self) -> None:
        self.targets = tuple(self.targets)
        if self.drop_threshold >= 0:
            raise ConfigurationError(
                f"drop_threshold must be negative, got {self.drop_threshold}"
            )
        if self.window <= 0:
            raise ConfigurationError(f"window must be positive, got {self.window}")
        _check_score(self.signal_threshold, "signal_threshold")


@dataclass
class SectorConfig:
    """
    Configuration for sector rotation.

    Attributes:
        symbols: Sector ETFs to classify (default: the eleven SPDR sectors)
        benchmark: Symbol sectors are measured against (default: "SPY")
        lookback: Bars the relative-strength momentum covers (default: 20)
        history_days: Calendar days of history to download (default: 365)
    """

    symbols: tuple = SECTOR_ETFS
    benchmark: str = "SPY"
    lookback: int = 20
    history_days: int = 365

    def __post_init__(self) -> None:
        self.symbols = tuple(self.symbols)
        if not self.symbols:
            raise ConfigurationError("symbols cannot be empty")
        if self.lookback <= 0:
            raise ConfigurationError(f"lookback must be positive, got {self.lookback}")
        if self.history_days < 90:
            raise ConfigurationError(
                f"history_days must be at least 90 to yield 50 bars, got {self.history_days}"
            )


@dataclass
class StockPicksConfig:
    """All configuration sections."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    sectors: SectorConfig = field(default_factory=SectorConfig)


SECTIONS = {
    "engine": EngineConfig,
    "backtest": BacktestConfig,
    "audit": AuditConfig,
    "sectors": SectorConfig,
}


def _build_section(name: str, values: Optional[dict]):
    cls = SECTIONS[name]
    if values is None:
        return cls()
    if not isinstance(values, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in section '{name}': {unknown}")

    try:
        return cls(**values)
    except TypeError as e:
        raise ConfigurationError(f"Invalid value in section '{name}': {e}") from e


def load_config(file_path: Optional[Union[str, Path]] = None) -> StockPicksConfig:
    """
    Load configuration from a YAML file.

    Args:
        file_path: Path to the YAML file, or None for defaults.

    Returns:
        StockPicksConfig with every section populated.

    Raises:
        ConfigurationError: If the file is missing, malformed or has unknown keys.
    """
    if file_path is None:
        return StockPicksConfig()

    path = Path(file_path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {file_path}")

    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"YAML parsing error in {file_path}: {e}") from e

    content = content or {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Config file {file_path} must contain a mapping")

    unknown = sorted(set(content) - set(SECTIONS))
    if unknown:
        raise ConfigurationError(f"Unknown config sections: {unknown}")

    return StockPicksConfig(
        **{name: _build_section(name, content.get(name)) for name in SECTIONS}
    )
