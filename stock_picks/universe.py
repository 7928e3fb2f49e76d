"""
Static stock universes, partitioned by strategy.

All lists are immutable module-level tuples.
"""

from types import MappingProxyType
from typing import Iterable

from stock_picks.exceptions import UnknownAlgorithmError

LARGE_CAP_GROWTH = (
    "AAPL", "MSFT", "GOOGL", "AMZN", "NVDA", "META", "TSLA", "NFLX",
    "AMD", "INTC", "CRM", "ADBE", "PYPL", "NOW", "SNOW", "PLTR",
)

LARGE_CAP_VALUE = (
    "JPM", "BAC", "GS", "MS", "V", "MA",
    "JNJ", "PFE", "UNH", "ABBV",
    "XOM", "CVX", "SLB",
    "WMT", "TGT", "HD", "NKE", "SBUX",
    "CAT", "MMM", "GE",
    "T", "VZ",
    "DUK", "SO", "NEE",
    "PG", "KO", "PEP",
)

MID_CAP_VALUE = (
    "ALLY", "KEY", "CF", "MOS", "AA", "CLF", "X", "APA",
    "DVN", "MRO", "HAL", "BAX", "VTRS", "F", "GM",
)

SECTOR_ETFS = (
    "XLK", "XLF", "XLE", "XLV", "XLI", "XLY",
    "XLP", "XLU", "XLB", "XLRE", "XLC",
)

PENNY_STOCKS_LIQUID = (
    "BBBY", "SUNW", "PLUG", "CLSK", "RIOT", "MARA", "SOS", "EBON",
    "GNUS", "NNDM", "IDEX", "WKHS", "RIDE", "XPEV", "NIO", "SNDL",
    "TLRY", "CGC", "ACB", "CRON", "OCGN", "BNGO", "ZOM", "SENS",
    "GEVO", "FCEL", "NCTY", "AMC", "GME", "BB", "NAKD", "KOSS",
)

CRYPTO_EXPOSED = ("COIN", "MSTR", "MARA", "RIOT", "CLSK", "HUT")

REITS = ("O", "VNQ", "SPG", "PLD", "AMT", "CCI")


def dedupe(*groups: Iterable[str]) -> tuple[str, ...]:
    """Concatenate symbol groups, keeping the first occurrence of each symbol."""
    return tuple(dict.fromkeys(symbol for group in groups for symbol in group))


STOCK_UNIVERSE = dedupe(
    LARGE_CAP_GROWTH,
    LARGE_CAP_VALUE,
    MID_CAP_VALUE,
    SECTOR_ETFS,
    PENNY_STOCKS_LIQUID,
    CRYPTO_EXPOSED,
    REITS,
)

UNIVERSE_BY_STRATEGY = MappingProxyType(
    {
        "CAN SLIM": dedupe(LARGE_CAP_GROWTH, MID_CAP_VALUE),
        "Technical Momentum": STOCK_UNIVERSE,
        "Composite Rating": dedupe(LARGE_CAP_GROWTH, LARGE_CAP_VALUE, MID_CAP_VALUE),
        "Penny Sniper": PENNY_STOCKS_LIQUID,
        "Value Sleeper": dedupe(LARGE_CAP_VALUE, MID_CAP_VALUE, REITS),
        "Alpha Predator": dedupe(LARGE_CAP_GROWTH, LARGE_CAP_VALUE, MID_CAP_VALUE),
    }
)


def get_universe(algorithm: str) -> tuple[str, ...]:
    """
    Return the candidate symbols for an algorithm.

    Raises:
        UnknownAlgorithmError: If no universe is defined for ``algorithm``.
    """
    try:
        return UNIVERSE_BY_STRATEGY[algorithm]
    except KeyError:
        raise UnknownAlgorithmError(algorithm, UNIVERSE_BY_STRATEGY) from None


def get_full_universe() -> tuple[str, ...]:
    """Return every symbol in any strategy universe, first occurrence first."""
    return dedupe(*UNIVERSE_BY_STRATEGY.values())
