"""
JSON artifact persistence shared by the pick, backtest and audit reports.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from stock_picks.exceptions import ReportWriteError

PathLike = Union[str, Path]


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Return an ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-05T14:30:00.000Z."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now.isoformat(timespec="milliseconds") + "Z"


def write_json(path: PathLike, payload: Any, overwrite: bool = True) -> Path:
    """
    Write a JSON artifact, creating parent directories.

    Args:
        path: Destination file.
        payload: JSON-serializable data.
        overwrite: If False, an existing file is an error.

    Returns:
        The written path.

    Raises:
        ReportWriteError: If the file exists and ``overwrite`` is False, or
            the write fails.
    """
    path = Path(path)
    if not overwrite and path.exists():
        raise ReportWriteError(f"Refusing to overwrite existing artifact: {path}")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
            f.write("\n")
    except (OSError, TypeError, ValueError) as e:
        raise ReportWriteError(f"Failed to write {path}: {e}") from e

    return path


def read_json(path: PathLike) -> Any:
    """
    Read a JSON artifact.

    Raises:
        ReportWriteError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ReportWriteError(f"Failed to read {path}: {e}") from e
