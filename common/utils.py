from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Tuple


LATEST_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_latest_date(s: str) -> datetime:
    """Parse the metadata endpoint's 'YYYY-mm-dd HH:MM:SS' (UTC) date."""
    return datetime.strptime(s, LATEST_DATE_FORMAT).replace(tzinfo=timezone.utc)


def stamp_key(ts: datetime) -> str:
    """Compact timestamp used in file names: 20160101120000."""
    return ts.strftime("%Y%m%d%H%M%S")


def stamp_path(ts: datetime) -> str:
    """Timestamp as it appears in remote tile URLs: 2016/01/01/120000."""
    return ts.strftime("%Y/%m/%d/%H%M%S")


def parse_rgba_hex(s: str) -> Tuple[int, int, int, int]:
    """
    'ff0000ff' -> (255, 0, 0, 255). A leading '#' is accepted.
    """
    s = s.strip().lstrip("#")
    if len(s) != 8:
        raise ValueError(f"colour must be 8 hex digits RRGGBBAA, got {s!r}")
    try:
        raw = bytes.fromhex(s)
    except ValueError as e:
        raise ValueError(f"invalid colour {s!r}: {e}") from None
    return raw[0], raw[1], raw[2], raw[3]


def rgba_hex(rgba: Tuple[int, int, int, int]) -> str:
    return "".join(f"{int(c) & 0xFF:02x}" for c in rgba)


def elapsed_ms(t0: float) -> int:
    """Milliseconds since a `time.perf_counter()` reading."""
    return int((time.perf_counter() - t0) * 1e3)
