from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from common.utils import stamp_key


VALID_LEVELS = (4, 8, 16, 20)
TILE_SIZE = 550


def check_level(level: int) -> int:
    if int(level) not in VALID_LEVELS:
        raise ValueError(f"unsupported level {level}; choose one of {list(VALID_LEVELS)}")
    return int(level)


@dataclass(frozen=True, slots=True)
class GridCoord:
    """One cell of an N×N tile grid; x is the column, y the row."""
    x: int
    y: int

    def __post_init__(self) -> None:
        if self.x < 0 or self.y < 0:
            raise ValueError("grid coordinates must be >= 0")

    def __str__(self) -> str:
        return f"({self.x},{self.y})"


def grid(level: int) -> Iterator[GridCoord]:
    """All coordinates of a level×level grid, column-major like the remote naming."""
    check_level(level)
    for x in range(level):
        for y in range(level):
            yield GridCoord(x, y)


@dataclass(frozen=True, slots=True)
class TileIdentity:
    """
    Remote-fetch key and local cache key of one tile.

    Attributes:
        level: grid edge length in tiles.
        coord: cell in the grid.
        timestamp: image time (UTC); None for timestamp-invariant assets such
            as the coastline overlay.
    """
    level: int
    coord: GridCoord
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        check_level(self.level)
        if self.coord.x >= self.level or self.coord.y >= self.level:
            raise ValueError(f"coordinate {self.coord} outside {self.level}x{self.level} grid")

    @property
    def static(self) -> bool:
        return self.timestamp is None

    @property
    def cache_key(self) -> str:
        folder = "coastline" if self.timestamp is None else stamp_key(self.timestamp)
        return f"{self.level}d/{folder}/{self.coord.x}_{self.coord.y}.png"

    def __str__(self) -> str:
        kind = "coastline" if self.timestamp is None else stamp_key(self.timestamp)
        return f"{self.level}d:{kind}:{self.coord.x}_{self.coord.y}"


@dataclass(frozen=True, slots=True)
class LatestInfo:
    """Latest published image as announced by the metadata endpoint."""
    timestamp: datetime
    file: str = ""

    def to_meta(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "file": self.file}


class WorkState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"

    @property
    def terminal(self) -> bool:
        return self is not WorkState.PENDING


@dataclass(slots=True)
class WorkResult:
    """
    Terminal outcome of one Work driven by a Worker.

    Attributes:
        name: identity of the work.
        state: SUCCEEDED or EXHAUSTED.
        payload: what `execute()` returned on the successful attempt.
        error: last error seen (None on success).
        attempts: number of `execute()` calls made.
        elapsed_s: wall time across all attempts, cooldowns included.
    """
    name: str
    state: WorkState
    payload: Any = None
    error: Optional[BaseException] = None
    attempts: int = 0
    elapsed_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.state is WorkState.SUCCEEDED

    def to_meta(self) -> Dict[str, Any]:
        """Loggable view (no payload)."""
        return {
            "name": self.name,
            "state": self.state.value,
            "attempts": self.attempts,
            "elapsed_ms": int(self.elapsed_s * 1000),
            "error": None if self.error is None else repr(self.error),
        }
