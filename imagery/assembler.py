from __future__ import annotations

import threading
from typing import Set

import numpy as np

from common.types import GridCoord, check_level


class TileAssembler:
    """
    Composite level×level tiles into one (tile_size*level)² canvas.

    Each coordinate owns the disjoint block
        canvas[tile_size*y : tile_size*(y+1), tile_size*x : tile_size*(x+1)]
    and may be placed exactly once. Placing distinct coordinates from several
    threads is safe: the pixel copy touches only that block and the set of
    written coordinates is guarded by a lock.
    """

    def __init__(self, level: int, tile_size: int, channels: int = 3):
        self.level = check_level(level)
        self.tile_size = int(tile_size)
        if self.tile_size <= 0:
            raise ValueError("tile_size must be > 0")
        if channels not in (3, 4):
            raise ValueError("channels must be 3 (BGR) or 4 (BGRA)")
        self.channels = channels
        side = self.tile_size * self.level
        self.canvas = np.zeros((side, side, channels), dtype=np.uint8)
        self._written: Set[GridCoord] = set()
        self._lock = threading.Lock()

    @property
    def shape(self):
        return self.canvas.shape

    @property
    def complete(self) -> bool:
        with self._lock:
            return len(self._written) == self.level * self.level

    def missing(self) -> Set[GridCoord]:
        with self._lock:
            written = set(self._written)
        return {GridCoord(x, y) for x in range(self.level) for y in range(self.level)} - written

    def place(self, coord: GridCoord, tile: np.ndarray) -> None:
        """Overwrite the coordinate's block with `tile` (no blending)."""
        if not (0 <= coord.x < self.level and 0 <= coord.y < self.level):
            raise ValueError(f"coordinate {coord} outside {self.level}x{self.level} grid")
        if not isinstance(tile, np.ndarray) or tile.dtype != np.uint8:
            raise ValueError(f"tile at {coord} must be a uint8 ndarray")
        expected = (self.tile_size, self.tile_size, self.channels)
        if tile.shape != expected:
            raise ValueError(f"tile at {coord} has shape {tile.shape}, expected {expected}")

        with self._lock:
            if coord in self._written:
                raise ValueError(f"tile at {coord} already placed")
            self._written.add(coord)

        s = self.tile_size
        self.canvas[s * coord.y:s * (coord.y + 1), s * coord.x:s * (coord.x + 1)] = tile

    def image(self) -> np.ndarray:
        """The finished canvas; raises if any cell is still blank."""
        if not self.complete:
            raise ValueError(f"{len(self.missing())} tile(s) not placed")
        return self.canvas
