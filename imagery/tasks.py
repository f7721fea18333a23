from __future__ import annotations

import json
from typing import Callable

import numpy as np

from common.logging_setup import get_logger
from common.types import LatestInfo, TileIdentity
from common.utils import parse_latest_date
from imagery.cache import TileCache
from imagery.codec import decode_bgr, decode_bgra
from imagery.errors import DecodeFailed
from imagery.source import HimawariSource
from workers.work import Work


log = get_logger(__name__)


def _check_status(status: int, what: str) -> None:
    if status != 200:
        raise RuntimeError(f"{what}: status code {status}")


class MetadataWork(Work):
    """Fetch and parse the latest-image announcement."""

    def __init__(self, source: HimawariSource, *, max_attempts: int = 5):
        self.source = source
        self.max_attempts = max_attempts

    @property
    def name(self) -> str:
        return "latest-info"

    def execute(self) -> LatestInfo:
        status, body = self.source.latest_info_bytes()
        _check_status(status, self.source.latest_url)
        doc = json.loads(body)
        if not isinstance(doc, dict) or "date" not in doc:
            raise ValueError(f"unexpected latest info: {body[:200]!r}")
        return LatestInfo(timestamp=parse_latest_date(str(doc["date"])), file=str(doc.get("file", "")))


class TileWork(Work):
    """
    Produce the decoded image of one timestamped tile.

    Each call first tries the cache; an entry that does not decode is deleted
    and the tile is fetched again. Remote payloads are only cached once they
    decode to a tile_size×tile_size image.
    """

    decoder: Callable[[bytes], np.ndarray] = staticmethod(decode_bgr)
    timestamped = True

    def __init__(
        self,
        ident: TileIdentity,
        source: HimawariSource,
        cache: TileCache,
        *,
        tile_size: int,
        max_attempts: int = 5,
    ):
        if ident.static == self.timestamped:
            kind = "with" if self.timestamped else "without"
            raise ValueError(f"{type(self).__name__} needs an identity {kind} a timestamp")
        self.ident = ident
        self.source = source
        self.cache = cache
        self.tile_size = int(tile_size)
        self.max_attempts = max_attempts

    @property
    def name(self) -> str:
        return str(self.ident)

    @property
    def coord(self):
        return self.ident.coord

    def execute(self) -> np.ndarray:
        if self.cache.exists(self.ident):
            data = self.cache.read(self.ident)
            try:
                return self._decode(data)
            except DecodeFailed as e:
                log.warning("cached tile unreadable, refetching", extra={"extra": {"key": self.ident.cache_key, "error": str(e)}})
                self.cache.delete(self.ident)

        status, data = self._fetch()
        _check_status(status, self.name)
        img = self._decode(data)
        self.cache.write(self.ident, data)
        return img

    def _fetch(self):
        c = self.ident.coord
        return self.source.tile_bytes(self.ident.level, c.x, c.y, self.ident.timestamp, self.tile_size)

    def _decode(self, data: bytes) -> np.ndarray:
        try:
            img = self.decoder(data)
        except ValueError as e:
            raise DecodeFailed(self.ident.coord, str(e)) from e
        if img.shape[:2] != (self.tile_size, self.tile_size):
            raise DecodeFailed(
                self.ident.coord,
                f"expected {self.tile_size}x{self.tile_size}, got {img.shape[1]}x{img.shape[0]}",
            )
        return img


class OverlayTileWork(TileWork):
    """Coastline tile: timestamp-invariant, decoded with its alpha channel."""

    decoder = staticmethod(decode_bgra)
    timestamped = False

    def _fetch(self):
        c = self.ident.coord
        return self.source.coastline_bytes(self.ident.level, c.x, c.y, self.tile_size)
