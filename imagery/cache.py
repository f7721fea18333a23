from __future__ import annotations

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict

from common.logging_setup import get_logger
from common.types import TileIdentity
from common.utils import stamp_key
from imagery.codec import write_atomic


log = get_logger(__name__)


class TileCache:
    """
    On-disk cache of raw tile payloads keyed by TileIdentity.cache_key.

        root/
          └─ {level}d/
              ├─ {YYYYmmddHHMMSS}/{x}_{y}.png   (timestamped tiles)
              └─ coastline/{x}_{y}.png          (timestamp-invariant overlay)

    Writes go to a temp file in the target directory and are renamed into
    place, so readers never see a half-written tile and concurrent writers of
    the same key leave one complete copy.
    """

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root)

    # -------- public API --------

    def path(self, ident: TileIdentity) -> Path:
        return self.root / ident.cache_key

    def exists(self, ident: TileIdentity) -> bool:
        p = self.path(ident)
        return p.exists() and p.is_file()

    def read(self, ident: TileIdentity) -> bytes:
        with self.path(ident).open("rb") as f:
            return f.read()

    def write(self, ident: TileIdentity, data: bytes) -> Path:
        return write_atomic(self.path(ident), data)

    def delete(self, ident: TileIdentity) -> bool:
        try:
            self.path(ident).unlink()
        except FileNotFoundError:
            return False
        log.info("cache entry invalidated", extra={"extra": {"key": ident.cache_key}})
        return True

    def purge(self, level: int, timestamp: datetime) -> int:
        """Remove every cached tile of one (level, timestamp); returns files removed."""
        d = self.root / f"{int(level)}d" / stamp_key(timestamp)
        if not d.is_dir():
            return 0
        n = sum(1 for p in d.iterdir() if p.is_file())
        shutil.rmtree(d)
        log.info("purged tile cache", extra={"extra": {"dir": str(d), "files": n}})
        return n

    def stats(self) -> Dict[str, int]:
        if not self.root.exists():
            return {"levels": 0, "tiles": 0}
        levels = [d for d in self.root.iterdir() if d.is_dir() and d.name.endswith("d")]
        return {
            "levels": len(levels),
            "tiles": sum(1 for d in levels for _ in d.rglob("*.png")),
        }
