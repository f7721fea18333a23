from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

import cv2
import numpy as np

from common.config import Settings
from common.logging_setup import get_logger
from common.types import LatestInfo, TileIdentity, WorkResult, check_level, grid
from common.utils import rgba_hex, stamp_key
from imagery.assembler import TileAssembler
from imagery.cache import TileCache
from imagery.codec import encode_png, read_image, write_atomic
from imagery.errors import DecodeFailed, MergeFailed, MetadataUnavailable, PersistFailed, TileFetchFailed
from imagery.overlay import Rgba, alpha_over, recolor
from imagery.source import HimawariSource
from imagery.tasks import MetadataWork, OverlayTileWork, TileWork
from workers.manager import Manager


log = get_logger("imagery.pipeline")


def image_filename(level: int, timestamp: datetime) -> str:
    return f"himawari_{int(level)}d_{stamp_key(timestamp)}.png"


def overlay_filename(level: int, color: Optional[Rgba] = None) -> str:
    suffix = "" if color is None else f"_{rgba_hex(color)}"
    return f"coastline_{int(level)}d{suffix}.png"


def merged_filename(base_path: Path) -> Path:
    return base_path.with_name(f"{base_path.stem}_coastline.png")


class ImagePipeline:
    """
    Entry points for image, overlay and merge. Calls share no mutable state
    besides the on-disk cache, so several acquisitions may run side by side.

    Stages of `fetch_image`:
      1) existing output for (level, timestamp)? -> return it, no network
      2) one TileWork per grid cell -> Manager, await all
      3) place every decoded tile into the canvas
      4) encode PNG, write atomically, optionally purge the per-tile cache
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        source: Optional[HimawariSource] = None,
        cache_dir: Optional[str | os.PathLike] = None,
        on_tile: Optional[Callable[[WorkResult], None]] = None,
    ):
        self.settings = settings or Settings.load()
        self.source = source or HimawariSource.from_settings(self.settings)
        self.cache_dir = Path(cache_dir) if cache_dir else self.settings.cache_dir
        self.on_tile = on_tile

    # -------- public API --------

    def latest_timestamp(self) -> LatestInfo:
        m = self._manager("latest")
        m.submit(MetadataWork(self.source, max_attempts=self.settings.max_attempts))
        if not m.await_all():
            err = m.failed()[0].error
            log.error("latest info unavailable", extra={"extra": {"url": self.source.latest_url, "error": repr(err)}})
            raise MetadataUnavailable(f"fetch latest info from {self.source.latest_url} failed: {err!r}") from err
        info = m.results()[0].payload
        log.info("latest version", extra={"extra": info.to_meta()})
        return info

    def acquire_image(self, level: int, cache_dir: Optional[str | os.PathLike] = None) -> Path:
        info = self.latest_timestamp()
        return self.fetch_image(level, info.timestamp, cache_dir)

    def fetch_image(self, level: int, timestamp: datetime, cache_dir: Optional[str | os.PathLike] = None) -> Path:
        level = check_level(level)
        root = self._root(cache_dir)
        out = root / image_filename(level, timestamp)
        if out.is_file():
            log.info("image already present", extra={"extra": {"path": str(out)}})
            return out

        cache = TileCache(root)
        works = [
            TileWork(
                TileIdentity(level, c, timestamp),
                self.source,
                cache,
                tile_size=self.settings.tile_size,
                max_attempts=self.settings.max_attempts,
            )
            for c in grid(level)
        ]
        canvas = self._fetch_and_assemble(level, works, channels=3, cache=cache)
        self._persist(out, canvas)
        if self.settings.purge_tiles:
            cache.purge(level, timestamp)
        return out

    def acquire_overlay(
        self,
        level: int,
        color: Optional[Rgba] = None,
        cache_dir: Optional[str | os.PathLike] = None,
    ) -> Path:
        level = check_level(level)
        root = self._root(cache_dir)
        out = root / overlay_filename(level, color)
        if out.is_file():
            log.info("overlay already present", extra={"extra": {"path": str(out)}})
            return out

        cache = TileCache(root)
        works = [
            OverlayTileWork(
                TileIdentity(level, c),
                self.source,
                cache,
                tile_size=self.settings.tile_size,
                max_attempts=self.settings.max_attempts,
            )
            for c in grid(level)
        ]
        canvas = self._fetch_and_assemble(level, works, channels=4, cache=cache)
        self._persist(out, recolor(canvas, color))
        return out

    def merge_overlay(self, base_path: str | os.PathLike, overlay_path: str | os.PathLike) -> Path:
        """Alpha-composite the overlay image onto the base image; returns the new file."""
        base_path = Path(base_path)
        out = merged_filename(base_path)
        try:
            base = read_image(base_path)
            overlay = read_image(overlay_path, alpha=True)
        except (OSError, ValueError) as e:
            raise MergeFailed(f"cannot read images for merge: {e}") from e
        try:
            merged = alpha_over(base, overlay)
        except ValueError as e:
            raise MergeFailed(str(e)) from e
        self._persist(out, merged)
        return out

    # -------- internals --------

    def _root(self, cache_dir: Optional[str | os.PathLike]) -> Path:
        root = Path(cache_dir) if cache_dir else self.cache_dir
        root.mkdir(parents=True, exist_ok=True)
        return root

    def _manager(self, name: str, on_done: Optional[Callable[[WorkResult], None]] = None) -> Manager:
        return Manager(
            cooldown_s=self.settings.cooldown_s,
            max_concurrency=self.settings.max_concurrency,
            on_done=on_done,
            name=name,
        )

    def _fetch_and_assemble(self, level: int, works: List[TileWork], *, channels: int, cache: TileCache) -> np.ndarray:
        m = self._manager(f"tiles-{level}d", on_done=self.on_tile)
        log.info("fetching tiles", extra={"extra": {"level": level, "tiles": len(works)}})
        for w in works:
            m.submit(w)
        if not m.await_all():
            failed = [w.work for w in m.workers if not w.result.ok]
            coords = [w.coord for w in failed]
            raise TileFetchFailed(coords, level=level)

        asm = TileAssembler(level, self.settings.tile_size, channels=channels)
        for worker in m.workers:
            work = worker.work
            try:
                asm.place(work.coord, worker.result.payload)
            except ValueError as e:
                cache.delete(work.ident)
                raise DecodeFailed(work.coord, str(e)) from e
        return asm.image()

    def _persist(self, out: Path, img: np.ndarray) -> None:
        try:
            write_atomic(out, encode_png(img))
        except (OSError, ValueError, cv2.error) as e:
            log.error("persist failed", extra={"extra": {"path": str(out), "error": repr(e)}})
            raise PersistFailed(f"store image to {out} failed: {e}") from e
        log.info("image saved", extra={"extra": {"path": str(out), "width": img.shape[1], "height": img.shape[0]}})
