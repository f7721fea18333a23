from __future__ import annotations

"""
Himawari fetch service: one-shot or daemon.

Examples:
  # latest 4x4 image into the cache dir, linked at /tmp/himawari.png
  python -m imagery.service --level 4 --output /tmp/himawari.png

  # 8x8 with a yellow coastline, refreshed every 10 minutes
  python -m imagery.service --level 8 --coastline --color ffff00ff \
      --daemon --tick 600 --pid /tmp/himawari.pid
"""

import argparse
import os
import shutil
import signal
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml

from common.config import Settings, load_config
from common.logging_setup import get_logger, setup_logging
from common.types import VALID_LEVELS
from common.utils import parse_rgba_hex
from imagery.errors import AcquisitionError
from imagery.overlay import Rgba
from imagery.pipeline import ImagePipeline


log = get_logger("imagery.service")


def link_output(image: Path, output: Path) -> None:
    """Point `output` at `image` (symlink; copy where symlinks are unavailable)."""
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.is_symlink() or output.exists():
        output.unlink()
    try:
        os.symlink(image.resolve(), output)
    except OSError:
        shutil.copyfile(image, output)


class FetchService:
    """
    Glue around ImagePipeline: coastline once, then image (+ merge) per
    timestamp. The coastline overlay path is owned here and handed to
    `merge_overlay` explicitly.
    """

    def __init__(
        self,
        pipeline: ImagePipeline,
        level: int,
        output: Optional[Path] = None,
        *,
        coastline: bool = False,
        color: Optional[Rgba] = None,
    ):
        self.pipeline = pipeline
        self.level = level
        self.output = output
        self.coastline = coastline
        self.color = color
        self.overlay_path: Optional[Path] = None
        self.latest: Optional[datetime] = None

    def prepare(self) -> None:
        if self.coastline and self.overlay_path is None:
            self.overlay_path = self.pipeline.acquire_overlay(self.level, self.color)

    def refresh(self, force: bool = False) -> Optional[Path]:
        """Fetch when the announced timestamp moved; returns the new image path or None."""
        info = self.pipeline.latest_timestamp()
        if not force and self.latest is not None and info.timestamp == self.latest:
            log.debug("no new image", extra={"extra": {"timestamp": info.timestamp.isoformat()}})
            return None
        image = self.pipeline.fetch_image(self.level, info.timestamp)
        if self.overlay_path is not None:
            image = self.pipeline.merge_overlay(image, self.overlay_path)
        if self.output is not None:
            link_output(image, self.output)
        self.latest = info.timestamp
        log.info("current image", extra={"extra": {"path": str(image), "output": str(self.output or "")}})
        return image

    def run_forever(self, tick_s: float, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                self.refresh()
            except (AcquisitionError, OSError) as e:
                log.error("refresh failed", extra={"extra": {"error": str(e)}})
            stop.wait(tick_s)


def _build_settings(args: argparse.Namespace) -> Settings:
    P = load_config(args.config)
    if args.retry is not None:
        P["retry"]["max_attempts"] = args.retry
    if args.timeout is not None:
        P["source"]["timeout_s"] = args.timeout
    if args.cache:
        P["cache"]["dir"] = args.cache
    return Settings.from_dict(P)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Fetch the latest Himawari-8 full-disk image")
    ap.add_argument("--config", default=None, help="YAML config (default: $HIMAWARI_CONFIG or config/params.yaml)")
    ap.add_argument("--level", type=int, default=4, choices=VALID_LEVELS, help="Grid edge in tiles (image size)")
    ap.add_argument("--cache", default="", help="Cache/output directory")
    ap.add_argument("--output", default=str(Path(tempfile.gettempdir()) / "himawari.png"),
                    help="Path linked to the current image ('' to skip)")
    ap.add_argument("--retry", type=int, default=None, help="Attempts per request")
    ap.add_argument("--timeout", type=float, default=None, help="HTTP timeout in seconds")
    ap.add_argument("--coastline", action="store_true", help="Draw the coastline overlay")
    ap.add_argument("--color", default="", help="Coastline colour RRGGBBAA hex (default: as served)")
    ap.add_argument("--daemon", action="store_true", help="Keep running and refresh on new timestamps")
    ap.add_argument("--tick", type=float, default=300.0, help="Daemon poll period in seconds")
    ap.add_argument("--pid", default="", help="Write the process id to this file (daemon only)")
    return ap


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = _build_settings(args)
        color = parse_rgba_hex(args.color) if args.color else None
    except (ValueError, yaml.YAMLError) as e:
        log.error("bad configuration", extra={"extra": {"error": str(e)}})
        return 2
    setup_logging(settings.log_level, force=True)

    pipeline = ImagePipeline(settings)
    svc = FetchService(
        pipeline,
        args.level,
        Path(args.output) if args.output else None,
        coastline=args.coastline,
        color=color,
    )
    try:
        if args.daemon:
            return _run_daemon(svc, args)
        return _run_once(svc)
    finally:
        pipeline.source.close()


def _run_once(svc: FetchService) -> int:
    try:
        svc.prepare()
        image = svc.refresh(force=True)
    except (AcquisitionError, OSError) as e:
        log.error("acquisition failed", extra={"extra": {"error": str(e)}})
        return 1
    print(image)
    return 0


def _run_daemon(svc: FetchService, args: argparse.Namespace) -> int:
    if args.pid:
        try:
            Path(args.pid).write_text(str(os.getpid()))
        except OSError as e:
            log.error("failed to write pid file", extra={"extra": {"path": args.pid, "error": str(e)}})
            return 1

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        svc.prepare()
    except (AcquisitionError, OSError) as e:
        log.error("coastline unavailable", extra={"extra": {"error": str(e)}})
        return 1
    log.info("daemon started", extra={"extra": {"level": args.level, "tick_s": args.tick}})
    try:
        svc.run_forever(args.tick, stop)
    except KeyboardInterrupt:
        stop.set()
    finally:
        if args.pid:
            Path(args.pid).unlink(missing_ok=True)
    log.info("daemon stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
