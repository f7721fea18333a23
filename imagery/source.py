from __future__ import annotations

"""
HTTP adapter for the NICT Himawari-8 image service.

The adapter only builds URLs and performs GETs; status validation and
decoding belong to the work units so that every failure goes through the
same retry loop.

Usage:
    src = HimawariSource.from_settings(settings)
    status, body = src.latest_info_bytes()
    status, png = src.tile_bytes(level=4, x=0, y=1, timestamp=ts, tile_size=550)
"""

from datetime import datetime
from typing import Optional, Tuple

import requests

from common.config import Settings
from common.logging_setup import get_logger
from common.utils import stamp_path


log = get_logger(__name__)

USER_AGENT = "himawari-fetch/0.3"


class HimawariSource:
    def __init__(
        self,
        latest_url: str,
        tile_url: str,
        coastline_url: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Params:
            latest_url: JSON endpoint announcing the latest image
            tile_url: template with {level} {tile_size} {stamp} {x} {y}
            coastline_url: template with {level} {tile_size} {x} {y}
            timeout: per-request timeout in seconds
            session: optional requests.Session for connection reuse
        """
        self.latest_url = latest_url
        self.tile_url = tile_url
        self.coastline_url = coastline_url
        self.timeout = float(timeout)
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "HimawariSource":
        return cls(
            settings.latest_url,
            settings.tile_url,
            settings.coastline_url,
            timeout=settings.timeout_s,
            session=session,
        )

    # ----------------------------
    # URL builders
    # ----------------------------
    def build_tile_url(self, level: int, x: int, y: int, timestamp: datetime, tile_size: int) -> str:
        return self.tile_url.format(level=int(level), tile_size=int(tile_size), stamp=stamp_path(timestamp), x=int(x), y=int(y))

    def build_coastline_url(self, level: int, x: int, y: int, tile_size: int) -> str:
        return self.coastline_url.format(level=int(level), tile_size=int(tile_size), x=int(x), y=int(y))

    # ----------------------------
    # Fetches: (status_code, body)
    # ----------------------------
    def latest_info_bytes(self) -> Tuple[int, bytes]:
        return self._get(self.latest_url)

    def tile_bytes(self, level: int, x: int, y: int, timestamp: datetime, tile_size: int) -> Tuple[int, bytes]:
        return self._get(self.build_tile_url(level, x, y, timestamp, tile_size))

    def coastline_bytes(self, level: int, x: int, y: int, tile_size: int) -> Tuple[int, bytes]:
        return self._get(self.build_coastline_url(level, x, y, tile_size))

    def close(self) -> None:
        self.session.close()

    def _get(self, url: str) -> Tuple[int, bytes]:
        r = self.session.get(url, timeout=self.timeout)
        log.debug("GET", extra={"extra": {"url": url, "status": r.status_code, "bytes": len(r.content or b"")}})
        return r.status_code, r.content
