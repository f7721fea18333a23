"""
Shared fixtures: an in-memory stand-in for HimawariSource and small settings.
"""

import json
import os
import sys
import threading
from collections import Counter
from datetime import datetime, timezone

import cv2
import numpy as np
import pytest

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from common.config import Settings


TS = datetime(2016, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def tile_pixels(level, x, y, tile_size):
    """Deterministic BGR content for one tile."""
    rng = np.random.default_rng(level * 10_000 + x * 100 + y)
    return rng.integers(0, 256, size=(tile_size, tile_size, 3), dtype=np.uint8)


def png(img):
    ok, buf = cv2.imencode(".png", img)
    assert ok
    return buf.tobytes()


class FakeSource:
    """
    Drop-in for HimawariSource.

    fail: {(x, y): n} -> first n fetches of that tile return 500 (n < 0: always)
    garbage: set of (x, y) whose payload is not an image
    coastline: optional {(x, y): BGRA ndarray}; missing cells are transparent
    """

    latest_url = "http://fake/latest.json"

    def __init__(self, tile_size=8, *, timestamp=TS, fail=None, garbage=None,
                 latest_failures=0, coastline=None, delay_s=0.0):
        self.tile_size = tile_size
        self.timestamp = timestamp
        self.fail = dict(fail or {})
        self.garbage = set(garbage or ())
        self.latest_failures = latest_failures
        self.coastline = dict(coastline or {})
        self.delay_s = delay_s
        self.calls = Counter()
        self._lock = threading.Lock()

    @property
    def total_calls(self):
        with self._lock:
            return sum(self.calls.values())

    def _count(self, key):
        with self._lock:
            self.calls[key] += 1
            return self.calls[key]

    def latest_info_bytes(self):
        n = self._count("latest")
        if n <= self.latest_failures or self.latest_failures < 0:
            return 503, b""
        body = {"date": self.timestamp.strftime("%Y-%m-%d %H:%M:%S"), "file": "PI_H08_20160101_1200_TRC_FLDK_R10_PGPFD.png"}
        return 200, json.dumps(body).encode()

    def tile_bytes(self, level, x, y, timestamp, tile_size):
        assert tile_size == self.tile_size
        n = self._count(("tile", level, x, y))
        if self.delay_s:
            threading.Event().wait(self.delay_s)
        budget = self.fail.get((x, y), 0)
        if budget < 0 or n <= budget:
            return 500, b"oops"
        if (x, y) in self.garbage:
            return 200, b"<html>not a png</html>"
        return 200, png(tile_pixels(level, x, y, tile_size))

    def coastline_bytes(self, level, x, y, tile_size):
        self._count(("coastline", level, x, y))
        img = self.coastline.get((x, y))
        if img is None:
            img = np.zeros((tile_size, tile_size, 4), dtype=np.uint8)
        return 200, png(img)


def reference_image(level, tile_size):
    """Direct decode-and-place of every tile, for byte comparisons."""
    side = level * tile_size
    ref = np.zeros((side, side, 3), dtype=np.uint8)
    for x in range(level):
        for y in range(level):
            tile = cv2.imdecode(np.frombuffer(png(tile_pixels(level, x, y, tile_size)), np.uint8), cv2.IMREAD_COLOR)
            ref[y * tile_size:(y + 1) * tile_size, x * tile_size:(x + 1) * tile_size] = tile
    return ref


@pytest.fixture
def settings(tmp_path):
    return Settings(
        latest_url=FakeSource.latest_url,
        tile_url="http://fake/{level}d/{tile_size}/{stamp}_{x}_{y}.png",
        coastline_url="http://fake/coastline/{level}d/{tile_size}/{x}_{y}.png",
        tile_size=8,
        timeout_s=5.0,
        max_attempts=3,
        cooldown_s=0.0,
        cache_dir=tmp_path / "cache",
    )


@pytest.fixture
def fake_source():
    return FakeSource(tile_size=8)
