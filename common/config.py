from __future__ import annotations

import copy
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from common.types import TILE_SIZE


DEFAULT_CONFIG_PATH = "config/params.yaml"

DEFAULTS: Dict[str, Any] = {
    "source": {
        "latest_url": "https://himawari8-dl.nict.go.jp/himawari8/img/D531106/latest.json",
        "tile_url": "https://himawari8.nict.go.jp/img/D531106/{level}d/{tile_size}/{stamp}_{x}_{y}.png",
        "coastline_url": "https://himawari8-dl.nict.go.jp/himawari8/img/D531106/coastline/ff0000/{level}d/{tile_size}/{x}_{y}.png",
        "tile_size": TILE_SIZE,
        "timeout_s": 30.0,
    },
    "retry": {"max_attempts": 5, "cooldown_s": 1.0},
    "fetch": {"max_concurrency": 0},
    "cache": {"dir": "", "purge_tiles": False},
    "logging": {"level": "INFO"},
}


def _deep_merge(base: Dict[str, Any], over: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (over or {}).items():
        if isinstance(out.get(k), dict):
            if not isinstance(v, dict):
                raise ValueError(f"config section {k!r} must be a mapping, got {type(v).__name__}")
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load YAML config and merge it over DEFAULTS.

    Path precedence: explicit arg, env HIMAWARI_CONFIG, config/params.yaml.
    A missing file yields the defaults; a malformed one raises.
    """
    path = path or os.environ.get("HIMAWARI_CONFIG") or DEFAULT_CONFIG_PATH
    if not Path(path).exists():
        return copy.deepcopy(DEFAULTS)
    with open(path, "r") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"config {path} must be a mapping, got {type(loaded).__name__}")
    return _deep_merge(DEFAULTS, loaded)


@dataclass
class Settings:
    """Typed view over the config dict used by the pipeline and CLI."""
    latest_url: str
    tile_url: str
    coastline_url: str
    tile_size: int = TILE_SIZE
    timeout_s: float = 30.0
    max_attempts: int = 5
    cooldown_s: float = 1.0
    max_concurrency: int = 0
    cache_dir: Path = Path(tempfile.gettempdir()) / "himawari"
    purge_tiles: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.tile_size <= 0:
            raise ValueError("tile_size must be > 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.cooldown_s < 0:
            raise ValueError("cooldown_s must be >= 0")
        if self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self.cache_dir = Path(self.cache_dir).expanduser()

    @classmethod
    def from_dict(cls, P: Dict[str, Any]) -> "Settings":
        P = _deep_merge(DEFAULTS, P)
        src, retry, cache = P["source"], P["retry"], P["cache"]
        cache_dir = cache.get("dir") or (Path(tempfile.gettempdir()) / "himawari")
        return cls(
            latest_url=str(src["latest_url"]),
            tile_url=str(src["tile_url"]),
            coastline_url=str(src["coastline_url"]),
            tile_size=int(src["tile_size"]),
            timeout_s=float(src["timeout_s"]),
            max_attempts=int(retry["max_attempts"]),
            cooldown_s=float(retry["cooldown_s"]),
            max_concurrency=int(P["fetch"].get("max_concurrency") or 0),
            cache_dir=Path(cache_dir),
            purge_tiles=bool(cache.get("purge_tiles", False)),
            log_level=str(P["logging"].get("level", "INFO")),
        )

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Settings":
        return cls.from_dict(load_config(path))
