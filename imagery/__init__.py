"""
Imagery — Himawari full-disk acquisition

- Asks the metadata endpoint for the latest image timestamp
- Fetches every tile of a level×level grid concurrently (workers.Manager),
  with an on-disk tile cache consulted before each remote fetch
- Assembles tiles into one bitmap and persists it as
  `himawari_{level}d_{YYYYmmddHHMMSS}.png`
- Optionally fetches the coastline overlay and alpha-composites it onto an
  acquired image

Entry point:
    python -m imagery.service --level 4 --coastline
"""
from .errors import (
    AcquisitionError,
    DecodeFailed,
    MergeFailed,
    MetadataUnavailable,
    PersistFailed,
    TileFetchFailed,
)
from .pipeline import ImagePipeline

__all__ = [
    "ImagePipeline",
    "AcquisitionError",
    "MetadataUnavailable",
    "TileFetchFailed",
    "DecodeFailed",
    "PersistFailed",
    "MergeFailed",
]
