from __future__ import annotations

from typing import Iterable, Optional, Tuple

from common.types import GridCoord


class AcquisitionError(Exception):
    """Base class for failures surfaced by an acquisition run."""


class MetadataUnavailable(AcquisitionError):
    """The latest-image metadata could not be fetched within the retry bound."""


class TileFetchFailed(AcquisitionError):
    """One or more tiles exhausted their retries; nothing was persisted."""

    def __init__(self, coords: Iterable[GridCoord], level: Optional[int] = None):
        self.coords: Tuple[GridCoord, ...] = tuple(sorted(coords, key=lambda c: (c.x, c.y)))
        self.level = level
        shown = ", ".join(str(c) for c in self.coords[:8])
        more = f" (+{len(self.coords) - 8} more)" if len(self.coords) > 8 else ""
        super().__init__(f"{len(self.coords)} tile(s) failed: {shown}{more}")


class DecodeFailed(AcquisitionError):
    """Payload was retrieved but is not a valid tile image."""

    def __init__(self, coord: Optional[GridCoord], detail: str = ""):
        self.coord = coord
        where = f" at {coord}" if coord is not None else ""
        super().__init__(f"decode failed{where}" + (f": {detail}" if detail else ""))


class PersistFailed(AcquisitionError):
    """Encoding or writing the composed image failed."""


class MergeFailed(AcquisitionError):
    """Overlay could not be composited onto the base image."""
