from __future__ import annotations

from typing import Optional, Tuple

import numpy as np


Rgba = Tuple[int, int, int, int]


def recolor(overlay_bgra: np.ndarray, rgba: Optional[Rgba]) -> np.ndarray:
    """
    Paint every non-transparent overlay pixel with one solid RGBA colour.
    Fully transparent pixels are left untouched. Returns a new array.
    """
    if overlay_bgra.ndim != 3 or overlay_bgra.shape[2] != 4:
        raise ValueError("overlay must be (H,W,4) BGRA")
    out = overlay_bgra.copy()
    if rgba is None:
        return out
    r, g, b, a = (int(c) for c in rgba)
    mask = overlay_bgra[..., 3] > 0
    out[mask] = (b, g, r, a)
    return out


def alpha_over(base_bgr: np.ndarray, overlay_bgra: np.ndarray) -> np.ndarray:
    """
    Composite overlay onto base (Porter-Duff "over" with an opaque base):
        out = (ov * a + base * (255 - a) + 127) // 255
    Exact for a == 0 (base kept) and a == 255 (overlay kept).
    """
    if base_bgr.ndim != 3 or base_bgr.shape[2] != 3:
        raise ValueError("base must be (H,W,3) BGR")
    if overlay_bgra.ndim != 3 or overlay_bgra.shape[2] != 4:
        raise ValueError("overlay must be (H,W,4) BGRA")
    if base_bgr.shape[:2] != overlay_bgra.shape[:2]:
        raise ValueError(
            f"size mismatch: base {base_bgr.shape[1]}x{base_bgr.shape[0]}, "
            f"overlay {overlay_bgra.shape[1]}x{overlay_bgra.shape[0]}"
        )
    a = overlay_bgra[..., 3:4].astype(np.uint32)
    ov = overlay_bgra[..., :3].astype(np.uint32)
    base = base_bgr.astype(np.uint32)
    out = (ov * a + base * (255 - a) + 127) // 255
    return out.astype(np.uint8)
