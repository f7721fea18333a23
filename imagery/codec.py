from __future__ import annotations

import os
import tempfile
from pathlib import Path

import cv2
import numpy as np


def _to_uint8(img: np.ndarray) -> np.ndarray:
    if img.dtype == np.uint8:
        return img
    if img.dtype == np.uint16:
        return (img >> 8).astype(np.uint8)
    raise ValueError(f"unsupported sample type {img.dtype}")


def _imdecode(data: bytes, flags: int) -> np.ndarray:
    try:
        img = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), flags)
    except cv2.error as e:
        raise ValueError(f"not a decodable image: {e}") from None
    if img is None:
        raise ValueError("not a decodable image")
    return img


def decode_bgr(data: bytes) -> np.ndarray:
    """Decode any OpenCV-supported raster to an (H,W,3) uint8 BGR array."""
    if not data:
        raise ValueError("empty payload")
    return _imdecode(data, cv2.IMREAD_COLOR)


def decode_bgra(data: bytes) -> np.ndarray:
    """Decode keeping transparency; returns (H,W,4) uint8 BGRA (opaque if source has no alpha)."""
    if not data:
        raise ValueError("empty payload")
    img = _imdecode(data, cv2.IMREAD_UNCHANGED)
    img = _to_uint8(img)
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2BGRA)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2BGRA)
    if img.shape[2] == 4:
        return img
    raise ValueError(f"unsupported channel count {img.shape[2]}")


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", img)
    if not ok:
        raise ValueError("PNG encode failed")
    return buf.tobytes()


def read_image(path: str | os.PathLike, *, alpha: bool = False) -> np.ndarray:
    with open(path, "rb") as f:
        data = f.read()
    return decode_bgra(data) if alpha else decode_bgr(data)


def write_atomic(path: str | os.PathLike, data: bytes) -> Path:
    """Write bytes to `path` via a sibling temp file + rename."""
    dst = Path(path)
    dst.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{dst.stem}.", suffix=".part", dir=dst.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, dst)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    return dst
