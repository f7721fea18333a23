#!/usr/bin/env python3
"""
Integration test against the live NICT Himawari service.

Opt in with:
    HIMAWARI_LIVE=1 python -m pytest tests/integration
"""

import os
import sys

import cv2
import pytest

project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.config import Settings
from imagery.pipeline import ImagePipeline

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(os.getenv("HIMAWARI_LIVE") != "1", reason="set HIMAWARI_LIVE=1 to hit the network"),
]


def test_latest_timestamp_and_level4_image(tmp_path):
    settings = Settings.from_dict({"cache": {"dir": str(tmp_path)}, "retry": {"cooldown_s": 2}})
    pipe = ImagePipeline(settings)

    info = pipe.latest_timestamp()
    assert info.timestamp.year >= 2015

    out = pipe.fetch_image(4, info.timestamp)
    img = cv2.imread(str(out), cv2.IMREAD_COLOR)
    assert img is not None
    assert img.shape == (550 * 4, 550 * 4, 3)
