"""
Unit tests for overlay recolouring and alpha compositing
"""

import os
import sys

import numpy as np
import pytest

project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.utils import parse_rgba_hex, rgba_hex
from imagery.overlay import alpha_over, recolor


class TestAlphaOver:
    def test_transparent_keeps_base_and_opaque_takes_overlay(self):
        base = np.random.default_rng(0).integers(0, 256, (6, 6, 3), dtype=np.uint8)
        ov = np.zeros((6, 6, 4), dtype=np.uint8)
        ov[2, 3] = (10, 20, 30, 255)
        out = alpha_over(base, ov)

        expected = base.copy()
        expected[2, 3] = (10, 20, 30)
        assert np.array_equal(out, expected)

    def test_half_alpha_blends(self):
        base = np.zeros((1, 1, 3), dtype=np.uint8)
        ov = np.array([[[200, 100, 0, 128]]], dtype=np.uint8)
        out = alpha_over(base, ov)
        assert out[0, 0].tolist() == [100, 50, 0]

    def test_size_mismatch(self):
        with pytest.raises(ValueError, match="size mismatch"):
            alpha_over(np.zeros((4, 4, 3), np.uint8), np.zeros((5, 5, 4), np.uint8))

    def test_channel_checks(self):
        with pytest.raises(ValueError):
            alpha_over(np.zeros((4, 4, 4), np.uint8), np.zeros((4, 4, 4), np.uint8))
        with pytest.raises(ValueError):
            alpha_over(np.zeros((4, 4, 3), np.uint8), np.zeros((4, 4, 3), np.uint8))


class TestRecolor:
    def test_only_visible_pixels_change(self):
        ov = np.zeros((3, 3, 4), dtype=np.uint8)
        ov[1, 1] = (0, 0, 255, 40)
        out = recolor(ov, (0, 255, 0, 255))
        assert out[1, 1].tolist() == [0, 255, 0, 255]  # BGRA
        assert (out[0, 0] == 0).all()
        assert ov[1, 1].tolist() == [0, 0, 255, 40]  # input untouched

    def test_none_is_a_copy(self):
        ov = np.ones((2, 2, 4), dtype=np.uint8)
        out = recolor(ov, None)
        assert np.array_equal(out, ov) and out is not ov


class TestColourParsing:
    def test_parse(self):
        assert parse_rgba_hex("ff0000ff") == (255, 0, 0, 255)
        assert parse_rgba_hex("#00ff0080") == (0, 255, 0, 128)

    @pytest.mark.parametrize("bad", ["ff0000", "zz0000ff", "ff0000ff00"])
    def test_parse_rejects(self, bad):
        with pytest.raises(ValueError):
            parse_rgba_hex(bad)

    def test_hex_roundtrip_name(self):
        assert rgba_hex((255, 255, 0, 255)) == "ffff00ff"
