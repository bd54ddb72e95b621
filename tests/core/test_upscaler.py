"""Tests for the upscaled grid cache."""

import logging

import numpy as np
import pytest

from imodval.core.grid import ConstantGrid
from imodval.core.upscaler import GridUpscaler
from tests.helpers.fake_grids import make_grid

pytestmark = pytest.mark.unit


class TestGridUpscaler:

    def test_finer_or_equal_cellsize_returns_source(self):
        grid = make_grid(np.zeros((4, 4)))
        upscaler = GridUpscaler(grid)
        assert upscaler.get(None) is grid
        assert upscaler.get(100) is grid
        assert upscaler.get(50) is grid

    def test_upscaled_grid_is_cached(self, caplog):
        grid = make_grid(np.arange(16, dtype=float).reshape(4, 4), name="heads")
        upscaler = GridUpscaler(grid, "maximum")
        with caplog.at_level(logging.INFO):
            first = upscaler.get(200)
            second = upscaler.get(200)
        assert first is second
        assert first.values[0, 0] == 5
        assert caplog.text.count("Scaled heads to cellsize 200") == 1
        assert upscaler.cellsizes == [200]

    def test_release_keeps_source(self):
        grid = make_grid(np.zeros((4, 4)))
        upscaler = GridUpscaler(grid)
        coarse = upscaler.get(200)
        upscaler.release()
        assert coarse.is_released
        assert not grid.is_released
        assert upscaler.cellsizes == []

    def test_constant_grid(self):
        constant = ConstantGrid(1.0)
        assert GridUpscaler(constant).get(500) is constant
