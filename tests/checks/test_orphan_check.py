"""Tests for the orphan check."""

import numpy as np
import pytest

from imodval.cancellation import CancellationToken
from imodval.checks import ORPHAN_WARNING, OrphanCheck
from imodval.core.grid import Grid
from imodval.errors import CheckCancelled, ConfigurationError
from tests.helpers.fake_grids import FakeGridStore, make_grid, make_orphan_grid

pytestmark = pytest.mark.unit


class TestOrphanCheck:
    """Orphan detection over whole grids."""

    def test_single_orphan(self, internal_config):
        layer = OrphanCheck(internal_config, make_orphan_grid(size=5)).run()

        assert len(layer.details) == 1
        detail = layer.details[0]
        assert (detail.x, detail.y) == (250, 250)
        assert detail.value == 5.0
        assert "Orphan value 5 in area of 10" in detail.message
        assert layer.results_at(250, 250) == [ORPHAN_WARNING]
        assert layer.results_at(50, 50) == []

    def test_uniform_grid_has_no_orphans(self, internal_config):
        layer = OrphanCheck(internal_config, make_grid(np.full((4, 4), 3.0))).run()
        assert layer.details == []
        assert not layer.has_results()

    def test_setting_grid_from_store(self, make_config):
        margin = Grid.full((0, 0, 500, 500), 100, 100.0, name="margin")
        store = FakeGridStore({"margin.nc": margin})
        config = make_config(orphan={"min_difference": "margin.nc"})

        layer = OrphanCheck(config, make_orphan_grid(size=5), grid_store=store).run()

        assert layer.details == []
        assert margin.is_released

    def test_missing_setting_grid(self, make_config):
        config = make_config(orphan={"min_difference": "missing.nc"})
        check = OrphanCheck(config, make_orphan_grid(), grid_store=FakeGridStore())
        with pytest.raises(ConfigurationError, match="not found"):
            check.run()

    def test_grid_path_is_loaded_and_released(self, internal_config):
        grid = make_orphan_grid()
        store = FakeGridStore({"heads.nc": grid})
        layer = OrphanCheck(internal_config, "heads.nc", grid_store=store).run()
        assert layer.source == "heads.nc"
        assert len(layer.details) == 1
        assert grid.is_released

    def test_grid_path_without_store(self, internal_config):
        with pytest.raises(ConfigurationError, match="No grid store"):
            OrphanCheck(internal_config, "heads.nc").run()

    def test_clip_extent_outside_orphan(self, make_config):
        config = make_config(CLIP_EXTENT=(0, 0, 200, 200))
        layer = OrphanCheck(config, make_orphan_grid(size=5)).run()
        assert layer.details == []

    def test_disjoint_clip_extent_skips_check(self, make_config):
        config = make_config(CLIP_EXTENT=(1000, 1000, 2000, 2000))
        layer = OrphanCheck(config, make_orphan_grid(size=5)).run()
        assert layer.grid is None
        assert layer.details == []

    def test_coarser_analysis_cellsize(self, make_config):
        config = make_config(orphan={"cellsize": 200})
        layer = OrphanCheck(config, make_grid(np.full((10, 10), 1.0))).run()
        assert layer.grid.xcellsize == 200
        assert (layer.grid.rows, layer.grid.cols) == (5, 5)

    def test_cancelled(self, internal_config):
        token = CancellationToken()
        token.cancel()
        check = OrphanCheck(internal_config, make_orphan_grid(), cancel_token=token)
        with pytest.raises(CheckCancelled):
            check.run()

    def test_finer_setting_grid_flags_every_position(self, make_config):
        margin = make_grid(np.full((10, 10), 0.1), cellsize=50, name="margin")
        store = FakeGridStore({"margin.nc": margin})
        config = make_config(orphan={"min_difference": "margin.nc"})

        layer = OrphanCheck(config, make_orphan_grid(size=5), grid_store=store).run()

        assert layer.grid.xcellsize == 50
        for x, y in [(225, 275), (275, 275), (225, 225), (275, 225)]:
            assert layer.results_at(x, y) == [ORPHAN_WARNING]
        assert len(layer.details) == 1
        assert (layer.details[0].x, layer.details[0].y) == (250, 250)

    def test_finer_setting_grid_values_apply_per_position(self, make_config):
        values = np.full((10, 10), 0.1)
        values[4, 5] = 10.0  # the sub-cell at (275, 275)
        store = FakeGridStore({"margin.nc": make_grid(values, cellsize=50, name="margin")})
        config = make_config(orphan={"min_difference": "margin.nc"})

        layer = OrphanCheck(config, make_orphan_grid(size=5), grid_store=store).run()

        assert layer.results_at(275, 275) == []
        assert layer.results_at(225, 275) == [ORPHAN_WARNING]
        assert layer.results_at(275, 225) == [ORPHAN_WARNING]
        assert len(layer.details) == 1

    @pytest.mark.parametrize("level, expected", [(0.0, 0), (1.0, 1)])
    def test_recursive_level_from_setting_grid(self, make_config, level, expected):
        store = FakeGridStore({"level.nc": Grid.full((0, 0, 500, 500), 100, level)})
        config = make_config(orphan={"min_most_occurring_count": 9,
                                     "max_recursive_level": "level.nc"})

        layer = OrphanCheck(config, make_orphan_grid(size=5), grid_store=store).run()

        assert len(layer.details) == expected

    def test_default_name_follows_grid(self, internal_config):
        assert OrphanCheck(internal_config, make_orphan_grid()).name == "orphan_orphan"
        assert OrphanCheck(internal_config, "data/heads.nc").name == "orphan_heads"
        assert OrphanCheck(internal_config, "heads.nc", name="mine").name == "mine"
