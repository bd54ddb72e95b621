"""Orphan cell check.

Flags cells of a grid whose value differs from their surroundings while
they are not part of a larger region of the same value. The thresholds
can be numbers or setting grids with a value per cell; setting grids are
read through the same cursor as the checked grid.
"""

import logging
import math
from contextlib import ExitStack
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Union

import numpy as np

from imodval.checks.base import Check
from imodval.checks.results import ResultClass, ResultLayer
from imodval.core.connectivity import ConnectivityAnalyzer, OrphanParams
from imodval.core.cursor import MultiGridCursor
from imodval.core.grid import ConstantGrid, Grid
from imodval.core.upscaler import GridUpscaler
from imodval.errors import (
    ConfigurationError,
    DataQualityIssue,
    FatalProcessingError,
    report_issue,
)

if TYPE_CHECKING:
    from imodval.cancellation import CancellationToken
    from imodval.io.stores import GridStore
    from imodval.schemas.internal import InternalConfig

logger = logging.getLogger(__name__)

__all__ = ["ORPHAN_WARNING", "OrphanCheck"]

ORPHAN_WARNING = ResultClass(
    1, "Orphan cell",
    "Cell value differs from its surroundings without being part of a larger region",
)

SETTINGS = (
    "radius",
    "max_recursive_level",
    "max_main_connection_count",
    "min_most_occurring_count",
    "max_other_value_count",
    "min_difference",
)


class OrphanCheck(Check):
    """Orphan detection over one grid.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``orphan``, ``grid`` and ``cursor`` sections.
    grid : Grid or path
        Grid to check, or the path of a grid to load with ``grid_store``.
    grid_store : GridStore, optional
        Needed when ``grid`` or a threshold setting is a path.
    name : str, optional
        Check name used in results and logs. Defaults to ``orphan_``
        followed by the grid name or file stem.
    cancel_token : CancellationToken, optional
    """

    name = "orphan"

    def __init__(self, config: "InternalConfig", grid: Union[Grid, str, Path],
                 grid_store: Optional["GridStore"] = None, name: Optional[str] = None,
                 cancel_token: Optional["CancellationToken"] = None):
        super().__init__(config, cancel_token)
        self.grid = grid
        self.grid_store = grid_store
        if name:
            self.name = name
        elif isinstance(grid, Grid):
            self.name = f"{self.name}_{grid.name}"
        else:
            self.name = f"{self.name}_{Path(grid).stem}"

    @property
    def source_name(self) -> str:
        if isinstance(self.grid, Grid):
            return self.grid.name
        return str(self.grid)

    def _load(self, path, what: str, stack: ExitStack) -> Grid:
        if self.grid_store is None:
            raise ConfigurationError(f"No grid store to load {what} from {path}", self.name)
        grid = self.grid_store.load(path)
        if grid is None:
            raise ConfigurationError(f"{what} not found: {path}", self.name)
        stack.callback(grid.release_values)
        return grid

    def _setting_grids(self, stack: ExitStack) -> Dict[str, Grid]:
        cfg = self.config.orphan
        grids = {}
        for setting in SETTINGS:
            value = getattr(cfg, setting)
            if isinstance(value, str):
                grids[setting] = self._load(value, f"Setting grid '{setting}'", stack)
            else:
                grids[setting] = ConstantGrid(value, self.config.grid.nodata, name=setting)
        return grids

    def _cell_params(self, cursor: MultiGridCursor,
                     settings: Dict[str, Grid]) -> Optional[OrphanParams]:
        cfg = self.config.orphan
        values = {}
        for setting, grid in settings.items():
            value = cursor.get_cell_value(grid)
            if math.isnan(value) or value == grid.nodata:
                return None
            values[setting] = value
        if values["radius"] < 1 or values["max_recursive_level"] < 0:
            return None
        return OrphanParams(
            radius=int(values["radius"]),
            max_recursive_level=int(values["max_recursive_level"]),
            precision=cfg.precision,
            max_main_connection_count=int(values["max_main_connection_count"]),
            min_most_occurring_count=int(values["min_most_occurring_count"]),
            max_other_value_count=int(values["max_other_value_count"]),
            value_margin=max(cfg.level_error_margin, values["min_difference"]),
        )

    def run(self) -> ResultLayer:
        with ExitStack() as stack:
            if isinstance(self.grid, Grid):
                source = self.grid
            else:
                source = self._load(self.grid, "Grid", stack)

            upscaler = GridUpscaler(source, self.config.grid.upscale_method)
            stack.callback(upscaler.release)
            grid = upscaler.get(self.config.orphan.cellsize)
            settings = self._setting_grids(stack)

            cursor = MultiGridCursor(
                clip_extent=self.config.cursor.clip_extent,
                nan_for_nodata=self.config.grid.nan_for_nodata,
                extent_method=self.config.cursor.extent_method,
                cancel_token=self.cancel_token,
                extent_tolerance=self.config.grid.extent_tolerance,
            )
            cursor.add_grid(grid)
            for setting_grid in settings.values():
                cursor.add_grid(setting_grid)
            cursor.reset()

            if cursor.is_empty_extent():
                logger.warning("%s: no overlapping extent for %s, check skipped",
                               self.name, self.source_name)
                return ResultLayer(self.name, self.source_name)

            cursor.check_extent(logger)
            layer = ResultLayer(self.name, self.source_name, extent=cursor.extent,
                                cellsize=cursor.xstep, ycellsize=cursor.ystep)
            self._scan(cursor, grid, settings, layer)
            return layer

    def _scan(self, cursor: MultiGridCursor, grid: Grid, settings: Dict[str, Grid],
              layer: ResultLayer) -> None:
        analyzer = ConnectivityAnalyzer()
        # finer setting grids visit a cell more than once, with their own values
        checked = np.zeros((grid.rows, grid.cols), dtype=bool)
        reported = np.zeros((grid.rows, grid.cols), dtype=bool)
        missing_settings = 0
        orphans = 0

        while cursor.is_inside_extent():
            x, y = cursor.x, cursor.y
            index = grid.index_of(x, y)
            if index is not None:
                params = self._cell_params(cursor, settings)
                if params is None:
                    missing_settings += 1
                else:
                    checked[index] = True
                    try:
                        analysis = analyzer.analyze(cursor, grid, x, y, params)
                    except (ValueError, IndexError) as e:
                        raise FatalProcessingError(f"Orphan analysis failed: {e}",
                                                   path=self.source_name, x=x, y=y) from e
                    if analysis.is_orphan:
                        layer.add_result(x, y, ORPHAN_WARNING)
                        if not reported[index]:
                            reported[index] = True
                            orphans += 1
                            cx, cy = grid.cell_center(*index)
                            layer.add_detail(
                                cx, cy, ORPHAN_WARNING,
                                f"Orphan value {analysis.value:g} in area of "
                                f"{analysis.most_occurring_value:g}",
                                value=analysis.value,
                            )
            cursor.move_next()

        if missing_settings:
            report_issue(logger, DataQualityIssue(
                f"{missing_settings} position(s) without valid setting values "
                "were not checked",
                source=self.source_name,
            ))
        logger.info("%s: %d orphan cell(s) in %d checked cells of %s",
                    self.name, orphans, int(checked.sum()), self.source_name)
