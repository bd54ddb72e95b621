"""Orphan cell detection.

An orphan is a cell whose value differs from its surroundings while it is
not part of a larger contiguous region of the same value: an isolated
anomaly rather than a genuine feature such as a narrow river or a zone
boundary.

Per cell the analysis

1. skips NoData cells,
2. finds the most occurring value in the neighbourhood window (excluding
   NaN, NoData and the cell's own value),
3. stops when the difference with that value is below the margin,
4. stops when the cell value lies strictly between the neighbourhood
   minimum and maximum (smoothly varying values are valid),
5. grows two connection sets by conditional dilation of bounded depth:
   cells equal to the cell value ("main") and cells equal to the most
   occurring value,
6. flags the cell when few main connections, many most-occurring
   connections and few other values were found.

All indices are (row, col) in the analysed grid's own cells.
"""

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Set, Tuple

import numpy as np
from scipy.ndimage import binary_dilation

from imodval.core.cell_utils import is_excluded, min_max_value, most_occurring_value

if TYPE_CHECKING:
    from imodval.core.cursor import MultiGridCursor
    from imodval.core.grid import Grid

logger = logging.getLogger(__name__)

__all__ = ["OrphanParams", "OrphanAnalysis", "ConnectivityAnalyzer"]


@dataclass(frozen=True)
class OrphanParams:
    """Plain numeric parameters of the orphan analysis.

    Attributes
    ----------
    radius : int
        Neighbourhood radius in cells.
    max_recursive_level : int
        Number of hops the fill may take beyond the origin window; 0 limits
        the connection sets to the origin window.
    precision : int
        Decimals used when comparing values.
    max_main_connection_count : int
        Maximum number of cells connected with the cell's own value.
    min_most_occurring_count : int
        Minimum number of cells connected with the most occurring value.
    max_other_value_count : int
        Maximum number of distinct other values in the origin window.
    value_margin : float
        Differences below this margin are not meaningful.
    """
    radius: int = 1
    max_recursive_level: int = 1
    precision: int = 2
    max_main_connection_count: int = 2
    min_most_occurring_count: int = 4
    max_other_value_count: int = 1
    value_margin: float = 0.1


@dataclass(frozen=True)
class OrphanAnalysis:
    """Outcome of the analysis of one cell."""
    is_orphan: bool
    value: float
    most_occurring_value: Optional[float] = None
    main_connection_count: int = 0
    most_occurring_connection_count: int = 0
    other_value_count: int = 0
    reason: str = ""


class ConnectivityAnalyzer:
    """Stateless orphan detection over a grid."""

    def analyze(self, cursor: Optional["MultiGridCursor"], grid: "Grid",
                x: float, y: float, params: OrphanParams) -> OrphanAnalysis:
        """Analyse the cell of ``grid`` containing (x, y).

        Parameters
        ----------
        cursor : MultiGridCursor, optional
            Cursor whose NoData convention (sentinel or NaN) is used. May be
            None when the grid is analysed outside a cursor loop.
        grid : Grid
            Grid to analyse.
        x, y : float
            World coordinate of the cell.
        params : OrphanParams
            Thresholds.

        Returns
        -------
        OrphanAnalysis
        """
        nan_for_nodata = cursor.nan_for_nodata if cursor is not None else False
        index = grid.index_of(x, y)
        if index is None:
            return OrphanAnalysis(False, math.nan, reason="outside grid")

        precision = params.precision
        value = grid.get_value(x, y)
        if value == grid.nodata:
            return OrphanAnalysis(False, math.nan, reason="nodata")
        value = float(np.round(value, precision))

        nodata = np.nan if nan_for_nodata else grid.nodata
        excluded = (math.nan, grid.nodata, value)

        window = grid.get_cell_values(x, y, params.radius, precision,
                                      nan_for_nodata=nan_for_nodata)
        neighbours = self._without_centre(window, params.radius)

        mo_value = most_occurring_value(neighbours, excluded)
        if mo_value is None:
            return OrphanAnalysis(False, value, reason="no neighbours")

        if abs(value - mo_value) < params.value_margin:
            return OrphanAnalysis(False, value, mo_value,
                                  reason="difference below margin")

        min_value, max_value = min_max_value(neighbours, excluded)
        if min_value < value < max_value:
            return OrphanAnalysis(False, value, mo_value,
                                  reason="between neighbourhood min and max")

        other_values = set()
        for v in neighbours:
            if not is_excluded(float(v), (math.nan, nodata, value, mo_value)):
                other_values.add(float(v))

        main = self._connected_cells(grid, index, value, params, nan_for_nodata)
        most = self._connected_cells(grid, index, mo_value, params, nan_for_nodata)

        is_orphan = (len(main) <= params.max_main_connection_count
                     and len(most) >= params.min_most_occurring_count
                     and len(other_values) <= params.max_other_value_count)
        return OrphanAnalysis(is_orphan, value, mo_value, len(main), len(most),
                              len(other_values),
                              reason="orphan" if is_orphan else "connected")

    def is_orphan_cell(self, cursor: Optional["MultiGridCursor"], grid: "Grid",
                       x: float, y: float, params: OrphanParams) -> bool:
        """True if the cell of ``grid`` at (x, y) is an orphan."""
        return self.analyze(cursor, grid, x, y, params).is_orphan

    @staticmethod
    def _without_centre(window: np.ndarray, radius: int) -> np.ndarray:
        flat = window.ravel()
        centre = radius * window.shape[1] + radius
        return np.delete(flat, centre)

    def _connected_cells(self, grid: "Grid", origin: Tuple[int, int],
                         target: float, params: OrphanParams,
                         nan_for_nodata: bool) -> Set[Tuple[int, int]]:
        """Cells with value ``target`` reachable from the origin window.

        Target cells in the origin window seed a conditional dilation that
        grows ``max_recursive_level`` times by the window footprint through
        target cells only. The origin cell itself never counts as a
        connection.
        """
        radius = params.radius
        levels = params.max_recursive_level
        reach = radius * (levels + 1)
        row, col = origin

        window = grid.get_window(row, col, reach, nan_for_nodata)
        mask = np.round(window, params.precision) == target

        seed = np.zeros_like(mask)
        inner = slice(reach - radius, reach + radius + 1)
        seed[inner, inner] = mask[inner, inner]

        # iterations < 1 would dilate until the mask stops changing
        if levels > 0:
            footprint = np.ones((2 * radius + 1, 2 * radius + 1), dtype=bool)
            seed = binary_dilation(seed, structure=footprint, iterations=levels,
                                   mask=mask)
        seed[reach, reach] = False

        rows, cols = np.nonzero(seed)
        return {(row + int(i) - reach, col + int(j) - reach) for i, j in zip(rows, cols)}
