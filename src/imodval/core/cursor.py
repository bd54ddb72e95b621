"""Lock-step iteration over several grids.

The cursor walks a common iteration grid, the shared extent of all
participating grids at the finest cell size, in row-major order (north to
south, west to east). At every step the value of each grid is read at the
cursor's world coordinate, so coarser grids return the value of the cell
that contains the cursor position and are never interpolated.

Typical use::

    cursor = MultiGridCursor(clip_extent=area)
    cursor.add_grid(grid)
    cursor.add_grid(setting_grid)
    cursor.reset()
    if cursor.is_empty_extent():
        logger.warning("No overlap, skipping")
    while cursor.is_inside_extent():
        value = cursor.get_cell_value(grid)
        ...
        cursor.move_next()
"""

import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

import numpy as np

from imodval.contracts import require
from imodval.core.extent import Extent
from imodval.errors import FatalProcessingError

if TYPE_CHECKING:
    from imodval.cancellation import CancellationToken
    from imodval.core.grid import Grid

logger = logging.getLogger(__name__)

__all__ = ["ExtentMethod", "MultiGridCursor"]


class ExtentMethod(str, Enum):
    """How the iteration extent is derived from the grid extents."""
    MIN = "min"      # intersection
    MAX = "max"      # union
    FIRST = "first"  # extent of the first non-constant grid


class MultiGridCursor:
    """Cursor over the shared extent of N grids.

    Parameters
    ----------
    clip_extent : Extent or tuple, optional
        Area of interest; the iteration extent never exceeds it.
    nan_for_nodata : bool
        If True, NoData cells are read as NaN instead of each grid's own
        NoData sentinel.
    extent_method : ExtentMethod or str
        Intersection (default), union or first grid extent.
    cancel_token : CancellationToken, optional
        Polled on every ``move_next()``.
    extent_tolerance : float
        Tolerance used by ``check_extent()`` when comparing extents.

    Notes
    -----
    The cursor is single-threaded and not reentrant. It holds references to
    its grids but does not own them: releasing grids is up to the caller.
    """

    def __init__(self, clip_extent=None, nan_for_nodata: bool = False,
                 extent_method=ExtentMethod.MIN,
                 cancel_token: Optional["CancellationToken"] = None,
                 extent_tolerance: float = 1e-6):
        if clip_extent is not None and not isinstance(clip_extent, Extent):
            clip_extent = Extent(*clip_extent)
        self.clip_extent = clip_extent
        self.nan_for_nodata = nan_for_nodata
        self.extent_method = ExtentMethod(extent_method)
        self.cancel_token = cancel_token
        self.extent_tolerance = extent_tolerance

        self._grids: List["Grid"] = []
        self._is_reset = False
        self.extent: Optional[Extent] = None
        self.xstep = math.nan
        self.ystep = math.nan
        self.rows = 0
        self.cols = 0
        self.row = 0
        self.col = 0

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @property
    def grids(self) -> List["Grid"]:
        return list(self._grids)

    def add_grid(self, grid: Optional["Grid"]) -> None:
        """Register a grid. None and already registered grids are ignored."""
        if grid is None or any(g is grid for g in self._grids):
            return
        self._grids.append(grid)
        self._is_reset = False

    def _spatial_grids(self) -> List["Grid"]:
        return [g for g in self._grids if not g.is_constant]

    @property
    def min_extent(self) -> Optional[Extent]:
        """Intersection of all non-constant grid extents."""
        extent = None
        for grid in self._spatial_grids():
            extent = grid.extent if extent is None else extent.intersect(grid.extent)
        return extent

    @property
    def max_extent(self) -> Optional[Extent]:
        """Union of all non-constant grid extents."""
        extent = None
        for grid in self._spatial_grids():
            extent = grid.extent if extent is None else extent.union(grid.extent)
        return extent

    def _iteration_extent(self) -> Optional[Extent]:
        if self.extent_method is ExtentMethod.MAX:
            extent = self.max_extent
        elif self.extent_method is ExtentMethod.FIRST:
            spatial = self._spatial_grids()
            extent = spatial[0].extent if spatial else None
        else:
            extent = self.min_extent

        if extent is None:
            return self.clip_extent
        if self.clip_extent is not None:
            extent = extent.intersect(self.clip_extent)
        return extent

    def reset(self) -> None:
        """Compute iteration extent and step, and rewind to the first cell.

        Raises
        ------
        FatalProcessingError
            If the grids produce a non-finite or non-positive step size.
        """
        spatial = self._spatial_grids()
        self.extent = self._iteration_extent()

        if spatial:
            self.xstep = min(g.xcellsize for g in spatial)
            self.ystep = min(g.ycellsize for g in spatial)
        else:
            self.xstep = self.ystep = math.nan

        self.row = 0
        self.col = 0
        self._is_reset = True

        if self.is_empty_extent():
            self.rows = self.cols = 0
            logger.debug("Cursor reset on empty extent %s", self.extent)
            return

        if not (math.isfinite(self.xstep) and math.isfinite(self.ystep)
                and self.xstep > 0 and self.ystep > 0):
            raise FatalProcessingError(
                f"Invalid iteration step ({self.xstep}, {self.ystep}) for "
                f"grids {[g.name for g in spatial]}"
            )

        # partially covered cells at the east/south edge are still visited
        self.cols = int(math.ceil(self.extent.width / self.xstep - 1e-9))
        self.rows = int(math.ceil(self.extent.height / self.ystep - 1e-9))
        logger.debug("Cursor reset: extent=%s, step=(%s, %s), %d rows x %d cols",
                     self.extent, self.xstep, self.ystep, self.rows, self.cols)

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def is_empty_extent(self) -> bool:
        return self.extent is None or self.extent.is_empty()

    def is_inside_extent(self) -> bool:
        require(self._is_reset, "Cursor contract violated: reset() must be "
                                "called after adding grids")
        return self.rows > 0 and self.row < self.rows

    def move_next(self) -> bool:
        """Advance one cell; returns ``is_inside_extent()``."""
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
        self.col += 1
        if self.col >= self.cols:
            self.col = 0
            self.row += 1
        return self.is_inside_extent()

    @property
    def steps(self) -> int:
        return self.rows * self.cols

    @property
    def x(self) -> float:
        return self.extent.xmin + (self.col + 0.5) * self.xstep

    @property
    def y(self) -> float:
        return self.extent.ymax - (self.row + 0.5) * self.ystep

    def __iter__(self):
        """Reset and yield the (x, y) of every cell."""
        self.reset()
        while self.is_inside_extent():
            yield self.x, self.y
            self.move_next()

    # ------------------------------------------------------------------
    # Reading values
    # ------------------------------------------------------------------

    def _require_registered(self, grid: "Grid") -> None:
        require(any(g is grid for g in self._grids),
                f"Cursor contract violated: grid '{grid.name}' was not added "
                f"to the cursor")

    def get_cell_value(self, grid: Optional["Grid"]) -> float:
        """Value of ``grid`` at the cursor position.

        Returns NaN for a missing (None) grid. NoData is returned as the
        grid's own sentinel, or NaN when ``nan_for_nodata`` is set.
        """
        if grid is None:
            return math.nan
        self._require_registered(grid)
        if self.nan_for_nodata:
            return grid.get_nan_value(self.x, self.y)
        return grid.get_value(self.x, self.y)

    def get_cell_values(self, grid: "Grid", radius: int,
                        precision: Optional[int] = None) -> np.ndarray:
        """``(2*radius+1)**2`` window of ``grid`` cells around the cursor.

        The window is taken in the grid's own cells; cells outside the grid
        are NoData (or NaN).
        """
        self._require_registered(grid)
        return grid.get_cell_values(self.x, self.y, radius, precision,
                                    nan_for_nodata=self.nan_for_nodata)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def check_extent(self, log: Optional[logging.Logger] = None) -> bool:
        """Log extent and cell size mismatches between the grids.

        Iteration behaviour is not changed. Returns True when all grids
        share the same extent and all cell sizes are multiples of the step.
        """
        log = log or logger
        spatial = self._spatial_grids()
        if not spatial:
            return True
        names = ", ".join(g.name for g in spatial)
        consistent = True

        min_extent = self.min_extent
        max_extent = self.max_extent
        if min_extent.is_empty():
            log.warning("Grids do not have an overlapping extent: %s", names)
            consistent = False
        elif all(g.extent.equals(spatial[0].extent, self.extent_tolerance)
                 for g in spatial):
            log.info("Grids have equal extent %s: %s", min_extent, names)
        else:
            log.warning("Grids have different extents. Min extent: %s, "
                        "max extent: %s (%s)", min_extent, max_extent, names)
            consistent = False

        xstep = min(g.xcellsize for g in spatial)
        ystep = min(g.ycellsize for g in spatial)
        for grid in spatial:
            for size, step in ((grid.xcellsize, xstep), (grid.ycellsize, ystep)):
                ratio = size / step
                if abs(ratio - round(ratio)) > 1e-6:
                    log.warning("Cellsize %s of grid '%s' is not a multiple of "
                                "the iteration step %s", size, grid.name, step)
                    consistent = False
        return consistent
