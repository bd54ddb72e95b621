"""Cache of upscaled versions of a grid.

Checks that compare grids at a coarser resolution ask the upscaler for
the grid at a given cell size. Each cell size is computed once per grid
and kept until ``release()``.
"""

import logging
from typing import TYPE_CHECKING, Dict

from imodval.core.grid import ResampleMethod

if TYPE_CHECKING:
    from imodval.core.grid import Grid

logger = logging.getLogger(__name__)

__all__ = ["GridUpscaler"]


class GridUpscaler:
    """Upscaled copies of one source grid, keyed by cell size."""

    def __init__(self, grid: "Grid", method=ResampleMethod.MOST_OCCURRING):
        self.grid = grid
        self.method = ResampleMethod(method)
        self._cache: Dict[float, "Grid"] = {}

    def get(self, cellsize: float) -> "Grid":
        """Grid at ``cellsize``; the source grid when it is not coarser."""
        if self.grid.is_constant or cellsize is None or cellsize <= self.grid.xcellsize:
            return self.grid
        if cellsize not in self._cache:
            self._cache[cellsize] = self.grid.resample(cellsize, self.method)
            logger.info("Scaled %s to cellsize %s with upscale method %s",
                        self.grid.name, cellsize, self.method.value)
        return self._cache[cellsize]

    @property
    def cellsizes(self):
        return sorted(self._cache)

    def release(self) -> None:
        """Release values of all cached grids; the source grid is untouched."""
        for grid in self._cache.values():
            grid.release_values()
        self._cache.clear()
