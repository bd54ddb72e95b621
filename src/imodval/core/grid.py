"""Raster grid abstraction used by all checks.

A grid has a fixed header (extent, cell size, NoData sentinel) and a value
array that can be modified and released. Row 0 is the north edge.

Grids can be very large (national scale), so the values of a grid that is
no longer needed must be released explicitly, either by calling
``release_values()`` or by using the grid as a context manager::

    with store.load(path) as grid:
        ...  # values are released on exit, header stays available
"""

import logging
import math
import numbers
import warnings
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from skimage.measure import block_reduce

from imodval.contracts import (
    ContractViolation,
    assert_grid_consistent,
    assert_values_loaded,
)
from imodval.core.cell_utils import most_occurring_value, round_values
from imodval.core.extent import Extent

logger = logging.getLogger(__name__)

__all__ = ["ResampleMethod", "Grid", "ConstantGrid"]


class ResampleMethod(str, Enum):
    """Resampling methods.

    Upscaling (coarser cells) uses one of the aggregating methods,
    downscaling (finer cells) always replicates blocks.
    """
    MOST_OCCURRING = "most_occurring"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    MEAN = "mean"
    BLOCK = "block"


_REDUCERS = {
    ResampleMethod.MINIMUM: np.nanmin,
    ResampleMethod.MAXIMUM: np.nanmax,
    ResampleMethod.MEAN: np.nanmean,
}


def _integer_factor(coarse: float, fine: float, tolerance: float = 1e-6) -> int:
    ratio = coarse / fine
    factor = int(round(ratio))
    if factor < 1 or abs(ratio - factor) > tolerance * max(1.0, ratio):
        raise ValueError(
            f"Cellsize {coarse} is not an integer multiple of cellsize {fine}"
        )
    return factor


class Grid:
    """Rectangular raster of float64 values.

    Parameters
    ----------
    values : array_like
        2D values, row 0 at the north edge. Not copied when already float64.
    extent : Extent or tuple
        (xmin, ymin, xmax, ymax).
    xcellsize : float
        Cell width.
    ycellsize : float, optional
        Cell height, defaults to ``xcellsize``.
    nodata : float
        NoData sentinel. NaN cells are treated as NoData as well.
    name : str, optional
        Name used in log messages and result details.

    Raises
    ------
    ContractViolation
        If the value shape does not match extent and cell size.
    """

    is_constant = False

    def __init__(self, values, extent, xcellsize: float,
                 ycellsize: Optional[float] = None, nodata: float = -9999.0,
                 name: Optional[str] = None):
        self.extent = extent if isinstance(extent, Extent) else Extent(*extent)
        self.xcellsize = float(xcellsize)
        self.ycellsize = float(ycellsize if ycellsize is not None else xcellsize)
        self.nodata = float(nodata)
        self.name = name or "grid"
        self._values = np.asarray(values, dtype=np.float64)
        assert_grid_consistent(self)
        self.rows, self.cols = self._values.shape

    @classmethod
    def full(cls, extent, xcellsize: float, value: float,
             ycellsize: Optional[float] = None, nodata: float = -9999.0,
             name: Optional[str] = None) -> "Grid":
        """Grid covering ``extent`` with every cell set to ``value``."""
        extent = extent if isinstance(extent, Extent) else Extent(*extent)
        ycellsize = xcellsize if ycellsize is None else ycellsize
        shape = (int(round(extent.height / ycellsize)),
                 int(round(extent.width / xcellsize)))
        return cls(np.full(shape, float(value)), extent, xcellsize, ycellsize,
                   nodata, name)

    # ------------------------------------------------------------------
    # Values and lifecycle
    # ------------------------------------------------------------------

    @property
    def values(self) -> np.ndarray:
        assert_values_loaded(self)
        return self._values

    @property
    def is_released(self) -> bool:
        return self._values is None

    def release_values(self) -> None:
        """Drop the value array; header metadata stays available."""
        if self._values is not None:
            logger.debug("Released values of grid '%s'", self.name)
        self._values = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release_values()
        return False

    def copy(self, name: Optional[str] = None) -> "Grid":
        return Grid(self.values.copy(), self.extent, self.xcellsize,
                    self.ycellsize, self.nodata, name or self.name)

    def is_nodata(self, value: float) -> bool:
        return value == self.nodata or math.isnan(value)

    # ------------------------------------------------------------------
    # Coordinate mapping
    # ------------------------------------------------------------------

    def _raw_index(self, x: float, y: float) -> Tuple[int, int]:
        col = int(math.floor((x - self.extent.xmin) / self.xcellsize))
        row = int(math.floor((self.extent.ymax - y) / self.ycellsize))
        return row, col

    def index_of(self, x: float, y: float) -> Optional[Tuple[int, int]]:
        """(row, col) of the cell containing (x, y), None outside the extent."""
        if not self.extent.contains(x, y):
            return None
        row, col = self._raw_index(x, y)
        # floating point division can land exactly on the far edge
        return min(row, self.rows - 1), min(col, self.cols - 1)

    def cell_center(self, row: int, col: int) -> Tuple[float, float]:
        return (self.extent.xmin + (col + 0.5) * self.xcellsize,
                self.extent.ymax - (row + 0.5) * self.ycellsize)

    def cell_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Meshgrids of x and y cell centre coordinates."""
        xs = self.extent.xmin + (np.arange(self.cols) + 0.5) * self.xcellsize
        ys = self.extent.ymax - (np.arange(self.rows) + 0.5) * self.ycellsize
        return np.meshgrid(xs, ys)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get_value(self, x: float, y: float) -> float:
        """Value at (x, y); the NoData sentinel outside the extent or on NoData."""
        index = self.index_of(x, y)
        if index is None:
            return self.nodata
        value = float(self.values[index])
        if math.isnan(value):
            return self.nodata
        return value

    def get_nan_value(self, x: float, y: float) -> float:
        """As get_value, but NaN instead of the NoData sentinel."""
        value = self.get_value(x, y)
        if value == self.nodata:
            return math.nan
        return value

    def set_value(self, x: float, y: float, value: float) -> bool:
        """Write a value; returns False (and logs) if (x, y) is outside the extent."""
        index = self.index_of(x, y)
        if index is None:
            logger.debug("set_value outside extent of grid '%s': (%s, %s)",
                         self.name, x, y)
            return False
        self.values[index] = value
        return True

    def get_window(self, row: int, col: int, radius: int,
                   nan_for_nodata: bool = False) -> np.ndarray:
        """Square ``(2*radius+1)**2`` window around (row, col).

        Cells outside the grid are NoData (NaN with ``nan_for_nodata``).
        """
        size = 2 * radius + 1
        fill = np.nan if nan_for_nodata else self.nodata
        window = np.full((size, size), fill, dtype=np.float64)

        r0, c0 = row - radius, col - radius
        rs, re = max(r0, 0), min(r0 + size, self.rows)
        cs, ce = max(c0, 0), min(c0 + size, self.cols)
        if rs < re and cs < ce:
            window[rs - r0:re - r0, cs - c0:ce - c0] = self.values[rs:re, cs:ce]

        if nan_for_nodata:
            window[window == self.nodata] = np.nan
        else:
            window[np.isnan(window)] = self.nodata
        return window

    def get_cell_values(self, x: float, y: float, radius: int,
                        precision: Optional[int] = None,
                        nan_for_nodata: bool = False) -> np.ndarray:
        """Window of cell values centred on the cell containing (x, y).

        Parameters
        ----------
        x, y : float
            World coordinate of the centre cell.
        radius : int
            Number of cells on each side of the centre cell.
        precision : int, optional
            Number of decimals to round to.
        nan_for_nodata : bool
            Return NaN instead of the NoData sentinel.

        Returns
        -------
        np.ndarray
            ``(2*radius+1, 2*radius+1)`` array, row 0 to the north.
        """
        row, col = self._raw_index(x, y)
        window = self.get_window(row, col, radius, nan_for_nodata)
        return round_values(window, precision)

    def sample(self, xs, ys, nan_for_nodata: bool = False) -> np.ndarray:
        """Vectorised get_value for arrays of coordinates."""
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        ext = self.extent
        inside = (xs >= ext.xmin) & (xs < ext.xmax) & (ys > ext.ymin) & (ys <= ext.ymax)

        result = np.full(xs.shape, self.nodata, dtype=np.float64)
        cols = np.floor((xs[inside] - ext.xmin) / self.xcellsize).astype(int)
        rows = np.floor((ext.ymax - ys[inside]) / self.ycellsize).astype(int)
        cols = np.clip(cols, 0, self.cols - 1)
        rows = np.clip(rows, 0, self.rows - 1)
        result[inside] = self.values[rows, cols]
        result[np.isnan(result)] = self.nodata

        if nan_for_nodata:
            result[result == self.nodata] = np.nan
        return result

    # ------------------------------------------------------------------
    # Resampling
    # ------------------------------------------------------------------

    def resample(self, cellsize: float, method=ResampleMethod.MOST_OCCURRING,
                 ycellsize: Optional[float] = None) -> "Grid":
        """Return a copy of this grid at another cell size.

        Parameters
        ----------
        cellsize : float
            Target cell width.
        method : ResampleMethod or str
            Aggregation used when upscaling. Downscaling always replicates
            blocks.
        ycellsize : float, optional
            Target cell height, defaults to ``cellsize``.

        Returns
        -------
        Grid
            New grid; this grid is not modified.

        Raises
        ------
        ValueError
            If the target cell size is not an integer multiple (or divisor)
            of the current one, or if one axis is upscaled while the other is
            downscaled.

        Notes
        -----
        NoData cells do not contribute to an aggregated cell; a coarse cell
        whose fine cells are all NoData becomes NoData. Edge blocks that are
        only partially covered are aggregated over the covered cells.
        """
        method = ResampleMethod(method)
        ycellsize = cellsize if ycellsize is None else ycellsize

        if cellsize == self.xcellsize and ycellsize == self.ycellsize:
            return self.copy()
        if cellsize >= self.xcellsize and ycellsize >= self.ycellsize:
            return self._upscale(cellsize, ycellsize, method)
        if cellsize <= self.xcellsize and ycellsize <= self.ycellsize:
            return self._downscale(cellsize, ycellsize)
        raise ValueError(
            f"Cannot upscale and downscale at once: ({self.xcellsize}, "
            f"{self.ycellsize}) -> ({cellsize}, {ycellsize})"
        )

    def _upscale(self, cellsize: float, ycellsize: float,
                 method: ResampleMethod) -> "Grid":
        if method is ResampleMethod.BLOCK:
            raise ValueError("Block replication can only be used for downscaling")
        fx = _integer_factor(cellsize, self.xcellsize)
        fy = _integer_factor(ycellsize, self.ycellsize)

        data = np.where(self.values == self.nodata, np.nan, self.values)
        new_rows = -(-self.rows // fy)
        new_cols = -(-self.cols // fx)

        if method is ResampleMethod.MOST_OCCURRING:
            padded = np.full((new_rows * fy, new_cols * fx), np.nan)
            padded[:self.rows, :self.cols] = data
            blocks = padded.reshape(new_rows, fy, new_cols, fx).swapaxes(1, 2)
            out = np.empty((new_rows, new_cols), dtype=np.float64)
            for r in range(new_rows):
                for c in range(new_cols):
                    value = most_occurring_value(blocks[r, c])
                    out[r, c] = self.nodata if value is None else value
        else:
            with warnings.catch_warnings():
                # blocks consisting of NoData only
                warnings.simplefilter("ignore", category=RuntimeWarning)
                out = block_reduce(data, block_size=(fy, fx),
                                   func=_REDUCERS[method], cval=np.nan)
            out = np.where(np.isnan(out), self.nodata, out)

        ext = self.extent
        extent = Extent(ext.xmin, ext.ymax - new_rows * ycellsize,
                        ext.xmin + new_cols * cellsize, ext.ymax)
        logger.debug("Upscaled grid '%s' from %s to %s using %s",
                     self.name, self.xcellsize, cellsize, method.value)
        return Grid(out, extent, cellsize, ycellsize, self.nodata,
                    f"{self.name}_{cellsize:g}")

    def _downscale(self, cellsize: float, ycellsize: float) -> "Grid":
        fx = _integer_factor(self.xcellsize, cellsize)
        fy = _integer_factor(self.ycellsize, ycellsize)
        out = np.repeat(np.repeat(self.values, fy, axis=0), fx, axis=1)
        logger.debug("Downscaled grid '%s' from %s to %s",
                     self.name, self.xcellsize, cellsize)
        return Grid(out, self.extent, cellsize, ycellsize, self.nodata,
                    f"{self.name}_{cellsize:g}")

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def has_same_geometry(self, other: "Grid", tolerance: float = 1e-6) -> bool:
        return (not other.is_constant
                and self.extent.equals(other.extent, tolerance)
                and abs(self.xcellsize - other.xcellsize) <= tolerance
                and abs(self.ycellsize - other.ycellsize) <= tolerance)

    def _operand(self, other):
        if isinstance(other, ConstantGrid):
            return other.value, other.nodata
        if isinstance(other, Grid):
            if self.has_same_geometry(other):
                return other.values, other.nodata
            xs, ys = self.cell_centers()
            return other.sample(xs, ys), other.nodata
        return float(other), None

    def _combine(self, other, op, symbol: str) -> "Grid":
        a = self.values
        b, other_nodata = self._operand(other)
        mask = (a == self.nodata) | np.isnan(a)
        if other_nodata is not None:
            mask = mask | (b == other_nodata) | np.isnan(b)
        with np.errstate(invalid="ignore", over="ignore"):
            result = op(a, b)
        result = np.where(mask, self.nodata, result)
        other_name = getattr(other, "name", str(other))
        return Grid(result, self.extent, self.xcellsize, self.ycellsize,
                    self.nodata, f"({self.name} {symbol} {other_name})")

    def __add__(self, other):
        if not isinstance(other, (Grid, numbers.Real)):
            return NotImplemented
        return self._combine(other, np.add, "+")

    def __mul__(self, other):
        if not isinstance(other, (Grid, numbers.Real)):
            return NotImplemented
        return self._combine(other, np.multiply, "*")

    __radd__ = __add__
    __rmul__ = __mul__

    def __repr__(self):
        state = "released" if self.is_released else f"{self.rows}x{self.cols}"
        return (f"Grid(name={self.name!r}, extent={self.extent}, "
                f"cellsize=({self.xcellsize}, {self.ycellsize}), {state})")


class ConstantGrid(Grid):
    """Grid with one value everywhere and no extent.

    Used where a setting can be either a number or a grid; the cursor
    ignores constant grids when computing its extent and step.
    """

    is_constant = True

    def __init__(self, value: float, nodata: float = -9999.0,
                 name: Optional[str] = None):
        self.value = float(value)
        self.nodata = float(nodata)
        self.name = name or f"constant({self.value:g})"
        self.extent = None
        self.xcellsize = None
        self.ycellsize = None
        self.rows = self.cols = 1
        self._values = np.full((1, 1), self.value)

    def index_of(self, x, y):
        return 0, 0

    def get_value(self, x, y):
        return self.value

    def set_value(self, x, y, value):
        raise ContractViolation(
            f"Grid contract violated: constant grid '{self.name}' cannot be modified"
        )

    def get_window(self, row, col, radius, nan_for_nodata=False):
        size = 2 * radius + 1
        value = self.value
        if nan_for_nodata and value == self.nodata:
            value = np.nan
        return np.full((size, size), value)

    def get_cell_values(self, x, y, radius, precision=None, nan_for_nodata=False):
        return round_values(self.get_window(0, 0, radius, nan_for_nodata), precision)

    def sample(self, xs, ys, nan_for_nodata=False):
        value = self.value
        if nan_for_nodata and value == self.nodata:
            value = np.nan
        return np.full(np.shape(xs), value, dtype=np.float64)

    def resample(self, cellsize, method=ResampleMethod.MOST_OCCURRING, ycellsize=None):
        return self

    def release_values(self):
        pass

    def copy(self, name=None):
        return ConstantGrid(self.value, self.nodata, name or self.name)

    def _combine(self, other, op, symbol):
        if isinstance(other, Grid) and not other.is_constant:
            # + and * are commutative
            return other._combine(self, op, symbol)
        b, other_nodata = (other.value, other.nodata) if isinstance(other, Grid) \
            else (float(other), None)
        if self.value == self.nodata or (other_nodata is not None and b == other_nodata):
            return ConstantGrid(self.nodata, self.nodata)
        return ConstantGrid(float(op(self.value, b)), self.nodata)

    def __repr__(self):
        return f"ConstantGrid(value={self.value})"
