"""NetCDF grid store (xarray).

A grid is stored as one 2D variable on ``y``/``x`` cell-centre
coordinates. Header values are kept as attributes so the extent survives
single-row or single-column grids.
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import xarray as xr

from imodval.core.extent import Extent
from imodval.core.grid import Grid
from imodval.errors import FatalProcessingError

logger = logging.getLogger(__name__)

__all__ = ["NetCDFGridStore"]


class NetCDFGridStore:
    """Load and save grids as NetCDF files.

    Parameters
    ----------
    variable : str
        Name of the data variable.
    engine : str
        xarray backend engine.
    """

    def __init__(self, variable: str = "values", engine: str = "netcdf4"):
        self.variable = variable
        self.engine = engine

    def load(self, path) -> Optional[Grid]:
        """Load a grid; None when the file does not exist.

        Raises
        ------
        FatalProcessingError
            If the file exists but cannot be read as a grid.
        """
        path = Path(path)
        if not path.exists():
            logger.debug("Grid file not found: %s", path)
            return None

        try:
            with xr.open_dataset(path, engine=self.engine, mask_and_scale=False) as ds:
                da = ds[self.variable] if self.variable in ds.data_vars \
                    else ds[list(ds.data_vars)[0]]
                da = da.transpose("y", "x")
                y = da["y"].values
                if y.size > 1 and y[0] < y[-1]:
                    da = da.isel(y=slice(None, None, -1))
                values = np.asarray(da.values, dtype=np.float64)
                attrs = {**ds.attrs, **da.attrs}
                xcellsize, ycellsize, extent = self._header(da, attrs, values.shape)
        except (OSError, ValueError, KeyError, IndexError) as e:
            raise FatalProcessingError(f"Could not read grid: {e}", path=path) from e

        nodata = float(attrs.get("nodata", -9999.0))
        grid = Grid(values, extent, xcellsize, ycellsize, nodata,
                    name=str(attrs.get("name", path.stem)))
        logger.info("Loaded grid %s: %dx%d, cellsize %s", path.name,
                    grid.rows, grid.cols, grid.xcellsize)
        return grid

    @staticmethod
    def _header(da, attrs, shape):
        if all(k in attrs for k in ("xmin", "ymin", "xmax", "ymax", "xcellsize")):
            extent = Extent(float(attrs["xmin"]), float(attrs["ymin"]),
                            float(attrs["xmax"]), float(attrs["ymax"]))
            xcellsize = float(attrs["xcellsize"])
            ycellsize = float(attrs.get("ycellsize", xcellsize))
            return xcellsize, ycellsize, extent

        x = da["x"].values.astype(np.float64)
        y = da["y"].values.astype(np.float64)
        if x.size < 2 or y.size < 2:
            raise ValueError(
                f"Cannot derive cellsize from {shape} grid without header attributes"
            )
        xcellsize = abs(float(x[1] - x[0]))
        ycellsize = abs(float(y[1] - y[0]))
        extent = Extent(float(x.min()) - xcellsize / 2, float(y.min()) - ycellsize / 2,
                        float(x.max()) + xcellsize / 2, float(y.max()) + ycellsize / 2)
        return xcellsize, ycellsize, extent

    def save(self, grid: Grid, path, metadata: Optional[dict] = None) -> Path:
        """Write ``grid`` to ``path``; extra ``metadata`` goes into the attributes."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        xs, ys = grid.cell_centers()
        ext = grid.extent
        attrs = {
            "name": grid.name,
            "nodata": grid.nodata,
            "xmin": ext.xmin, "ymin": ext.ymin, "xmax": ext.xmax, "ymax": ext.ymax,
            "xcellsize": grid.xcellsize,
            "ycellsize": grid.ycellsize,
        }
        if metadata:
            attrs.update({k: str(v) for k, v in metadata.items()})

        ds = xr.Dataset(
            {self.variable: (("y", "x"), grid.values)},
            coords={"y": ys[:, 0], "x": xs[0, :]},
            attrs=attrs,
        )
        encoding = {self.variable: {"zlib": True, "complevel": 4}} \
            if self.engine == "netcdf4" else None
        try:
            ds.to_netcdf(path, engine=self.engine, encoding=encoding)
        except (OSError, ValueError) as e:
            raise FatalProcessingError(f"Could not write grid: {e}", path=path) from e
        logger.info("Saved grid %s", path)
        return path
