"""File stores used by checks.

- grid_store: NetCDF grids (xarray)
- point_store: CSV points with companion time series (pandas)
- network_store: CSV segment networks (pandas)
"""

from imodval.io.stores import GridStore, PointSeriesStore, NetworkFileStore
from imodval.io.grid_store import NetCDFGridStore
from imodval.io.point_store import CsvPointSeriesStore, Point
from imodval.io.network_store import CsvNetworkStore

__all__ = [
    "GridStore",
    "PointSeriesStore",
    "NetworkFileStore",
    "NetCDFGridStore",
    "CsvPointSeriesStore",
    "Point",
    "CsvNetworkStore",
]
