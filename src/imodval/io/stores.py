"""Interfaces of the file stores the checks depend on.

Loading a file that does not exist is not an error: ``load`` returns None
and the caller decides whether that is a configuration error or a data
quality issue. Failures while reading an existing file raise
``FatalProcessingError``.
"""

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Protocol, Union

if TYPE_CHECKING:
    import pandas as pd

    from imodval.core.grid import Grid
    from imodval.core.network import Segment
    from imodval.io.point_store import Point

PathLike = Union[str, Path]


class GridStore(Protocol):
    def load(self, path: PathLike) -> Optional["Grid"]: ...

    def save(self, grid: "Grid", path: PathLike, metadata: Optional[dict] = None) -> Path: ...


class PointSeriesStore(Protocol):
    def load_points(self, path: PathLike) -> Optional[List["Point"]]: ...

    def load_timeseries(self, point: "Point") -> Optional["pd.Series"]: ...


class NetworkFileStore(Protocol):
    def load(self, path: PathLike) -> Optional[List["Segment"]]: ...
