"""Result accumulation for checks.

A check writes into a ResultLayer: an optional warning grid whose cells
hold the sum of bit flags of all result classes found in that cell, and
a list of detail records pinpointing each problem.
"""

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

import pandas as pd

from imodval.core.grid import Grid

if TYPE_CHECKING:
    from imodval.core.extent import Extent

logger = logging.getLogger(__name__)

__all__ = ["ResultClass", "CheckDetail", "ResultLayer"]


@dataclass(frozen=True)
class ResultClass:
    """Category of a check result, identified by a power-of-two flag."""
    flag: int
    label: str
    description: str = ""

    def __post_init__(self):
        if self.flag <= 0 or self.flag & (self.flag - 1):
            raise ValueError(f"Result flag must be a power of two, got {self.flag}")


@dataclass(frozen=True)
class CheckDetail:
    x: float
    y: float
    result: ResultClass
    message: str
    source: Optional[str] = None
    value: float = math.nan


class ResultLayer:
    """Warning grid plus detail records of one check run.

    Parameters
    ----------
    check_name : str
        Name of the check producing the results.
    source : str, optional
        Input file the results refer to.
    extent : Extent, optional
        Extent of the warning grid; without it only details are kept.
    cellsize : float, optional
        Cell size of the warning grid.
    """

    def __init__(self, check_name: str, source: Optional[str] = None,
                 extent: Optional["Extent"] = None, cellsize: Optional[float] = None,
                 ycellsize: Optional[float] = None):
        self.check_name = check_name
        self.source = source
        self.grid: Optional[Grid] = None
        if extent is not None and cellsize is not None:
            self.grid = Grid.full(extent, cellsize, 0.0, ycellsize=ycellsize,
                                  nodata=-9999.0, name=f"{check_name}_results")
        self.details: List[CheckDetail] = []
        self.result_classes: Dict[int, ResultClass] = {}

    def add_result(self, x: float, y: float, result: ResultClass) -> bool:
        """Add ``result`` to the warning grid cell at (x, y).

        The flag is added only if it is not yet set in that cell. Returns
        False when there is no grid or (x, y) lies outside it.
        """
        self.result_classes[result.flag] = result
        if self.grid is None:
            return False
        current = self.grid.get_value(x, y)
        if current == self.grid.nodata:
            if self.grid.index_of(x, y) is None:
                return False
            current = 0.0
        if int(current) & result.flag:
            return True
        return self.grid.set_value(x, y, current + result.flag)

    def add_detail(self, x: float, y: float, result: ResultClass, message: str,
                   value: float = math.nan, source: Optional[str] = None) -> None:
        self.result_classes[result.flag] = result
        self.details.append(CheckDetail(x, y, result, message,
                                        source or self.source, value))

    def has_results(self) -> bool:
        if self.details:
            return True
        return self.grid is not None and not self.grid.is_released \
            and bool((self.grid.values > 0).any())

    def results_at(self, x: float, y: float) -> List[ResultClass]:
        """Result classes flagged in the warning grid cell at (x, y)."""
        if self.grid is None:
            return []
        value = self.grid.get_value(x, y)
        if value == self.grid.nodata:
            return []
        flags = int(value)
        return [rc for flag, rc in sorted(self.result_classes.items()) if flags & flag]

    def to_frame(self) -> pd.DataFrame:
        """Details as a table, one row per detail."""
        columns = ["x", "y", "flag", "label", "message", "source", "value"]
        return pd.DataFrame(
            [(d.x, d.y, d.result.flag, d.result.label, d.message, d.source, d.value)
             for d in self.details],
            columns=columns,
        )

    def release(self) -> None:
        if self.grid is not None:
            self.grid.release_values()

    def __repr__(self):
        return (f"ResultLayer(check={self.check_name!r}, details={len(self.details)}, "
                f"grid={'yes' if self.grid is not None else 'no'})")
