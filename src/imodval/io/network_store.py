"""CSV segment network store (pandas).

A network is a directory with three tables:

- ``nodes.csv``: ``segment, x, y`` with the vertices of each segment in order
- ``points.csv``: ``segment, name, distance`` calculation points
- ``levels.csv``: ``segment, name, date`` plus one column per level type

Level series are read on first use of a calculation point.
"""

import logging
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from imodval.core.network import CalculationPoint, Segment
from imodval.core.timeseries import to_series
from imodval.errors import DataQualityIssue, FatalProcessingError, report_issue

logger = logging.getLogger(__name__)

__all__ = ["CsvNetworkStore"]


class CsvNetworkStore:
    """Load segment networks from a directory of CSV tables.

    Parameters
    ----------
    level_column : str
        Column of ``levels.csv`` used as the level series.
    """

    NODES = "nodes.csv"
    POINTS = "points.csv"
    LEVELS = "levels.csv"

    def __init__(self, level_column: str = "stage"):
        self.level_column = level_column
        self._levels: Dict[Path, Optional[pd.DataFrame]] = {}

    def _read(self, path: Path, required=()) -> pd.DataFrame:
        try:
            df = pd.read_csv(path)
        except (OSError, ValueError) as e:
            raise FatalProcessingError(f"Could not read network table: {e}", path=path) from e
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise FatalProcessingError(f"Missing column(s) {missing}", path=path)
        return df

    def load(self, path) -> Optional[List[Segment]]:
        """Segments of a network directory; None when it has no nodes table."""
        path = Path(path)
        nodes_path = path / self.NODES
        if not nodes_path.exists():
            logger.debug("Network nodes table not found: %s", nodes_path)
            return None

        nodes = self._read(nodes_path, ("segment", "x", "y"))
        points_path = path / self.POINTS
        if points_path.exists():
            points = self._read(points_path, ("segment", "name", "distance"))
        else:
            points = pd.DataFrame(columns=["segment", "name", "distance"])

        nodes["segment"] = nodes["segment"].astype(str)
        points["segment"] = points["segment"].astype(str)
        points_by_segment = {label: group for label, group in points.groupby("segment", sort=False)}

        segments = []
        for label, group in nodes.groupby("segment", sort=False):
            coordinates = list(zip(group["x"].astype(float), group["y"].astype(float)))
            if len(coordinates) < 2:
                report_issue(logger, DataQualityIssue(
                    f"Segment {label} has {len(coordinates)} node(s), skipped",
                    source=str(nodes_path),
                ))
                continue
            cps = []
            cp_rows = points_by_segment.get(label)
            if cp_rows is not None:
                for name, distance in zip(cp_rows["name"], cp_rows["distance"]):
                    cps.append(CalculationPoint(
                        str(name), float(distance),
                        loader=partial(self._load_levels, path, label, str(name)),
                    ))
            segments.append(Segment(label, coordinates, cps))

        logger.info("Loaded network %s: %d segments", path.name, len(segments))
        return segments

    def _levels_table(self, path: Path) -> Optional[pd.DataFrame]:
        if path not in self._levels:
            levels_path = path / self.LEVELS
            if not levels_path.exists():
                report_issue(logger, DataQualityIssue(
                    "Levels table not found, calculation points have no levels",
                    source=str(levels_path),
                ))
                self._levels[path] = None
            else:
                df = self._read(levels_path, ("segment", "name", "date", self.level_column))
                df["segment"] = df["segment"].astype(str)
                df["name"] = df["name"].astype(str)
                self._levels[path] = df
        return self._levels[path]

    def _load_levels(self, path: Path, segment: str, name: str) -> Optional[pd.Series]:
        table = self._levels_table(path)
        if table is None:
            return None
        rows = table[(table["segment"] == segment) & (table["name"] == name)]
        if rows.empty:
            return None
        return to_series(rows, self.level_column, "date")

    def release(self) -> None:
        """Drop cached level tables."""
        self._levels.clear()
