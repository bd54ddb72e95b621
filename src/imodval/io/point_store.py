"""CSV point store with companion time series files (pandas).

A points file is a CSV with ``x`` and ``y`` columns and any number of
attribute columns. An optional ``series`` column names a companion CSV
(relative to the points file) with ``date`` and value columns.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pandas as pd

from imodval.core.timeseries import to_series
from imodval.errors import DataQualityIssue, FatalProcessingError, report_issue

logger = logging.getLogger(__name__)

__all__ = ["Point", "CsvPointSeriesStore"]


@dataclass
class Point:
    x: float
    y: float
    columns: dict = field(default_factory=dict)
    series_path: Optional[Path] = None


class CsvPointSeriesStore:
    """Load points and their time series from CSV files."""

    def __init__(self, value_column: str = "value", date_column: str = "date",
                 series_column: str = "series"):
        self.value_column = value_column
        self.date_column = date_column
        self.series_column = series_column

    def load_points(self, path) -> Optional[List[Point]]:
        """Points of a CSV file; None when the file does not exist."""
        path = Path(path)
        if not path.exists():
            logger.debug("Points file not found: %s", path)
            return None
        try:
            df = pd.read_csv(path)
        except (OSError, ValueError) as e:
            raise FatalProcessingError(f"Could not read points: {e}", path=path) from e
        if "x" not in df.columns or "y" not in df.columns:
            raise FatalProcessingError("Points file needs 'x' and 'y' columns", path=path)

        points = []
        attribute_columns = [c for c in df.columns if c not in ("x", "y")]
        for record in df.to_dict("records"):
            series_path = None
            ref = record.get(self.series_column)
            if isinstance(ref, str) and ref.strip():
                series_path = path.parent / ref.strip()
            points.append(Point(float(record["x"]), float(record["y"]),
                                {c: record[c] for c in attribute_columns}, series_path))
        logger.info("Loaded %d points from %s", len(points), path.name)
        return points

    def load_timeseries(self, point: Point) -> Optional[pd.Series]:
        """Time series of a point; None (and a logged issue) when it is missing."""
        if point.series_path is None:
            return None
        if not point.series_path.exists():
            report_issue(logger, DataQualityIssue(
                f"Companion time series file not found: {point.series_path.name}",
                source=str(point.series_path), x=point.x, y=point.y,
            ))
            return None
        try:
            df = pd.read_csv(point.series_path)
            return to_series(df, self.value_column, self.date_column)
        except (OSError, ValueError, KeyError) as e:
            raise FatalProcessingError(f"Could not read time series: {e}",
                                       path=point.series_path, x=point.x, y=point.y) from e
