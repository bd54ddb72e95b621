"""Tests for the CSV point store."""

import logging

import pytest

from imodval.errors import FatalProcessingError
from imodval.io import CsvPointSeriesStore

pytestmark = pytest.mark.integration


@pytest.fixture
def points_file(temp_dir):
    (temp_dir / "well_1.csv").write_text(
        "date,value\n2020-02-01,2.5\n2020-01-01,1.5\n"
    )
    path = temp_dir / "points.csv"
    path.write_text(
        "x,y,id,series\n"
        "10,20,well_1,well_1.csv\n"
        "30,40,well_2,well_2.csv\n"
        "50,60,well_3,\n"
    )
    return path


class TestCsvPointSeriesStore:

    def test_load_points(self, points_file):
        points = CsvPointSeriesStore().load_points(points_file)
        assert [(p.x, p.y) for p in points] == [(10, 20), (30, 40), (50, 60)]
        assert points[0].columns["id"] == "well_1"
        assert points[2].series_path is None

    def test_load_timeseries(self, points_file):
        store = CsvPointSeriesStore()
        series = store.load_timeseries(store.load_points(points_file)[0])
        assert list(series) == [1.5, 2.5]

    def test_missing_companion_file_is_reported(self, points_file, caplog):
        store = CsvPointSeriesStore()
        point = store.load_points(points_file)[1]
        with caplog.at_level(logging.WARNING):
            assert store.load_timeseries(point) is None
        assert "well_2.csv" in caplog.text
        assert caplog.records[-1].issue.x == 30

    def test_missing_points_file(self, temp_dir):
        assert CsvPointSeriesStore().load_points(temp_dir / "none.csv") is None

    def test_points_need_coordinates(self, temp_dir):
        path = temp_dir / "bad.csv"
        path.write_text("id\n1\n")
        with pytest.raises(FatalProcessingError, match="'x' and 'y'"):
            CsvPointSeriesStore().load_points(path)
