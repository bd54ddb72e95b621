"""Tests for result classes and result layers."""

import pytest

from imodval.checks.results import ResultClass, ResultLayer
from imodval.core.extent import Extent

pytestmark = pytest.mark.unit

FIRST = ResultClass(1, "First")
SECOND = ResultClass(2, "Second")


@pytest.fixture
def layer():
    return ResultLayer("demo", "input.nc", extent=Extent(0, 0, 300, 300), cellsize=100)


class TestResultClass:

    @pytest.mark.parametrize("flag", [0, 3, -2, 6])
    def test_flag_must_be_power_of_two(self, flag):
        with pytest.raises(ValueError, match="power of two"):
            ResultClass(flag, "Bad")


class TestResultLayer:

    def test_flag_is_added_once(self, layer):
        assert layer.add_result(50, 50, FIRST)
        assert layer.add_result(50, 50, FIRST)
        assert layer.grid.get_value(50, 50) == 1

    def test_flags_combine(self, layer):
        layer.add_result(150, 150, FIRST)
        layer.add_result(150, 150, SECOND)
        assert layer.grid.get_value(150, 150) == 3
        assert layer.results_at(150, 150) == [FIRST, SECOND]
        assert layer.results_at(50, 50) == []

    def test_outside_grid(self, layer):
        assert layer.add_result(500, 500, FIRST) is False
        assert not layer.has_results()

    def test_details(self, layer):
        layer.add_detail(50, 50, FIRST, "something odd", value=4.0)
        frame = layer.to_frame()
        assert list(frame.columns) == ["x", "y", "flag", "label", "message", "source", "value"]
        assert frame.iloc[0]["source"] == "input.nc"
        assert frame.iloc[0]["label"] == "First"
        assert layer.has_results()

    def test_layer_without_grid(self):
        layer = ResultLayer("demo")
        assert layer.add_result(0, 0, FIRST) is False
        assert layer.results_at(0, 0) == []
        assert layer.to_frame().empty

    def test_release(self, layer):
        layer.release()
        assert layer.grid.is_released
