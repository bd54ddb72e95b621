"""Tests for segments, the network graph and level change comparison."""

import logging

import pytest

from imodval.cancellation import CancellationToken
from imodval.contracts import ContractViolation
from imodval.core.network import (
    CalculationPoint,
    NetworkGraph,
    Segment,
    check_level_change,
    compare_calculation_points,
)
from imodval.errors import CheckCancelled
from tests.helpers.fake_grids import junction_segments, level_series, make_segment

pytestmark = pytest.mark.unit


class TestSegment:
    """Geometry along a segment polyline."""

    def test_length_and_coordinates(self):
        seg = make_segment("S", [(0, 0), (100, 0), (100, 100)])
        assert seg.length == 200
        assert seg.get_coordinate(0) == (0, 0)
        assert seg.get_coordinate(150) == (100, 50)
        assert seg.get_coordinate(200) == (100, 100)

    @pytest.mark.parametrize("distance", [-1.0, 200.1])
    def test_distance_outside_segment(self, distance):
        seg = make_segment("S", [(0, 0), (100, 0), (100, 100)])
        assert seg.get_coordinate(distance) is None

    def test_calculation_points_are_sorted(self):
        seg = make_segment("S", [(0, 0), (100, 0)],
                           [("b", 60.0, None), ("a", 10.0, None)])
        assert [cp.name for cp in seg.calculation_points] == ["a", "b"]

    def test_nearest_calculation_point(self):
        seg = make_segment("S", [(0, 0), (100, 0)],
                           [("p10", 10.0, None), ("p60", 60.0, None), ("p90", 90.0, None)])
        assert seg.get_calculation_point(40).name == "p60"
        # equally far from p10 and p60
        assert seg.get_calculation_point(35).name == "p10"
        assert make_segment("E", [(0, 0), (1, 0)]).get_calculation_point(0) is None

    def test_fallback_to_final_node_is_reported(self, caplog):
        seg = make_segment("S", [(0, 0), (100, 0)])
        cp = CalculationPoint("far", 150.0)
        with caplog.at_level(logging.WARNING):
            assert seg.resolve_coordinate(cp) == (100, 0)
        assert "larger than length of segment" in caplog.text
        record = next(r for r in caplog.records if hasattr(r, "issue"))
        assert (record.issue.x, record.issue.y) == (100, 0)

    def test_segment_needs_two_nodes(self):
        with pytest.raises(ContractViolation, match="at least two nodes"):
            Segment("S", [(0, 0)])

    def test_series_is_loaded_once(self):
        calls = []

        def loader():
            calls.append(1)
            return level_series([1.0, 2.0])

        cp = CalculationPoint("p", 0.0, loader=loader)
        cp.get_series()
        cp.get_series()
        assert len(calls) == 1


class TestNetworkGraph:
    """Node lookup and connectivity."""

    def test_junction_is_found_from_both_segments(self):
        a, b = junction_segments()
        graph = NetworkGraph([a, b]).build_network()

        nodes = graph.get_nodes(100, 0)
        assert {n.segment.label for n in nodes} == {"A", "B"}
        assert {n.segment.label for n in graph.get_nodes(100.1, 0)} == {"A", "B"}
        assert graph.get_nodes(100.3, 0) == []

    def test_other_nodes_are_symmetric(self):
        a, b = junction_segments()
        graph = NetworkGraph([a, b]).build_network()
        assert graph.get_other_nodes(a.end_node) == [b.start_node]
        assert graph.get_other_nodes(b.start_node) == [a.end_node]
        assert graph.get_other_nodes(a.start_node) == []

    def test_connected_nodes(self):
        a, b = junction_segments()
        graph = NetworkGraph([a, b]).build_network()
        neighbours = graph.get_connected_nodes(a.end_node)
        assert (a.start_node, 100.0) in neighbours
        assert (b.start_node, 0.0) in neighbours

    def test_path_between_segments(self):
        a, b = junction_segments()
        c = make_segment("C", [(500, 500), (600, 500)])
        graph = NetworkGraph([a, b, c]).build_network()
        assert graph.is_connected(a.start_node, b.end_node)
        assert not graph.is_connected(a.start_node, c.end_node)
        assert len(graph.junctions()) == 1

    def test_junction_groups(self):
        a, b = junction_segments()
        c = make_segment("C", [(100, 0), (100, 100)])
        d = make_segment("D", [(500, 500), (600, 500)])
        graph = NetworkGraph([a, b, c, d]).build_network()

        groups = graph.junctions()
        assert groups == [[a.end_node, b.start_node, c.start_node]]
        assert graph.graph.number_of_nodes() == 8
        assert graph.graph.edges[a.end_node, c.start_node]["junction"]

    def test_unknown_node_has_no_connections(self):
        a, b = junction_segments()
        c = make_segment("C", [(500, 500), (600, 500)])
        graph = NetworkGraph([a, b]).build_network()
        assert graph.get_connected_nodes(c.start_node) == []
        assert not graph.is_connected(a.start_node, c.start_node)
        assert graph.is_connected(c.start_node, c.start_node)

    def test_interior_nodes(self):
        a = make_segment("A", [(0, 0), (50, 0), (100, 0)])
        c = make_segment("C", [(50, 0), (50, 100)])

        terminal = NetworkGraph([a, c]).build_network()
        assert {n.segment.label for n in terminal.get_nodes(50, 0)} == {"C"}

        interior = NetworkGraph([a, c], include_interior_nodes=True).build_network()
        assert {n.segment.label for n in interior.get_nodes(50, 0)} == {"A", "C"}

    def test_queries_require_build(self):
        graph = NetworkGraph(junction_segments())
        with pytest.raises(ContractViolation, match="build_network"):
            graph.get_nodes(0, 0)

    def test_build_can_be_cancelled(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(CheckCancelled):
            NetworkGraph(junction_segments(), cancel_token=token).build_network()


class TestLevelChange:
    """Comparison of level series between calculation points."""

    @pytest.mark.parametrize("max_abs, expected", [(1.0, False), (0.2, True)])
    def test_junction_level_change(self, max_abs, expected):
        a, b = junction_segments(10.0, 10.5)
        graph = NetworkGraph([a, b]).build_network()

        violation = graph.check_junction_level_change(a.end_node, b.start_node,
                                                      max_rel_change=0.001,
                                                      max_abs_change=max_abs)
        assert (violation is not None) == expected
        if expected:
            assert (violation.x, violation.y) == (100, 0)
            assert violation.distance == pytest.approx(100.0)
            assert violation.label == "A-B;a1-b1"

    def test_junction_verdict_is_symmetric(self):
        a, b = junction_segments(10.0, 10.5)
        graph = NetworkGraph([a, b]).build_network()
        for max_abs in (0.2, 1.0):
            forward = graph.check_junction_level_change(a.end_node, b.start_node, 0.001, max_abs)
            backward = graph.check_junction_level_change(b.start_node, a.end_node, 0.001, max_abs)
            assert (forward is None) == (backward is None)

    def test_misaligned_timestamps_are_found_in_both_call_orders(self):
        a = make_segment("A", [(0, 0), (100, 0)], [("a1", 50.0, level_series([10.0]))])
        b = make_segment("B", [(100, 0), (200, 0)],
                         [("b1", 50.0, level_series([10.0, 20.0]))])
        graph = NetworkGraph([a, b]).build_network()

        forward = graph.check_junction_level_change(a.end_node, b.start_node, 0.001, 1.0)
        backward = graph.check_junction_level_change(b.start_node, a.end_node, 0.001, 1.0)

        assert forward is not None and backward is not None
        assert (forward.x, forward.y) == (100, 0)
        assert forward.date.strftime("%Y-%m-%d") == "2020-02-01"

    def test_same_location_uses_absolute_difference(self):
        ok = check_level_change(level_series([10.0]), level_series([10.5]),
                                (0, 0), (0.1, 0), 0.001, 1.0)
        assert ok is None

        violation = check_level_change(level_series([10.0]), level_series([10.5]),
                                       (0, 0), (0.1, 0), 0.001, 0.4)
        assert violation.same_location
        assert violation.rate == pytest.approx(0.5)
        assert "over" not in violation.describe()

    def test_first_violation_only(self):
        violation = check_level_change(level_series([10.0, 10.0, 12.0, 13.0]),
                                       level_series([10.0] * 4),
                                       (0, 0), (0, 0), 0.001, 1.0)
        assert violation.date.strftime("%Y-%m-%d") == "2020-03-01"
        assert violation.value == 12.0
        assert violation.describe().startswith("WLVL-change at 2020-03-01: 12.00 - 10.00")

    def test_other_series_is_read_as_step_function(self):
        series = level_series([12.0], start="2020-01-15")
        other = level_series([10.0, 20.0], start="2020-01-01")
        violation = check_level_change(series, other, (0, 0), (0, 0), 0.001, 1.0)
        assert violation.other_value == 10.0

    def test_point_beyond_segment_uses_final_node(self, caplog):
        seg = make_segment("S", [(0, 0), (100, 0)],
                           [("p1", 50.0, level_series([10.0])),
                            ("p2", 150.0, level_series([20.0]))])
        p1, p2 = seg.calculation_points
        with caplog.at_level(logging.WARNING):
            violation = compare_calculation_points(seg, p1, seg, p2, 0.001, 1.0)
        assert violation.distance == pytest.approx(50.0)
        assert violation.label == "S;p1-p2"
        assert "larger than length" in caplog.text

    def test_points_without_levels_are_skipped(self):
        seg = make_segment("S", [(0, 0), (100, 0)],
                           [("p1", 10.0, level_series([10.0])), ("p2", 20.0, None)])
        p1, p2 = seg.calculation_points
        assert compare_calculation_points(seg, p1, seg, p2, 0.001, 0.0) is None
