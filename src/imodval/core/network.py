"""In-memory graph over a network of polyline segments.

Segments (rivers, ditches, drains) are polylines with calculation points
at a distance along the segment. Nodes of different segments that lie at
the same coordinate, within a distance error margin, form a junction.
The graph is built once per network file; only the level series of the
calculation points are loaded lazily afterwards.

Level changes are compared between two calculation points, on the same
segment or on both sides of a junction. The comparison walks the
timestamps of the first series, takes the value in force in the other
series (step interpolation) and stops at the first violation.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from imodval.contracts import assert_network_built, assert_segment_ordered, require
from imodval.core.timeseries import clip_period, step_value_at
from imodval.errors import DataQualityIssue, report_issue

if TYPE_CHECKING:
    from imodval.cancellation import CancellationToken

logger = logging.getLogger(__name__)

__all__ = [
    "DISTANCE_ERROR_MARGIN",
    "Node",
    "CalculationPoint",
    "Segment",
    "NetworkGraph",
    "LevelChangeViolation",
    "check_level_change",
    "compare_calculation_points",
]

DISTANCE_ERROR_MARGIN = 0.25

Coordinate = Tuple[float, float]


@dataclass(eq=False)
class Node:
    """Vertex of a segment polyline.

    ``distance`` is the cumulative distance from the segment start.
    Nodes hash by identity so they can be used as graph keys.
    """
    x: float
    y: float
    segment: "Segment" = field(repr=False)
    index: int
    distance: float


@dataclass(eq=False)
class CalculationPoint:
    """Named location along a segment holding a level series.

    The series can be given directly or through ``loader``, which is called
    once on first access.
    """
    name: str
    distance: float
    series: Optional[pd.Series] = None
    loader: Optional[Callable[[], Optional[pd.Series]]] = field(default=None, repr=False)

    def get_series(self) -> Optional[pd.Series]:
        if self.series is None and self.loader is not None:
            self.series = self.loader()
            self.loader = None
        return self.series

    def get_level_series(self, start=None, end=None) -> Optional[pd.Series]:
        """Level series restricted to [start, end], None if there is no data."""
        series = self.get_series()
        if series is None:
            return None
        return clip_period(series, start, end)


class Segment:
    """Polyline with calculation points ordered by distance.

    Parameters
    ----------
    label : str
        Segment identifier.
    coordinates : sequence of (x, y)
        At least two vertices, from start to end.
    calculation_points : sequence of CalculationPoint
        Sorted by distance on construction.
    """

    def __init__(self, label, coordinates: Sequence[Coordinate],
                 calculation_points: Sequence[CalculationPoint] = ()):
        self.label = str(label)
        require(len(coordinates) >= 2,
                f"Network contract violated: segment '{self.label}' needs at "
                f"least two nodes, got {len(coordinates)}")

        self.nodes: List[Node] = []
        distance = 0.0
        previous = None
        for index, (x, y) in enumerate(coordinates):
            if previous is not None:
                distance += math.hypot(x - previous[0], y - previous[1])
            self.nodes.append(Node(float(x), float(y), self, index, distance))
            previous = (x, y)

        self.calculation_points = sorted(calculation_points, key=lambda cp: cp.distance)

    @property
    def start_node(self) -> Node:
        return self.nodes[0]

    @property
    def end_node(self) -> Node:
        return self.nodes[-1]

    @property
    def length(self) -> float:
        return self.end_node.distance

    def get_coordinate(self, distance: float) -> Optional[Coordinate]:
        """Coordinate at ``distance`` along the segment.

        Returns None when the distance is negative or exceeds the segment
        length; callers fall back to the final node and report the issue
        (see ``resolve_coordinate``).
        """
        if distance < 0 or distance > self.length:
            return None
        for a, b in zip(self.nodes, self.nodes[1:]):
            if distance <= b.distance:
                piece = b.distance - a.distance
                if piece == 0:
                    return a.x, a.y
                f = (distance - a.distance) / piece
                return a.x + f * (b.x - a.x), a.y + f * (b.y - a.y)
        return self.end_node.x, self.end_node.y

    def get_calculation_point(self, distance: float) -> Optional[CalculationPoint]:
        """Calculation point nearest to ``distance``; the first one on a tie."""
        if not self.calculation_points:
            return None
        return min(self.calculation_points, key=lambda cp: abs(cp.distance - distance))

    def resolve_coordinate(self, cp: CalculationPoint, source: Optional[str] = None,
                           log: Optional[logging.Logger] = None) -> Coordinate:
        """Coordinate of a calculation point, falling back to the final node."""
        coordinate = self.get_coordinate(cp.distance)
        if coordinate is None:
            end = self.end_node
            report_issue(log or logger, DataQualityIssue(
                f"Segment {self.label}: distance of calculation point {cp.name} "
                f"({cp.distance}) is larger than length of segment "
                f"({self.length:.3f}), using last segment coordinate",
                source=source, x=end.x, y=end.y,
            ))
            coordinate = (end.x, end.y)
        return coordinate

    def __repr__(self):
        return (f"Segment(label={self.label!r}, nodes={len(self.nodes)}, "
                f"calculation_points={len(self.calculation_points)})")


@dataclass(frozen=True)
class LevelChangeViolation:
    """First level change between two calculation points above the limit."""
    date: pd.Timestamp
    value: float
    other_value: float
    distance: float
    rate: float
    same_location: bool
    x: float
    y: float
    segment: str = ""
    other_segment: str = ""
    point: str = ""
    other_point: str = ""

    def describe(self) -> str:
        message = (f"WLVL-change at {self.date:%Y-%m-%d}: {self.value:.2f} - "
                   f"{self.other_value:.2f}")
        if not self.same_location:
            message += (f" over {self.distance:.2f}m distance "
                        f"(= {self.rate:.4g}m/m)")
        return message

    @property
    def label(self) -> str:
        segments = self.segment
        points = self.point
        if self.other_segment and self.other_segment != self.segment:
            segments += "-" + self.other_segment
            points += "-" + self.other_point
        elif self.other_point:
            points += "-" + self.other_point
        return f"{segments}; {points}".replace(" ", "")


def check_level_change(series: pd.Series, other_series: pd.Series,
                       coordinate: Coordinate, other_coordinate: Coordinate,
                       max_rel_change: float, max_abs_change: float,
                       distance_error_margin: float = DISTANCE_ERROR_MARGIN,
                       location: Optional[Coordinate] = None
                       ) -> Optional[LevelChangeViolation]:
    """Compare two level series; return the first violation or None.

    Parameters
    ----------
    series : pd.Series
        Reference series; every timestamp is evaluated.
    other_series : pd.Series
        Series read at the last timestamp at or before each reference
        timestamp.
    coordinate, other_coordinate : (float, float)
        Locations of both calculation points.
    max_rel_change : float
        Maximum change per meter between distinct locations.
    max_abs_change : float
        Maximum absolute change.
    distance_error_margin : float
        Points closer than this are at the same location.
    location : (float, float), optional
        Coordinate to report a violation at, default ``coordinate``.

    Returns
    -------
    LevelChangeViolation or None

    Notes
    -----
    At the same location the separation is taken as one meter, so the
    check is on the absolute difference: ``|a - b| > max_abs_change``.
    Otherwise the change per meter ``|a - b| / d`` is compared with the
    larger of ``max_rel_change`` and ``max_abs_change / d``, so differences
    below the absolute limit are always accepted.
    """
    distance = math.hypot(coordinate[0] - other_coordinate[0],
                          coordinate[1] - other_coordinate[1])
    same_location = distance < distance_error_margin
    if same_location:
        calc_distance = 1.0
        limit = max_abs_change
    else:
        calc_distance = distance
        limit = max(max_rel_change, max_abs_change / distance)

    x, y = location if location is not None else coordinate
    for date, value in series.items():
        other_value = step_value_at(other_series, date)
        change = abs(float(value) - other_value) / calc_distance
        if change > limit:
            return LevelChangeViolation(pd.Timestamp(date), float(value), other_value,
                                        distance, change, same_location, x, y)
    return None


def compare_calculation_points(segment: Segment, cp: CalculationPoint,
                               other_segment: Segment, other_cp: CalculationPoint,
                               max_rel_change: float, max_abs_change: float,
                               distance_error_margin: float = DISTANCE_ERROR_MARGIN,
                               start=None, end=None,
                               location: Optional[Coordinate] = None,
                               source: Optional[str] = None
                               ) -> Optional[LevelChangeViolation]:
    """Level change check between two calculation points.

    Points without level data are skipped (None). Calculation points beyond
    their segment's length are located at the segment's final node.
    """
    series = cp.get_level_series(start, end)
    other_series = other_cp.get_level_series(start, end)
    if series is None or other_series is None or series.empty or other_series.empty:
        logger.debug("No levels to compare for %s/%s and %s/%s",
                     segment.label, cp.name, other_segment.label, other_cp.name)
        return None

    coordinate = segment.resolve_coordinate(cp, source)
    other_coordinate = other_segment.resolve_coordinate(other_cp, source)
    violation = check_level_change(series, other_series, coordinate, other_coordinate,
                                   max_rel_change, max_abs_change,
                                   distance_error_margin, location)
    if violation is None:
        return None
    return replace(violation, segment=segment.label, other_segment=other_segment.label,
                   point=cp.name, other_point=other_cp.name)


class NetworkGraph:
    """Undirected graph over segment nodes, indexed by coordinate.

    Parameters
    ----------
    segments : sequence of Segment
        Segments of one network file.
    distance_error_margin : float
        Nodes closer than this are the same junction.
    include_interior_nodes : bool
        Register all polyline vertices instead of the two terminal nodes.
    cancel_token : CancellationToken, optional
        Polled once per segment while building.

    Notes
    -----
    Edges of the ``networkx`` graph connect consecutive registered nodes of
    a segment (``weight`` is the distance along the segment) and co-located
    nodes (``weight`` 0, ``junction`` True). A cKDTree over the node
    coordinates answers coordinate lookups.
    """

    def __init__(self, segments: Sequence[Segment],
                 distance_error_margin: float = DISTANCE_ERROR_MARGIN,
                 include_interior_nodes: bool = False,
                 cancel_token: Optional["CancellationToken"] = None):
        self.segments = list(segments)
        self.distance_error_margin = distance_error_margin
        self.include_interior_nodes = include_interior_nodes
        self.cancel_token = cancel_token

        self._nodes: List[Node] = []
        self._tree: Optional[cKDTree] = None
        self.graph = nx.Graph()
        self.is_built = False

    def build_network(self) -> "NetworkGraph":
        nodes: List[Node] = []
        graph = nx.Graph()

        for segment in self.segments:
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            assert_segment_ordered(segment)
            if self.include_interior_nodes:
                registered = list(segment.nodes)
            else:
                registered = [segment.start_node, segment.end_node]
            graph.add_nodes_from(registered)
            for a, b in zip(registered, registered[1:]):
                graph.add_edge(a, b, weight=b.distance - a.distance, junction=False)
            nodes.extend(registered)

        tree = None
        junction_links = 0
        if nodes:
            tree = cKDTree(np.array([(n.x, n.y) for n in nodes]))
            for i, j in sorted(tree.query_pairs(r=self.distance_error_margin)):
                a, b = nodes[i], nodes[j]
                # a closed segment keeps its own edge
                if graph.has_edge(a, b):
                    continue
                if math.hypot(a.x - b.x, a.y - b.y) < self.distance_error_margin:
                    graph.add_edge(a, b, weight=0.0, junction=True)
                    junction_links += 1

        self._nodes = nodes
        self._tree = tree
        self.graph = graph
        self.is_built = True
        logger.info("Built network: %d segments, %d nodes, %d junction links",
                    len(self.segments), len(nodes), junction_links)
        return self

    @property
    def nodes(self) -> List[Node]:
        assert_network_built(self)
        return list(self._nodes)

    def get_nodes(self, x: float, y: float, buffer: Optional[float] = None) -> List[Node]:
        """All registered nodes closer than ``buffer`` (default the margin) to (x, y)."""
        assert_network_built(self)
        if self._tree is None:
            return []
        radius = self.distance_error_margin if buffer is None else buffer
        hits = self._tree.query_ball_point([x, y], r=radius)
        return [self._nodes[i] for i in sorted(hits)
                if math.hypot(self._nodes[i].x - x, self._nodes[i].y - y) < radius]

    def get_other_nodes(self, node: Node) -> List[Node]:
        """Nodes of other segments at the location of ``node``."""
        return [n for n in self.get_nodes(node.x, node.y)
                if n.segment.label != node.segment.label]

    def get_connected_nodes(self, node: Node) -> List[Tuple[Node, float]]:
        """Direct neighbours of ``node`` with edge weights."""
        assert_network_built(self)
        if node not in self.graph:
            return []
        return [(other, data["weight"]) for other, data in self.graph[node].items()]

    def is_connected(self, node: Node, other: Node) -> bool:
        """True if a path exists between the two nodes."""
        assert_network_built(self)
        if node is other:
            return True
        if node not in self.graph or other not in self.graph:
            return False
        return nx.has_path(self.graph, node, other)

    def junctions(self) -> List[List[Node]]:
        """Groups of junction-linked nodes that belong to more than one segment.

        Groups and the nodes within a group are in registration order.
        """
        assert_network_built(self)
        order = {node: i for i, node in enumerate(self._nodes)}
        links = nx.Graph()
        links.add_edges_from((a, b) for a, b, is_junction
                             in self.graph.edges(data="junction") if is_junction)

        groups = []
        for component in nx.connected_components(links):
            group = sorted(component, key=order.__getitem__)
            if len({n.segment.label for n in group}) > 1:
                groups.append(group)
        groups.sort(key=lambda group: order[group[0]])
        return groups

    def check_junction_level_change(self, node: Node, other_node: Node,
                                    max_rel_change: float, max_abs_change: float,
                                    start=None, end=None,
                                    source: Optional[str] = None
                                    ) -> Optional[LevelChangeViolation]:
        """Compare the calculation points nearest to two junction nodes.

        Both directions are compared, since each direction only visits the
        timestamps of its own reference series; the first direction with a
        violation is returned. A violation is reported at the coordinate of
        ``node``.
        """
        cp = node.segment.get_calculation_point(node.distance)
        other_cp = other_node.segment.get_calculation_point(other_node.distance)
        if cp is None or other_cp is None:
            logger.debug("No calculation point near junction (%s, %s) for %s/%s",
                         node.x, node.y, node.segment.label, other_node.segment.label)
            return None

        location = (node.x, node.y)
        violation = compare_calculation_points(
            node.segment, cp, other_node.segment, other_cp,
            max_rel_change, max_abs_change, self.distance_error_margin,
            start, end, location=location, source=source,
        )
        if violation is None:
            violation = compare_calculation_points(
                other_node.segment, other_cp, node.segment, cp,
                max_rel_change, max_abs_change, self.distance_error_margin,
                start, end, location=location, source=source,
            )
        return violation
