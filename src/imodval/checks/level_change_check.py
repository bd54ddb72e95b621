"""Level change check over a segment network.

The level series of neighbouring calculation points are compared: between
consecutive points on every segment, then across every junction of the
network graph, once per pair of nodes from different segments. Each
comparison reports at most its first violating timestamp.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence, Union

from imodval.checks.base import Check
from imodval.checks.results import ResultClass, ResultLayer
from imodval.core.network import (
    LevelChangeViolation,
    NetworkGraph,
    Node,
    Segment,
    compare_calculation_points,
)
from imodval.errors import ConfigurationError

if TYPE_CHECKING:
    from imodval.cancellation import CancellationToken
    from imodval.core.extent import Extent
    from imodval.io.stores import NetworkFileStore
    from imodval.schemas.internal import InternalConfig

logger = logging.getLogger(__name__)

__all__ = ["LEVEL_CHANGE_WARNING", "NetworkLevelChangeCheck"]

LEVEL_CHANGE_WARNING = ResultClass(
    1, "Level change",
    "Level change between calculation points exceeds the allowed change",
)


class NetworkLevelChangeCheck(Check):
    """Check level changes within segments and across junctions.

    Parameters
    ----------
    config : InternalConfig
        Uses the ``network`` section.
    network : sequence of Segment or path
        Segments, or the path of a network to load with ``network_store``.
    network_store : NetworkFileStore, optional
        Needed when ``network`` is a path.
    extent, cellsize : optional
        Warning grid geometry; without them only details are produced.
    """

    name = "network_level_change"

    def __init__(self, config: "InternalConfig",
                 network: Union[Sequence[Segment], str, Path],
                 network_store: Optional["NetworkFileStore"] = None,
                 extent: Optional["Extent"] = None, cellsize: Optional[float] = None,
                 name: Optional[str] = None,
                 cancel_token: Optional["CancellationToken"] = None):
        super().__init__(config, cancel_token)
        self.network = network
        self.network_store = network_store
        self.extent = extent
        self.cellsize = cellsize
        if name:
            self.name = name
        elif isinstance(network, (str, Path)):
            self.name = f"{self.name}_{Path(network).name}"

    def _segments(self) -> List[Segment]:
        if not isinstance(self.network, (str, Path)):
            return list(self.network)
        if self.network_store is None:
            raise ConfigurationError(f"No network store to load {self.network}", self.name)
        segments = self.network_store.load(self.network)
        if segments is None:
            raise ConfigurationError(f"Network not found: {self.network}", self.name)
        return segments

    @property
    def source_name(self) -> Optional[str]:
        if isinstance(self.network, (str, Path)):
            return str(self.network)
        return None

    def run(self) -> ResultLayer:
        graph = NetworkGraph(self._segments(), self.config.network.distance_error_margin,
                             self.config.network.include_interior_nodes, self.cancel_token)
        graph.build_network()

        layer = ResultLayer(self.name, self.source_name, extent=self.extent,
                            cellsize=self.cellsize)
        for segment in graph.segments:
            self._poll()
            self._check_segment(segment, layer)
        junctions = graph.junctions()
        for group in junctions:
            self._poll()
            self._check_junction(graph, group, layer)

        logger.info("%s: %d level change warning(s) in %d segments, %d junctions",
                    self.name, len(layer.details), len(graph.segments), len(junctions))
        return layer

    def _check_junction(self, graph: NetworkGraph, group: List[Node],
                        layer: ResultLayer) -> None:
        cfg = self.config.network
        for i, node in enumerate(group):
            for other in group[i + 1:]:
                if other.segment.label == node.segment.label:
                    continue
                try:
                    violation = graph.check_junction_level_change(
                        node, other, cfg.max_rel_stage_change, cfg.max_abs_stage_change,
                        cfg.start_date, cfg.end_date, source=self.source_name,
                    )
                except (ValueError, KeyError) as e:
                    logger.warning("Could not check level change for segment %s and "
                                   "other segment %s: %s",
                                   node.segment.label, other.segment.label, e)
                    continue
                if violation is not None:
                    self._report(layer, violation)

    def _check_segment(self, segment: Segment, layer: ResultLayer) -> None:
        cfg = self.config.network
        points = segment.calculation_points
        for cp, next_cp in zip(points, points[1:]):
            try:
                violation = compare_calculation_points(
                    segment, cp, segment, next_cp,
                    cfg.max_rel_stage_change, cfg.max_abs_stage_change,
                    cfg.distance_error_margin, cfg.start_date, cfg.end_date,
                    source=self.source_name,
                )
            except (ValueError, KeyError) as e:
                logger.warning("Could not check level change for segment %s, cp '%s' "
                               "and cp '%s': %s", segment.label, cp.name, next_cp.name, e)
                continue
            if violation is not None:
                self._report(layer, violation)

    def _report(self, layer: ResultLayer, violation: LevelChangeViolation) -> None:
        layer.add_result(violation.x, violation.y, LEVEL_CHANGE_WARNING)
        layer.add_detail(violation.x, violation.y, LEVEL_CHANGE_WARNING,
                         f"{violation.describe()} [{violation.label}]",
                         value=abs(violation.value - violation.other_value))
