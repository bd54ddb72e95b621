"""Network contracts."""

from imodval.contracts.base import require


def assert_segment_ordered(segment) -> None:
    """Calculation points must be ordered by increasing distance."""
    distances = [cp.distance for cp in segment.calculation_points]
    require(
        all(a <= b for a, b in zip(distances, distances[1:])),
        f"Network contract violated: calculation points of segment "
        f"'{segment.label}' are not ordered by distance"
    )


def assert_network_built(graph) -> None:
    require(
        graph.is_built,
        "Network contract violated: build_network() must be called before queries"
    )
