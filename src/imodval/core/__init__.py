"""Core engine: grids, multi-grid cursor, orphan detection, network graph."""

from imodval.core.extent import Extent
from imodval.core.grid import Grid, ConstantGrid, ResampleMethod
from imodval.core.cursor import MultiGridCursor, ExtentMethod
from imodval.core.connectivity import ConnectivityAnalyzer, OrphanParams, OrphanAnalysis
from imodval.core.upscaler import GridUpscaler
from imodval.core.network import (
    Node,
    CalculationPoint,
    Segment,
    NetworkGraph,
    LevelChangeViolation,
    check_level_change,
    compare_calculation_points,
)

__all__ = [
    "Extent",
    "Grid",
    "ConstantGrid",
    "ResampleMethod",
    "MultiGridCursor",
    "ExtentMethod",
    "ConnectivityAnalyzer",
    "OrphanParams",
    "OrphanAnalysis",
    "GridUpscaler",
    "Node",
    "CalculationPoint",
    "Segment",
    "NetworkGraph",
    "LevelChangeViolation",
    "check_level_change",
    "compare_calculation_points",
]
