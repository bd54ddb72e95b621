"""`imodval` - validation engine for groundwater model input datasets.

Subpackages:
- core: Grids, multi-grid cursor, orphan detection, segment network
- io: Grid, point/time-series and network file stores
- checks: Result layers, checks built on the core, check runner
- schemas: Pydantic configuration (param, user, internal)
- contracts: Fail-fast invariants between components
"""

__version__ = "0.1.0"
