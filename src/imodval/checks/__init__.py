"""Checks built on the core engine.

- results: Result classes, detail records, warning layers
- orphan_check: Orphan cells in a grid
- level_change_check: Level changes along and across network segments
- runner: Batch execution and logging setup
"""

from imodval.checks.results import ResultClass, CheckDetail, ResultLayer
from imodval.checks.base import Check
from imodval.checks.orphan_check import OrphanCheck, ORPHAN_WARNING
from imodval.checks.level_change_check import NetworkLevelChangeCheck, LEVEL_CHANGE_WARNING
from imodval.checks.runner import CheckRunner, setup_logging

__all__ = [
    "ResultClass",
    "CheckDetail",
    "ResultLayer",
    "Check",
    "OrphanCheck",
    "ORPHAN_WARNING",
    "NetworkLevelChangeCheck",
    "LEVEL_CHANGE_WARNING",
    "CheckRunner",
    "setup_logging",
]
