"""Component contracts - fail-fast enforcement of invariants.

Contracts fail immediately and loudly when a component is used in a way
that breaks its guarantees: reading a released grid, reading a grid the
cursor does not know, querying a network before it was built.

Key principle:
- Pydantic validates config correctness
- Contracts validate component usage
- Checks handle data quality issues (logged, not raised)
"""

from imodval.contracts.failure import ContractViolation
from imodval.contracts.base import require
from imodval.contracts.grid import assert_grid_consistent, assert_values_loaded
from imodval.contracts.network import assert_segment_ordered, assert_network_built

__all__ = [
    "ContractViolation",
    "require",
    "assert_grid_consistent",
    "assert_values_loaded",
    "assert_segment_ordered",
    "assert_network_built",
]
