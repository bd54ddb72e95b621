"""Grid contracts.

Enforce the header/array consistency of a grid and forbid access to the
values of a released grid.
"""

import math

from imodval.contracts.base import require


def assert_grid_consistent(grid) -> None:
    """Enforce grid geometry contract.

    Called when a grid is constructed or derived. Verifies that the value
    array matches the extent and cell size.

    Parameters
    ----------
    grid : Grid
        Grid with loaded values.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        grid.xcellsize > 0 and grid.ycellsize > 0,
        f"Grid contract violated: cellsize must be positive, got "
        f"({grid.xcellsize}, {grid.ycellsize})"
    )
    extent = grid.extent
    require(
        all(math.isfinite(v) for v in extent.as_tuple()),
        f"Grid contract violated: extent {extent.as_tuple()} is not finite"
    )
    values = grid.values
    require(
        values.ndim == 2,
        f"Grid contract violated: values have {values.ndim} dims, expected 2"
    )
    expected = (int(round(extent.height / grid.ycellsize)),
                int(round(extent.width / grid.xcellsize)))
    require(
        values.shape == expected,
        f"Grid contract violated: values shape {values.shape} does not match "
        f"extent/cellsize {expected}"
    )


def assert_values_loaded(grid) -> None:
    """Fail fast when values of a released grid are accessed."""
    require(
        not grid.is_released,
        f"Grid contract violated: values of grid '{grid.name}' were released"
    )
