"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from imodval.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a component contract.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.

    message : str
        Error message explaining the contract violation (for debugging).

    Raises
    ------
    ContractViolation
        If condition is False. This indicates a bug in the calling code.

    Examples
    --------
    >>> require(grid.values.ndim == 2, "Grid contract violated: values must be 2D")
    >>> require(graph.is_built, "Network contract violated: build_network() not called")
    """
    if not condition:
        raise ContractViolation(message)
