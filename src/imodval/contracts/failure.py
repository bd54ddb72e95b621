"""Failure type for contract violations.

All violations raise the same exception type, so callers can tell usage
bugs apart from data problems (``imodval.errors``).
"""


class ContractViolation(RuntimeError):
    """Raised when a component contract is violated.

    Key distinction:
    - ValueError / ValidationError: bad user input or config
    - ContractViolation: component misuse (programmer error)
    - ImodvalError subclasses: data and processing problems
    """
    pass
