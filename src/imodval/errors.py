"""Error taxonomy for validation runs.

Three kinds of problems occur while checking model input:

- Data quality issues (bad records, missing companion files). These are
  reported through the log and processing continues.
- Configuration errors (a whole check lacks its input). The check is
  skipped, sibling checks still run.
- Fatal processing errors (I/O failure mid-iteration, malformed extents).
  These carry file and coordinate context and abort the running check.

Programmer errors are not part of this module, see ``imodval.contracts``.
"""

import logging
from dataclasses import dataclass
from typing import Optional

__all__ = [
    "ImodvalError",
    "ConfigurationError",
    "FatalProcessingError",
    "CheckCancelled",
    "DataQualityIssue",
    "report_issue",
]


class ImodvalError(Exception):
    """Base class for all imodval errors."""


class ConfigurationError(ImodvalError):
    """A check cannot run because required input or settings are missing."""

    def __init__(self, message: str, check_name: Optional[str] = None):
        self.check_name = check_name
        super().__init__(message)


class FatalProcessingError(ImodvalError):
    """Unrecoverable failure while processing a file.

    Parameters
    ----------
    message : str
        Description of the failure.
    path : str or Path, optional
        File that was being processed.
    x, y : float, optional
        World coordinate of the cell being processed, if any.
    """

    def __init__(self, message: str, path=None, x: Optional[float] = None,
                 y: Optional[float] = None):
        self.path = str(path) if path is not None else None
        self.x = x
        self.y = y
        super().__init__(self._with_context(message))

    def _with_context(self, message: str) -> str:
        context = []
        if self.path is not None:
            context.append(f"file={self.path}")
        if self.x is not None and self.y is not None:
            context.append(f"x={self.x}, y={self.y}")
        if context:
            return f"{message} ({'; '.join(context)})"
        return message


class CheckCancelled(ImodvalError):
    """Raised at a cancellation point after the user aborted the run."""


@dataclass(frozen=True)
class DataQualityIssue:
    """Recoverable problem in the input data."""
    message: str
    severity: int = logging.WARNING
    source: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None


def report_issue(log: logging.Logger, issue: DataQualityIssue) -> None:
    """Log a data quality issue; never raises.

    The issue itself is attached to the log record as ``record.issue`` so
    handlers can collect issues in structured form.
    """
    where = ""
    if issue.x is not None and issue.y is not None:
        where = f" at ({issue.x}, {issue.y})"
    source = f"{issue.source}: " if issue.source else ""
    log.log(issue.severity, "%s%s%s", source, issue.message, where,
            extra={"issue": issue})
