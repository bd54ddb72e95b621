"""Base class for checks."""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from imodval.cancellation import CancellationToken
    from imodval.checks.results import ResultLayer
    from imodval.schemas.internal import InternalConfig

logger = logging.getLogger(__name__)


class Check(ABC):
    """A validation rule over one input.

    Subclasses read their settings from the InternalConfig and translate
    them into the plain parameters of the core components.
    """

    name = "check"

    def __init__(self, config: "InternalConfig",
                 cancel_token: Optional["CancellationToken"] = None):
        self.config = config
        self.cancel_token = cancel_token

    @abstractmethod
    def run(self) -> "ResultLayer":
        """Run the check.

        Raises
        ------
        ConfigurationError
            If required input is missing; only this check is skipped.
        FatalProcessingError
            If the input cannot be processed.
        CheckCancelled
            If the run was cancelled.
        """

    def _poll(self) -> None:
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"
