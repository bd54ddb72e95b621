"""Check runner and logging setup.

The runner executes a batch of checks. A check that fails with a
configuration or processing error is logged and contributes no results;
the remaining checks still run. Cancellation stops the whole batch.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from imodval.errors import CheckCancelled, ConfigurationError, FatalProcessingError

if TYPE_CHECKING:
    from imodval.cancellation import CancellationToken
    from imodval.checks.base import Check
    from imodval.checks.results import ResultLayer
    from imodval.io.stores import GridStore
    from imodval.schemas.internal import InternalConfig

logger = logging.getLogger(__name__)

__all__ = ["setup_logging", "CheckRunner"]


def setup_logging(config: "InternalConfig") -> Optional[Path]:
    """Configure the root logger from the ``logging`` config section.

    Existing handlers are replaced by a console handler and, when
    ``logging.log_dir`` is set, a file handler.

    Returns
    -------
    Path or None
        Path of the log file, if any.
    """
    log_level = getattr(logging, config.logging.level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Clear existing handlers and add new ones
    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    log_path = None
    if config.logging.log_dir:
        log_dir = Path(config.logging.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / config.logging.log_name

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    return log_path


class CheckRunner:
    """Run checks in sequence and collect their result layers.

    Parameters
    ----------
    config : InternalConfig
        ``output_dir`` enables writing results.
    grid_store : GridStore, optional
        Used to save warning grids.
    cancel_token : CancellationToken, optional
        Polled between checks.
    """

    def __init__(self, config: "InternalConfig", grid_store: Optional["GridStore"] = None,
                 cancel_token: Optional["CancellationToken"] = None):
        self.config = config
        self.grid_store = grid_store
        self.cancel_token = cancel_token
        self.failed: List[str] = []

    def run(self, checks: Sequence["Check"]) -> Dict[str, Optional["ResultLayer"]]:
        """Run all checks; failed checks map to None.

        A check whose name is already taken by an earlier check is skipped
        and listed in ``failed``; the earlier result is kept.

        Raises
        ------
        CheckCancelled
            If the run is cancelled.
        """
        results: Dict[str, Optional["ResultLayer"]] = {}
        self.failed = []

        logger.info("=" * 60)
        logger.info("Starting validation: %d check(s)", len(checks))
        logger.info("=" * 60)

        for check in checks:
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            if check.name in results:
                # results, details and output files are keyed by name
                logger.error("Check '%s' skipped: an earlier check has the same name",
                             check.name)
                self.failed.append(check.name)
                continue
            logger.info("Running check '%s'", check.name)
            try:
                layer = check.run()
            except ConfigurationError as e:
                logger.error("Check '%s' skipped: %s", check.name, e)
                self.failed.append(check.name)
                results[check.name] = None
                continue
            except FatalProcessingError as e:
                logger.error("Check '%s' failed: %s", check.name, e)
                self.failed.append(check.name)
                results[check.name] = None
                continue
            except CheckCancelled:
                logger.warning("Validation cancelled during check '%s'", check.name)
                raise

            results[check.name] = layer
            if self.config.output_dir:
                try:
                    self.write_results(layer)
                except (OSError, FatalProcessingError) as e:
                    logger.error("Could not write results of check '%s': %s", check.name, e)

        logger.info("Validation finished: %d check(s) run, %d failed",
                    len(checks), len(self.failed))
        return results

    def write_results(self, layer: "ResultLayer") -> List[Path]:
        """Write the details table and the warning grid of a layer."""
        out_dir = Path(self.config.output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        written = []

        if layer.details:
            path = out_dir / f"{layer.check_name}_details.csv"
            layer.to_frame().to_csv(path, index=False)
            written.append(path)

        if layer.grid is not None and self.grid_store is not None and layer.has_results():
            path = out_dir / f"{layer.check_name}_results.nc"
            self.grid_store.save(layer.grid, path, {"check": layer.check_name,
                                                    "source": layer.source or ""})
            written.append(path)

        for path in written:
            logger.info("Wrote %s", path)
        return written
