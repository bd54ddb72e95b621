"""Tests for the check runner and logging setup."""

import logging

import numpy as np
import pytest

from imodval.cancellation import CancellationToken
from imodval.checks import CheckRunner, OrphanCheck, setup_logging
from imodval.checks.base import Check
from imodval.checks.results import ResultLayer
from imodval.errors import CheckCancelled, ConfigurationError, FatalProcessingError
from imodval.io import NetCDFGridStore
from tests.helpers.fake_grids import make_grid, make_orphan_grid

pytestmark = pytest.mark.unit


class StaticCheck(Check):
    """Check returning an empty layer or raising a given error."""

    def __init__(self, config, name, error=None):
        super().__init__(config)
        self.name = name
        self.error = error

    def run(self):
        if self.error is not None:
            raise self.error
        return ResultLayer(self.name)


class TestCheckRunner:
    """Batch execution with isolated failures."""

    def test_failed_checks_are_isolated(self, internal_config):
        checks = [
            StaticCheck(internal_config, "no_input", ConfigurationError("no input")),
            StaticCheck(internal_config, "broken", FatalProcessingError("bad file")),
            StaticCheck(internal_config, "fine"),
        ]
        runner = CheckRunner(internal_config)
        results = runner.run(checks)

        assert results["no_input"] is None
        assert results["broken"] is None
        assert isinstance(results["fine"], ResultLayer)
        assert runner.failed == ["no_input", "broken"]

    def test_cancellation_propagates(self, internal_config):
        checks = [StaticCheck(internal_config, "cancelled", CheckCancelled("stop")),
                  StaticCheck(internal_config, "never")]
        with pytest.raises(CheckCancelled):
            CheckRunner(internal_config).run(checks)

    def test_cancelled_before_start(self, internal_config):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(CheckCancelled):
            CheckRunner(internal_config, cancel_token=token).run(
                [StaticCheck(internal_config, "fine")])

    def test_checks_on_different_grids_keep_their_results(self, internal_config):
        heads = make_orphan_grid()
        heads.name = "heads"
        stage = make_grid(np.full((3, 3), 1.0), name="stage")
        results = CheckRunner(internal_config).run([OrphanCheck(internal_config, heads),
                                                    OrphanCheck(internal_config, stage)])

        assert sorted(results) == ["orphan_heads", "orphan_stage"]
        assert len(results["orphan_heads"].details) == 1
        assert results["orphan_stage"].details == []

    def test_duplicate_name_is_skipped(self, internal_config, caplog):
        first = OrphanCheck(internal_config, make_orphan_grid(), name="orphans")
        second = OrphanCheck(internal_config, make_grid(np.full((3, 3), 1.0)), name="orphans")
        runner = CheckRunner(internal_config)
        with caplog.at_level(logging.ERROR):
            results = runner.run([first, second])

        assert runner.failed == ["orphans"]
        assert len(results["orphans"].details) == 1
        assert "same name" in caplog.text

    def test_results_are_written(self, make_config, temp_dir):
        config = make_config(OUTPUT_DIR=str(temp_dir / "results"))
        runner = CheckRunner(config, grid_store=NetCDFGridStore())
        runner.run([OrphanCheck(config, make_orphan_grid(), name="orphans")])

        assert (temp_dir / "results" / "orphans_details.csv").exists()
        saved = NetCDFGridStore().load(temp_dir / "results" / "orphans_results.nc")
        assert saved.get_value(250, 250) == 1


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)

    def test_console_only(self, internal_config):
        assert setup_logging(internal_config) is None
        assert logging.getLogger().level == logging.INFO

    def test_log_file(self, make_config, temp_dir):
        config = make_config(LOG_DIR=str(temp_dir / "logs"), LOG_LEVEL="debug")
        path = setup_logging(config)
        logging.getLogger("imodval.test").debug("hello log file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert path == temp_dir / "logs" / "imodval.log"
        assert "hello log file" in path.read_text()
