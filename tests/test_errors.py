"""Tests for the error taxonomy and cancellation token."""

import logging

import pytest

from imodval.cancellation import CancellationToken
from imodval.errors import (
    CheckCancelled,
    ConfigurationError,
    DataQualityIssue,
    FatalProcessingError,
    ImodvalError,
    report_issue,
)

pytestmark = pytest.mark.unit


class TestErrors:

    def test_fatal_error_carries_context(self):
        err = FatalProcessingError("Read failed", path="heads.nc", x=50.0, y=150.0)
        assert str(err) == "Read failed (file=heads.nc; x=50.0, y=150.0)"
        assert (err.x, err.y) == (50.0, 150.0)

    def test_fatal_error_without_context(self):
        assert str(FatalProcessingError("Read failed")) == "Read failed"

    def test_hierarchy(self):
        for cls in (ConfigurationError, FatalProcessingError, CheckCancelled):
            assert issubclass(cls, ImodvalError)
        assert ConfigurationError("missing", "orphan").check_name == "orphan"

    def test_issue_is_attached_to_record(self, caplog):
        issue = DataQualityIssue("Bad record", source="points.csv", x=1.0, y=2.0)
        log = logging.getLogger("imodval.test")
        with caplog.at_level(logging.WARNING):
            report_issue(log, issue)
        assert caplog.records[-1].issue is issue
        assert "points.csv: Bad record at (1.0, 2.0)" in caplog.text


class TestCancellationToken:

    def test_not_cancelled_by_default(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

    def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        assert token.is_cancelled
        with pytest.raises(CheckCancelled):
            token.raise_if_cancelled()
