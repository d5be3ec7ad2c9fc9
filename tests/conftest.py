"""
Pytest configuration and fixtures.

This module configures pytest behavior for different test types:
- Integration tests: Fail on any warnings logged by the code under test
- Unit tests: Allow warnings

Fixtures provide in-memory source and destination trackers (see fakes.py).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from typing_extensions import override

import pytest

from fakes import DEST_PROJECT, SOURCE_PROJECT, FakeTracker

from gitlab_transfer.models import User

if TYPE_CHECKING:
    from collections.abc import Generator

# Store warning records during test execution
_integration_test_warnings: dict[str, list[logging.LogRecord]] = {}


class IntegrationTestWarningHandler(logging.Handler):
    """Custom logging handler to capture warnings during integration tests."""

    test_nodeid: str

    def __init__(self, test_nodeid: str) -> None:
        super().__init__()
        self.test_nodeid = test_nodeid
        self.setLevel(logging.WARNING)

    @override
    def emit(self, record: logging.LogRecord) -> None:
        """Capture WARNING and above level logs."""
        if self.test_nodeid not in _integration_test_warnings:
            _integration_test_warnings[self.test_nodeid] = []
        _integration_test_warnings[self.test_nodeid].append(record)


@pytest.fixture(autouse=True)
def fail_on_log_warnings_for_integration_tests(
    request: pytest.FixtureRequest,
) -> Generator[None]:
    """
    Automatically fail integration tests if any WARNING level logs are emitted from the code under test.

    A clean end-to-end transfer is expected to log nothing above INFO; a
    warning (e.g. an unresolved milestone reference) means the scenario did
    not go the way the test assumes.
    """
    is_integration_test = request.node.get_closest_marker("integration") is not None

    if not is_integration_test:
        yield
        return

    test_nodeid = request.node.nodeid
    _integration_test_warnings[test_nodeid] = []

    handler = IntegrationTestWarningHandler(test_nodeid)
    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    try:
        yield
    finally:
        root_logger.removeHandler(handler)


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None]:  # type: ignore[misc]
    """
    Mark a passed integration test as failed if warnings were logged during it.
    """
    outcome = yield
    report = outcome.get_result()

    if call.when == "call" and report.outcome == "passed":
        test_nodeid = item.nodeid
        warning_records = _integration_test_warnings.get(test_nodeid, [])

        if warning_records:
            warning_messages = [
                f"{record.levelname}: {record.getMessage()} (in {record.name}:{record.lineno})"
                for record in warning_records
            ]
            report.outcome = "failed"
            report.longrepr = f"Integration test failed: {len(warning_records)} warning(s) detected:\n" + "\n".join(
                f"  - {msg}" for msg in warning_messages
            )

        _integration_test_warnings.pop(test_nodeid, None)


@pytest.fixture
def source_tracker() -> FakeTracker:
    return FakeTracker(
        projects=[SOURCE_PROJECT],
        users=[User(id=1, name="Alice", username="alice"), User(id=2, name="Bob", username="bob")],
        next_id=100,
    )


@pytest.fixture
def dest_tracker() -> FakeTracker:
    return FakeTracker(projects=[DEST_PROJECT], users=[User(id=42, name="Importer", username="importer")], next_id=900)
