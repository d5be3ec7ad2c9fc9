"""Tests for entity models."""

from __future__ import annotations

import pytest

from gitlab_transfer.exceptions import DataIntegrityError
from gitlab_transfer.models import Issue, parse_state


@pytest.mark.unit
class TestParseState:
    @pytest.mark.parametrize("raw", ["opened", "reopened", "active", "open", "locked", "Opened"])
    def test_open_values(self, raw: str) -> None:
        assert parse_state(raw) == "open"

    @pytest.mark.parametrize("raw", ["closed", "CLOSED", " closed "])
    def test_closed_values(self, raw: str) -> None:
        assert parse_state(raw) == "closed"

    @pytest.mark.parametrize("raw", ["", "merged", "enclosed", "unknown"])
    def test_unknown_values_rejected(self, raw: str) -> None:
        with pytest.raises(DataIntegrityError, match="Unknown state"):
            parse_state(raw)


@pytest.mark.unit
class TestIssue:
    def test_defaults(self) -> None:
        issue = Issue(iid=1, id=10, title="bug")
        assert issue.state == "open"
        assert issue.labels == frozenset()
        assert issue.milestone_iid is None
        assert not issue.is_closed

    def test_is_closed(self) -> None:
        assert Issue(iid=1, id=10, title="bug", state="closed").is_closed
