"""Tests for update_tool.models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from update_tool.models import CheckStatus, PullRequestRecord, VersionUpdate


class TestVersionUpdate:
    def test_spec_with_datecode(self) -> None:
        update = VersionUpdate(component="8.1", new="8.1.5", datecode="20230601")

        assert update.spec == "8.1.5-20230601"

    def test_spec_without_datecode(self) -> None:
        assert VersionUpdate(component="8.1", new="8.1.5").spec == "8.1.5"


class TestPullRequestRecord:
    def test_head_ref(self) -> None:
        pr = PullRequestRecord(number=1, branch="php-8.1.5", owner="example-bot")

        assert pr.head_ref == "example-bot:php-8.1.5"
        assert pr.model_copy(update={"owner": ""}).head_ref == "php-8.1.5"

    def test_defaults(self) -> None:
        pr = PullRequestRecord(number=1, branch="php-8.1.5")

        assert pr.is_open
        assert pr.checks is CheckStatus.NONE

    def test_closed(self) -> None:
        pr = PullRequestRecord(number=1, branch="b", state="closed")

        assert not pr.is_open

    def test_frozen(self) -> None:
        pr = PullRequestRecord(number=1, branch="b")

        with pytest.raises(ValidationError):
            pr.title = "changed"
