"""Data models for update-tool.

These Pydantic models represent the core data structures passed between
the version probe, the file patcher, the working copy and the pull
request reconciler.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class VersionUpdate(BaseModel):
    """Records a version change for one tracked component.

    A run's full set of changes is a dict of component → VersionUpdate;
    an empty dict means there is nothing to do.

    Attributes:
        component: The major.minor line being updated (e.g. "8.1").
        old: The version before updating, when known.
        new: The target version (e.g. "8.1.5").
        datecode: Build/date code of the artifact (e.g. "20230101").
    """

    component: str
    new: str
    old: str | None = None
    datecode: str | None = None

    @property
    def spec(self) -> str:
        """The full version string as written into tracked files."""
        if self.datecode:
            return f"{self.new}-{self.datecode}"
        return self.new


class CheckStatus(str, Enum):
    """Aggregate CI status of a pull request."""

    PASSING = "passing"
    PENDING = "pending"
    FAILING = "failing"
    NONE = "none"


class PullRequestRecord(BaseModel):
    """An open or closed pull request as reported by the hosting service.

    The engine only reads these; state transitions are requested through
    the hosting collaborator.
    """

    model_config = ConfigDict(frozen=True)

    number: int
    branch: str
    owner: str = ""
    title: str = ""
    body: str = ""
    state: str = "open"
    checks: CheckStatus = CheckStatus.NONE

    @property
    def head_ref(self) -> str:
        """Head reference in owner:branch form (just branch if owner is unknown)."""
        return f"{self.owner}:{self.branch}" if self.owner else self.branch

    @property
    def is_open(self) -> bool:
        return self.state == "open"


class UpdateDecision(str, Enum):
    """Terminal outcome of a single update run."""

    NO_CHANGE = "NoChange"
    EXISTING_PR_REUSED = "ExistingPRReused"
    EXISTING_PR_MERGED = "ExistingPRMerged"
    NEW_PR_CREATED = "NewPRCreated"
    AWAITING_CHECKS = "AwaitingChecks"
    DRY_RUN = "DryRun"
