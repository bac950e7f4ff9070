"""Remote hosting collaborator (GitHub).

The reconciler talks to the hosting service only through the RemoteHosting
protocol, so tests can substitute an in-memory fake. GitHubHost implements
it on top of the GitHub CLI (`gh`), which handles the REST transport.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from .errors import TransportError
from .models import CheckStatus, PullRequestRecord
from .remote import add_token_authentication
from .shell import gh

PR_FIELDS = "number,title,body,headRefName,headRepositoryOwner,state,statusCheckRollup"

# Check-run conclusions and status-context states, as reported by gh.
_PASSING = {"SUCCESS", "NEUTRAL", "SKIPPED"}
_FAILING = {
    "FAILURE",
    "ERROR",
    "CANCELLED",
    "TIMED_OUT",
    "ACTION_REQUIRED",
    "STARTUP_FAILURE",
}


class RemoteHosting(Protocol):
    """Operations the engine needs from a pull-request hosting service."""

    def add_token_authentication(self, url: str) -> str: ...

    def list_open_prs(self, repo: str) -> list[PullRequestRecord]: ...

    def create_pr(
        self, repo: str, title: str, body: str, base: str, head: str
    ) -> PullRequestRecord: ...

    def merge_pr(self, repo: str, number: int, message: str) -> None: ...

    def close_pr(self, repo: str, number: int, comment: str = "") -> None: ...


def summarize_checks(rollup: list[dict[str, Any]] | None) -> CheckStatus:
    """Collapse a statusCheckRollup list into a single CheckStatus.

    Any failing entry fails the whole PR; every entry must have passed for
    the PR to count as passing. No checks at all is NONE, which does not
    allow auto-merge.
    """
    if not rollup:
        return CheckStatus.NONE
    results = [
        (entry.get("conclusion") or entry.get("state") or "").upper()
        for entry in rollup
    ]
    if any(r in _FAILING for r in results):
        return CheckStatus.FAILING
    if all(r in _PASSING for r in results):
        return CheckStatus.PASSING
    return CheckStatus.PENDING


def parse_pull_request(item: dict[str, Any]) -> PullRequestRecord:
    """Build a PullRequestRecord from one `gh pr list --json` entry."""
    owner = item.get("headRepositoryOwner") or {}
    return PullRequestRecord(
        number=item["number"],
        branch=item.get("headRefName", ""),
        owner=owner.get("login", ""),
        title=item.get("title", ""),
        body=item.get("body") or "",
        state=(item.get("state") or "open").lower(),
        checks=summarize_checks(item.get("statusCheckRollup")),
    )


class GitHubHost:
    """RemoteHosting backed by the GitHub CLI.

    Args:
        token: Personal access token; used for gh (as GH_TOKEN) and to
               authenticate https clone/push URLs.
        limit: Maximum number of open pull requests fetched per listing.
    """

    def __init__(self, token: str | None = None, limit: int = 100) -> None:
        self.token = token
        self.limit = limit

    def _gh(self, *args: str) -> str:
        return gh(*args, token=self.token)

    def add_token_authentication(self, url: str) -> str:
        return add_token_authentication(url, self.token)

    def list_open_prs(self, repo: str) -> list[PullRequestRecord]:
        output = self._gh(
            "pr",
            "list",
            "--repo",
            repo,
            "--state",
            "open",
            "--limit",
            str(self.limit),
            "--json",
            PR_FIELDS,
        )
        try:
            items = json.loads(output or "[]")
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Unreadable pull request list for {repo}: {exc}"
            ) from exc
        return [parse_pull_request(item) for item in items]

    def create_pr(
        self, repo: str, title: str, body: str, base: str, head: str
    ) -> PullRequestRecord:
        # gh prints the URL of the new pull request, ending in its number.
        url = self._gh(
            "pr",
            "create",
            "--repo",
            repo,
            "--title",
            title,
            "--body",
            body,
            "--base",
            base,
            "--head",
            head,
        )
        try:
            number = int(url.rstrip("/").rsplit("/", 1)[-1])
        except ValueError as exc:
            raise TransportError(
                f"Unexpected output from gh pr create: {url!r}"
            ) from exc
        owner, _, branch = head.rpartition(":")
        return PullRequestRecord(
            number=number, branch=branch, owner=owner, title=title, body=body
        )

    def merge_pr(self, repo: str, number: int, message: str) -> None:
        self._gh(
            "pr", "merge", str(number), "--repo", repo, "--merge", "--body", message
        )

    def close_pr(self, repo: str, number: int, comment: str = "") -> None:
        args = ["pr", "close", str(number), "--repo", repo]
        if comment:
            args += ["--comment", comment]
        self._gh(*args)
