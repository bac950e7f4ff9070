"""Pull request reconciliation.

Given the identifier of the update a run wants to publish, find out what
the repository's open pull requests already say about it:

- an open PR with an *equivalent* identifier means the work is already
  proposed (reuse it, or merge it once its checks pass);
- open PRs that merely *overlap* (same component, other versions) are
  stale attempts that a new PR supersedes and that should be closed.
"""

from __future__ import annotations

from .hosting import RemoteHosting
from .identifiers import IdentifierMatch, VersionIdentifier, VersionIdentifiers
from .models import CheckStatus, PullRequestRecord


class PullRequestReconciler:
    """Matches version identifiers against one repository's open PRs.

    Args:
        host: Hosting collaborator used to list, merge and close PRs.
        repo: Repository in org/project form.
        identifiers: Codec used to decode PR titles.
    """

    def __init__(
        self, host: RemoteHosting, repo: str, identifiers: VersionIdentifiers
    ) -> None:
        self.host = host
        self.repo = repo
        self.identifiers = identifiers

    def identify(self, pr: PullRequestRecord) -> VersionIdentifier:
        """Decode a PR's identifier from its title, falling back to its body."""
        found = self.identifiers.decode(pr.title)
        if found.is_empty:
            found = self.identifiers.decode(pr.body)
        return found

    def check(
        self, target: VersionIdentifier
    ) -> tuple[bool, list[PullRequestRecord]]:
        """Look for open PRs related to `target`.

        Returns:
            (True, equivalent PRs) when at least one open PR proposes
            exactly this update; otherwise (False, overlapping PRs), the
            older attempts a new PR for `target` will supersede.
        """
        equivalent: list[PullRequestRecord] = []
        overlapping: list[PullRequestRecord] = []
        for pr in self.host.list_open_prs(self.repo):
            if not pr.is_open:
                continue
            match = target.match(self.identify(pr))
            if match is IdentifierMatch.EQUIVALENT:
                equivalent.append(pr)
            elif match is IdentifierMatch.OVERLAPPING:
                overlapping.append(pr)
        if equivalent:
            return True, equivalent
        return False, overlapping

    def close_superseded(
        self,
        candidates: list[PullRequestRecord],
        replacement: PullRequestRecord | None = None,
    ) -> list[int]:
        """Close every candidate PR; returns the numbers closed."""
        comment = f"Superseded by #{replacement.number}." if replacement else ""
        closed: list[int] = []
        for pr in candidates:
            if replacement and pr.number == replacement.number:
                continue
            self.host.close_pr(self.repo, pr.number, comment)
            print(f"  Closed #{pr.number}: {pr.title}")
            closed.append(pr.number)
        return closed

    def merge_if_passing(
        self, candidates: list[PullRequestRecord], message: str
    ) -> bool:
        """Merge each candidate whose checks have all passed.

        Returns:
            True only if every candidate was merged. PRs with pending,
            failing or missing checks are left open.
        """
        all_merged = bool(candidates)
        for pr in candidates:
            if pr.checks is not CheckStatus.PASSING:
                print(f"  #{pr.number}: checks {pr.checks.value}")
                all_merged = False
                continue
            self.host.merge_pr(self.repo, pr.number, message)
            print(f"  Merged #{pr.number}: {pr.title}")
        return all_merged
