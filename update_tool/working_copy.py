"""Local git working copy bound to one remote repository.

A WorkingCopy owns a single checkout directory plus its remotes: origin,
and optionally a fork that receives pushes when origin is read-only.

Publishing a change is an ordered sequence, enforced by the types each
step returns:

    WorkingCopy.clone(...)          # reuse or clone the checkout
      .create_branch(name, base)    # → BranchSession
      .stage(paths...)              # → BranchSession
      .commit(message)              # → LocalCommit
      .push()                       # → PushedBranch
      .open_pull_request(title)     # → PullRequestRecord

Each git call either succeeds or raises; there are no partial results.
"""

from __future__ import annotations

from pathlib import Path

from .errors import ConfigurationError, WorkflowError
from .hosting import RemoteHosting
from .models import PullRequestRecord
from .remote import Remote
from .shell import git, redact


class WorkingCopy:
    """A git checkout at `directory` whose origin is `url`.

    Use WorkingCopy.clone() rather than the constructor; it makes sure the
    checkout exists and is up to date.

    Args:
        url: Origin URL. Credentials from `host` are added when available.
        directory: Checkout location.
        host: Hosting collaborator, used for authentication and PRs.

    Raises:
        ConfigurationError: If `directory` already holds a checkout of a
            different repository.
    """

    def __init__(
        self, url: str, directory: Path | str, host: RemoteHosting | None = None
    ) -> None:
        self.host = host
        self.dir = Path(directory)
        self.remote = Remote(self._authenticate(url))
        self.fork: Remote | None = None
        self._confirm_cached_repo_has_correct_remote()

    @classmethod
    def clone(
        cls,
        url: str,
        directory: Path | str,
        host: RemoteHosting | None = None,
        *,
        branch: str = "master",
        fork: str = "",
    ) -> WorkingCopy:
        """Clone `url` into `directory`, or reuse the checkout already there.

        Either way the checkout ends up on `branch`, reset to a clean state
        and fast-forwarded to origin. A non-empty `fork` URL is added as the
        push remote.
        """
        working_copy = cls(url, directory, host)
        working_copy.ensure_cloned(branch)
        working_copy.add_fork(fork)
        return working_copy

    def _authenticate(self, url: str) -> str:
        return self.host.add_token_authentication(url) if self.host else url

    @property
    def url(self) -> str:
        return self.remote.url

    @property
    def project_with_org(self) -> str:
        return self.remote.project_with_org

    def git(self, *args: str, check: bool = True) -> list[str]:
        """Run git inside the checkout and return its output lines."""
        return git(*args, cwd=self.dir, check=check).splitlines()

    def _is_checkout(self) -> bool:
        return (self.dir / ".git").exists()

    def _confirm_cached_repo_has_correct_remote(self) -> None:
        """Fail unless an existing directory is a checkout of our remote.

        A checkout whose origin differs only in embedded credentials (for
        example, a rotated token) is repaired in place.
        """
        if not self.dir.exists() or not any(self.dir.iterdir()):
            return
        if not self._is_checkout():
            raise ConfigurationError(
                f"Directory `{self.dir}` exists and is not a git checkout of "
                f"`{redact(self.url)}`"
            )
        origin = Remote.from_dir(self.dir)
        current = origin.url if origin else ""
        if current == self.url:
            return
        if current and redact(current) == redact(self.url):
            self.set_remote_url(self.url, "origin")
            return
        raise ConfigurationError(
            f"Directory `{self.dir}` exists and is a clone of `{redact(current)}` "
            f"rather than `{redact(self.url)}`"
        )

    def ensure_cloned(self, branch: str = "master") -> None:
        """Clone if needed, then check out `branch` clean and up to date."""
        if not self._is_checkout():
            self._fresh_clone()
        self.reset(hard=True)
        self.switch_branch(branch)
        self.pull("origin", branch)

    def _fresh_clone(self) -> None:
        print(f"  Cloning {redact(self.url)} into {self.dir}")
        self.dir.parent.mkdir(parents=True, exist_ok=True)
        git("clone", self.url, str(self.dir))

    def set_remote_url(self, url: str, name: str = "origin") -> None:
        """Add the named remote, or point it at `url` if it already exists."""
        existing = Remote.from_dir(self.dir, name)
        self.git("remote", "set-url" if existing else "add", name, url)

    def add_fork(self, fork_url: str) -> None:
        """Use `fork_url` as the push target for branches.

        Pull requests are still opened against origin, with the head
        reference pointing at the fork ("fork-org:branch").
        """
        if not fork_url:
            return
        self.fork = Remote(self._authenticate(fork_url))
        self.set_remote_url(self.fork.url, "fork")

    @property
    def push_remote(self) -> str:
        return "fork" if self.fork else "origin"

    def status(self) -> list[str]:
        """List modified files (porcelain format); empty when clean."""
        return self.git("status", "--porcelain")

    def staged_files(self) -> list[str]:
        return self.git("diff", "--cached", "--name-only")

    def show(self, ref: str = "HEAD") -> list[str]:
        """Return `git show` output for `ref`: message and diff.

        A merge commit is diffed against its first parent, so a merged pull
        request shows everything it brought into the base branch.
        """
        return self.git("show", "-m", "--first-parent", ref)

    def current_branch(self) -> str:
        return "\n".join(self.git("rev-parse", "--abbrev-ref", "HEAD")).strip()

    def reset(self, ref: str = "", hard: bool = False) -> None:
        args = ["reset"]
        if hard:
            args.append("--hard")
        if ref:
            args.append(ref)
        self.git(*args)

    def switch_branch(self, branch: str) -> None:
        self.git("checkout", branch)

    def pull(self, remote: str, branch: str) -> None:
        self.git("pull", "--ff-only", remote, branch)

    def create_branch(
        self, branch: str, base: str = "master", force: bool = True
    ) -> BranchSession:
        """Create `branch` from `base` and switch to it.

        With force (the default) an existing branch of the same name is
        reset to `base`, so re-running an update recreates its branch
        instead of stacking commits on a stale one.
        """
        self.git("checkout", "-B" if force else "-b", branch, base)
        return BranchSession(self, branch, base)

    def push(self, remote: str = "", branch: str = "", force: bool = False) -> None:
        """Push `branch` (default: current) to `remote` (default: fork or origin)."""
        args = ["push"]
        if force:
            args.append("--force")
        args += [remote or self.push_remote, branch or self.current_branch()]
        self.git(*args)

    def open_pull_request(
        self, title: str, body: str = "", base: str = "master", head: str = ""
    ) -> PullRequestRecord:
        """Ask the hosting service for a PR from `head` into origin's `base`."""
        if self.host is None:
            raise WorkflowError("Cannot open a pull request without a hosting service")
        head = head or self.current_branch()
        if self.fork:
            head = f"{self.fork.org}:{head}"
        return self.host.create_pr(self.project_with_org, title, body, base, head)


class BranchSession:
    """A freshly created branch that changes can be staged on."""

    def __init__(self, working_copy: WorkingCopy, branch: str, base: str) -> None:
        self.working_copy = working_copy
        self.branch = branch
        self.base = base

    def stage(self, *paths: str) -> BranchSession:
        self.working_copy.git("add", "--", *paths)
        return self

    def commit(self, message: str) -> LocalCommit:
        """Commit everything staged so far.

        Raises:
            WorkflowError: If nothing has been staged.
        """
        if not self.working_copy.staged_files():
            raise WorkflowError(f"Nothing staged to commit on {self.branch}")
        self.working_copy.git("commit", "-m", message)
        return LocalCommit(self, message)


class LocalCommit:
    """A commit that exists only in the local checkout."""

    def __init__(self, session: BranchSession, message: str) -> None:
        self.session = session
        self.message = message

    def push(self, force: bool = True) -> PushedBranch:
        """Push the branch to the fork if one is configured, else origin."""
        session = self.session
        session.working_copy.push(branch=session.branch, force=force)
        return PushedBranch(self)


class PushedBranch:
    """A pushed commit, ready to be proposed as a pull request."""

    def __init__(self, commit: LocalCommit) -> None:
        self.commit = commit

    def open_pull_request(self, title: str = "", body: str = "") -> PullRequestRecord:
        session = self.commit.session
        return session.working_copy.open_pull_request(
            title or self.commit.message, body, base=session.base, head=session.branch
        )
