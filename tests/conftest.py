"""Shared test fixtures."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

import pytest

from update_tool.models import CheckStatus, PullRequestRecord

requires_git = pytest.mark.skipif(
    shutil.which("git") is None, reason="git is not installed"
)

RPM_SPEC = """\
%define php_version {version}
%define rpm_datecode {datecode}

Name: php
Version: %{{php_version}}
Release: %{{rpm_datecode}}
"""

COOKBOOK_SRC = """\
PHP_BUILDS = {
  '8.1' => '8.1.4-20230101',
  '8.2' => '8.2.3-20230101',
}
"""


def run_git(*args: str, cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def rpm_spec(version: str, datecode: str = "20230101") -> str:
    return RPM_SPEC.format(version=version, datecode=datecode)


@dataclass
class RemoteRepo:
    """A bare repository standing in for a hosted remote, plus a seed clone."""

    bare: Path
    seed: Path

    @property
    def url(self) -> str:
        return str(self.bare)

    def commit(self, files: dict[str, str], message: str) -> None:
        """Commit `files` on master and push them to the bare repo."""
        for name, content in files.items():
            path = self.seed / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        run_git("add", "-A", cwd=self.seed)
        run_git("commit", "-m", message, cwd=self.seed)
        run_git("push", "origin", "master", cwd=self.seed)

    def merge(self, branch: str, files: dict[str, str], message: str) -> None:
        """Commit `files` on `branch`, merge it into master with --no-ff, push."""
        run_git("checkout", "-b", branch, cwd=self.seed)
        for name, content in files.items():
            path = self.seed / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        run_git("add", "-A", cwd=self.seed)
        run_git("commit", "-m", message, cwd=self.seed)
        run_git("checkout", "master", cwd=self.seed)
        run_git(
            "merge", "--no-ff", "-m", f"Merge branch '{branch}'", branch, cwd=self.seed
        )
        run_git("push", "origin", "master", cwd=self.seed)

    def branches(self) -> list[str]:
        refs = run_git(
            "for-each-ref", "--format=%(refname:short)", "refs/heads", cwd=self.bare
        )
        return sorted(refs.splitlines())

    def show(self, ref: str, path: str) -> str:
        return run_git("show", f"{ref}:{path}", cwd=self.bare)


@pytest.fixture(autouse=True)
def git_identity(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Give git a committer identity and shield it from user/system config."""
    config = tmp_path_factory.mktemp("gitconfig") / "config"
    config.write_text("")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Update Bot")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "bot@example.com")
    monkeypatch.delenv("CIRCLE_BUILD_URL", raising=False)


@pytest.fixture
def make_remote(tmp_path: Path):
    """Factory creating bare repos at <tmp>/remotes/<org>/<name>.git."""

    def _make(org: str, name: str, files: dict[str, str]) -> RemoteRepo:
        bare = tmp_path / "remotes" / org / f"{name}.git"
        bare.mkdir(parents=True)
        run_git("init", "--bare", "--initial-branch=master", cwd=bare)
        seed = tmp_path / "seeds" / org / name
        seed.mkdir(parents=True)
        run_git("init", "--initial-branch=master", cwd=seed)
        run_git("remote", "add", "origin", str(bare), cwd=seed)
        repo = RemoteRepo(bare=bare, seed=seed)
        repo.commit(files, "Initial commit")
        return repo

    return _make


@pytest.fixture
def make_fork(tmp_path: Path):
    """Factory copying a bare repo to <tmp>/remotes/<org>/<name>.git."""

    def _make(origin: RemoteRepo, org: str) -> RemoteRepo:
        bare = tmp_path / "remotes" / org / origin.bare.name
        bare.parent.mkdir(parents=True, exist_ok=True)
        run_git("clone", "--bare", str(origin.bare), str(bare), cwd=tmp_path)
        return RemoteRepo(bare=bare, seed=origin.seed)

    return _make


@pytest.fixture
def rpmbuild_remote(make_remote) -> RemoteRepo:
    """rpmbuild-php with php 8.1.4 and 8.2.3 spec files."""
    return make_remote(
        "origin-org",
        "rpmbuild-php",
        {
            "php-8.1/php.spec": rpm_spec("8.1.4"),
            "php-8.2/php.spec": rpm_spec("8.2.3"),
            "README.md": "php rpms\n",
        },
    )


@pytest.fixture
def upstream(tmp_path: Path):
    """Factory publishing php tarballs into a local download directory.

    Returns the download-url template for the directory.
    """
    dist = tmp_path / "distributions"
    dist.mkdir()

    def _publish(*versions: str) -> str:
        for version in versions:
            (dist / f"php-{version}.tar.gz").write_text("tarball")
        return str(dist / "php-{version}.tar.gz")

    return _publish


class FakeHost:
    """In-memory RemoteHosting that records every request."""

    def __init__(self) -> None:
        self.prs: dict[str, list[PullRequestRecord]] = {}
        self.created: list[tuple[str, PullRequestRecord, str]] = []
        self.merged: list[tuple[int, str]] = []
        self.closed: list[tuple[int, str]] = []
        self._next_number = 100

    def add_pr(
        self,
        repo: str,
        number: int,
        title: str,
        *,
        branch: str = "",
        checks: CheckStatus = CheckStatus.NONE,
        body: str = "",
    ) -> PullRequestRecord:
        pr = PullRequestRecord(
            number=number,
            branch=branch or f"branch-{number}",
            owner="origin-org",
            title=title,
            body=body,
            checks=checks,
        )
        self.prs.setdefault(repo, []).append(pr)
        return pr

    def _set_state(self, repo: str, number: int, state: str) -> None:
        self.prs[repo] = [
            pr.model_copy(update={"state": state}) if pr.number == number else pr
            for pr in self.prs.get(repo, [])
        ]

    def add_token_authentication(self, url: str) -> str:
        return url

    def list_open_prs(self, repo: str) -> list[PullRequestRecord]:
        return [pr for pr in self.prs.get(repo, []) if pr.is_open]

    def create_pr(
        self, repo: str, title: str, body: str, base: str, head: str
    ) -> PullRequestRecord:
        owner, _, branch = head.rpartition(":")
        pr = PullRequestRecord(
            number=self._next_number, branch=branch, owner=owner, title=title, body=body
        )
        self._next_number += 1
        self.prs.setdefault(repo, []).append(pr)
        self.created.append((repo, pr, base))
        return pr

    def merge_pr(self, repo: str, number: int, message: str) -> None:
        self.merged.append((number, message))
        self._set_state(repo, number, "merged")

    def close_pr(self, repo: str, number: int, comment: str = "") -> None:
        self.closed.append((number, comment))
        self._set_state(repo, number, "closed")


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()
