"""Update pipeline: probe → patch → identify → reconcile → publish.

This module orchestrates the two php update commands:

php:rpm:update
1. Check out rpmbuild-php and read the php version of every php*/php.spec
2. Probe the php download server for newer patch releases
3. Rewrite the spec files for the versions that moved on
4. Reconcile with open pull requests and publish a PR if needed

php:cookbook:update
1. Read the php builds changed by the latest rpmbuild-php commit
2. Patch the php cookbook to deploy those builds
3. Reconcile with open pull requests and publish a PR if needed

The key property is convergence: an update is identified by the versions
named in its commit message, so repeated runs find the PR an earlier run
opened instead of creating a duplicate, and close PRs it supersedes.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path

from .config import ProjectConfig, Settings
from .errors import ConfigurationError, UpstreamUnavailableError
from .hosting import RemoteHosting
from .identifiers import VersionIdentifiers
from .models import UpdateDecision, VersionUpdate
from .patcher import (
    apply_version_specs,
    find_spec_versions,
    parse_version_updates,
    update_rpm_spec,
)
from .reconcile import PullRequestReconciler
from .shell import redact, step, warn
from .versions import VersionProbe, major_minor, sort_versions
from .working_copy import WorkingCopy

RPMBUILD_PHP = "rpmbuild-php"
PHP_COOKBOOK = "php-cookbook"


def compose_message(
    identifiers: VersionIdentifiers,
    preamble: str,
    updates: Mapping[str, VersionUpdate],
) -> str:
    """Build the commit message / PR title naming every updated version.

    Versions are listed lowest first, e.g. "Update to php-8.1.5 and php-8.2.3".

    Raises:
        ConfigurationError: If a version does not fill the configured
            identifier patterns.
    """
    try:
        return identifiers.encode(
            preamble, sort_versions(u.new for u in updates.values())
        )
    except ValueError as exc:
        raise ConfigurationError(
            f"{exc}; check identifiers.vid-pattern and identifiers.vval-pattern"
        ) from exc


def branch_name(prefix: str, updates: Mapping[str, VersionUpdate]) -> str:
    """Deterministic branch name for a set of updates, e.g. "php-8.1.5-8.2.3"."""
    return prefix + "-".join(sort_versions(u.new for u in updates.values()))


def auto_merge_message() -> str:
    """Merge commit message, pointing at the CI build when there is one."""
    message = "Automatically merging PR"
    build_url = os.environ.get("CIRCLE_BUILD_URL")
    if build_url:
        message += f" from {build_url}"
    return message


def checkout(
    project: ProjectConfig,
    host: RemoteHosting | None,
    *,
    with_fork: bool = True,
) -> WorkingCopy:
    """Clone or refresh a project's working copy on its base branch."""
    working_copy = WorkingCopy.clone(
        project.repo,
        project.path,
        host,
        branch=project.base_branch,
        fork=project.fork if with_fork else "",
    )
    print(f"  Checked out {working_copy.project_with_org} to {project.path}")
    return working_copy


def find_rpm_updates(
    work_dir: Path, probe: VersionProbe, datecode: str, download_url: str
) -> dict[str, VersionUpdate]:
    """Probe upstream for each spec file's php version and apply updates.

    Spec files whose version has a newer patch release get the new
    version and `datecode` written into them.

    Returns:
        Map of component → VersionUpdate for the spec files changed.

    Raises:
        UpstreamUnavailableError: If a currently packaged version cannot
            be found upstream.
    """
    step("Checking for newer php releases")

    updates: dict[str, VersionUpdate] = {}
    for spec, current in find_spec_versions(work_dir).items():
        latest = probe.find_latest_available(current)
        if latest is None:
            raise UpstreamUnavailableError(
                f"Could not find current php {current} on php downloads server. "
                f"Using url: {redact(download_url)}. Check configuration and network."
            )
        if latest == current:
            print(f"  {current} is the most recent version")
            continue
        print(f"  {latest} is available, but we are still on version {current}")
        update_rpm_spec(spec, latest, datecode)
        component = major_minor(latest)
        updates[component] = VersionUpdate(
            component=component, old=current, new=latest, datecode=datecode
        )
    return updates


def publish_update(
    working_copy: WorkingCopy,
    reconciler: PullRequestReconciler,
    *,
    message: str,
    branch: str,
    paths: Sequence[str],
    base: str = "master",
    auto_merge: bool = False,
    dry_run: bool = False,
) -> UpdateDecision:
    """Reconcile an update with open PRs, opening a new PR when needed.

    - An open PR proposing exactly this update is reused, or merged when
      auto_merge is on and its checks have passed.
    - Otherwise a branch is (re)created from `base`, `paths` are committed
      and pushed, a PR is opened, and older PRs for the same components
      are closed as superseded.

    With dry_run nothing is committed, pushed, merged or closed.
    """
    step("Checking open pull requests")
    target = reconciler.identifiers.decode(message)
    found, prs = reconciler.check(target)

    if found:
        numbers = ", ".join(f"#{pr.number}" for pr in prs)
        if not auto_merge or dry_run:
            print(f"  Existing pull request {numbers} for this update; nothing to do.")
            return UpdateDecision.EXISTING_PR_REUSED
        if reconciler.merge_if_passing(prs, auto_merge_message()):
            print(f"  Existing pull request {numbers} had passing tests; merged it.")
            return UpdateDecision.EXISTING_PR_MERGED
        warn(
            f"Existing pull request {numbers} for this update has not passed "
            "all of its tests yet. Waiting."
        )
        return UpdateDecision.AWAITING_CHECKS

    if dry_run:
        print(f"  Dry run: would commit to {branch} and open a pull request")
        for pr in prs:
            print(f"  Dry run: would close #{pr.number}: {pr.title}")
        return UpdateDecision.DRY_RUN

    step(f"Creating pull request from {branch}")
    pr = (
        working_copy.create_branch(branch, base)
        .stage(*paths)
        .commit(message)
        .push()
        .open_pull_request(message)
    )
    print(f"  Opened #{pr.number} ({pr.head_ref} → {base})")
    # Older attempts at the same components no longer describe the target.
    reconciler.close_superseded(prs, replacement=pr)
    return UpdateDecision.NEW_PR_CREATED


def php_rpm_update(
    settings: Settings,
    host: RemoteHosting,
    *,
    auto_merge: bool = True,
    dry_run: bool = False,
    probe: VersionProbe | None = None,
    now: datetime | None = None,
) -> UpdateDecision:
    """Open a PR on rpmbuild-php for any newer php patch releases.

    Args:
        settings: Loaded configuration.
        host: Hosting collaborator.
        auto_merge: Merge an existing equivalent PR once its checks pass.
        dry_run: Compute the decision without publishing anything.
        probe: Upstream version probe; defaults to the configured
               php-net.download-url.
        now: Clock override; the rpm datecode is now's UTC date.
    """
    download_url = settings.download_url
    probe = probe or VersionProbe.from_template(download_url)
    project = settings.project(RPMBUILD_PHP)
    datecode = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")

    step(f"Updating {RPMBUILD_PHP}")
    rpmbuild = checkout(project, host)

    updates = find_rpm_updates(rpmbuild.dir, probe, datecode, download_url)
    if not updates:
        print("\nNothing was updated.")
        return UpdateDecision.NO_CHANGE

    identifiers = settings.version_identifiers()
    message = compose_message(identifiers, settings.preamble, updates)
    print(f"  Commit message: {message}")

    reconciler = PullRequestReconciler(host, rpmbuild.project_with_org, identifiers)
    return publish_update(
        rpmbuild,
        reconciler,
        message=message,
        branch=branch_name(settings.branch_prefix, updates),
        paths=["php-*"],
        base=project.base_branch,
        auto_merge=auto_merge,
        dry_run=dry_run,
    )


def php_cookbook_update(
    settings: Settings, host: RemoteHosting, *, dry_run: bool = False
) -> UpdateDecision:
    """Open a PR on the php cookbook deploying the latest rpmbuild-php builds.

    The builds come from the most recent rpmbuild-php commit: each spec
    file in its diff whose rpm_datecode changed names a build to deploy.
    """
    rpm_project = settings.project(RPMBUILD_PHP)
    cookbook_project = settings.project(PHP_COOKBOOK)
    if not cookbook_project.src:
        raise ConfigurationError(
            f"Missing required setting projects.{PHP_COOKBOOK}.src"
        )

    step(f"Reading latest builds from {RPMBUILD_PHP}")
    rpmbuild = checkout(rpm_project, host, with_fork=False)
    updates = parse_version_updates(rpmbuild.show("HEAD"))
    if not updates:
        print("\nNothing was updated.")
        return UpdateDecision.NO_CHANGE
    for update in updates.values():
        if update.old:
            print(f"  php {update.component}: {update.old} → {update.spec}")
        else:
            print(f"  php {update.component}: {update.spec}")

    step(f"Updating {PHP_COOKBOOK}")
    cookbook = checkout(cookbook_project, host)

    identifiers = settings.version_identifiers()
    message = compose_message(identifiers, settings.preamble, updates)
    print(f"  Commit message: {message}")

    apply_version_specs(cookbook.dir / cookbook_project.src, updates)
    if not cookbook.status():
        print("\nNothing was updated.")
        return UpdateDecision.NO_CHANGE

    reconciler = PullRequestReconciler(host, cookbook.project_with_org, identifiers)
    return publish_update(
        cookbook,
        reconciler,
        message=message,
        branch=branch_name(settings.branch_prefix, updates),
        paths=[cookbook_project.src],
        base=cookbook_project.base_branch,
        dry_run=dry_run,
    )
