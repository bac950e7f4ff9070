"""Deterministic textual patching of tracked files.

Two kinds of files are maintained:
- rpm spec files (php-8.1/php.spec), whose `%define php_version` and
  `%define rpm_datecode` lines record the packaged php build.
- a cookbook source file that pins builds as quoted literals such as
  '8.1.3-20230101'.

Every function here reports whether it actually changed the file; a patch
that leaves the file untouched is a normal "nothing to do" outcome.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from pathlib import Path

from .models import VersionUpdate
from .versions import major_minor

PHP_VERSION_DEFINE = re.compile(r"^%define php_version\s+(\S+)", re.MULTILINE)


def _write_if_changed(path: Path, original: str, patched: str) -> bool:
    if patched == original:
        return False
    path.write_text(patched)
    return True


def apply_version_specs(path: Path, updates: Mapping[str, VersionUpdate]) -> bool:
    """Point pinned build literals in `path` at the new builds.

    For each update, a quoted literal of the same major.minor line with a
    datecode suffix (e.g. '8.1.3-20230101') is replaced by the update's
    full spec ('8.1.5-20230601'). Literals of other lines are left alone,
    so updating 8.1 never touches an '8.2.x-...' entry.

    Args:
        path: File to patch in place.
        updates: Map of component → VersionUpdate, as built by
                 parse_version_updates().

    Returns:
        True if the file content changed.
    """
    original = path.read_text()
    contents = original
    for update in updates.values():
        line = re.escape(major_minor(update.new))
        pattern = re.compile(rf"(['\"]){line}\.[0-9]+-[0-9]{{8}}\1")
        replacement = update.spec
        contents = pattern.sub(
            lambda m: f"{m.group(1)}{replacement}{m.group(1)}", contents
        )
    return _write_if_changed(path, original, contents)


def update_rpm_spec(path: Path, version: str, datecode: str) -> bool:
    """Rewrite the php_version and rpm_datecode defines of a spec file.

    Returns:
        True if the file content changed.
    """
    original = path.read_text()
    contents = re.sub(
        r"^(%define php_version\s+).*$",
        lambda m: m.group(1) + version,
        original,
        flags=re.MULTILINE,
    )
    contents = re.sub(
        r"^(%define rpm_datecode\s+).*$",
        lambda m: m.group(1) + datecode,
        contents,
        flags=re.MULTILINE,
    )
    return _write_if_changed(path, original, contents)


def find_spec_versions(work_dir: Path) -> dict[Path, str]:
    """Collect the current php_version of every php*/php.spec file.

    Returns:
        Map of spec file path → version, in path order.
    """
    versions: dict[Path, str] = {}
    for spec in sorted(Path(work_dir).glob("php*/php.spec")):
        m = PHP_VERSION_DEFINE.search(spec.read_text())
        if m:
            versions[spec] = m.group(1)
    return versions


def parse_version_updates(diff_lines: Iterable[str]) -> dict[str, VersionUpdate]:
    """Extract php build updates from `git show` output.

    Within each file section of the diff, a `%define php_version V` line
    (context, added or removed) followed by an added
    `+%define rpm_datecode D` line records an update of V to build V-D.
    A removed `-%define php_version` line supplies the previous version.
    Datecodes that are not plain digits (macros such as %{?builddate})
    are not builds and are skipped. A new "diff ..." header resets the
    pairing.

    Returns:
        Map of component (major.minor) → VersionUpdate. Empty when the
        commit did not touch any php build.
    """
    updates: dict[str, VersionUpdate] = {}
    version: str | None = None
    old: str | None = None
    for line in diff_lines:
        if line.startswith("diff "):
            version = old = None
            continue
        m = re.match(r"^.%define php_version *([0-9.]+)", line)
        if m:
            version = m.group(1)
            if line.startswith("-"):
                old = version
            continue
        m = re.match(r"^\+%define rpm_datecode *([0-9]+)", line)
        if version and m:
            component = major_minor(version)
            updates[component] = VersionUpdate(
                component=component,
                old=old if old != version else None,
                new=version,
                datecode=m.group(1),
            )
    return updates
