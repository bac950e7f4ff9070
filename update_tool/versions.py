"""Version parsing, bumping and upstream probing.

Versions are treated as dot-delimited numeric identifiers. The probe walks
patch levels forward from a known version until the upstream download
location stops answering, and reports the last one that exists.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import httpx
import semver

from .errors import TransportError

PROBE_TIMEOUT = 30.0


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "8" → "8.0.0"
    - "8.1" → "8.1.0"
    - "8.1.3" → "8.1.3"

    Only the first 3 components are used (major.minor.patch).
    """
    parts = version_str.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def major_minor(version_str: str) -> str:
    """Return the "major.minor" line a version belongs to.

    Examples:
        "8.1.13" → "8.1"
        "7" → "7.0"
    """
    v = parse_version(version_str)
    return f"{v.major}.{v.minor}"


def next_version(version_str: str) -> str:
    """Increment the final dot-delimited numeric segment.

    Examples:
        "8.1.3" → "8.1.4"
        "8.1.9" → "8.1.10"
        "8.1" → "8.2"
    """
    parts = version_str.split(".")
    parts[-1] = str(int(parts[-1]) + 1)
    return ".".join(parts)


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Sort version strings numerically, lowest first."""
    return sorted(versions, key=parse_version)


def version_exists(url_template: str, version: str) -> bool:
    """Check whether the download for `version` is available upstream.

    The template's "{version}" placeholder is filled in. file:// URLs and
    plain paths are checked on the local filesystem; anything else gets an
    HTTP HEAD request.

    Raises:
        TransportError: If the HEAD request itself fails (DNS, timeout, ...).
    """
    url = url_template.replace("{version}", version)
    if url.startswith("file://"):
        return Path(url[len("file://") :]).exists()
    if "://" not in url:
        return Path(url).exists()
    try:
        response = httpx.head(url, follow_redirects=True, timeout=PROBE_TIMEOUT)
    except httpx.HTTPError as exc:
        raise TransportError(f"HEAD {url} failed: {exc}") from exc
    return response.status_code == 200


class VersionProbe:
    """Finds the newest patch release that exists upstream.

    Args:
        exists: Callable answering "is this version published?". Use
                from_template() for the usual download-URL check.
    """

    def __init__(self, exists: Callable[[str], bool]) -> None:
        self._exists = exists

    @classmethod
    def from_template(cls, url_template: str) -> VersionProbe:
        return cls(lambda version: version_exists(url_template, version))

    def find_latest_available(self, current: str) -> str | None:
        """Return the highest consecutive version available from `current`.

        Returns `current` itself when nothing newer exists, and None when
        `current` cannot be found upstream at all (the caller should treat
        that as fatal).

        Example:
            With 8.1.0 .. 8.1.5 published and 8.1.6 missing,
            find_latest_available("8.1.0") → "8.1.5"
        """
        if not self._exists(current):
            return None
        latest = current
        candidate = next_version(current)
        while self._exists(candidate):
            latest = candidate
            candidate = next_version(latest)
        return latest
