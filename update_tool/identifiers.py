"""Version identifiers embedded in free text.

Commit messages and pull request titles are prose ("Update to php-8.1.5
and php-8.2.3"), so the identity of an update is recovered from them with
a configurable template rather than by string comparison.

A template pair has two parts:
- vid pattern, e.g. "php-#.#." - the component name, with "#" standing
  for a run of digits.
- vval pattern, e.g. "#" - the version value that follows it.

With those patterns "php-8.1.5" decodes to the pair ("php-8.1.", "5").
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict

PLACEHOLDER = "#"
_DIGITS = "[0-9]+"


class IdentifierMatch(str, Enum):
    """How two identifiers relate to each other."""

    EQUIVALENT = "equivalent"
    OVERLAPPING = "overlapping"
    DISJOINT = "disjoint"


class VersionIdentifier(BaseModel):
    """An ordered set of (component, version) pairs.

    Equality for reconciliation purposes is set-based: see match().
    """

    model_config = ConfigDict(frozen=True)

    pairs: tuple[tuple[str, str], ...] = ()

    @property
    def components(self) -> set[str]:
        return {component for component, _ in self.pairs}

    @property
    def is_empty(self) -> bool:
        return not self.pairs

    def match(self, other: VersionIdentifier) -> IdentifierMatch:
        """Compare two identifiers.

        EQUIVALENT when both hold exactly the same pairs, OVERLAPPING when
        they share at least one component (whatever its version), and
        DISJOINT otherwise. Empty identifiers never match anything.
        """
        if self.is_empty or other.is_empty:
            return IdentifierMatch.DISJOINT
        if set(self.pairs) == set(other.pairs):
            return IdentifierMatch.EQUIVALENT
        if self.components & other.components:
            return IdentifierMatch.OVERLAPPING
        return IdentifierMatch.DISJOINT


def pretty_join(items: Iterable[str], sep: str = ", ", last: str = " and ") -> str:
    """Join items with `sep`, using `last` before the final one.

    Examples:
        ["a"] → "a"
        ["a", "b", "c"] → "a, b and c"
    """
    items = list(items)
    if len(items) < 2:
        return sep.join(items)
    return sep.join(items[:-1]) + last + items[-1]


def _template_regex(template: str) -> str:
    return _DIGITS.join(re.escape(piece) for piece in template.split(PLACEHOLDER))


class VersionIdentifiers:
    """Encoder/decoder for version identifiers in commit messages and titles.

    Args:
        vid_pattern: Component template, e.g. "php-#.#.".
        vval_pattern: Version value template, e.g. "#".
    """

    def __init__(self, vid_pattern: str = "php-#.#.", vval_pattern: str = "#") -> None:
        if PLACEHOLDER not in vval_pattern:
            raise ValueError(f"vval pattern {vval_pattern!r} has no '#' placeholder")
        self.vid_pattern = vid_pattern
        self.vval_pattern = vval_pattern
        self._regex = re.compile(
            rf"(?<![0-9])(?P<vid>{_template_regex(vid_pattern)})"
            rf"(?P<vval>{_template_regex(vval_pattern)})"
        )

    def render(self, version: str) -> str:
        """Substitute a concrete version into the templates.

        The numeric segments of `version` fill the placeholders left to
        right; surplus segments are dropped.

        Example:
            VersionIdentifiers("php-#.#.", "#").render("8.1.5") → "php-8.1.5"

        Raises:
            ValueError: If the version has fewer segments than placeholders.
        """
        template = self.vid_pattern + self.vval_pattern
        segments = version.split(".")
        needed = template.count(PLACEHOLDER)
        if len(segments) < needed:
            raise ValueError(
                f"Version {version!r} does not fill identifier pattern {template!r}"
            )
        pieces = template.split(PLACEHOLDER)
        rendered = pieces[0]
        for segment, piece in zip(segments, pieces[1:]):
            rendered += segment + piece
        return rendered

    def encode(self, preamble: str, versions: Iterable[str]) -> str:
        """Compose a message such as "Update to php-8.1.5 and php-8.2.3"."""
        return preamble + pretty_join(self.render(v) for v in versions)

    def decode(self, text: str) -> VersionIdentifier:
        """Recover every (component, version) pair mentioned in text."""
        pairs: list[tuple[str, str]] = []
        for m in self._regex.finditer(text):
            pair = (m.group("vid"), m.group("vval"))
            if pair not in pairs:
                pairs.append(pair)
        return VersionIdentifier(pairs=tuple(pairs))
