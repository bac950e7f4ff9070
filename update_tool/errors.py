"""Error taxonomy for update-tool.

Every fatal condition raised by the engine derives from UpdateToolError so
the CLI can turn it into a non-zero exit. Quiet outcomes (nothing changed,
an equivalent pull request already exists, checks still pending) are never
exceptions; they are reported as an UpdateDecision.
"""

from __future__ import annotations


class UpdateToolError(Exception):
    """Base class for fatal, run-aborting errors."""


class ConfigurationError(UpdateToolError):
    """A required setting is missing, or a checkout belongs to another repo."""


class UpstreamUnavailableError(UpdateToolError):
    """The currently recorded version could not be found upstream."""


class TransportError(UpdateToolError):
    """A git, gh, or HTTP call failed."""


class WorkflowError(UpdateToolError):
    """A working-copy operation was attempted out of order."""
