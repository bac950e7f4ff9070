"""Configuration loading.

Settings live in a TOML file (update-tool.toml by default). It is read with
tomlkit and validated into pydantic models once per run; the resulting
Settings object is passed to whatever needs it and never modified.

Example:

    [php-net]
    download-url = "https://www.php.net/distributions/php-{version}.tar.gz"

    [projects.rpmbuild-php]
    repo = "https://github.com/example-org/rpmbuild-php.git"
    path = "work/rpmbuild-php"

    [projects.php-cookbook]
    repo = "https://github.com/example-org/php-cookbook.git"
    path = "work/php-cookbook"
    fork = "https://github.com/example-bot/php-cookbook.git"
    src = "libraries/php.rb"

    [profiles.default]
    token-env = "GITHUB_TOKEN"
"""

from __future__ import annotations

import os
from pathlib import Path

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigurationError
from .identifiers import VersionIdentifiers

DEFAULT_CONFIG = "update-tool.toml"


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Messages(_Section):
    update_to: str = Field("Update to ", alias="update-to")


class Constants(_Section):
    branch_prefix: str = Field("php-", alias="branch-prefix")


class IdentifierPatterns(_Section):
    vid_pattern: str = Field("php-#.#.", alias="vid-pattern")
    vval_pattern: str = Field("#", alias="vval-pattern")


class PhpNet(_Section):
    download_url: str = Field(alias="download-url")


class ProjectConfig(_Section):
    """One tracked repository.

    Attributes:
        repo: Origin URL.
        path: Local checkout directory.
        fork: Optional push remote; "" means push to origin.
        src: File inside the checkout that gets patched, where relevant.
        base_branch: Branch that update PRs target.
    """

    repo: str
    path: Path
    fork: str = ""
    src: str | None = None
    base_branch: str = Field("master", alias="base-branch")


class Profile(_Section):
    """API credentials, selected with --as."""

    token: str | None = None
    token_env: str = Field("GITHUB_TOKEN", alias="token-env")


class Settings(_Section):
    messages: Messages = Field(default_factory=Messages)
    constants: Constants = Field(default_factory=Constants)
    identifiers: IdentifierPatterns = Field(default_factory=IdentifierPatterns)
    php_net: PhpNet | None = Field(None, alias="php-net")
    projects: dict[str, ProjectConfig] = Field(default_factory=dict)
    profiles: dict[str, Profile] = Field(default_factory=dict)

    @property
    def preamble(self) -> str:
        return self.messages.update_to

    @property
    def branch_prefix(self) -> str:
        return self.constants.branch_prefix

    @property
    def download_url(self) -> str:
        if self.php_net is None:
            raise ConfigurationError("Missing required setting php-net.download-url")
        return self.php_net.download_url

    def project(self, name: str) -> ProjectConfig:
        """Return the named project's settings.

        Raises:
            ConfigurationError: If the project is not configured.
        """
        try:
            return self.projects[name]
        except KeyError:
            raise ConfigurationError(
                f"Missing required setting projects.{name}"
            ) from None

    def version_identifiers(self) -> VersionIdentifiers:
        """Build the identifier codec from the configured patterns."""
        return VersionIdentifiers(
            self.identifiers.vid_pattern, self.identifiers.vval_pattern
        )

    def token(self, profile: str = "default") -> str | None:
        """Resolve the API token for `profile`.

        An explicit `token` wins; otherwise the profile's environment
        variable is read. An unknown profile is an error unless it is
        "default", which falls back to $GITHUB_TOKEN.
        """
        if profile not in self.profiles:
            if profile != "default":
                raise ConfigurationError(f"Unknown credentials profile {profile!r}")
            return os.environ.get(Profile().token_env)
        entry = self.profiles[profile]
        return entry.token or os.environ.get(entry.token_env)


def load_settings(path: Path | str = DEFAULT_CONFIG) -> Settings:
    """Load and validate a settings file.

    Raises:
        ConfigurationError: If the file is missing, is not valid TOML, or
            does not match the settings schema.
    """
    path = Path(path)
    try:
        doc = tomlkit.parse(path.read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"Configuration file {path} not found") from None
    except TOMLKitError as exc:
        raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc
    try:
        return Settings.model_validate(doc.unwrap())
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration in {path}:\n{exc}") from exc
