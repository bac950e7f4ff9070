"""CLI entry point for update-tool."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click

from update_tool.config import DEFAULT_CONFIG, Settings, load_settings
from update_tool.errors import UpdateToolError
from update_tool.hosting import GitHubHost
from update_tool.models import UpdateDecision
from update_tool.pipeline import php_cookbook_update, php_rpm_update


@contextmanager
def _fatal_errors() -> Iterator[None]:
    """Turn engine errors into a clean non-zero exit."""
    try:
        yield
    except UpdateToolError as exc:
        raise click.ClickException(str(exc)) from exc


def _host(settings: Settings, profile: str) -> GitHubHost:
    return GitHubHost(token=settings.token(profile))


def _report(decision: UpdateDecision) -> None:
    click.echo(f"\n{'=' * 60}\nResult: {decision.value}\n{'=' * 60}")


profile_option = click.option(
    "--as",
    "profile",
    default="default",
    show_default=True,
    help="Credentials profile to use for the GitHub API.",
)
dry_run_option = click.option(
    "--dry-run",
    is_flag=True,
    help="Work out what would change without committing, pushing or touching PRs.",
)


@click.group()
@click.version_option(package_name="update-tool")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_CONFIG,
    show_default=True,
    help="Settings file with project repos, paths and credentials.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """Open pull requests for new upstream php releases."""
    ctx.obj = config_path


@cli.command("php:rpm:update")
@profile_option
@click.option(
    "--auto-merge/--no-auto-merge",
    default=True,
    show_default=True,
    help="Merge an existing update PR once its checks have passed.",
)
@dry_run_option
@click.pass_obj
def php_rpm_update_cmd(
    config_path: Path, profile: str, auto_merge: bool, dry_run: bool
) -> None:
    """Create a PR on rpmbuild-php for newly released php versions."""
    with _fatal_errors():
        settings = load_settings(config_path)
        decision = php_rpm_update(
            settings, _host(settings, profile), auto_merge=auto_merge, dry_run=dry_run
        )
    _report(decision)


@cli.command("php:cookbook:update")
@profile_option
@dry_run_option
@click.pass_obj
def php_cookbook_update_cmd(config_path: Path, profile: str, dry_run: bool) -> None:
    """Create a PR on the php cookbook to deploy the latest rpm builds."""
    with _fatal_errors():
        settings = load_settings(config_path)
        decision = php_cookbook_update(
            settings, _host(settings, profile), dry_run=dry_run
        )
    _report(decision)


cli.add_command(php_rpm_update_cmd, name="php:update")
