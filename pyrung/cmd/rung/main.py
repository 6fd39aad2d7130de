"""CLI entry point."""

import os
import sys
import click
import logging
from typing import Any, Dict, List, Optional, Tuple
from click import Context

from ... import setup_logging
from ...commands import (
    CommandContext, run_merge, run_status, run_sync, run_track, run_untrack,
)
from ...config import Config
from ...config.config_parser import parse_config
from ...git import GitWorkspace, select_remote
from ...models import MergeMethod
from ...platform import create_platform_service, parse_repo_info
from ...pretty import print_header
from ...typing import LoggingProgress, ProgressCallback, RungError

logger = logging.getLogger(__name__)


class CliProgress:
    """Progress reporter that echoes to stdout."""
    def on_message(self, text: str) -> None:
        click.echo(text)


def make_progress(quiet: bool = False) -> ProgressCallback:
    """With --quiet, progress only reaches the log, so it shows up with -v."""
    if quiet:
        return LoggingProgress(logging.getLogger("pyrung.progress"))
    return CliProgress()


class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)


@click.group(cls=AliasedGroup)
@click.pass_context
def cli(ctx: Context) -> None:
    """rung - stacked pull requests on GitHub and GitLab."""
    ctx.obj = {}


def setup_context(directory: Optional[str], remote: Optional[str],
                  pretend: bool = False, quiet: bool = False) -> Tuple[Config, CommandContext]:
    """Open the repository, read config, pick a remote and build the platform backend."""
    if directory:
        os.chdir(directory)

    probe = GitWorkspace()
    config = Config(parse_config(probe.workspace_root()))
    if pretend:
        config.tool.pretend = True

    remotes = probe.git_remotes()
    remote_name = select_remote(remotes, remote or config.repo.remote)
    url = next(r.url for r in remotes if r.name == remote_name)
    platform_config = parse_repo_info(url)
    logger.info(f"Using {platform_config.platform} repository {platform_config.full_name} via {remote_name}")

    workspace = GitWorkspace(probe.workspace_root(), remote=remote_name,
                             default_branch=config.repo.default_branch,
                             log_commands=config.user.log_git_commands)
    ctx = CommandContext(
        workspace=workspace,
        platform=create_platform_service(platform_config),
        remote=remote_name,
        default_branch=workspace.default_branch(),
        state_dir=workspace.git_dir(),
        progress=make_progress(quiet),
        config=config,
    )
    return config, ctx


def confirm_plan(preview: str) -> bool:
    click.echo(preview)
    return click.confirm("Proceed?", default=False)


def check(err: Exception) -> None:
    """Log the error and exit."""
    logger.error(f"{err}")
    sys.exit(1)


directory_option = click.option(
    '-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
    help='Run as if rung was started in DIRECTORY instead of the current working directory')
remote_option = click.option('--remote', help="Remote to use (default: origin, else the first remote)")
verbose_option = click.option('-v', '--verbose', count=True,
                              help="Increase verbosity (can be used multiple times for more verbosity)")
quiet_option = click.option('-q', '--quiet', is_flag=True,
                            help="Send progress to the log instead of stdout (shown with -v)")


@cli.command(name="sync", help="Push tracked bookmarks and create or update their pull requests")
@directory_option
@remote_option
@verbose_option
@quiet_option
@click.option('--dry-run', is_flag=True, help="Show what would happen without changing anything")
@click.option('--confirm', is_flag=True, help="Show the plan and ask before applying it")
@click.option('--all', 'all_bookmarks', is_flag=True, help="Sync every bookmark in the stack, tracked or not")
def sync(directory: Optional[str], remote: Optional[str], verbose: int, quiet: bool, dry_run: bool,
         confirm: bool, all_bookmarks: bool) -> None:
    """Sync command."""
    setup_logging(verbose)
    try:
        config, ctx = setup_context(directory, remote, pretend=dry_run, quiet=quiet)
        if not quiet:
            print_header("Syncing stack")
        ask = confirm or config.user.confirm
        run_sync(ctx, dry_run=config.tool.pretend, confirm=confirm_plan if ask else None,
                 all_bookmarks=all_bookmarks)
    except RungError as e:
        check(e)


@cli.command(name="merge", help="Merge ready pull requests bottom-up and resync the rest")
@directory_option
@remote_option
@verbose_option
@quiet_option
@click.option('--dry-run', is_flag=True, help="Show the merge plan without merging")
@click.option('--confirm', is_flag=True, help="Show the plan and ask before merging")
@click.option('--method', type=click.Choice([m.value for m in MergeMethod]),
              help="Merge method (default from config, squash)")
@click.option('--target', help="Merge up to and including this bookmark")
@click.option('--all', 'all_bookmarks', is_flag=True, help="Consider every bookmark in the stack, tracked or not")
def merge(directory: Optional[str], remote: Optional[str], verbose: int, quiet: bool, dry_run: bool,
          confirm: bool, method: Optional[str], target: Optional[str], all_bookmarks: bool) -> None:
    """Merge command."""
    setup_logging(verbose)
    try:
        config, ctx = setup_context(directory, remote, pretend=dry_run, quiet=quiet)
        if not quiet:
            print_header("Merging stack")
        ask = confirm or config.user.confirm
        result = run_merge(
            ctx,
            dry_run=config.tool.pretend,
            confirm=confirm_plan if ask else None,
            method=MergeMethod(method) if method else None,
            target=target,
            all_bookmarks=all_bookmarks,
        )
    except RungError as e:
        check(e)
        return
    if result is not None and not result.is_success():
        sys.exit(1)


@cli.command(name="track", help="Start managing bookmarks with rung")
@directory_option
@verbose_option
@click.option('--all', 'all_bookmarks', is_flag=True, help="Track every bookmark in the current stack")
@click.argument('names', nargs=-1)
def track(directory: Optional[str], verbose: int, all_bookmarks: bool, names: List[str]) -> None:
    """Track command."""
    setup_logging(verbose)
    if not names and not all_bookmarks:
        raise click.UsageError("Name at least one bookmark, or pass --all")
    try:
        _config, ctx = setup_context(directory, None)
        added = run_track(ctx, list(names), all_bookmarks=all_bookmarks)
        if not added:
            click.echo("Already tracked")
    except RungError as e:
        check(e)


@cli.command(name="untrack", help="Stop managing bookmarks with rung")
@directory_option
@verbose_option
@click.argument('names', nargs=-1, required=True)
def untrack(directory: Optional[str], verbose: int, names: List[str]) -> None:
    """Untrack command."""
    setup_logging(verbose)
    try:
        _config, ctx = setup_context(directory, None)
        for name in run_untrack(ctx, list(names)):
            click.echo(f"Untracked {name}")
    except RungError as e:
        check(e)


@cli.command(name="status", help="Show the current stack")
@directory_option
@remote_option
@verbose_option
def status(directory: Optional[str], remote: Optional[str], verbose: int) -> None:
    """Status command."""
    setup_logging(verbose)
    try:
        _config, ctx = setup_context(directory, remote)
        click.echo(run_status(ctx))
    except RungError as e:
        check(e)


def main() -> None:
    """Main entry point."""
    cli.add_alias('s', 'sync')
    cli.add_alias('m', 'merge')
    cli.add_alias('st', 'status')
    cli(obj={})

if __name__ == "__main__":
    main()
