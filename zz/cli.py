import logging

import click

from zz.config import SECTIONS, ResolvedConfig, config_path, load_config, load_toml, save_config
from zz.constants import MARKER_ACTIVE, MARKER_EXITED
from zz.errors import ZZError
from zz.models import BulkResult, SessionStatus
from zz.services.flow import build_flow

DEFAULT_COMMAND = "open"
ALIASES = {"ls": "list", "d": "delete", "da": "delete-all"}
_GROUP_FLAGS = {"-v", "--verbose"}


class ZZGroup(click.Group):
    """Group that routes unknown first arguments to the default `open` command.

    ``zz myrepo feature-x`` is ``zz open myrepo feature-x``. ZZError is reported
    once on stderr and turned into the process exit code.
    """

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, ALIASES.get(cmd_name, cmd_name))

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        rest = list(args)
        i = 0
        while i < len(rest) and rest[i] in _GROUP_FLAGS:
            i += 1
        if i == len(rest) or (
            rest[i] not in self.commands
            and rest[i] not in ALIASES
            and rest[i] not in ctx.help_option_names
        ):
            rest.insert(i, DEFAULT_COMMAND)
        return super().parse_args(ctx, rest)

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except ZZError as e:
            click.secho(f"Error: {e}", err=True, fg="red")
            raise SystemExit(e.exit_code)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _marker(status: SessionStatus | None) -> str:
    if status is SessionStatus.ACTIVE:
        return MARKER_ACTIVE
    if status is SessionStatus.EXITED:
        return MARKER_EXITED
    return " "


def _report(result: BulkResult, verb: str) -> None:
    for item in result.succeeded:
        click.echo(f"{verb}: {item}")
    for item, error in result.failed:
        click.secho(f"Failed: {item}: {error}", err=True, fg="red")
    if result.failed:
        click.echo(f"{len(result.succeeded)} succeeded, {len(result.failed)} failed.", err=True)
        raise SystemExit(1)


@click.group(cls=ZZGroup, context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr")
def cli(verbose: bool) -> None:
    """Repository worktrees mapped onto terminal multiplexer sessions.

    \b
    zz [-s] [REPO_QUERY] [BRANCH]   select repo -> session -> branch worktree
    zz checkout [BRANCH | -b NAME]  branch worktree of the current repo
    zz ls [-s|-a]                   managed sessions (● active, ○ exited)

    \b
    Environment:
      ZZ_BARE_REPOS_ROOT  bare repos location (default: ~/.local/share/zz/bare)
      ZZ_WORKTREE_BASE    worktrees location (default: ~/worktrees)
      ZZ_SESSION_BACKEND  zellij (default) or tmux
    """
    _configure_logging(verbose)


@cli.command(DEFAULT_COMMAND)
@click.argument("query", required=False)
@click.argument("branch", required=False)
@click.option("--sessions", "-s", "session_only", is_flag=True, help="Only repositories with a managed session")
def open_cmd(query: str | None, branch: str | None, session_only: bool) -> None:
    """Select a repository, ensure its branch worktree, attach to its session (default)."""
    config = load_config()
    flow = build_flow(config)
    flow.select_and_open(query, branch, session_only=session_only)


@cli.command()
@click.argument("branch", required=False)
@click.option("-b", "new_branch", default=None, metavar="NAME", help="Create a new branch from HEAD")
@click.option("--print", "-p", "print_path", is_flag=True, help="Print the worktree path instead of opening it")
def checkout(branch: str | None, new_branch: str | None, print_path: bool) -> None:
    """Check out a branch of the current repository into its own worktree."""
    if branch and new_branch:
        raise click.UsageError("Pass either BRANCH or -b NAME, not both.")
    config = load_config()
    flow = build_flow(config)
    if new_branch:
        target = flow.checkout(new_branch, create=True)
    else:
        target = flow.checkout(branch)
    _enter(flow, target, print_path)


@cli.command()
@click.argument("name")
@click.option("--print", "-p", "print_path", is_flag=True, help="Print the worktree path instead of opening it")
def new(name: str, print_path: bool) -> None:
    """Create a new branch worktree (same as `checkout -b NAME`)."""
    config = load_config()
    flow = build_flow(config)
    target = flow.checkout(name, create=True)
    _enter(flow, target, print_path)


def _enter(flow, target, print_path: bool) -> None:
    if print_path:
        click.echo(str(target.worktree))
        return
    if target.created:
        click.echo(f"Created worktree: {target.worktree} (branch: {target.branch})", err=True)
    code = flow.enter(target)
    if code:
        raise SystemExit(code)


@cli.command()
@click.argument("url")
def get(url: str) -> None:
    """Clone a repository as bare under the repos root."""
    config = load_config()
    flow = build_flow(config)
    dest = flow.get(url)
    click.echo(f"Cloned into: {dest}")


@cli.command()
@click.argument("query", required=False)
def query(query: str | None) -> None:
    """Print repositories, filtered by QUERY when given."""
    config = load_config()
    flow = build_flow(config)
    matches = flow.query(query)
    if not matches:
        raise ZZError(f"No match found for: {query}")
    for repo in matches:
        click.echo(repo)


@cli.command("list")
@click.option("--short", "-s", is_flag=True, help="Session names only, no markers")
@click.option("--all", "-a", "show_all", is_flag=True, help="Every repository, marked when it has a session")
def list_cmd(short: bool, show_all: bool) -> None:
    """List managed sessions (alias: ls)."""
    config = load_config()
    flow = build_flow(config)
    if show_all:
        for repo, status in flow.repository_status():
            click.echo(f"{_marker(status)} {repo}")
        return

    sessions = flow.sessions_list()
    if not sessions and not short:
        click.echo("No zz sessions.")
        return
    for session in sessions:
        click.echo(session.name if short else f"{_marker(session.status)} {session.name}")


@cli.command()
@click.argument("query", required=False)
@click.option("--all", "-a", "delete_all", is_flag=True, help="Delete every managed session")
def delete(query: str | None, delete_all: bool) -> None:
    """Delete a managed session (alias: d)."""
    config = load_config()
    flow = build_flow(config)
    _report(flow.select_and_delete(query, delete_all=delete_all), "Deleted session")


@cli.command("delete-all")
def delete_all() -> None:
    """Delete every managed session (alias: da)."""
    config = load_config()
    flow = build_flow(config)
    _report(flow.select_and_delete(delete_all=True), "Deleted session")


@cli.command()
@click.argument("query", required=False)
@click.option("--all", "-a", "prune_all", is_flag=True, help="Remove every branch worktree except the current one")
def prune(query: str | None, prune_all: bool) -> None:
    """Remove branch worktrees of the current repository."""
    config = load_config()
    flow = build_flow(config)
    _report(flow.prune(query, prune_all=prune_all), "Removed worktree")


def _show_config(resolved: ResolvedConfig) -> None:
    click.echo(f"Config: {config_path()}\n")
    click.echo("[paths]")
    click.echo(f"  bare_root     = {resolved.bare_root}")
    click.echo(f"  worktree_base = {resolved.worktree_base}")
    click.echo(f"  data_dir      = {resolved.data_dir}")
    click.echo("\n[git]")
    click.echo(f"  remote = {resolved.remote}")
    click.echo("\n[session]")
    click.echo(f"  backend = {resolved.session_backend}")
    click.echo("\n[picker]")
    click.echo(f"  command  = {resolved.picker_command}")
    click.echo(f"  frecency = {str(resolved.frecency).lower()}")
    click.echo("\n[scan]")
    click.echo(f"  max_depth = {resolved.max_depth}")


@cli.command()
@click.argument("key", required=False)
@click.argument("value", required=False)
def config(key: str | None, value: str | None) -> None:
    """View or edit settings (~/.config/zz/config.toml).

    With no args: show the resolved config.
    With KEY: show a value from the config file.
    With KEY VALUE: set a value (e.g. `zz config session.backend tmux`).
    """
    if key is None:
        _show_config(load_config())
        return

    section_name, _, field_name = key.partition(".")
    if not field_name:
        click.echo("Key must be section.field (e.g. paths.worktree_base)", err=True)
        raise SystemExit(1)

    path = config_path()
    file_cfg = load_toml(path)
    section = getattr(file_cfg, section_name, None) if section_name in SECTIONS else None
    if section is None or field_name not in type(section).model_fields:
        click.echo(f"Unknown config key: {key}", err=True)
        raise SystemExit(1)

    if value is None:
        click.echo(getattr(section, field_name))
        return

    field_type = type(type(section).model_fields[field_name].default)
    if field_type is bool:
        parsed: object = value.lower() in ("1", "true", "yes", "on")
    elif field_type is int:
        try:
            parsed = int(value)
        except ValueError:
            click.echo(f"{key} must be an integer", err=True)
            raise SystemExit(1)
    else:
        parsed = value
    setattr(section, field_name, parsed)
    written = save_config(path, file_cfg)
    click.echo(f"Set {key} = {parsed}")
    click.echo(f"Saved to {written}")
