"""autorevert CLI — the main entry point."""

import signal
import sys

import click
from git import Actor
from rich.console import Console
from rich.table import Table

from autorevert import __version__

console = Console()

EXIT_INVALID_CONFIG = 1
EXIT_CONFIG_NOT_FOUND = 2


@click.group()
@click.version_option(version=__version__)
def main():
    """autorevert — undo commits by a disallowed author.

    Watches a remote Git repository and, whenever the latest commit on the
    tracked branch was authored by the configured identity, commits its
    inverse and pushes it back.
    """


# ── Watch ────────────────────────────────────────────────────────────


@main.command()
@click.option("--config", "-c", "config_path", default="config.json", help="Config file (YAML or JSON)")
@click.option("--interval", type=float, default=None, help="Seconds between cycles (overrides config)")
@click.option("--work-dir", default=None, help="Clone into this directory instead of a temp dir")
@click.option("--once", is_flag=True, help="Run a single cycle and exit")
def watch(config_path: str, interval: float | None, work_dir: str | None, once: bool):
    """Clone the configured repository and guard it until stopped."""
    from autorevert.config import load_config
    from autorevert.errors import AutorevertError, ConfigError, ConfigNotFoundError
    from autorevert.logging_setup import configure_logging
    from autorevert.revert.engine import RevertEngine
    from autorevert.sync.policy import AuthorPolicy
    from autorevert.sync.watcher import RevertWatcher, Ticker
    from autorevert.utils.git_ops import Credentials, clone_repository

    try:
        config = load_config(config_path)
    except ConfigNotFoundError:
        click.echo("Config not found!", err=True)
        sys.exit(EXIT_CONFIG_NOT_FOUND)
    except ConfigError as e:
        click.echo(f"Invalid config: {e}", err=True)
        sys.exit(EXIT_INVALID_CONFIG)

    configure_logging(config.log_level)

    credentials = Credentials(config.username, config.password) if config.has_credentials else None
    try:
        handle = clone_repository(
            config.repo_url,
            credentials,
            directory=work_dir or config.work_dir,
            remote_name=config.remote_name,
        )
    except AutorevertError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(EXIT_INVALID_CONFIG)

    with handle:
        watcher = RevertWatcher(
            handle=handle,
            policy=AuthorPolicy(config.disallowed_identity),
            engine=RevertEngine(handle, author=Actor(config.author_name, config.author_email)),
            ticker=Ticker(interval if interval is not None else config.interval_seconds, config.jitter_seconds),
            custom_title=config.commit_title,
            custom_body=config.commit_message,
        )

        if once:
            report = watcher.tick()
            console.print(report.summary(), markup=False)
            return

        def _stop(signum, frame):
            watcher.stop()

        signal.signal(signal.SIGINT, _stop)
        signal.signal(signal.SIGTERM, _stop)
        watcher.run_forever()


# ── Revert ───────────────────────────────────────────────────────────


@main.command()
@click.argument("repo_path")
@click.argument("commits", nargs=-1, required=True)
@click.option("--title", default=None, help="Short message template (%commit-name% is replaced)")
@click.option("--body", default=None, help="Message body template (%commit-name% is replaced)")
@click.option("--push", is_flag=True, help="Push to the tracked remote branch afterwards")
def revert(repo_path: str, commits: tuple, title: str | None, body: str | None, push: bool):
    """Revert COMMITS, in order, in the working copy at REPO_PATH."""
    from autorevert.errors import AutorevertError
    from autorevert.revert.engine import RevertEngine
    from autorevert.revert.models import RevertRequest, RevertStatus
    from autorevert.utils.git_ops import open_repository

    try:
        handle = open_repository(repo_path)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="REPO_PATH")

    with handle:
        try:
            outcome = RevertEngine(handle).revert(
                RevertRequest(commits=list(commits), custom_title=title, custom_body=body)
            )
        except AutorevertError as e:
            console.print(f"[red]x[/] {e}")
            sys.exit(1)

        table = Table(title=f"Revert: {outcome.status.value}")
        table.add_column("Commit", style="cyan")
        table.add_column("Result")
        for sha in outcome.reverted:
            table.add_row(sha[:7], "[green]reverted[/]")
        for sha in outcome.skipped:
            table.add_row(sha[:7], "[yellow]nothing to revert[/]")
        if outcome.conflict is not None:
            table.add_row(outcome.conflict.commit_id[:7], f"[red]{outcome.status.value}[/]")
        console.print(table)

        try:
            outcome.raise_for_status()
        except AutorevertError as e:
            console.print(f"[red]x[/] {e}")
            for line in outcome.conflict.describe():
                console.print(f"  [red]![/] {line}")
            sys.exit(1)

        if outcome.new_head is not None:
            console.print(f"\n[green]New HEAD:[/] {outcome.new_head.hexsha}")
            if push:
                try:
                    handle.push()
                except AutorevertError as e:
                    console.print(f"[red]x[/] {e}")
                    sys.exit(1)
                console.print("[green]Pushed.[/]")
        elif outcome.status == RevertStatus.NOOP:
            console.print("[yellow]Nothing to revert.[/]")


# ── Check ────────────────────────────────────────────────────────────


@main.command()
@click.argument("author")
@click.option("--config", "-c", "config_path", default="config.json", help="Config file (YAML or JSON)")
def check(author: str, config_path: str):
    """Show whether commits by AUTHOR would be reverted."""
    from autorevert.config import load_config
    from autorevert.errors import ConfigError, ConfigNotFoundError
    from autorevert.models import CommitInfo
    from autorevert.sync.policy import AuthorPolicy

    try:
        config = load_config(config_path)
    except ConfigNotFoundError:
        click.echo("Config not found!", err=True)
        sys.exit(EXIT_CONFIG_NOT_FOUND)
    except ConfigError as e:
        click.echo(f"Invalid config: {e}", err=True)
        sys.exit(EXIT_INVALID_CONFIG)

    decision = AuthorPolicy(config.disallowed_identity).evaluate(
        CommitInfo(id="", author=author, summary="", tree_id="")
    )
    if decision.should_revert:
        console.print(f"[red]REVERT[/] {decision.reason}")
    else:
        console.print(f"[green]ALLOW[/] {decision.reason}")


if __name__ == "__main__":
    main()
