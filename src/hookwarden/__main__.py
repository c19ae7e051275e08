"""CLI entry point: dispatch lifecycle events and run the built-in handlers."""

from __future__ import annotations

import json
import logging
import signal
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core.config import Config, load_config
from .core.log import setup_logging
from .core.utils import short_cwd
from .hooks import ConfigError, Decision, Dispatcher, Event, EventType, ExecutionResult
from .hooks.builtin import BUILTINS, make_resolver
from .hooks.protection import ProtectionPolicy, parse_spec_arg

logger = logging.getLogger("hookwarden.cli")

console = Console()
err_console = Console(stderr=True)

EVENT_CHOICE = click.Choice([e.value for e in EventType])


def _read_event(event_type: str | None) -> Event:
    """Parse the event JSON on stdin; exits 1 on a payload we cannot use."""
    raw = sys.stdin.read()
    try:
        data = json.loads(raw) if raw.strip() else {}
        if not isinstance(data, dict):
            raise ValueError("event must be a JSON object")
        return Event.from_payload(data, event_type)
    except ValueError as e:
        err_console.print(f"hookwarden: bad event payload: {escape(str(e))}", highlight=False)
        sys.exit(1)


def _finish(result: ExecutionResult) -> None:
    if result.stderr:
        click.echo(result.stderr, err=True)
    sys.exit(result.exit_code)


def _terminate(signum, frame):
    # SystemExit unwinds through run_command, which kills the handler's process group
    sys.exit(128 + signum)


def _config_options(f):
    f = click.option(
        "--config", "config_path", type=click.Path(dir_okay=False), help="Extra settings file"
    )(f)
    f = click.option(
        "--project-dir", type=click.Path(file_okay=False), help="Project root (default: $CLAUDE_PROJECT_DIR or cwd)"
    )(f)
    f = click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr")(f)
    return f


def _load(config_path, project_dir, verbose) -> Config:
    setup_logging(verbose)
    return load_config(config_path=config_path, project_dir=project_dir, verbose=verbose)


@click.group()
def cli():
    """hookwarden: lifecycle hook dispatcher for agent sessions."""


@cli.command()
@click.option("--event", "event_type", type=EVENT_CHOICE, default=None, help="Override the event type")
@click.option("--json", "as_json", is_flag=True, help="Print the outcome as JSON on stdout")
@_config_options
def dispatch(event_type, as_json, config_path, project_dir, verbose):
    """Dispatch the event on stdin to every matching hook.

    Exit status: 0 allow, the deny sentinel on deny, 1 when hooks failed but
    the action may proceed. Reasons go to stderr.
    """
    config = _load(config_path, project_dir, verbose)
    event = _read_event(event_type)
    signal.signal(signal.SIGTERM, _terminate)
    logger.debug("Dispatching %s (session %s)", event.type.value, event.session_id or "-")

    dispatcher = Dispatcher(
        config.hooks, resolver=make_resolver(config), deny_exit_code=config.deny_exit_code
    )
    outcome = dispatcher.dispatch(event)

    if as_json:
        click.echo(json.dumps(outcome.to_dict()))
    for reason in outcome.reasons:
        click.echo(reason, err=True)

    if outcome.decision is Decision.Deny:
        sys.exit(config.deny_exit_code)
    if outcome.decision is Decision.ErrorButAllow:
        sys.exit(1)


@cli.command()
@_config_options
def check(config_path, project_dir, verbose):
    """Load configuration and show the rules each event will run."""
    config = _load(config_path, project_dir, verbose)

    console.print(f"project: {short_cwd(config.resolved_project_dir)}", style="dim", highlight=False)
    table = Table(show_header=True, header_style="bold")
    for column in ("event", "#", "matcher", "path", "command", "blocking", "timeout"):
        table.add_column(column)
    for event in EventType:
        for i, rule in enumerate(config.hooks.get_rules(event)):
            table.add_row(
                event.value,
                str(i),
                escape(rule.matcher),
                escape(rule.path or ""),
                escape(rule.command),
                "yes" if rule.blocking else "",
                f"{rule.timeout_ms}ms",
            )
    if config.hooks.is_empty():
        console.print("no hooks configured", style="dim")
    else:
        console.print(table)

    for spec in config.protected_paths:
        console.print(f"protect {spec.mode}: {escape(spec.pattern)}", style="dim", highlight=False)

    if config.config_errors:
        for e in config.config_errors:
            err_console.print(f"[bold red]error[/bold red] {escape(str(e))}", highlight=False)
        sys.exit(1)


@cli.command()
@click.option("--spec", "specs", multiple=True, help="MODE:PATTERN, in priority order (repeatable)")
@_config_options
def protect(specs, config_path, project_dir, verbose):
    """Protection policy handler: deny or warn on edits of protected paths."""
    config = _load(config_path, project_dir, verbose)
    try:
        spec_list = [parse_spec_arg(s) for s in specs] if specs else config.protected_paths
    except ConfigError as e:
        raise click.BadParameter(str(e), param_hint="--spec") from e
    event = _read_event(None)
    policy = ProtectionPolicy(spec_list, config.resolved_project_dir, config.deny_exit_code)
    _finish(policy.run(event))


@cli.command("session-log")
@click.option("--path", "log_path", type=click.Path(dir_okay=False), help="Log file when the event carries none")
@_config_options
def session_log(log_path, config_path, project_dir, verbose):
    """Append the event on stdin to the session log."""
    config = _load(config_path, project_dir, verbose)
    event = _read_event(None)
    handler = BUILTINS["session-log"]([log_path] if log_path else [], config)
    _finish(handler.run(event))


@cli.command()
@click.option("--title", default="Agent session", help="Notification title")
@_config_options
def notify(title, config_path, project_dir, verbose):
    """Desktop notification for the event on stdin."""
    config = _load(config_path, project_dir, verbose)
    event = _read_event(None)
    handler = BUILTINS["notify"]([title], config)
    _finish(handler.run(event))


def main():
    cli()


if __name__ == "__main__":
    main()
