"""Built-in in-process handlers addressed as ``builtin:<name> [args...]``."""

from __future__ import annotations

import shlex
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.sinks import append_session_log, send_notification, session_log_path
from .engine import PROJECT_DIR_ENV, CallableHandler, CommandHandler, Handler
from .matcher import event_path
from .models import SPAWN_FAILURE_EXIT_CODE, Event, EventType, ExecutionResult, HookRule
from .protection import ProtectionPolicy, parse_spec_arg

if TYPE_CHECKING:
    from ..core.config import Config

BUILTIN_PREFIX = "builtin:"

BuiltinFactory = Callable[[list[str], "Config"], Handler]


def _protect(args: list[str], config: Config) -> Handler:
    specs = [parse_spec_arg(a) for a in args] if args else config.protected_paths
    return ProtectionPolicy(specs, config.resolved_project_dir, config.deny_exit_code)


def _session_log(args: list[str], config: Config) -> Handler:
    def write_record(event: Event) -> int:
        if event.log_path:
            path = Path(event.log_path)
        elif args:
            path = Path(args[0])
        else:
            path = session_log_path(config.resolved_project_dir, event.session_id)
        record = {
            "timestamp": event.timestamp.isoformat(),
            "event": event.type.value,
            "session_id": event.session_id,
        }
        if event.tool_name:
            record["tool_name"] = event.tool_name
        if target := event_path(event):
            record["path"] = target
        if event.trigger:
            record["trigger"] = event.trigger
        append_session_log(path, record)
        return 0

    return CallableHandler(write_record, name="session-log")


_NOTIFY_BODIES = {
    EventType.SessionStart: "Session started",
    EventType.PreCompact: "Compacting context",
}


def _notify(args: list[str], config: Config) -> Handler:
    title = " ".join(args) or "Agent session"

    def notify(event: Event) -> int:
        body = _NOTIFY_BODIES.get(event.type) or f"{event.type.value}: {event.tool_name or ''}".strip()
        send_notification(title, body)
        return 0

    return CallableHandler(notify, name="notify")


BUILTINS: dict[str, BuiltinFactory] = {
    "protect": _protect,
    "session-log": _session_log,
    "notify": _notify,
}


def _missing(name: str) -> Handler:
    return CallableHandler(
        lambda event: ExecutionResult(
            exit_code=SPAWN_FAILURE_EXIT_CODE, stderr=f"unknown builtin handler: {name}"
        ),
        name=name,
    )


def make_resolver(
    config: Config, extra: Mapping[str, BuiltinFactory] | None = None
) -> Callable[[HookRule], Handler]:
    """Build the dispatcher's rule -> handler resolver for *config*."""
    builtins = {**BUILTINS, **(extra or {})}
    project_dir = str(config.resolved_project_dir)
    env = {PROJECT_DIR_ENV: project_dir}

    def resolve(rule: HookRule) -> Handler:
        if not rule.command.startswith(BUILTIN_PREFIX):
            return CommandHandler(rule, env=env, cwd=project_dir)
        name, *args = shlex.split(rule.command[len(BUILTIN_PREFIX) :]) or [""]
        factory = builtins.get(name)
        if factory is None:
            return _missing(name)
        return factory(args, config)

    return resolve
