"""Hooks: lifecycle hook rules, matching, execution and dispatch."""

from .dispatcher import Dispatcher, classify
from .engine import CallableHandler, CommandHandler, Handler, run_command
from .errors import ConfigError, HookError, MatchError
from .matcher import compile_pattern, event_path, matches
from .models import (
    DEFAULT_MATCHER,
    DEFAULT_TIMEOUT_MS,
    DENY_EXIT_CODE,
    FILE_MUTATING_TOOLS,
    HOOK_EVENTS,
    SPAWN_FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    Decision,
    DispatchOutcome,
    Event,
    EventType,
    ExecutionResult,
    HookRule,
    ProtectedPathSpec,
    RuleSet,
)
from .parser import load, parse_hook_rule, parse_hooks_config
from .protection import ProtectionPolicy

__all__ = [
    "DEFAULT_MATCHER",
    "DEFAULT_TIMEOUT_MS",
    "DENY_EXIT_CODE",
    "FILE_MUTATING_TOOLS",
    "HOOK_EVENTS",
    "SPAWN_FAILURE_EXIT_CODE",
    "TIMEOUT_EXIT_CODE",
    "CallableHandler",
    "CommandHandler",
    "ConfigError",
    "Decision",
    "DispatchOutcome",
    "Dispatcher",
    "Event",
    "EventType",
    "ExecutionResult",
    "Handler",
    "HookError",
    "HookRule",
    "MatchError",
    "ProtectedPathSpec",
    "ProtectionPolicy",
    "RuleSet",
    "classify",
    "compile_pattern",
    "event_path",
    "load",
    "matches",
    "parse_hook_rule",
    "parse_hooks_config",
    "run_command",
]
