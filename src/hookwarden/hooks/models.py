"""Hook data models: Event, HookRule, RuleSet, ExecutionResult, DispatchOutcome."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ConfigError
from .matcher import CompiledPattern, compile_pattern

DEFAULT_MATCHER = "always"
DEFAULT_TIMEOUT_MS = 5000

# Exit-code protocol between the dispatcher and handler processes.
ALLOW_EXIT_CODE = 0
DENY_EXIT_CODE = 2
TIMEOUT_EXIT_CODE = 124
SPAWN_FAILURE_EXIT_CODE = 127

FILE_MUTATING_TOOLS = frozenset({"Write", "Edit", "MultiEdit", "NotebookEdit"})


class EventType(str, Enum):
    SessionStart = "SessionStart"
    PreToolUse = "PreToolUse"
    PostToolUse = "PostToolUse"
    PreCompact = "PreCompact"

    @property
    def is_tool_event(self) -> bool:
        return self in (EventType.PreToolUse, EventType.PostToolUse)

    @property
    def is_blocking(self) -> bool:
        """Only PreToolUse outcomes can abort the in-flight action."""
        return self is EventType.PreToolUse


HOOK_EVENTS = tuple(e.value for e in EventType)


@dataclass(frozen=True)
class Event:
    """A single lifecycle notification from the agent runtime."""

    type: EventType
    session_id: str = ""
    tool_name: str | None = None
    tool_input: Mapping[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    log_path: str | None = None
    trigger: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, EventType):
            object.__setattr__(self, "type", EventType(self.type))
        if self.tool_input is not None and not isinstance(self.tool_input, MappingProxyType):
            object.__setattr__(self, "tool_input", MappingProxyType(dict(self.tool_input)))

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "hook_event_name": self.type.value,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_name is not None:
            payload["tool_name"] = self.tool_name
        if self.tool_input is not None:
            payload["tool_input"] = dict(self.tool_input)
        if self.log_path is not None:
            payload["log_path"] = self.log_path
        if self.trigger is not None:
            payload["trigger"] = self.trigger
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), default=str)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], event_type: str | None = None) -> Event:
        """Build an Event from the JSON shape handlers receive on stdin.

        Raises ValueError for an unknown or missing event type.
        """
        name = event_type or data.get("hook_event_name") or data.get("type")
        if not name:
            raise ValueError("event has no hook_event_name")
        raw_ts = data.get("timestamp")
        timestamp = datetime.now(timezone.utc)
        if isinstance(raw_ts, str):
            try:
                timestamp = datetime.fromisoformat(raw_ts)
            except ValueError:
                pass
        tool_input = data.get("tool_input")
        return cls(
            type=EventType(name),
            session_id=str(data.get("session_id") or ""),
            tool_name=data.get("tool_name"),
            tool_input=tool_input if isinstance(tool_input, Mapping) else None,
            timestamp=timestamp,
            log_path=data.get("log_path"),
            trigger=data.get("trigger"),
        )


@dataclass(frozen=True)
class HookRule:
    """A matcher bound to one handler command for one event type."""

    event_type: EventType
    command: str
    matcher: str = DEFAULT_MATCHER
    blocking: bool = False
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    path: str | None = None

    compiled: CompiledPattern = field(init=False, repr=False, compare=False)
    compiled_path: CompiledPattern | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.event_type, EventType):
            object.__setattr__(self, "event_type", EventType(self.event_type))
        object.__setattr__(self, "compiled", compile_pattern(self.matcher))
        object.__setattr__(
            self, "compiled_path", compile_pattern(self.path) if self.path is not None else None
        )


class RuleSet:
    """Immutable rules grouped by event type, in declaration order."""

    def __init__(
        self,
        rules: Mapping[EventType, tuple[HookRule, ...]] | None = None,
        errors: tuple[ConfigError, ...] = (),
        sources: tuple[str, ...] = (),
    ):
        frozen = {e: tuple((rules or {}).get(e, ())) for e in EventType}
        self._rules = MappingProxyType(frozen)
        self.errors = tuple(errors)
        self.sources = tuple(sources)

    def get_rules(self, event: EventType | str) -> tuple[HookRule, ...]:
        return self._rules.get(EventType(event), ())

    def merge(self, other: RuleSet) -> RuleSet:
        """Return a new RuleSet with *other*'s rules appended after ours."""
        return RuleSet(
            {e: self._rules[e] + other.get_rules(e) for e in EventType},
            errors=self.errors + other.errors,
            sources=self.sources + other.sources,
        )

    def is_empty(self) -> bool:
        return not any(self._rules.values())

    def __len__(self) -> int:
        return sum(len(r) for r in self._rules.values())

    def __iter__(self):
        for event in EventType:
            yield from self._rules[event]

    def __repr__(self) -> str:
        counts = ", ".join(f"{e.value}={len(r)}" for e, r in self._rules.items() if r)
        return f"RuleSet({counts})"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one handler invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == ALLOW_EXIT_CODE and not self.timed_out


@dataclass(frozen=True)
class ProtectedPathSpec:
    pattern: str
    mode: str = "deny"  # "deny" | "warn"
    reason: str = ""

    compiled: CompiledPattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.mode not in ("deny", "warn"):
            raise ConfigError(f"unknown protection mode {self.mode!r}", field="mode")
        object.__setattr__(self, "compiled", compile_pattern(self.pattern))


class Decision(str, Enum):
    Allow = "allow"
    Deny = "deny"
    ErrorButAllow = "error_but_allow"


@dataclass
class DispatchOutcome:
    """Result of dispatching one event. Built fresh per event."""

    decision: Decision = Decision.Allow
    reasons: list[str] = field(default_factory=list)
    results: list[tuple[HookRule, ExecutionResult]] = field(default_factory=list)

    @property
    def denied(self) -> bool:
        return self.decision is Decision.Deny

    def to_dict(self) -> dict[str, Any]:
        return {
            "decision": self.decision.value,
            "reasons": list(self.reasons),
            "results": [
                {
                    "command": rule.command,
                    "exit_code": result.exit_code,
                    "duration_ms": result.duration_ms,
                    "timed_out": result.timed_out,
                }
                for rule, result in self.results
            ],
        }
