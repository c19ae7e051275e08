"""Hook config parsing: load, parse_hooks_config, parse_hook_rule."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .errors import ConfigError, MatchError
from .matcher import compile_pattern
from .models import DEFAULT_MATCHER, DEFAULT_TIMEOUT_MS, HOOK_EVENTS, EventType, HookRule, RuleSet

logger = logging.getLogger(__name__)


def _require_int(value: Any, field: str, **where) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"{field} must be a positive integer, got {value!r}", field=field, **where)
    return value


def _check_pattern(pattern: str, field: str, where: dict) -> None:
    try:
        compile_pattern(pattern)
    except MatchError as e:
        raise MatchError(e.pattern, e.detail, field=field, **where) from e


def _build_rule(
    entry: dict,
    event_type: EventType,
    matcher: str,
    path: str | None,
    default_timeout_ms: int,
    where: dict,
    prefix: str = "",
) -> HookRule:
    command = entry.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ConfigError("command is required", field=f"{prefix}command", **where)
    if "timeout" in entry and prefix:
        # nested hooks give their timeout in seconds
        timeout_ms = _require_int(entry["timeout"], f"{prefix}timeout", **where) * 1000
    else:
        timeout_ms = _require_int(entry.get("timeoutMs", default_timeout_ms), f"{prefix}timeoutMs", **where)
    blocking = entry.get("blocking", False)
    if not isinstance(blocking, bool):
        raise ConfigError("blocking must be true or false", field=f"{prefix}blocking", **where)
    return HookRule(
        event_type=event_type,
        command=command,
        matcher=matcher,
        blocking=blocking,
        timeout_ms=timeout_ms,
        path=path,
    )


def parse_hook_rule(
    raw: Any,
    event_type: EventType,
    index: int,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    errors: list[ConfigError] | None = None,
) -> list[HookRule]:
    """Parse one entry of an event array into rules (nested form may yield several).

    Raises ConfigError naming the entry index and the offending field. In the
    nested form a bad inner hook is reported as ``hooks[i].<field>``; when
    *errors* is given those are appended to it and the valid siblings kept.
    """
    where = {"rule_index": index, "event_type": event_type.value}
    if not isinstance(raw, dict):
        raise ConfigError("hook entry must be an object", **where)

    matcher = raw.get("matcher", DEFAULT_MATCHER)
    if matcher is None:
        matcher = DEFAULT_MATCHER
    if not isinstance(matcher, str):
        raise ConfigError("matcher must be a string", field="matcher", **where)
    path = raw.get("path")
    if path is not None and not isinstance(path, str):
        raise ConfigError("path must be a string", field="path", **where)
    _check_pattern(matcher, "matcher", where)
    if path is not None:
        _check_pattern(path, "path", where)

    if "hooks" not in raw or "command" in raw:
        return [_build_rule(raw, event_type, matcher, path, default_timeout_ms, where)]

    # Agent-runtime form: {"matcher": ..., "hooks": [{"type": "command", ...}]}
    inner = raw["hooks"]
    if not isinstance(inner, list):
        raise ConfigError("hooks must be a list", field="hooks", **where)
    rules = []
    for i, hook in enumerate(inner):
        prefix = f"hooks[{i}]."
        try:
            if not isinstance(hook, dict):
                raise ConfigError("hook must be an object", field=f"hooks[{i}]", **where)
            if hook.get("type", "command") != "command":
                logger.warning(
                    "Skipping %s[%d].hooks[%d]: unsupported hook type %r",
                    event_type.value, index, i, hook.get("type"),
                )
                continue
            rules.append(_build_rule(hook, event_type, matcher, path, default_timeout_ms, where, prefix))
        except ConfigError as e:
            if errors is None:
                raise
            errors.append(e)
    return rules


def parse_hooks_config(
    data: dict,
    default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    source: str | None = None,
) -> RuleSet:
    """Parse a hooks config dict. Bad entries are dropped and reported on ``RuleSet.errors``."""
    wrapped = False
    if "hooks" in data and isinstance(data["hooks"], dict):
        data = data["hooks"]
        wrapped = True

    rules: dict[EventType, list[HookRule]] = {}
    errors: list[ConfigError] = []
    for key, value in data.items():
        if key not in HOOK_EVENTS:
            if wrapped:
                logger.warning("Ignoring unknown hook event %r", key)
            continue
        event_type = EventType(key)
        if not isinstance(value, list):
            errors.append(ConfigError("event value must be a list", event_type=key))
            continue
        parsed = rules.setdefault(event_type, [])
        for index, raw in enumerate(value):
            try:
                parsed.extend(parse_hook_rule(raw, event_type, index, default_timeout_ms, errors))
            except ConfigError as e:
                errors.append(e)

    for error in errors:
        error.source = source
    return RuleSet(
        {e: tuple(r) for e, r in rules.items()},
        errors=tuple(errors),
        sources=(source,) if source else (),
    )


def load(path: str | Path, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> RuleSet:
    """Read one hook configuration document.

    Raises ConfigError when the file cannot be read or is not a JSON object;
    per-entry problems are collected on the returned RuleSet instead.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be an object")
    return parse_hooks_config(data, default_timeout_ms, source=str(path))
