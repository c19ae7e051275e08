"""Protection policy: keep agent edits away from secrets and local settings."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .matcher import event_path
from .models import (
    DENY_EXIT_CODE,
    FILE_MUTATING_TOOLS,
    Event,
    EventType,
    ExecutionResult,
    ProtectedPathSpec,
)

DEFAULT_PROTECTED_PATHS = (
    ProtectedPathSpec(".env", "deny", "environment secrets"),
    ProtectedPathSpec("*.pem", "deny", "private key"),
    ProtectedPathSpec("*.key", "deny", "private key"),
    ProtectedPathSpec("settings.local.json", "deny", "local agent settings"),
)


def parse_protected_paths(raw: Iterable[Any]) -> tuple[ProtectedPathSpec, ...]:
    """Parse ``protectedPaths``: plain strings (deny) or {pattern, mode, reason} objects."""
    specs = []
    for index, item in enumerate(raw):
        if isinstance(item, str):
            specs.append(ProtectedPathSpec(item))
            continue
        if not isinstance(item, dict) or not isinstance(item.get("pattern"), str):
            raise ConfigError("protected path needs a pattern", rule_index=index, field="pattern")
        try:
            specs.append(
                ProtectedPathSpec(
                    item["pattern"], item.get("mode", "deny"), item.get("reason", "")
                )
            )
        except ConfigError as e:
            e.rule_index = index
            raise
    return tuple(specs)


def parse_spec_arg(arg: str) -> ProtectedPathSpec:
    """Parse ``MODE:PATTERN`` (or a bare pattern, meaning deny)."""
    mode, sep, pattern = arg.partition(":")
    if sep and mode in ("deny", "warn"):
        return ProtectedPathSpec(pattern, mode)
    return ProtectedPathSpec(arg)


class ProtectionPolicy:
    """Ordered deny/warn path list; the first matching spec decides."""

    def __init__(
        self,
        specs: Iterable[ProtectedPathSpec],
        project_dir: str | Path | None = None,
        deny_exit_code: int = DENY_EXIT_CODE,
    ):
        self.specs = tuple(specs)
        self.project_dir = Path(project_dir) if project_dir else None
        self.deny_exit_code = deny_exit_code

    def normalize(self, path: str) -> str:
        """Make *path* project-relative (when inside the project) with forward slashes.

        ``..`` segments and symlinks are resolved first, so ``src/../.env`` is
        checked as ``.env``.
        """
        p = Path(os.path.expanduser(path))
        if self.project_dir is None:
            return Path(os.path.normpath(p)).as_posix()
        if not p.is_absolute():
            p = self.project_dir / p
        p = p.resolve()
        try:
            p = p.relative_to(self.project_dir.resolve())
        except ValueError:
            pass
        return p.as_posix()

    def evaluate(self, path: str) -> ProtectedPathSpec | None:
        target = self.normalize(path)
        for spec in self.specs:
            if spec.compiled.match_path(target):
                return spec
        return None

    def run(self, event: Event) -> ExecutionResult:
        if event.type is not EventType.PreToolUse or event.tool_name not in FILE_MUTATING_TOOLS:
            return ExecutionResult(exit_code=0)
        path = event_path(event)
        if path is None:
            return ExecutionResult(exit_code=0)
        spec = self.evaluate(path)
        if spec is None:
            return ExecutionResult(exit_code=0)
        why = f" ({spec.reason})" if spec.reason else ""
        if spec.mode == "deny":
            return ExecutionResult(
                exit_code=self.deny_exit_code,
                stderr=f"Blocked edit of protected file: {path} (matches {spec.pattern}){why}",
            )
        return ExecutionResult(
            exit_code=0,
            stderr=f"Warning: editing sensitive file: {path} (matches {spec.pattern}){why}",
        )

    def __repr__(self) -> str:
        return f"ProtectionPolicy({[s.pattern for s in self.specs]})"
