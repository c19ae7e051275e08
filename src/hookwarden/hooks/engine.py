"""Hook execution engine: run_command, CommandHandler, CallableHandler."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time
from collections.abc import Callable, Mapping
from typing import Protocol

from .models import (
    SPAWN_FAILURE_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    Event,
    ExecutionResult,
    HookRule,
)

logger = logging.getLogger(__name__)

PROJECT_DIR_ENV = "CLAUDE_PROJECT_DIR"


class Handler(Protocol):
    """Anything that can handle an event: a shell command or an in-process function."""

    def run(self, event: Event) -> ExecutionResult: ...


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill the handler and everything it spawned."""
    if proc.poll() is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        pass


def run_command(
    command: str,
    event: Event,
    timeout_ms: int,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> ExecutionResult:
    """Execute a handler command with the event JSON on stdin.

    Never raises for handler failures: spawn errors come back as exit code 127,
    timeouts as exit code 124 with ``timed_out=True``.
    """
    start = time.monotonic()
    proc_env = {**os.environ, **(env or {})}
    try:
        proc = subprocess.Popen(
            command,
            shell=True,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            env=proc_env,
            cwd=cwd,
            start_new_session=(os.name == "posix"),
        )
    except OSError as e:
        return ExecutionResult(
            exit_code=SPAWN_FAILURE_EXIT_CODE, stderr=str(e), duration_ms=_elapsed_ms(start)
        )

    try:
        stdout, stderr = proc.communicate(event.to_json(), timeout=timeout_ms / 1000)
    except subprocess.TimeoutExpired:
        _kill_group(proc)
        # reap without waiting on grandchildren that may hold the pipes open
        try:
            proc.communicate(timeout=1)
        except subprocess.TimeoutExpired:
            pass
        return ExecutionResult(
            exit_code=TIMEOUT_EXIT_CODE,
            stderr=f"hook timed out after {timeout_ms}ms",
            duration_ms=_elapsed_ms(start),
            timed_out=True,
        )
    except BaseException:
        # session is going away mid-dispatch
        _kill_group(proc)
        raise
    return ExecutionResult(
        exit_code=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
        duration_ms=_elapsed_ms(start),
    )


class CommandHandler:
    """Out-of-process handler: a rule's shell command."""

    def __init__(self, rule: HookRule, env: Mapping[str, str] | None = None, cwd: str | None = None):
        self.rule = rule
        self.env = dict(env or {})
        self.cwd = cwd

    def run(self, event: Event) -> ExecutionResult:
        return run_command(self.rule.command, event, self.rule.timeout_ms, env=self.env, cwd=self.cwd)

    def __repr__(self) -> str:
        return f"CommandHandler({self.rule.command!r})"


class CallableHandler:
    """In-process handler wrapping ``func(event) -> ExecutionResult | int | None``.

    Exceptions become exit code 1 so the dispatcher can isolate them like any
    other failing handler.
    """

    def __init__(self, func: Callable[[Event], ExecutionResult | int | None], name: str = ""):
        self.func = func
        self.name = name or getattr(func, "__name__", "handler")

    def run(self, event: Event) -> ExecutionResult:
        start = time.monotonic()
        try:
            result = self.func(event)
        except Exception as e:
            logger.debug("In-process handler %s raised", self.name, exc_info=True)
            return ExecutionResult(
                exit_code=1, stderr=f"{self.name}: {e}", duration_ms=_elapsed_ms(start)
            )
        if isinstance(result, ExecutionResult):
            return result
        return ExecutionResult(exit_code=result or 0, duration_ms=_elapsed_ms(start))

    def __repr__(self) -> str:
        return f"CallableHandler({self.name!r})"
