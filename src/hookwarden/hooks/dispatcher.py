"""Dispatcher: run the matching rules for an event and fold their results into one decision.

Rules run one at a time in declaration order. The deny sentinel from a blocking
rule on a PreToolUse event ends the dispatch; every other failure (nonzero exit,
timeout, spawn error, a handler that raises) is recorded as a warning and the
next rule still runs. Nothing short of KeyboardInterrupt/SystemExit leaves
``dispatch``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from ..core.utils import truncate
from .engine import CommandHandler, Handler
from .matcher import matches
from .models import (
    DENY_EXIT_CODE,
    Decision,
    DispatchOutcome,
    Event,
    ExecutionResult,
    HookRule,
    RuleSet,
)

logger = logging.getLogger(__name__)

Resolver = Callable[[HookRule], Handler]


def classify(
    rule: HookRule, event: Event, result: ExecutionResult, deny_exit_code: int = DENY_EXIT_CODE
) -> Decision:
    """Map one handler result to the decision it contributes."""
    if result.timed_out:
        return Decision.ErrorButAllow
    if result.exit_code == 0:
        return Decision.Allow
    if result.exit_code == deny_exit_code and rule.blocking and event.type.is_blocking:
        return Decision.Deny
    return Decision.ErrorButAllow


def _describe(rule: HookRule, result: ExecutionResult) -> str:
    detail = truncate(result.stderr.strip())
    if result.timed_out:
        return f"{rule.command}: {detail or 'timed out'}"
    if detail:
        return f"{rule.command}: exit {result.exit_code}: {detail}"
    return f"{rule.command}: exit {result.exit_code}"


class Dispatcher:
    """Dispatch lifecycle events against an immutable RuleSet.

    ``resolver`` turns a rule into a Handler; by default every rule runs as a
    shell command. The dispatcher keeps no state between events.
    """

    def __init__(
        self,
        rules: RuleSet,
        resolver: Resolver | None = None,
        deny_exit_code: int = DENY_EXIT_CODE,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ):
        self.rules = rules
        self.deny_exit_code = deny_exit_code
        self.env = dict(env or {})
        self.cwd = cwd
        self.resolver = resolver or self._command_handler

    def _command_handler(self, rule: HookRule) -> Handler:
        return CommandHandler(rule, env=self.env, cwd=self.cwd)

    def matching_rules(self, event: Event) -> list[HookRule]:
        return [r for r in self.rules.get_rules(event.type) if matches(r, event)]

    def _run(self, rule: HookRule, event: Event) -> ExecutionResult:
        try:
            return self.resolver(rule).run(event)
        except Exception as e:
            logger.exception("Hook %r failed unexpectedly", rule.command)
            return ExecutionResult(exit_code=1, stderr=f"internal error: {e}")

    def dispatch(self, event: Event) -> DispatchOutcome:
        outcome = DispatchOutcome()
        for rule in self.matching_rules(event):
            result = self._run(rule, event)
            outcome.results.append((rule, result))
            verdict = classify(rule, event, result, self.deny_exit_code)
            logger.debug(
                "%s %r -> exit %d in %dms (%s)",
                event.type.value,
                rule.command,
                result.exit_code,
                result.duration_ms,
                verdict.value,
            )

            if verdict is Decision.Deny:
                reason = result.stderr.strip() or f"denied by {rule.command}"
                outcome.reasons.append(reason)
                outcome.decision = Decision.Deny
                logger.warning("%s denied: %s", event.type.value, reason)
                break
            if verdict is Decision.ErrorButAllow:
                reason = _describe(rule, result)
                outcome.reasons.append(reason)
                outcome.decision = Decision.ErrorButAllow
                logger.warning("Hook warning on %s: %s", event.type.value, reason)
            elif result.stderr.strip():
                outcome.reasons.append(result.stderr.strip())
        return outcome
