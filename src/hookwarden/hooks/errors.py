"""Hook errors: HookError, ConfigError, MatchError."""

from __future__ import annotations


class HookError(Exception):
    """Base class for hook subsystem errors."""


class ConfigError(HookError):
    """A malformed hook configuration entry (or a whole unreadable document).

    ``rule_index`` is the entry's position in its event array, ``None`` when the
    problem is not tied to one entry.
    """

    def __init__(
        self,
        message: str,
        *,
        rule_index: int | None = None,
        event_type: str | None = None,
        field: str | None = None,
        source: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.rule_index = rule_index
        self.event_type = event_type
        self.field = field
        self.source = source

    def __str__(self) -> str:
        where = self.event_type or ""
        if self.rule_index is not None:
            where += f"[{self.rule_index}]"
        if self.field:
            where += f".{self.field}"
        text = f"{where}: {self.message}" if where else self.message
        return f"{self.source}: {text}" if self.source else text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.rule_index == other.rule_index
            and self.event_type == other.event_type
            and self.field == other.field
        )

    def __hash__(self) -> int:
        return hash((type(self), self.rule_index, self.event_type, self.field))


class MatchError(ConfigError):
    """A matcher pattern that does not compile as a glob."""

    def __init__(self, pattern: str, detail: str, **kwargs):
        super().__init__(f"bad pattern {pattern!r}: {detail}", **kwargs)
        self.pattern = pattern
        self.detail = detail
