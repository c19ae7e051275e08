"""Glob matching: compile_pattern, CompiledPattern, matches, event_path."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import MatchError

if TYPE_CHECKING:
    from .models import Event, HookRule

MATCH_ALL = ("always", "*", "")

# Tool-input keys that carry the file a tool is about to touch.
PATH_KEYS = ("file_path", "path", "notebook_path")


def _translate(glob: str) -> str:
    """Translate one glob alternative into a regex body.

    ``*`` stays inside a path segment, ``**`` crosses segments, ``?`` is one
    non-separator character, ``[...]`` is a character class; the rest is literal.
    """
    out = []
    i, n = 0, len(glob)
    while i < n:
        c = glob[i]
        if c == "*":
            if glob.startswith("**", i):
                i += 2
                if glob.startswith("/", i):
                    # "**/" also matches zero directories
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            start = i + 1
            if glob.startswith("!", start):
                start += 1
            if glob.startswith("]", start):
                start += 1
            end = glob.find("]", start)
            if end == -1:
                raise MatchError(glob, "unterminated character class")
            body = glob[i + 1 : end]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = end
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


@dataclass(frozen=True)
class CompiledPattern:
    """A matcher pattern compiled once at load time."""

    source: str
    regex: re.Pattern | None  # None means match-all
    has_separator: bool = False

    def match(self, value: str) -> bool:
        if self.regex is None:
            return True
        return self.regex.fullmatch(value) is not None

    def match_path(self, path: str) -> bool:
        """Match a file path; slash-free patterns may also match the final component."""
        if self.regex is None:
            return True
        path = path.replace("\\", "/")
        if self.regex.fullmatch(path):
            return True
        if not self.has_separator:
            name = path.rstrip("/").rsplit("/", 1)[-1]
            return self.regex.fullmatch(name) is not None
        return False


def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile a glob (``|``-separated alternatives allowed). Raises MatchError."""
    if not isinstance(pattern, str):
        raise MatchError(repr(pattern), "pattern must be a string")
    pattern = pattern.strip()
    if pattern in MATCH_ALL:
        return CompiledPattern(source=pattern, regex=None)
    alternatives = pattern.split("|")
    if any(not alt.strip() for alt in alternatives):
        raise MatchError(pattern, "empty alternative")
    body = "|".join(f"(?:{_translate(alt.strip())})" for alt in alternatives)
    try:
        regex = re.compile(body)
    except re.error as e:
        raise MatchError(pattern, str(e)) from e
    return CompiledPattern(source=pattern, regex=regex, has_separator="/" in pattern)


def event_path(event: Event) -> str | None:
    """Return the target file path carried in the event's tool input, if any."""
    tool_input = event.tool_input or {}
    for key in PATH_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def matches(rule: HookRule, event: Event) -> bool:
    """Decide whether *rule* applies to *event*."""
    if rule.event_type is not event.type:
        return False
    if not event.type.is_tool_event:
        return True
    if not rule.compiled.match(event.tool_name or ""):
        return False
    if rule.compiled_path is not None:
        path = event_path(event)
        if path is None:
            return False
        return rule.compiled_path.match_path(path)
    return True
