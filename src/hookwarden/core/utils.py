"""Reason truncation and display helpers."""

from __future__ import annotations

from pathlib import Path

# Upper bound on handler stderr carried into a dispatch reason.
MAX_REASON_BYTES = 4 * 1024


def truncate(text: str, max_bytes: int = MAX_REASON_BYTES) -> str:
    """Cap a handler's diagnostic text at *max_bytes* of UTF-8.

    The cut never splits a multi-byte character; a marker with the original
    size is appended so a reader knows the hook said more.
    """
    encoded = text.encode("utf-8", errors="replace")
    if len(encoded) <= max_bytes:
        return text
    kept = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return f"{kept}\n\n... [truncated, {len(encoded)} bytes total]"


def short_cwd(p: Path) -> str:
    """Project root for display, with the home directory shown as ``~``."""
    try:
        rel = p.relative_to(Path.home())
    except ValueError:
        return str(p)
    return "~" if rel == Path(".") else f"~/{rel}"
