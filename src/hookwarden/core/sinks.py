"""Append-only session log and desktop notification sinks."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

LOG_DIR = Path(".claude") / "logs"


def session_log_path(project_dir: Path, session_id: str) -> Path:
    """Session-scoped log file under the project, named after the session."""
    name = session_id or "session"
    return project_dir / LOG_DIR / f"{name}.jsonl"


def append_session_log(path: Path, record: dict[str, Any]) -> None:
    """Append one JSON line. A single write on an append-mode handle keeps
    concurrent writers from interleaving inside a record."""
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(record, default=str, ensure_ascii=False) + "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(line)


def _escape_applescript(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _escape_powershell(text: str) -> str:
    return text.replace("`", "``").replace('"', '`"').replace("$", "`$")


def _notify_command(title: str, body: str) -> list[str] | None:
    if sys.platform == "darwin":
        if not shutil.which("osascript"):
            return None
        script = (
            f'display notification "{_escape_applescript(body)}" '
            f'with title "{_escape_applescript(title)}"'
        )
        return ["osascript", "-e", script]
    if sys.platform == "win32":
        if not shutil.which("powershell"):
            return None
        script = (
            "[reflection.assembly]::loadwithpartialname('System.Windows.Forms') | Out-Null; "
            "$n = New-Object System.Windows.Forms.NotifyIcon; "
            "$n.Icon = [System.Drawing.SystemIcons]::Information; $n.Visible = $true; "
            f'$n.ShowBalloonTip(5000, "{_escape_powershell(title)}", "{_escape_powershell(body)}", '
            "[System.Windows.Forms.ToolTipIcon]::None)"
        )
        return ["powershell", "-NoProfile", "-Command", script]
    if not shutil.which("notify-send"):
        return None
    return ["notify-send", "--app-name=hookwarden", title, body]


def send_notification(title: str, body: str) -> bool:
    """Fire a desktop notification. Returns False when no notifier is available."""
    cmd = _notify_command(title, body)
    if cmd is None:
        logger.debug("No desktop notifier available on %s", sys.platform)
        return False
    try:
        subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        logger.warning("Notification failed: %s", e)
        return False
    return True
