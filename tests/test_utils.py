"""Tests for utils and sinks: truncate, short_cwd, session log, notifications."""

import json
from pathlib import Path
from unittest.mock import patch

from hookwarden.core import sinks
from hookwarden.core.utils import MAX_REASON_BYTES, short_cwd, truncate


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("hello") == "hello"

    def test_default_limit(self):
        result = truncate("x" * (MAX_REASON_BYTES * 3))
        assert "[truncated" in result
        assert len(result.encode()) < MAX_REASON_BYTES + 100

    def test_exact_boundary(self):
        text = "a" * 100
        assert truncate(text, max_bytes=100) == text

    def test_multibyte_chars(self):
        result = truncate("你好" * 100, max_bytes=50)
        assert "[truncated" in result


class TestShortCwd:
    def test_home_prefix(self):
        assert short_cwd(Path.home() / "proj") == "~/proj"

    def test_home_itself(self):
        assert short_cwd(Path.home()) == "~"

    def test_outside_home(self, tmp_path):
        with patch("hookwarden.core.utils.Path.home", return_value=Path("/nonexistent-home")):
            assert short_cwd(tmp_path) == str(tmp_path)


class TestSessionLog:
    def test_path_named_after_session(self, tmp_path):
        assert sinks.session_log_path(tmp_path, "abc") == tmp_path / ".claude" / "logs" / "abc.jsonl"

    def test_anonymous_session(self, tmp_path):
        assert sinks.session_log_path(tmp_path, "").name == "session.jsonl"

    def test_append_creates_parents(self, tmp_path):
        path = tmp_path / "a" / "b" / "log.jsonl"
        sinks.append_session_log(path, {"n": 1})
        sinks.append_session_log(path, {"n": 2})
        assert [json.loads(line)["n"] for line in path.read_text().splitlines()] == [1, 2]


class TestNotify:
    def test_linux_notify_send(self):
        with patch.object(sinks.sys, "platform", "linux"), patch.object(
            sinks.shutil, "which", return_value="/usr/bin/notify-send"
        ), patch.object(sinks.subprocess, "Popen") as popen:
            assert sinks.send_notification("Title", "Body") is True
        cmd = popen.call_args[0][0]
        assert cmd[0] == "notify-send"
        assert cmd[-2:] == ["Title", "Body"]

    def test_macos_escapes_quotes(self):
        with patch.object(sinks.sys, "platform", "darwin"), patch.object(
            sinks.shutil, "which", return_value="/usr/bin/osascript"
        ), patch.object(sinks.subprocess, "Popen") as popen:
            sinks.send_notification('say "hi"', "body")
        script = popen.call_args[0][0][2]
        assert '\\"hi\\"' in script

    def test_no_notifier(self):
        with patch.object(sinks.sys, "platform", "linux"), patch.object(
            sinks.shutil, "which", return_value=None
        ), patch.object(sinks.subprocess, "Popen") as popen:
            assert sinks.send_notification("t", "b") is False
        popen.assert_not_called()

    def test_popen_failure(self):
        with patch.object(sinks.sys, "platform", "linux"), patch.object(
            sinks.shutil, "which", return_value="/usr/bin/notify-send"
        ), patch.object(sinks.subprocess, "Popen", side_effect=OSError("denied")):
            assert sinks.send_notification("t", "b") is False
