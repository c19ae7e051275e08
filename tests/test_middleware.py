"""Tests for middleware: HooksMiddleware around agent tool calls."""

from unittest.mock import MagicMock, patch

from hookwarden.core.config import Config
from hookwarden.hooks import EventType, HookRule, ProtectedPathSpec, RuleSet
from hookwarden.hooks.middleware import HooksMiddleware


def _make_config(tmp_path, **rules) -> Config:
    config = Config(project_dir=tmp_path)
    config.hooks = RuleSet({EventType(k): tuple(v) for k, v in rules.items()})
    return config


def _request(name, args=None, call_id="123"):
    request = MagicMock()
    request.tool_call = {"name": name, "id": call_id, "args": args or {}}
    return request


def _pre(command, **kwargs):
    return HookRule(event_type=EventType.PreToolUse, command=command, **kwargs)


def _post(command, **kwargs):
    return HookRule(event_type=EventType.PostToolUse, command=command, **kwargs)


class TestHooksMiddleware:
    def test_no_hooks_passes_through(self, tmp_path):
        mw = HooksMiddleware(Config(project_dir=tmp_path))
        request = _request("Read")
        expected = MagicMock()
        handler = MagicMock(return_value=expected)

        result = mw.wrap_tool_call(request, handler)
        handler.assert_called_once_with(request)
        assert result == expected

    def test_pre_hook_shell_command(self, tmp_path):
        marker = tmp_path / "pre.txt"
        mw = HooksMiddleware(_make_config(tmp_path, PreToolUse=[_pre(f"touch {marker}", matcher="Write")]))
        mw.wrap_tool_call(_request("Write"), MagicMock(return_value=MagicMock()))
        assert marker.exists()

    def test_post_hook_sees_tool_input(self, tmp_path):
        log = tmp_path / "hook.log"
        mw = HooksMiddleware(_make_config(tmp_path, PostToolUse=[_post(f"cat > {log}", matcher="Write")]))
        mw.wrap_tool_call(
            _request("Write", {"file_path": "src/main.py"}), MagicMock(return_value=MagicMock())
        )
        assert "src/main.py" in log.read_text()

    def test_deny_blocks_tool(self, tmp_path):
        config = _make_config(
            tmp_path, PreToolUse=[_pre("builtin:protect", matcher="Write|Edit", blocking=True)]
        )
        config.protected_paths = (ProtectedPathSpec("settings.local.json"),)
        mw = HooksMiddleware(config)
        handler = MagicMock()

        result = mw.wrap_tool_call(
            _request("Edit", {"file_path": ".claude/settings.local.json"}, call_id="456"), handler
        )
        handler.assert_not_called()
        assert "denied" in result.content.lower()
        assert "settings.local.json" in result.content
        assert result.tool_call_id == "456"

    def test_deny_skips_post_hooks(self, tmp_path):
        marker = tmp_path / "post.txt"
        mw = HooksMiddleware(
            _make_config(
                tmp_path,
                PreToolUse=[_pre("echo no >&2; exit 2", blocking=True)],
                PostToolUse=[_post(f"touch {marker}")],
            )
        )
        mw.wrap_tool_call(_request("Bash", {"command": "ls"}), MagicMock())
        assert not marker.exists()

    def test_failing_pre_hook_still_runs_tool(self, tmp_path):
        mw = HooksMiddleware(_make_config(tmp_path, PreToolUse=[_pre("exit 1", blocking=True)]))
        expected = MagicMock()
        handler = MagicMock(return_value=expected)
        with patch("hookwarden.hooks.middleware.console") as console:
            result = mw.wrap_tool_call(_request("Write"), handler)
        handler.assert_called_once()
        assert result == expected
        console.print.assert_called_once()

    def test_alternative_matcher(self, tmp_path):
        log = tmp_path / "seen.log"
        mw = HooksMiddleware(
            _make_config(tmp_path, PreToolUse=[_pre(f"echo x >> {log}", matcher="Write|Edit")])
        )
        for tool_name in ("Write", "Edit", "Read"):
            handler = MagicMock(return_value=MagicMock())
            mw.wrap_tool_call(_request(tool_name), handler)
            handler.assert_called_once()
        assert len(log.read_text().split()) == 2

    def test_session_fields_forwarded(self, tmp_path):
        out = tmp_path / "event.json"
        mw = HooksMiddleware(
            _make_config(tmp_path, PreToolUse=[_pre(f"cat > {out}")]),
            session_id="sess-1",
            log_path="/tmp/sess-1.jsonl",
        )
        mw.wrap_tool_call(_request("Write"), MagicMock(return_value=MagicMock()))
        text = out.read_text()
        assert "sess-1" in text
        assert "/tmp/sess-1.jsonl" in text
