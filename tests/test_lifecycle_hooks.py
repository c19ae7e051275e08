"""Tests for lifecycle hooks: SessionStart, PreCompact and the built-in handlers."""

import json
import threading
from unittest.mock import patch

from hookwarden.core.config import Config
from hookwarden.hooks import Decision, Dispatcher, Event, EventType, HookRule, RuleSet
from hookwarden.hooks.builtin import make_resolver


def _dispatcher(config, event_type, *commands):
    config.hooks = RuleSet(
        {event_type: tuple(HookRule(event_type=event_type, command=c) for c in commands)}
    )
    return Dispatcher(config.hooks, resolver=make_resolver(config))


class TestSessionStartHook:
    def test_fires_on_session_start(self, tmp_path):
        marker = tmp_path / "started.txt"
        config = Config(project_dir=tmp_path)
        outcome = _dispatcher(config, EventType.SessionStart, f"echo started > {marker}").dispatch(
            Event(type=EventType.SessionStart)
        )
        assert outcome.decision is Decision.Allow
        assert "started" in marker.read_text()

    def test_project_dir_exported(self, tmp_path):
        out = tmp_path / "env.txt"
        config = Config(project_dir=tmp_path)
        _dispatcher(config, EventType.SessionStart, f'echo "$CLAUDE_PROJECT_DIR" > {out}').dispatch(
            Event(type=EventType.SessionStart)
        )
        assert out.read_text().strip() == str(tmp_path)

    def test_handlers_run_in_project_dir(self, tmp_path):
        config = Config(project_dir=tmp_path)
        _dispatcher(config, EventType.SessionStart, "touch here.txt").dispatch(
            Event(type=EventType.SessionStart)
        )
        assert (tmp_path / "here.txt").exists()


class TestPreCompactHook:
    def test_failing_handler_does_not_block_compaction(self, tmp_path):
        config = Config(project_dir=tmp_path)
        outcome = _dispatcher(config, EventType.PreCompact, "exit 1").dispatch(
            Event(type=EventType.PreCompact)
        )
        assert outcome.decision is Decision.ErrorButAllow
        assert len(outcome.reasons) == 1

    def test_deny_sentinel_is_only_a_warning(self, tmp_path):
        config = Config(project_dir=tmp_path)
        config.hooks = RuleSet(
            {
                EventType.PreCompact: (
                    HookRule(event_type=EventType.PreCompact, command="exit 2", blocking=True),
                )
            }
        )
        outcome = Dispatcher(config.hooks, resolver=make_resolver(config)).dispatch(
            Event(type=EventType.PreCompact)
        )
        assert outcome.decision is Decision.ErrorButAllow


class TestSessionLogBuiltin:
    def test_writes_to_log_path_from_event(self, tmp_path):
        log = tmp_path / "logs" / "s1.jsonl"
        config = Config(project_dir=tmp_path)
        outcome = _dispatcher(config, EventType.PreCompact, "builtin:session-log").dispatch(
            Event(type=EventType.PreCompact, session_id="s1", log_path=str(log), trigger="auto")
        )
        assert outcome.decision is Decision.Allow
        record = json.loads(log.read_text())
        assert record["event"] == "PreCompact"
        assert record["session_id"] == "s1"
        assert record["trigger"] == "auto"

    def test_default_path_is_session_scoped(self, tmp_path):
        config = Config(project_dir=tmp_path)
        dispatcher = _dispatcher(config, EventType.PreCompact, "builtin:session-log")
        dispatcher.dispatch(Event(type=EventType.PreCompact, session_id="abc"))
        dispatcher.dispatch(Event(type=EventType.PreCompact, session_id="xyz"))
        assert (tmp_path / ".claude" / "logs" / "abc.jsonl").exists()
        assert (tmp_path / ".claude" / "logs" / "xyz.jsonl").exists()

    def test_appends(self, tmp_path):
        log = tmp_path / "s.jsonl"
        config = Config(project_dir=tmp_path)
        dispatcher = _dispatcher(config, EventType.PreCompact, "builtin:session-log")
        for _ in range(3):
            dispatcher.dispatch(Event(type=EventType.PreCompact, log_path=str(log)))
        assert len(log.read_text().splitlines()) == 3

    def test_concurrent_dispatches_keep_lines_whole(self, tmp_path):
        log = tmp_path / "s.jsonl"
        config = Config(project_dir=tmp_path)
        dispatcher = _dispatcher(config, EventType.PostToolUse, "builtin:session-log")

        def worker(n):
            for i in range(20):
                dispatcher.dispatch(
                    Event(
                        type=EventType.PostToolUse,
                        tool_name="Write",
                        tool_input={"file_path": f"f{n}-{i}.py"},
                        log_path=str(log),
                    )
                )

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        lines = log.read_text().splitlines()
        assert len(lines) == 80
        assert all(json.loads(line)["tool_name"] == "Write" for line in lines)

    def test_unwritable_log_is_warning(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        config = Config(project_dir=tmp_path)
        outcome = _dispatcher(config, EventType.PreCompact, "builtin:session-log").dispatch(
            Event(type=EventType.PreCompact, log_path=str(blocker / "sub" / "log.jsonl"))
        )
        assert outcome.decision is Decision.ErrorButAllow


class TestNotifyBuiltin:
    def test_sends_notification(self, tmp_path):
        config = Config(project_dir=tmp_path)
        with patch("hookwarden.hooks.builtin.send_notification", return_value=True) as send:
            outcome = _dispatcher(config, EventType.SessionStart, "builtin:notify Build bot").dispatch(
                Event(type=EventType.SessionStart)
            )
        send.assert_called_once_with("Build bot", "Session started")
        assert outcome.decision is Decision.Allow

    def test_missing_notifier_is_not_an_error(self, tmp_path):
        config = Config(project_dir=tmp_path)
        with patch("hookwarden.hooks.builtin.send_notification", return_value=False):
            outcome = _dispatcher(config, EventType.PreCompact, "builtin:notify").dispatch(
                Event(type=EventType.PreCompact)
            )
        assert outcome.decision is Decision.Allow


class TestUnknownBuiltin:
    def test_unknown_builtin_is_warning(self, tmp_path):
        config = Config(project_dir=tmp_path)
        outcome = _dispatcher(config, EventType.SessionStart, "builtin:nope").dispatch(
            Event(type=EventType.SessionStart)
        )
        assert outcome.decision is Decision.ErrorButAllow
        assert "unknown builtin handler: nope" in outcome.reasons[0]

    def test_extra_builtins(self, tmp_path):
        from hookwarden.hooks import CallableHandler

        seen = []
        config = Config(project_dir=tmp_path)
        config.hooks = RuleSet(
            {EventType.SessionStart: (HookRule(event_type=EventType.SessionStart, command="builtin:mark a b"),)}
        )
        resolver = make_resolver(
            config, extra={"mark": lambda args, cfg: CallableHandler(lambda e: seen.append(args))}
        )
        Dispatcher(config.hooks, resolver=resolver).dispatch(Event(type=EventType.SessionStart))
        assert seen == [["a", "b"]]
