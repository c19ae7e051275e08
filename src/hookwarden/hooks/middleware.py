"""HooksMiddleware: dispatches PreToolUse / PostToolUse around agent tool calls."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from langchain.agents.middleware import AgentMiddleware
from langchain.messages import ToolMessage
from langchain.tools.tool_node import ToolCallRequest
from langgraph.types import Command
from rich.console import Console
from rich.markup import escape

from .builtin import make_resolver
from .dispatcher import Dispatcher
from .models import Decision, DispatchOutcome, Event, EventType

if TYPE_CHECKING:
    from hookwarden.core.config import Config

console = Console(stderr=True)


class HooksMiddleware(AgentMiddleware):
    """Run PreToolUse / PostToolUse hooks around tool calls."""

    def __init__(self, config: Config, session_id: str = "", log_path: str | None = None):
        self.config = config
        self.session_id = session_id
        self.log_path = log_path
        self.dispatcher = Dispatcher(
            config.hooks,
            resolver=make_resolver(config),
            deny_exit_code=config.deny_exit_code,
        )

    def _event(self, type_: EventType, tool_name: str, args: dict) -> Event:
        return Event(
            type=type_,
            session_id=self.session_id,
            tool_name=tool_name,
            tool_input=args,
            log_path=self.log_path,
        )

    def _show(self, outcome: DispatchOutcome) -> None:
        style = "yellow" if outcome.decision is Decision.ErrorButAllow else "dim"
        for reason in outcome.reasons:
            console.print(f"  [{style}]hook: {escape(reason)}[/{style}]", highlight=False)

    def wrap_tool_call(
        self,
        request: ToolCallRequest,
        handler: Callable[[ToolCallRequest], ToolMessage | Command],
    ) -> ToolMessage | Command:
        tool_name = request.tool_call["name"]
        args = request.tool_call.get("args", {}) or {}

        pre = self.dispatcher.dispatch(self._event(EventType.PreToolUse, tool_name, args))
        if pre.denied:
            reasons = "\n".join(pre.reasons) or "no reason given"
            return ToolMessage(
                content=f"Tool call denied by hook:\n{reasons}",
                tool_call_id=request.tool_call["id"],
                status="error",
            )
        self._show(pre)

        result = handler(request)

        post = self.dispatcher.dispatch(self._event(EventType.PostToolUse, tool_name, args))
        self._show(post)
        return result
