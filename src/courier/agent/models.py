"""Agent request/response models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolInvocation:
    """One tool call made by the agent, with its result once one arrived."""

    call_id: str
    tool_name: str | None = None
    args: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    has_result: bool = False

    @property
    def error(self) -> str | None:
        """Error string carried by the result, if the tool failed."""
        if isinstance(self.result, str) and self.has_result:
            return self.result
        if isinstance(self.result, dict):
            err = self.result.get("error")
            if isinstance(err, str) and err:
                return err
        return None


@dataclass
class AgentResponse:
    """Decoded agent reply: free text plus tool invocations in call order."""

    content: str = ""
    message_id: str = ""
    finish_reason: str = ""
    usage: dict[str, int] | None = None
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def tools_named(self, name: str) -> list[ToolInvocation]:
        return [tc for tc in self.tool_calls if tc.tool_name == name]


@dataclass(frozen=True)
class AgentRequest:
    """One user turn sent to the agent."""

    conversation_id: str
    message: str
    sender_address: str | None = None
    system_message: str | None = None
    agent_id: str | None = None
    chain_id: int | None = None
