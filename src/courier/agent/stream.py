"""Decoder for the agent runtime's line-prefixed stream body.

Each line is `<code>:<json>`:

- `f:` message metadata (`messageId`)
- `0:` text chunk
- `9:` tool call (`toolCallId`, `toolName`, `args`)
- `a:` tool result (`toolCallId`, `result`)
- `3:` error string
- `e:` / `d:` step finish / done (`finishReason`, `usage`)
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from courier.agent.models import AgentResponse, ToolInvocation

logger = structlog.get_logger()


def decode_stream(body: str) -> AgentResponse:
    """Fold a complete stream body into one `AgentResponse`."""
    response = AgentResponse()
    by_call_id: dict[str, ToolInvocation] = {}
    text_parts: list[str] = []

    # "\n" only; JSON strings may hold raw U+2028 or NEL
    for raw_line in body.split("\n"):
        line = raw_line.strip(" \t\r")
        if not line:
            continue
        code, sep, payload = line.partition(":")
        if not sep:
            continue
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("agent.stream.undecodable_line", code=code, preview=payload[:120])
            continue

        if code == "0":
            if isinstance(data, str):
                text_parts.append(data)
        elif code == "f":
            if isinstance(data, dict):
                response.message_id = str(data.get("messageId") or response.message_id)
        elif code in ("9", "1"):
            _record_call(response, by_call_id, data)
        elif code == "a":
            _record_result(response, by_call_id, data)
        elif code == "3":
            response.errors.append(str(data))
        elif code in ("e", "d"):
            if isinstance(data, dict):
                if not response.finish_reason or code == "e":
                    response.finish_reason = str(data.get("finishReason") or response.finish_reason)
                usage = data.get("usage")
                if isinstance(usage, dict) and (response.usage is None or code == "e"):
                    response.usage = _usage(usage)

    response.content = "".join(text_parts)
    return response


def _record_call(
    response: AgentResponse,
    by_call_id: dict[str, ToolInvocation],
    data: Any,
) -> None:
    if not isinstance(data, dict):
        return
    call_id = str(data.get("toolCallId") or "")
    args = data.get("args")
    invocation = by_call_id.get(call_id) if call_id else None
    if invocation is None:
        invocation = ToolInvocation(call_id=call_id)
        response.tool_calls.append(invocation)
        if call_id:
            by_call_id[call_id] = invocation
    invocation.tool_name = data.get("toolName") or invocation.tool_name
    if isinstance(args, dict):
        invocation.args = args
    if "result" in data:
        invocation.result = data["result"]
        invocation.has_result = True


def _record_result(
    response: AgentResponse,
    by_call_id: dict[str, ToolInvocation],
    data: Any,
) -> None:
    if not isinstance(data, dict):
        return
    call_id = str(data.get("toolCallId") or "")
    invocation = by_call_id.get(call_id) if call_id else None
    if invocation is None:
        logger.debug("agent.stream.orphan_result", call_id=call_id)
        invocation = ToolInvocation(call_id=call_id, tool_name=data.get("toolName"))
        response.tool_calls.append(invocation)
        if call_id:
            by_call_id[call_id] = invocation
    invocation.result = data.get("result")
    invocation.has_result = True


def _usage(raw: dict[str, Any]) -> dict[str, int]:
    usage: dict[str, int] = {}
    for key in ("promptTokens", "completionTokens"):
        value = raw.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            usage[key] = int(value)
    return usage
