"""Hosted agent API adapter."""

from courier.agent.client import AgentClient
from courier.agent.models import AgentRequest, AgentResponse, ToolInvocation
from courier.agent.stream import decode_stream
from courier.agent.tool_calls import ExtractionResult, extract_fragments

__all__ = [
    "AgentClient",
    "AgentRequest",
    "AgentResponse",
    "ExtractionResult",
    "ToolInvocation",
    "decode_stream",
    "extract_fragments",
]
