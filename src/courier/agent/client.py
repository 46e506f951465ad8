"""HTTP client for the hosted agent runtime."""

from __future__ import annotations

import time
import uuid
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from courier.agent.models import AgentRequest, AgentResponse
from courier.agent.stream import decode_stream
from courier.config import AgentApiConfig
from courier.errors import AgentCallFailed

logger = structlog.get_logger()


class AgentClient:
    """Sends one user turn to the agent and decodes the streamed reply."""

    def __init__(self, config: AgentApiConfig, *, http: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_s))
        self.request_count = 0

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def build_payload(self, request: AgentRequest) -> dict[str, Any]:
        message_id = uuid.uuid4().hex[:16]
        agent_config: dict[str, Any] = {
            "mode": self.config.mode,
            "agentId": request.agent_id or self.config.agent_id,
        }
        if self.config.mcp_server_url:
            agent_config["mcpServerUrl"] = self.config.mcp_server_url

        payload: dict[str, Any] = {
            "id": request.conversation_id,
            "messages": [
                {
                    "id": message_id,
                    "createdAt": datetime.now(UTC).isoformat(),
                    "role": "user",
                    "content": request.message,
                    "parts": [{"type": "text", "text": request.message}],
                }
            ],
            "config": agent_config,
            "evmAddress": request.sender_address,
            "chainId": request.chain_id,
        }
        if request.system_message:
            payload["systemMessage"] = request.system_message
        return payload

    async def send(self, request: AgentRequest) -> AgentResponse:
        """POST one turn; transport and HTTP errors surface as `AgentCallFailed`."""
        self.request_count += 1
        request_id = self.request_count
        start = time.monotonic()
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        logger.info(
            "agent.request",
            request_id=request_id,
            conversation_id=request.conversation_id,
            agent_id=request.agent_id or self.config.agent_id,
        )

        try:
            resp = await self._http.post(
                self.config.api_url,
                json=self.build_payload(request),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.error("agent.transport_error", request_id=request_id, error=str(exc))
            raise AgentCallFailed(f"Agent request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error(
                "agent.http_error",
                request_id=request_id,
                status_code=resp.status_code,
                body=resp.text[:300],
            )
            raise AgentCallFailed(
                f"Agent API error: {resp.status_code} - {resp.text[:300]}",
                status_code=resp.status_code,
            )

        response = decode_stream(resp.text)
        logger.info(
            "agent.response",
            request_id=request_id,
            tool_calls=len(response.tool_calls),
            content_length=len(response.content),
            finish_reason=response.finish_reason,
            duration=f"{time.monotonic() - start:.2f}s",
        )
        return response
