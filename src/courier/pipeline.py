"""Per-event pipeline: eligibility → agent → batches → dispatch."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from courier.agent.client import AgentClient
from courier.agent.models import AgentRequest
from courier.agent.tool_calls import extract_fragments
from courier.config import CourierConfig
from courier.errors import AgentCallFailed, SendFailed
from courier.llm.gateway import ReactionGateway
from courier.messaging.base import Conversation, InboundEvent, MessagingClient, Reaction
from courier.messaging.context import AgentIdentity, ConversationContext, load_context
from courier.messaging.dispatcher import OutputDispatcher, Payload, Text
from courier.messaging.eligibility import Eligibility, explain
from courier.signing.aggregator import aggregate
from courier.signing.models import TransactionBatch

logger = structlog.get_logger()


def _always_active() -> bool:
    return True


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_template(template: str, **values: Any) -> str:
    return template.format_map(_KeepMissing(values))


@dataclass
class ProcessedEvent:
    """What the pipeline did with one inbound event."""

    event_id: str
    decision: Eligibility
    reason: str
    batches: list[TransactionBatch] = field(default_factory=list)
    reply_text: str | None = None
    tool_call_failures: int = 0
    send_failures: int = 0
    discarded: bool = False


class MessagePipeline:
    """Runs one inbound event end-to-end. Stateless across events."""

    def __init__(
        self,
        *,
        config: CourierConfig,
        client: MessagingClient,
        agent: AgentClient,
        identity: AgentIdentity,
        reactions: ReactionGateway | None = None,
        dispatcher: OutputDispatcher | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.agent = agent
        self.identity = identity
        self.reactions = reactions
        self.dispatcher = dispatcher or OutputDispatcher()

    async def handle(
        self,
        event: InboundEvent,
        *,
        active: Callable[[], bool] = _always_active,
    ) -> ProcessedEvent | None:
        """Handle one event. `active` turning false suppresses any further output."""
        log = logger.bind(event_id=event.id, conversation_id=event.conversation_id)

        conversation = await self.client.get_conversation(event.conversation_id)
        if conversation is None:
            log.warning("pipeline.conversation_not_found")
            return None

        context = await load_context(self.client, conversation, event)
        decision, reason = explain(event, context, self.identity)
        outcome = ProcessedEvent(event_id=event.id, decision=decision, reason=reason)

        if decision is Eligibility.DROP:
            log.info("pipeline.dropped", reason=reason, content_type=event.content_type.value)
            return outcome

        if decision is Eligibility.SEND_WELCOME:
            log.info("pipeline.welcome")
            welcome = render_template(
                self.config.messaging.welcome_text,
                name=self.identity.short_name or "your assistant",
                handle=self.identity.chat_id or self.identity.address,
            )
            outcome.reply_text = welcome
            await self._send(conversation, Text(welcome), event, context, outcome, active)
            return outcome

        text = event.text.strip()
        await self._react(conversation, event, context, text, outcome, active)

        sender_address = await self.client.address_for_inbox(event.sender_inbox_id)
        if not sender_address:
            log.warning("pipeline.sender_unresolved", sender_inbox_id=event.sender_inbox_id)

        agent_cfg = self.config.agent
        request = AgentRequest(
            conversation_id=event.conversation_id,
            message=text,
            sender_address=sender_address,
            system_message=render_template(
                agent_cfg.context_message,
                chat_kind="group" if context.is_group else "DM",
                address=sender_address or "unknown",
                chain_id=agent_cfg.default_chain_id,
            ),
            agent_id=agent_cfg.agent_id,
            chain_id=agent_cfg.default_chain_id,
        )

        try:
            response = await self.agent.send(request)
        except AgentCallFailed as exc:
            log.error("pipeline.agent_failed", error=str(exc), status_code=exc.status_code)
            outcome.reply_text = self.config.messaging.apology_text
            await self._send(conversation, Text(outcome.reply_text), event, context, outcome, active)
            return outcome

        if not active():
            log.info("pipeline.result_discarded", reason="stopped")
            outcome.discarded = True
            return outcome

        extraction = extract_fragments(
            response,
            default_sender=sender_address or "",
            default_chain_id=agent_cfg.default_chain_id,
            merge_swaps=agent_cfg.merge_swaps,
        )
        outcome.tool_call_failures = len(extraction.failures)

        for batch in aggregate(extraction.fragments):
            if not batch.sender:
                log.warning("pipeline.batch_without_sender", chain_id=batch.chain_id)
                continue
            outcome.batches.append(batch)
            log.info(
                "pipeline.batch",
                chain_id=batch.chain_id,
                sender=batch.sender,
                calls=len(batch.calls),
            )
            await self._send(conversation, batch, event, context, outcome, active)

        if response.content.strip():
            outcome.reply_text = response.content
            await self._send(conversation, Text(response.content), event, context, outcome, active)

        log.info(
            "pipeline.processed",
            batches=len(outcome.batches),
            tool_call_failures=outcome.tool_call_failures,
            send_failures=outcome.send_failures,
        )
        return outcome

    async def _react(
        self,
        conversation: Conversation,
        event: InboundEvent,
        context: ConversationContext,
        text: str,
        outcome: ProcessedEvent,
        active: Callable[[], bool],
    ) -> None:
        if self.reactions is None:
            return
        try:
            emoji = await self.reactions.pick_emoji(text)
        except Exception as exc:
            logger.warning("pipeline.reaction_failed", event_id=event.id, error=str(exc))
            return
        if not emoji:
            return
        reaction = Reaction(
            reference=event.id,
            content=emoji,
            reference_inbox_id=event.sender_inbox_id,
        )
        await self._send(conversation, reaction, event, context, outcome, active)

    async def _send(
        self,
        conversation: Conversation,
        payload: Payload,
        event: InboundEvent,
        context: ConversationContext,
        outcome: ProcessedEvent,
        active: Callable[[], bool],
    ) -> None:
        if not active():
            outcome.discarded = True
            return
        try:
            await self.dispatcher.dispatch(conversation, payload, event=event, context=context)
        except SendFailed as exc:
            outcome.send_failures += 1
            logger.error(
                "pipeline.send_failed",
                event_id=event.id,
                conversation_id=conversation.id,
                payload=type(payload).__name__,
                error=str(exc),
            )
