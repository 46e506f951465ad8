"""Per-event eligibility decision, evaluated before the agent is called."""

from __future__ import annotations

from enum import Enum

from courier.messaging.base import ContentType, InboundEvent
from courier.messaging.context import AgentIdentity, ConversationContext


class Eligibility(str, Enum):
    DROP = "drop"
    SEND_WELCOME = "send_welcome"
    PROCESS = "process"


_CONVERSATIONAL = frozenset({ContentType.TEXT, ContentType.REPLY})


def evaluate(
    event: InboundEvent,
    context: ConversationContext,
    identity: AgentIdentity,
) -> Eligibility:
    """Return the first matching rule's decision; rules never combine."""
    return explain(event, context, identity)[0]


def explain(
    event: InboundEvent,
    context: ConversationContext,
    identity: AgentIdentity,
) -> tuple[Eligibility, str]:
    """Like `evaluate`, plus the reason used in logs."""
    if identity.is_self(event.sender_inbox_id):
        return Eligibility.DROP, "own_message"

    # reactions, membership changes, transaction references, unknown types
    if event.content_type not in _CONVERSATIONAL:
        return Eligibility.DROP, "non_text_content"

    text = event.text.strip()
    if not text:
        return Eligibility.DROP, "empty_text"

    if context.is_group and not context.agent_has_posted:
        return Eligibility.SEND_WELCOME, "first_group_interaction"

    if context.is_group:
        mentioned = identity.is_mentioned(text)
        replying_to_agent = (
            event.content_type is ContentType.REPLY
            and identity.is_self(context.reply_target_author)
        )
        if not mentioned and not replying_to_agent:
            return Eligibility.DROP, "not_addressed"

    return Eligibility.PROCESS, "addressed"
