"""Output dispatcher: picks the wire shape for each outbound payload."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

import structlog

from courier.errors import SendFailed
from courier.messaging.base import (
    Conversation,
    InboundEvent,
    OutboundContentType,
    Reaction,
    Reply,
)
from courier.messaging.context import ConversationContext
from courier.signing.models import TransactionBatch

logger = structlog.get_logger()


@dataclass(frozen=True)
class Text:
    body: str


Payload = Union[Text, Reaction, TransactionBatch]


def shape(
    payload: Payload,
    event: InboundEvent,
    context: ConversationContext,
) -> tuple[Any, OutboundContentType]:
    """Return (content, content type) for a payload answering `event`.

    Only group text is threaded. Batches keep their own type tag in groups
    because the signing surface inspects the tag, not reply wrappers.
    """
    if isinstance(payload, Reaction):
        return payload, OutboundContentType.REACTION
    if isinstance(payload, TransactionBatch):
        return payload.to_wire(), OutboundContentType.WALLET_SEND_CALLS
    if isinstance(payload, Text):
        if not context.is_group:
            return payload.body, OutboundContentType.TEXT
        reply = Reply(
            reference=event.id,
            content=payload.body,
            content_type=OutboundContentType.TEXT,
            reference_inbox_id=event.sender_inbox_id,
        )
        return reply, OutboundContentType.REPLY
    raise TypeError(f"Unsupported payload: {type(payload).__name__}")


class OutputDispatcher:
    """Sends payloads into a conversation. Failures are raised, never retried."""

    async def dispatch(
        self,
        conversation: Conversation,
        payload: Payload,
        *,
        event: InboundEvent,
        context: ConversationContext,
    ) -> None:
        content, content_type = shape(payload, event, context)
        try:
            await conversation.send(content, content_type)
        except Exception as exc:
            raise SendFailed(
                f"Send of {content_type.value} to {conversation.id} failed: {exc}"
            ) from exc
        logger.info(
            "dispatch.sent",
            conversation_id=conversation.id,
            content_type=content_type.value,
            threaded=content_type is OutboundContentType.REPLY,
        )
