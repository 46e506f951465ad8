"""Messaging network abstractions, eligibility filter and output dispatch."""

from courier.messaging.base import (
    ContentType,
    Conversation,
    InboundEvent,
    MessagingClient,
    OutboundContentType,
    Reaction,
    Reply,
)
from courier.messaging.context import AgentIdentity, ConversationContext, ConversationKind
from courier.messaging.dispatcher import OutputDispatcher, Text
from courier.messaging.eligibility import Eligibility, evaluate

__all__ = [
    "AgentIdentity",
    "ContentType",
    "Conversation",
    "ConversationContext",
    "ConversationKind",
    "Eligibility",
    "InboundEvent",
    "MessagingClient",
    "OutboundContentType",
    "OutputDispatcher",
    "Reaction",
    "Reply",
    "Text",
    "evaluate",
]
