"""Conversation context derived per event, and the agent's own identity."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from courier.messaging.base import ContentType, Conversation, InboundEvent, MessagingClient


class ConversationKind(str, Enum):
    DIRECT = "direct"
    GROUP = "group"


@dataclass(frozen=True)
class ConversationContext:
    kind: ConversationKind
    participants: frozenset[str] = field(default_factory=frozenset)
    agent_has_posted: bool = False
    reply_target_author: str | None = None

    @property
    def is_group(self) -> bool:
        return self.kind is ConversationKind.GROUP


@dataclass(frozen=True)
class AgentIdentity:
    """Who the agent is on the network and the handles users mention it by."""

    inbox_id: str
    address: str
    chat_id: str | None = None
    short_name: str | None = None
    extra_handles: tuple[str, ...] = ()

    @classmethod
    def build(
        cls,
        *,
        inbox_id: str,
        address: str,
        agent_id: str | None = None,
        chat_id: str | None = None,
        extra_handles: tuple[str, ...] | list[str] = (),
    ) -> AgentIdentity:
        short = agent_id.split(".", 1)[0] if agent_id else None
        return cls(
            inbox_id=inbox_id,
            address=address,
            chat_id=chat_id or shorten_address(address),
            short_name=short or None,
            extra_handles=tuple(extra_handles),
        )

    @property
    def handles(self) -> tuple[str, ...]:
        candidates = (self.address, self.chat_id, self.short_name, *self.extra_handles)
        return tuple(h for h in candidates if h)

    def is_self(self, inbox_id: str | None) -> bool:
        if not inbox_id:
            return False
        return inbox_id.lower() == self.inbox_id.lower()

    def is_mentioned(self, text: str) -> bool:
        lowered = text.lower()
        return any(f"@{handle.lower()}" in lowered for handle in self.handles)


def shorten_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


async def load_context(
    client: MessagingClient,
    conversation: Conversation,
    event: InboundEvent,
) -> ConversationContext:
    """Query membership, history and reply target for one event."""
    members = await conversation.members()
    is_group = conversation.is_group or len(members) > 2

    history = await conversation.messages()
    own_inbox = client.inbox_id.lower()
    agent_has_posted = any(msg.sender_inbox_id.lower() == own_inbox for msg in history)

    reply_target_author = None
    if event.content_type is ContentType.REPLY and event.reference:
        target = await client.get_message(event.reference)
        if target is not None:
            reply_target_author = target.sender_inbox_id

    return ConversationContext(
        kind=ConversationKind.GROUP if is_group else ConversationKind.DIRECT,
        participants=frozenset(members),
        agent_has_posted=agent_has_posted,
        reply_target_author=reply_target_author,
    )
