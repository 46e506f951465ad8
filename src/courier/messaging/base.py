"""Core messaging abstractions.

The concrete network SDK lives outside this package; it is adapted to the
`MessagingClient` and `Conversation` interfaces below.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ContentType(str, Enum):
    """Inbound content types the pipeline distinguishes."""

    TEXT = "text"
    REPLY = "reply"
    REACTION = "reaction"
    TRANSACTION_REFERENCE = "transactionReference"
    GROUP_UPDATED = "group_updated"
    UNKNOWN = "unknown"

    @classmethod
    def from_type_id(cls, type_id: str | None) -> ContentType:
        for member in cls:
            if member.value == type_id:
                return member
        return cls.UNKNOWN


class OutboundContentType(str, Enum):
    """Content-type tags attached to outbound sends."""

    TEXT = "text"
    REPLY = "reply"
    REACTION = "reaction"
    WALLET_SEND_CALLS = "walletSendCalls"


_REPLY_FALLBACK = re.compile(r'Replied with "(.+)" to an earlier message', re.DOTALL)


@dataclass(frozen=True)
class InboundEvent:
    """One message received from the network."""

    id: str
    conversation_id: str
    sender_inbox_id: str
    content_type: ContentType
    content: Any = None
    reference: str | None = None
    fallback: str | None = None
    sent_at: str | None = None

    @property
    def text(self) -> str:
        """Decoded text for text and reply events; empty for everything else."""
        if self.content_type is ContentType.TEXT:
            return "" if self.content is None else str(self.content)
        if self.content_type is ContentType.REPLY:
            return _reply_text(self.content, self.fallback)
        return ""


def _reply_text(content: Any, fallback: str | None) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        for key in ("content", "text", "message"):
            value = content.get(key)
            if isinstance(value, str):
                return value
    if fallback:
        match = _REPLY_FALLBACK.search(fallback)
        return match.group(1) if match else fallback
    return ""


@dataclass(frozen=True)
class Reply:
    """Threaded reply wrapper referencing an earlier message."""

    reference: str
    content: Any
    content_type: OutboundContentType
    reference_inbox_id: str | None = None


@dataclass(frozen=True)
class Reaction:
    """Emoji reaction to an earlier message."""

    reference: str
    content: str
    action: str = "added"
    schema: str = "unicode"
    reference_inbox_id: str | None = None


class Conversation(ABC):
    """A direct or group channel as exposed by the network SDK."""

    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @property
    @abstractmethod
    def is_group(self) -> bool:
        ...

    @abstractmethod
    async def members(self) -> list[str]:
        """Inbox ids of every member, including the agent."""
        ...

    @abstractmethod
    async def messages(self) -> list[InboundEvent]:
        """Locally synced message history."""
        ...

    @abstractmethod
    async def send(self, content: Any, content_type: OutboundContentType) -> None:
        ...


class MessagingClient(ABC):
    """Network client the supervisor subscribes through."""

    @property
    @abstractmethod
    def inbox_id(self) -> str:
        ...

    @property
    @abstractmethod
    def address(self) -> str:
        """Wallet address the agent's inbox is registered with."""
        ...

    @abstractmethod
    async def sync_all(self) -> None:
        """Synchronize every conversation from the network into the local store."""
        ...

    @abstractmethod
    def stream_all_messages(self) -> AsyncIterator[InboundEvent]:
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        ...

    @abstractmethod
    async def get_message(self, message_id: str) -> InboundEvent | None:
        ...

    @abstractmethod
    async def address_for_inbox(self, inbox_id: str) -> str | None:
        ...

    async def close(self) -> None:
        return None
