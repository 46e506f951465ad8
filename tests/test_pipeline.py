from __future__ import annotations

from typing import Any

import pytest

from courier.agent.models import AgentRequest, AgentResponse, ToolInvocation
from courier.config import CourierConfig, MessagingConfig
from courier.errors import AgentCallFailed
from courier.messaging.base import (
    ContentType,
    Conversation,
    InboundEvent,
    MessagingClient,
    OutboundContentType,
    Reaction,
    Reply,
)
from courier.messaging.context import AgentIdentity
from courier.messaging.eligibility import Eligibility
from courier.pipeline import MessagePipeline

AGENT_INBOX = "agent-inbox"
AGENT_ADDRESS = "0xA9e1c3b4d5e6f708192a3b4c5d6e7f8091a2b3c4"
USER_ADDRESS = "0x1111111111111111111111111111111111111111"


class _FakeConversation(Conversation):
    def __init__(
        self,
        conversation_id: str,
        members: list[str],
        *,
        history: list[InboundEvent] | None = None,
        fail_types: set[OutboundContentType] | None = None,
    ) -> None:
        self._id = conversation_id
        self._members = members
        self._history = history or []
        self.fail_types = fail_types or set()
        self.sent: list[tuple[Any, OutboundContentType]] = []

    @property
    def id(self) -> str:
        return self._id

    @property
    def is_group(self) -> bool:
        return len(self._members) > 2

    async def members(self) -> list[str]:
        return list(self._members)

    async def messages(self) -> list[InboundEvent]:
        return list(self._history)

    async def send(self, content: Any, content_type: OutboundContentType) -> None:
        if content_type in self.fail_types:
            raise ConnectionError("publish failed")
        self.sent.append((content, content_type))


class _FakeClient(MessagingClient):
    def __init__(self, conversations: dict[str, _FakeConversation], addresses: dict[str, str]) -> None:
        self.conversations = conversations
        self.addresses = addresses

    @property
    def inbox_id(self) -> str:
        return AGENT_INBOX

    @property
    def address(self) -> str:
        return AGENT_ADDRESS

    async def sync_all(self) -> None:
        return None

    def stream_all_messages(self):
        raise NotImplementedError

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return self.conversations.get(conversation_id)

    async def get_message(self, message_id: str) -> InboundEvent | None:
        return None

    async def address_for_inbox(self, inbox_id: str) -> str | None:
        return self.addresses.get(inbox_id)


class _FakeAgent:
    def __init__(self, response: AgentResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or AgentResponse()
        self.error = error
        self.requests: list[AgentRequest] = []
        self.on_send = None

    async def send(self, request: AgentRequest) -> AgentResponse:
        self.requests.append(request)
        if self.on_send is not None:
            self.on_send()
        if self.error is not None:
            raise self.error
        return self.response


class _FakeReactions:
    def __init__(self, emoji: str | None = "👀") -> None:
        self.emoji = emoji
        self.seen: list[str] = []

    async def pick_emoji(self, message: str) -> str | None:
        self.seen.append(message)
        return self.emoji


def _evm_tx(call_id: str, to: str, sender: str | None = USER_ADDRESS) -> ToolInvocation:
    params: dict[str, Any] = {"to": to, "data": "0x", "value": "0x0"}
    if sender:
        params["from"] = sender
    return ToolInvocation(
        call_id=call_id,
        tool_name="generate-evm-tx",
        result={"evmSignRequest": {"method": "eth_sendTransaction", "chainId": 8453, "params": [params]}},
        has_result=True,
    )


def _event(text: str, conversation_id: str = "dm", sender: str = "alice") -> InboundEvent:
    return InboundEvent(
        id="m1",
        conversation_id=conversation_id,
        sender_inbox_id=sender,
        content_type=ContentType.TEXT,
        content=text,
    )


def _config() -> CourierConfig:
    return CourierConfig(
        messaging=MessagingConfig(
            welcome_text="Hi, I'm {name}. Ping @{handle}.",
            apology_text="sorry!",
        )
    )


def _pipeline(
    client: _FakeClient,
    agent: _FakeAgent,
    reactions: _FakeReactions | None = None,
) -> MessagePipeline:
    identity = AgentIdentity.build(
        inbox_id=AGENT_INBOX,
        address=AGENT_ADDRESS,
        agent_id="bitte-defi-agent.mastra.cloud",
        chat_id="bitte",
    )
    return MessagePipeline(
        config=_config(),
        client=client,
        agent=agent,  # type: ignore[arg-type]
        identity=identity,
        reactions=reactions,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_dm_sends_reaction_batch_then_text() -> None:
    dm = _FakeConversation("dm", [AGENT_INBOX, "alice"])
    client = _FakeClient({"dm": dm}, {"alice": USER_ADDRESS})
    agent = _FakeAgent(
        AgentResponse(
            content="Approve then swap 👇",
            tool_calls=[_evm_tx("t1", "0xusdc"), _evm_tx("t2", "0xrouter")],
        )
    )
    reactions = _FakeReactions("🔁")

    outcome = await _pipeline(client, agent, reactions).handle(_event("swap 10 usdc to eth"))

    assert outcome is not None
    assert outcome.decision is Eligibility.PROCESS
    assert [content_type for _, content_type in dm.sent] == [
        OutboundContentType.REACTION,
        OutboundContentType.WALLET_SEND_CALLS,
        OutboundContentType.TEXT,
    ]
    reaction, _ = dm.sent[0]
    assert isinstance(reaction, Reaction) and reaction.content == "🔁" and reaction.reference == "m1"
    batch, _ = dm.sent[1]
    assert batch["chainId"] == "0x2105"
    assert batch["from"] == USER_ADDRESS
    assert [call["to"] for call in batch["calls"]] == ["0xusdc", "0xrouter"]
    assert dm.sent[2][0] == "Approve then swap 👇"

    (request,) = agent.requests
    assert request.sender_address == USER_ADDRESS
    assert request.conversation_id == "dm"
    assert request.chain_id == 8453
    assert "DM" in (request.system_message or "")
    assert USER_ADDRESS in (request.system_message or "")


@pytest.mark.asyncio
async def test_first_group_message_gets_threaded_welcome_without_agent_call() -> None:
    group = _FakeConversation("g", [AGENT_INBOX, "alice", "bob"])
    agent = _FakeAgent()

    outcome = await _pipeline(_FakeClient({"g": group}, {}), agent).handle(_event("gm", "g"))

    assert outcome is not None
    assert outcome.decision is Eligibility.SEND_WELCOME
    assert agent.requests == []
    ((reply, content_type),) = group.sent
    assert content_type is OutboundContentType.REPLY
    assert isinstance(reply, Reply)
    assert reply.content == "Hi, I'm bitte-defi-agent. Ping @bitte."
    assert reply.reference == "m1"


@pytest.mark.asyncio
async def test_group_text_is_threaded_and_batches_are_not() -> None:
    history = [_event("hello", "g", sender=AGENT_INBOX)]
    group = _FakeConversation("g", [AGENT_INBOX, "alice", "bob"], history=history)
    agent = _FakeAgent(AgentResponse(content="Here you go", tool_calls=[_evm_tx("t1", "0xrouter")]))

    await _pipeline(_FakeClient({"g": group}, {"alice": USER_ADDRESS}), agent).handle(
        _event("@bitte swap", "g")
    )

    assert [content_type for _, content_type in group.sent] == [
        OutboundContentType.WALLET_SEND_CALLS,
        OutboundContentType.REPLY,
    ]
    assert "group" in (agent.requests[0].system_message or "")


@pytest.mark.asyncio
async def test_dropped_event_sends_nothing() -> None:
    history = [_event("hello", "g", sender=AGENT_INBOX)]
    group = _FakeConversation("g", [AGENT_INBOX, "alice", "bob"], history=history)
    agent = _FakeAgent()

    outcome = await _pipeline(_FakeClient({"g": group}, {}), agent).handle(_event("gm", "g"))

    assert outcome is not None
    assert outcome.reason == "not_addressed"
    assert group.sent == []
    assert agent.requests == []


@pytest.mark.asyncio
async def test_agent_failure_sends_apology() -> None:
    dm = _FakeConversation("dm", [AGENT_INBOX, "alice"])
    agent = _FakeAgent(error=AgentCallFailed("boom", status_code=500))

    outcome = await _pipeline(_FakeClient({"dm": dm}, {}), agent).handle(_event("hi"))

    assert outcome is not None
    assert outcome.reply_text == "sorry!"
    assert dm.sent == [("sorry!", OutboundContentType.TEXT)]


@pytest.mark.asyncio
async def test_failed_batch_send_does_not_block_text() -> None:
    dm = _FakeConversation("dm", [AGENT_INBOX, "alice"], fail_types={OutboundContentType.WALLET_SEND_CALLS})
    agent = _FakeAgent(AgentResponse(content="sign this", tool_calls=[_evm_tx("t1", "0xrouter")]))

    outcome = await _pipeline(_FakeClient({"dm": dm}, {"alice": USER_ADDRESS}), agent).handle(_event("go"))

    assert outcome is not None
    assert outcome.send_failures == 1
    assert dm.sent == [("sign this", OutboundContentType.TEXT)]


@pytest.mark.asyncio
async def test_batch_without_sender_is_skipped() -> None:
    dm = _FakeConversation("dm", [AGENT_INBOX, "alice"])
    agent = _FakeAgent(AgentResponse(content="", tool_calls=[_evm_tx("t1", "0xrouter", sender=None)]))

    outcome = await _pipeline(_FakeClient({"dm": dm}, {}), agent).handle(_event("go"))

    assert outcome is not None
    assert outcome.batches == []
    assert dm.sent == []


@pytest.mark.asyncio
async def test_stop_during_agent_call_discards_result() -> None:
    dm = _FakeConversation("dm", [AGENT_INBOX, "alice"])
    agent = _FakeAgent(AgentResponse(content="late reply", tool_calls=[_evm_tx("t1", "0xrouter")]))
    running = {"active": True}

    def stop() -> None:
        running["active"] = False

    agent.on_send = stop

    outcome = await _pipeline(_FakeClient({"dm": dm}, {"alice": USER_ADDRESS}), agent).handle(
        _event("go"), active=lambda: running["active"]
    )

    assert outcome is not None
    assert outcome.discarded
    assert dm.sent == []


@pytest.mark.asyncio
async def test_unknown_conversation_is_skipped() -> None:
    agent = _FakeAgent()

    outcome = await _pipeline(_FakeClient({}, {}), agent).handle(_event("hi", "missing"))

    assert outcome is None
    assert agent.requests == []
