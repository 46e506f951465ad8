"""Process-scoped runtime context, built once at startup."""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from courier.agent.client import AgentClient
from courier.config import CourierConfig
from courier.errors import ConfigError
from courier.llm.gateway import ReactionGateway
from courier.logging import bind_process_context
from courier.messaging.base import MessagingClient
from courier.messaging.context import AgentIdentity
from courier.pipeline import MessagePipeline
from courier.supervisor import StreamSupervisor

logger = structlog.get_logger()


@dataclass
class CourierContext:
    """Everything one Courier process owns. Torn down with `aclose()`."""

    config: CourierConfig
    client: MessagingClient
    agent: AgentClient
    identity: AgentIdentity
    pipeline: MessagePipeline
    supervisor: StreamSupervisor
    reactions: ReactionGateway | None = None

    async def aclose(self) -> None:
        await self.supervisor.stop()
        await self.agent.aclose()
        await self.client.close()
        logger.info("courier.context.closed")


def load_client_factory(path: str) -> Callable[..., object]:
    """Resolve a `module:callable` import path."""
    module_name, sep, attr = path.partition(":")
    if not module_name or not sep or not attr:
        raise ConfigError(
            f"Messaging client factory must look like 'module:callable', got {path!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import messaging client module {module_name!r}: {exc}") from exc

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"{path!r} is not callable")
    return factory


async def create_messaging_client(config: CourierConfig) -> MessagingClient:
    factory = load_client_factory(config.messaging.client_factory)
    client = factory(config)
    if inspect.isawaitable(client):
        client = await client
    if not isinstance(client, MessagingClient):
        raise ConfigError(
            f"{config.messaging.client_factory!r} returned {type(client).__name__}, "
            "expected a MessagingClient"
        )
    return client


async def create_context(
    config: CourierConfig,
    *,
    client: MessagingClient | None = None,
    on_fatal: Callable[[BaseException], None] | None = None,
) -> CourierContext:
    """Wire the client, agent, pipeline and supervisor for one process."""
    if client is None:
        client = await create_messaging_client(config)

    identity = AgentIdentity.build(
        inbox_id=client.inbox_id,
        address=client.address,
        agent_id=config.agent.agent_id,
        chat_id=config.messaging.chat_id,
        extra_handles=config.messaging.extra_handles,
    )
    bind_process_context(
        inbox_id=identity.inbox_id,
        agent_id=config.agent.agent_id,
        env=config.messaging.env,
    )
    agent = AgentClient(config.agent)
    reactions = ReactionGateway(config.reactions) if config.reactions.enabled else None
    pipeline = MessagePipeline(
        config=config,
        client=client,
        agent=agent,
        identity=identity,
        reactions=reactions,
    )
    supervisor = StreamSupervisor(
        client=client,
        handler=pipeline.handle,
        config=config.supervisor,
        on_fatal=on_fatal,
    )

    logger.info(
        "courier.context.created",
        inbox_id=identity.inbox_id,
        address=identity.address,
        handles=list(identity.handles),
        env=config.messaging.env,
        reactions=reactions is not None,
    )
    return CourierContext(
        config=config,
        client=client,
        agent=agent,
        identity=identity,
        pipeline=pipeline,
        supervisor=supervisor,
        reactions=reactions,
    )
