"""Stream supervisor that keeps the message subscription alive.

State machine::

    connecting → streaming → failed → backoff → connecting
                                    ↘ stopped

Events are consumed strictly one at a time. A failing event is logged and
skipped; a failing stream costs one retry. Running out of retries is fatal.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog

from courier.config import SupervisorConfig
from courier.errors import StreamFailed
from courier.messaging.base import InboundEvent, MessagingClient

logger = structlog.get_logger()

EventHandler = Callable[..., Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]

_STOPPED = object()
_ENDED = object()


class SupervisorState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    FAILED = "failed"
    BACKOFF = "backoff"
    STOPPED = "stopped"


@dataclass
class SupervisorStatus:
    """Runtime status snapshot for the supervisor."""

    state: SupervisorState
    retries_left: int
    connects: int = 0
    backoffs: int = 0
    events_processed: int = 0
    events_failed: int = 0
    last_error: str | None = None
    last_event_at: str | None = None


class StreamSupervisor:
    """Owns the long-lived subscription and feeds events to the handler."""

    def __init__(
        self,
        *,
        client: MessagingClient,
        handler: EventHandler,
        config: SupervisorConfig,
        sleep: Sleep | None = None,
        on_fatal: Callable[[BaseException], None] | None = None,
    ) -> None:
        self.client = client
        self.handler = handler
        self.config = config
        self.on_fatal = on_fatal
        self._sleep = sleep or self._interruptible_sleep

        self._running = False
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._received_since_connect = False
        self._status = SupervisorStatus(
            state=SupervisorState.STOPPED,
            retries_left=config.retry_limit,
        )

    @property
    def state(self) -> SupervisorState:
        return self._status.state

    def is_active(self) -> bool:
        """False once a stop was requested; in-flight work checks this before sending."""
        return self._running

    def status(self) -> SupervisorStatus:
        return self._status

    async def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self.run(), name="courier-stream-supervisor")
        self._task.add_done_callback(self._on_task_done)

    async def stop(self) -> None:
        """Stop consuming; an in-flight event may finish but sends nothing more."""
        self._running = False
        self._stop_event.set()
        task = self._task
        if task is None or task.done():
            self._set_state(SupervisorState.STOPPED)
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.config.shutdown_timeout_s)
        except TimeoutError:
            logger.warning("supervisor.stop_timeout", timeout_s=self.config.shutdown_timeout_s)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        except StreamFailed:
            pass
        self._set_state(SupervisorState.STOPPED)

    async def run(self) -> None:
        """Consume until stopped. Raises `StreamFailed` once retries run out."""
        self._running = not self._stop_event.is_set()
        retries_left = self.config.retry_limit
        self._status.retries_left = retries_left

        try:
            while self._running:
                self._set_state(SupervisorState.CONNECTING)
                self._received_since_connect = False
                try:
                    await self._stream_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    error: BaseException = exc
                else:
                    if not self._running:
                        break
                    error = StreamFailed("Message stream closed")

                if not self._running:
                    break

                self._set_state(SupervisorState.FAILED, last_error=str(error))
                logger.warning(
                    "supervisor.stream_failed",
                    error=str(error),
                    error_type=type(error).__name__,
                    retries_left=retries_left,
                )
                if self._received_since_connect:
                    retries_left = self.config.retry_limit

                if retries_left <= 0:
                    logger.error("supervisor.retries_exhausted", retry_limit=self.config.retry_limit)
                    raise StreamFailed(
                        f"Message stream failed after {self.config.retry_limit} retries: {error}"
                    ) from error

                self._set_state(SupervisorState.BACKOFF)
                self._status.backoffs += 1
                logger.info(
                    "supervisor.backoff",
                    delay_s=self.config.retry_delay_s,
                    retries_left=retries_left,
                )
                await self._sleep(self.config.retry_delay_s)
                retries_left -= 1
                self._status.retries_left = retries_left
        finally:
            self._running = False
            self._set_state(SupervisorState.STOPPED)
            logger.info("supervisor.stopped")

    async def _stream_once(self) -> None:
        await self.client.sync_all()
        logger.info("supervisor.synced")

        stream = self.client.stream_all_messages()
        iterator = stream.__aiter__()
        self._status.connects += 1
        self._set_state(SupervisorState.STREAMING)
        logger.info("supervisor.streaming", connects=self._status.connects)

        try:
            while self._running:
                item = await self._next_event(iterator)
                if item is _STOPPED:
                    return
                if item is _ENDED:
                    raise StreamFailed("Message stream ended")
                self._received_since_connect = True
                await self._handle(item)
        finally:
            await _close_stream(iterator)

    async def _next_event(self, iterator: AsyncIterator[InboundEvent]) -> Any:
        """Wait for the next event, or return early when a stop is requested."""

        async def pull() -> Any:
            try:
                return await iterator.__anext__()
            except StopAsyncIteration:
                return _ENDED

        next_task = asyncio.ensure_future(pull())
        stop_task = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {next_task, stop_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            next_task.cancel()
            raise
        finally:
            stop_task.cancel()

        if next_task in done:
            return next_task.result()

        next_task.cancel()
        try:
            await next_task
        except asyncio.CancelledError:
            pass
        return _STOPPED

    async def _handle(self, event: InboundEvent) -> None:
        self._status.last_event_at = datetime.now(UTC).isoformat()
        try:
            await self.handler(event, active=self.is_active)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._status.events_failed += 1
            logger.error(
                "supervisor.event_failed",
                event_id=event.id,
                conversation_id=event.conversation_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
        else:
            self._status.events_processed += 1

    async def _interruptible_sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except TimeoutError:
            pass

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("supervisor.fatal", error=str(exc), error_type=type(exc).__name__)
        if self.on_fatal is not None:
            self.on_fatal(exc)

    def _set_state(self, state: SupervisorState, *, last_error: str | None = None) -> None:
        self._status.state = state
        if last_error is not None:
            self._status.last_error = last_error


async def _close_stream(iterator: AsyncIterator[InboundEvent]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as exc:
        logger.debug("supervisor.stream_close_failed", error=str(exc))
