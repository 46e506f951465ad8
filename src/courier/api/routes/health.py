"""Health check endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

from courier import __version__
from courier.supervisor import SupervisorState

router = APIRouter()

_start_time = time.time()


@router.get("/health")
async def health(request: Request) -> dict:
    """Health check: returns supervisor state and event counters."""
    context = request.app.state.context
    status = context.supervisor.status()

    return {
        "status": "ok" if status.state is not SupervisorState.STOPPED else "stopped",
        "version": __version__,
        "uptime_seconds": round(time.time() - _start_time, 1),
        "inbox_id": context.identity.inbox_id,
        "address": context.identity.address,
        "agent_id": context.config.agent.agent_id,
        "supervisor": {
            "state": status.state.value,
            "retries_left": status.retries_left,
            "connects": status.connects,
            "backoffs": status.backoffs,
            "events_processed": status.events_processed,
            "events_failed": status.events_failed,
            "last_error": status.last_error,
            "last_event_at": status.last_event_at,
        },
        "agent_requests": context.agent.request_count,
    }
