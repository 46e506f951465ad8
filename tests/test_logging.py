from __future__ import annotations

import json
import logging

import pytest
import structlog

from courier import __version__
from courier.logging import bind_process_context, setup_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_bind_process_context_replaces_previous_binding() -> None:
    bind_process_context(inbox_id="old", agent_id="a", env="dev")
    bind_process_context(inbox_id="agent-inbox", agent_id="bitte-defi-agent.mastra.cloud", env=None)

    assert structlog.contextvars.get_contextvars() == {
        "inbox_id": "agent-inbox",
        "agent_id": "bitte-defi-agent.mastra.cloud",
    }
    structlog.contextvars.clear_contextvars()


def test_json_events_carry_service_and_process_context(capsys) -> None:
    setup_logging(level="INFO", fmt="json")
    bind_process_context(inbox_id="agent-inbox", env="production")

    structlog.get_logger("courier.test").info("supervisor.backoff", retries_left=4)
    structlog.contextvars.clear_contextvars()

    record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert record["event"] == "supervisor.backoff"
    assert record["service"] == "courier"
    assert record["version"] == __version__
    assert record["inbox_id"] == "agent-inbox"
    assert record["env"] == "production"
    assert record["retries_left"] == 4
    assert record["level"] == "info"


def test_noisy_loggers_are_quieted() -> None:
    setup_logging(level="DEBUG", fmt="console")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("litellm").level == logging.WARNING
