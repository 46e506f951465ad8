"""Courier configuration, loaded from courier.yaml + .env."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_CONTEXT_MESSAGE = (
    "You are running in a {chat_kind} chat. Keep responses super brief, like texting. "
    "Use emojis. No markdown, just plain text. If something needs multiple steps, "
    "just say what's next.\n"
    "ALWAYS use the 'generate-evm-tx' tool to render transactions, especially after "
    "the 'swap' tool. Don't ask for confirmations, just use tools and generate "
    "transactions.\n"
    "Assume the user is interacting on chainId {chain_id} unless explicitly requested "
    "to use a different chain.\n"
    "User's wallet address: {address}"
)


def _load_yaml_config() -> dict[str, Any]:
    """Load courier.yaml from COURIER_CONFIG_PATH or default locations."""
    config_path = os.getenv("COURIER_CONFIG_PATH")
    search_paths = (
        [Path(config_path)]
        if config_path
        else [
            Path("/etc/courier/courier.yaml"),
            Path("courier.yaml"),
        ]
    )
    for path in search_paths:
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}
    return {}


def _parse_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        return [item.strip() for item in text.split(",") if item.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value).strip()] if str(value).strip() else []


class AgentApiConfig(BaseSettings):
    """Hosted agent API configuration."""

    api_url: str = Field(
        default="https://ai-runtime-446257178793.europe-west1.run.app/chat",
        description="Chat endpoint of the agent runtime",
    )
    api_key: str = Field(default="", description="Bearer key for the agent runtime")
    agent_id: str = Field(default="bitte-defi-agent.mastra.cloud")
    mcp_server_url: str | None = None
    mode: str = "debug"
    context_message: str = Field(default=DEFAULT_CONTEXT_MESSAGE)
    timeout_s: float | None = Field(
        default=None,
        gt=0,
        description="Deadline for one agent call. Unset = wait indefinitely",
    )
    default_chain_id: int = Field(default=8453, gt=0, description="Chain used when a tool omits it")
    merge_swaps: bool = Field(
        default=False,
        description="Batch swap results even when generate-evm-tx calls are present",
    )

    model_config = SettingsConfigDict(env_prefix="COURIER_AGENT_")


class MessagingConfig(BaseSettings):
    """Messaging network configuration."""

    client_factory: str = Field(
        default="",
        description="Import path 'module:callable' returning a MessagingClient",
    )
    env: Literal["local", "dev", "production"] = "dev"
    chat_id: str | None = Field(
        default=None,
        description="Human-readable handle users mention. Defaults to the shortened address",
    )
    extra_handles: Annotated[list[str], NoDecode] = Field(default_factory=list)
    welcome_text: str = (
        "👋 Hi! I'm {name}, your onchain assistant. Mention me with @{handle} or reply "
        "to one of my messages and I'll help you swap, send and check tokens."
    )
    apology_text: str = "🤖 I had trouble understanding that. Mind trying again?"

    @field_validator("extra_handles", mode="before")
    @classmethod
    def _parse_extra_handles(cls, value: Any) -> list[str]:
        return _parse_str_list(value)

    model_config = SettingsConfigDict(env_prefix="COURIER_MESSAGING_")


class SupervisorConfig(BaseSettings):
    """Stream supervisor retry policy."""

    retry_limit: int = Field(default=5, ge=0, description="Reconnects before giving up")
    retry_delay_s: float = Field(default=5.0, ge=0.0, le=600.0)
    shutdown_timeout_s: float = Field(default=30.0, gt=0.0)

    model_config = SettingsConfigDict(env_prefix="COURIER_SUPERVISOR_")


class ReactionsConfig(BaseSettings):
    """Emoji reactions generated for processed messages."""

    enabled: bool = True
    model: str = Field(default="openai/gpt-4.1-nano", description="LiteLLM model identifier")
    api_key: str = ""
    api_base: str | None = None
    max_tokens: int = Field(default=8, gt=0)

    model_config = SettingsConfigDict(env_prefix="COURIER_REACTIONS_")


class CourierConfig(BaseSettings):
    """Root Courier configuration."""

    # Server
    host: str = Field(default="0.0.0.0", description="Health server bind host")
    port: int = Field(default=8000, description="Health server bind port")

    # Sub-configs
    agent: AgentApiConfig = Field(default_factory=AgentApiConfig)
    messaging: MessagingConfig = Field(default_factory=MessagingConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    reactions: ReactionsConfig = Field(default_factory=ReactionsConfig)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="'json' or 'console'")

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_nested_delimiter="__",
    )

    @classmethod
    def load(cls) -> CourierConfig:
        """Load config from YAML + env vars.

        Keys present in the YAML file win over env vars for the same setting;
        settings absent from the file fall back to env, then defaults.
        """
        yaml_cfg = _load_yaml_config()

        agent_data = yaml_cfg.pop("agent", {})
        messaging_data = yaml_cfg.pop("messaging", {})
        supervisor_data = yaml_cfg.pop("supervisor", {})
        reactions_data = yaml_cfg.pop("reactions", {})

        # Only pass YAML sub-configs if they have data;
        # otherwise let pydantic-settings pick up env vars
        kwargs: dict[str, Any] = {**yaml_cfg}
        if agent_data:
            kwargs["agent"] = AgentApiConfig(**agent_data)
        if messaging_data:
            kwargs["messaging"] = MessagingConfig(**messaging_data)
        if supervisor_data:
            kwargs["supervisor"] = SupervisorConfig(**supervisor_data)
        if reactions_data:
            kwargs["reactions"] = ReactionsConfig(**reactions_data)

        return cls(**kwargs)
