"""Turn agent tool invocations into wallet batch fragments."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from courier.agent.models import AgentResponse, ToolInvocation
from courier.errors import MalformedSigningRequest, SigningRequestError
from courier.signing.models import TransactionBatch, decode_signing_request
from courier.signing.normalizer import normalize

logger = structlog.get_logger()

GENERATE_EVM_TX = "generate-evm-tx"
SWAP = "swap"


@dataclass
class ToolCallFailure:
    call_id: str
    tool_name: str | None
    error: str


@dataclass
class ExtractionResult:
    fragments: list[TransactionBatch] = field(default_factory=list)
    failures: list[ToolCallFailure] = field(default_factory=list)


def extract_fragments(
    response: AgentResponse,
    *,
    default_sender: str,
    default_chain_id: int,
    merge_swaps: bool = False,
) -> ExtractionResult:
    """Normalize every signing-capable tool invocation in arrival order.

    Swap results are only used when the response has no generate-evm-tx call,
    since the agent is told to render swaps through generate-evm-tx and both
    would describe the same transaction. `merge_swaps` lifts that restriction.
    One failing invocation never prevents the others from being normalized.
    """
    result = ExtractionResult()
    has_evm_tx = bool(response.tools_named(GENERATE_EVM_TX))
    use_swaps = merge_swaps or not has_evm_tx

    for invocation in response.tool_calls:
        if invocation.tool_name == GENERATE_EVM_TX:
            handler = _from_evm_tx
        elif invocation.tool_name == SWAP and use_swaps:
            handler = _from_swap
        else:
            continue

        try:
            fragment = handler(invocation, default_sender, default_chain_id)
        except SigningRequestError as exc:
            logger.warning(
                "agent.tool_call.rejected",
                tool=invocation.tool_name,
                call_id=invocation.call_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            result.failures.append(
                ToolCallFailure(invocation.call_id, invocation.tool_name, str(exc))
            )
            continue

        if fragment is not None:
            result.fragments.append(fragment)

    return result


def _from_evm_tx(
    invocation: ToolInvocation,
    default_sender: str,
    default_chain_id: int,
) -> TransactionBatch:
    if invocation.error:
        raise MalformedSigningRequest(f"Tool returned an error: {invocation.error}")

    ui: Mapping[str, Any] | None = None
    source: Any = invocation.args
    if isinstance(invocation.result, Mapping) and isinstance(
        invocation.result.get("evmSignRequest"), Mapping
    ):
        source = invocation.result["evmSignRequest"]
        ui = invocation.result.get("ui")

    request = decode_signing_request(source, default_chain_id=default_chain_id)
    return normalize(request, default_sender, ui=ui)


def _from_swap(
    invocation: ToolInvocation,
    default_sender: str,
    default_chain_id: int,
) -> TransactionBatch | None:
    if not invocation.has_result:
        return None
    if invocation.error:
        raise MalformedSigningRequest(f"Swap returned an error: {invocation.error}")

    data = invocation.result.get("data") if isinstance(invocation.result, Mapping) else None
    transaction = data.get("transaction") if isinstance(data, Mapping) else None
    if not isinstance(transaction, Mapping):
        return None

    request = decode_signing_request(
        {
            "method": transaction.get("method") or "eth_sendTransaction",
            "chainId": transaction.get("chainId"),
            "params": transaction.get("params"),
        },
        default_chain_id=default_chain_id,
    )

    sell_token = invocation.args.get("sellToken") or "Token A"
    buy_token = invocation.args.get("buyToken") or "Token B"
    extra = {"description": f"Swap {sell_token} for {buy_token}", "transactionType": "swap"}
    order_url = data.get("orderUrl") or data.get("cowswapOrderUrl")
    if order_url:
        extra["cowswapOrderUrl"] = str(order_url)

    return normalize(request, default_sender, extra_metadata=extra)
