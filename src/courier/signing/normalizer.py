"""Signing-method normalizer.

Turns one decoded signing request into a single-chain, single-sender
`TransactionBatch` fragment in the `wallet_sendCalls` shape. Every method in
the closed set is handled explicitly; anything else raises `UnsupportedMethod`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from courier.errors import MalformedSigningRequest, MalformedTypedData, UnsupportedMethod
from courier.signing.models import (
    CallDescriptor,
    LegacySignMessageRequest,
    SendTransactionRequest,
    SignMessageRequest,
    TransactionBatch,
    TypedDataRequest,
)
from courier.signing.numbers import chain_id_to_hex, gas_to_hex, value_to_hex


def normalize(
    request: Any,
    default_sender: str,
    *,
    ui: Mapping[str, Any] | None = None,
    extra_metadata: Mapping[str, str] | None = None,
) -> TransactionBatch:
    """Build the batch fragment for one signing request."""
    if isinstance(request, SendTransactionRequest):
        return _send_transaction(request, default_sender, ui, extra_metadata or {})
    if isinstance(request, (SignMessageRequest, LegacySignMessageRequest)):
        return _sign_message(request)
    if isinstance(request, TypedDataRequest):
        return _sign_typed_data(request)
    raise UnsupportedMethod(getattr(request, "method", request))


def _send_transaction(
    request: SendTransactionRequest,
    default_sender: str,
    ui: Mapping[str, Any] | None,
    extra_metadata: Mapping[str, str],
) -> TransactionBatch:
    base_metadata = describe_transaction(request.method, ui)
    calls = []
    for index, tx in enumerate(request.params):
        try:
            value = value_to_hex(tx.value)
            gas = gas_to_hex(tx.gas)
        except ValueError as exc:
            raise MalformedSigningRequest(f"Call {index}: {exc}") from exc
        calls.append(
            CallDescriptor(
                to=tx.to,
                data=tx.data,
                value=value,
                gas=gas,
                metadata={**base_metadata, **extra_metadata, "callIndex": str(index)},
            )
        )

    return TransactionBatch(
        chain_id=chain_id_to_hex(request.chain_id),
        sender=request.params[0].sender or default_sender,
        calls=tuple(calls),
    )


def _sign_message(request: SignMessageRequest | LegacySignMessageRequest) -> TransactionBatch:
    if request.method == "personal_sign":
        description = "Sign personal message"
    else:
        description = "Sign message with eth_sign"

    call = CallDescriptor(
        data=request.message,
        metadata={
            "description": description,
            "transactionType": request.method,
            "messageHash": request.message,
            "signer": request.address,
        },
    )
    return TransactionBatch(
        chain_id=chain_id_to_hex(request.chain_id),
        sender=request.address,
        calls=(call,),
    )


def _sign_typed_data(request: TypedDataRequest) -> TransactionBatch:
    try:
        typed_data = json.loads(request.typed_data)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedTypedData(f"Failed to parse typed data: {exc}") from exc
    if not isinstance(typed_data, dict) or "domain" not in typed_data:
        raise MalformedTypedData("Typed data must be an object with a 'domain' field")

    encoded = "0x" + request.typed_data.encode("utf-8").hex()
    call = CallDescriptor(
        data=encoded,
        metadata={
            "description": f"Sign typed data ({request.version_label})",
            "transactionType": request.method,
            "signer": request.address,
            "typedDataHash": encoded,
            "domain": json.dumps(typed_data["domain"] or {}, separators=(",", ":")),
        },
    )
    return TransactionBatch(
        chain_id=chain_id_to_hex(request.chain_id),
        sender=request.address,
        calls=(call,),
    )


def describe_transaction(method: str, ui: Mapping[str, Any] | None) -> dict[str, str]:
    """Metadata for a sent transaction, enriched by the agent's UI payload."""
    fallback = {"description": f"Execute {method} transaction", "transactionType": method}
    if not isinstance(ui, Mapping):
        return fallback

    kind = ui.get("type")
    if kind == "swap":
        token_in = _mapping(ui.get("tokenIn"))
        token_out = _mapping(ui.get("tokenOut"))
        metadata = {
            "description": (
                f"Swap {token_in.get('amount') or 'unknown amount'} "
                f"for {token_out.get('amount') or 'unknown amount'}"
            ),
            "transactionType": "swap",
            "network": str(_mapping(ui.get("network")).get("name") or "unknown network"),
        }
        _copy(metadata, "tokenInAddress", token_in.get("contractAddress"))
        _copy(metadata, "tokenOutAddress", token_out.get("contractAddress"))
        _copy(metadata, "tokenInAmount", token_in.get("amount"))
        _copy(metadata, "tokenOutAmount", token_out.get("amount"))
        return metadata

    if kind == "transfer-ft":
        token = _mapping(ui.get("token"))
        receiver = ui.get("receiver")
        metadata = {
            "description": (
                f"Transfer {token.get('amount') or 'unknown amount'} "
                f"{token.get('symbol') or ''} to {receiver or 'unknown'}"
            ),
            "transactionType": "transfer",
            "network": str(_mapping(ui.get("network")).get("name") or "unknown network"),
        }
        _copy(metadata, "tokenAddress", token.get("contractAddress"))
        _copy(metadata, "tokenAmount", token.get("amount"))
        _copy(metadata, "tokenSymbol", token.get("symbol"))
        _copy(metadata, "sender", ui.get("sender"))
        _copy(metadata, "receiver", receiver)
        return metadata

    return fallback


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _copy(target: dict[str, str], key: str, value: Any) -> None:
    if value:
        target[key] = str(value)
