from __future__ import annotations

import json

from courier.agent.models import AgentResponse, ToolInvocation
from courier.agent.tool_calls import extract_fragments
from courier.signing.aggregator import aggregate

USER = "0x1111111111111111111111111111111111111111"


def _evm_tx(call_id: str, request: dict, ui: dict | None = None) -> ToolInvocation:
    result: dict = {"evmSignRequest": request}
    if ui is not None:
        result["ui"] = ui
    return ToolInvocation(
        call_id=call_id,
        tool_name="generate-evm-tx",
        args={},
        result=result,
        has_result=True,
    )


def _send_tx(to: str, chain_id: int = 8453) -> dict:
    return {
        "method": "eth_sendTransaction",
        "chainId": chain_id,
        "params": [{"to": to, "data": "0x", "value": "0x0", "from": USER}],
    }


def _swap(call_id: str = "s1") -> ToolInvocation:
    return ToolInvocation(
        call_id=call_id,
        tool_name="swap",
        args={"sellToken": "USDC", "buyToken": "WETH"},
        result={
            "data": {
                "transaction": {
                    "method": "eth_sendTransaction",
                    "chainId": 8453,
                    "params": [{"to": "0xcow", "data": "0xpresign", "value": "0x0"}],
                },
                "orderUrl": "https://explorer.cow.fi/orders/1",
            }
        },
        has_result=True,
    )


def test_two_send_transactions_on_one_chain_become_one_batch() -> None:
    response = AgentResponse(
        content="done",
        tool_calls=[_evm_tx("t1", _send_tx("0xapprove")), _evm_tx("t2", _send_tx("0xswap"))],
    )

    extraction = extract_fragments(response, default_sender=USER, default_chain_id=8453)
    batches = aggregate(extraction.fragments)

    assert extraction.failures == []
    (batch,) = batches
    assert batch.chain_id == "0x2105"
    assert batch.sender == USER
    assert [c.to for c in batch.calls] == ["0xapprove", "0xswap"]


def test_one_bad_invocation_does_not_stop_the_others() -> None:
    response = AgentResponse(
        tool_calls=[
            _evm_tx("bad", {"method": "eth_signTypedData_v4", "chainId": 1, "params": [USER, "not json"]}),
            _evm_tx("odd", {"method": "eth_signTransaction", "chainId": 1, "params": []}),
            _evm_tx("ok", _send_tx("0xfine")),
        ]
    )

    extraction = extract_fragments(response, default_sender=USER, default_chain_id=8453)

    assert [f.call_id for f in extraction.failures] == ["bad", "odd"]
    assert [f.calls[0].to for f in extraction.fragments] == ["0xfine"]


def test_tool_error_result_is_recorded_as_failure() -> None:
    failing = ToolInvocation(
        call_id="t1",
        tool_name="generate-evm-tx",
        result={"error": "insufficient balance"},
        has_result=True,
    )

    extraction = extract_fragments(AgentResponse(tool_calls=[failing]), default_sender=USER, default_chain_id=1)

    assert extraction.fragments == []
    assert "insufficient balance" in extraction.failures[0].error


def test_evm_tx_falls_back_to_args_and_default_chain() -> None:
    invocation = ToolInvocation(
        call_id="t1",
        tool_name="generate-evm-tx",
        args={"method": "personal_sign", "params": ["0xbeef", USER]},
    )

    extraction = extract_fragments(
        AgentResponse(tool_calls=[invocation]), default_sender=USER, default_chain_id=42161
    )

    assert extraction.fragments[0].chain_id == hex(42161)


def test_ui_payload_is_carried_into_metadata() -> None:
    ui = {"type": "transfer-ft", "token": {"amount": "5", "symbol": "USDC"}, "receiver": "0xbob"}
    response = AgentResponse(tool_calls=[_evm_tx("t1", _send_tx("0xusdc"), ui=ui)])

    (fragment,) = extract_fragments(response, default_sender=USER, default_chain_id=8453).fragments

    metadata = fragment.calls[0].metadata
    assert metadata["transactionType"] == "transfer"
    assert metadata["receiver"] == "0xbob"


def test_swap_used_when_no_evm_tx_call_present() -> None:
    extraction = extract_fragments(AgentResponse(tool_calls=[_swap()]), default_sender=USER, default_chain_id=8453)

    (fragment,) = extraction.fragments
    metadata = fragment.calls[0].metadata
    assert fragment.sender == USER
    assert metadata["description"] == "Swap USDC for WETH"
    assert metadata["transactionType"] == "swap"
    assert metadata["cowswapOrderUrl"] == "https://explorer.cow.fi/orders/1"


def test_swap_ignored_next_to_evm_tx_unless_merging() -> None:
    response = AgentResponse(tool_calls=[_swap(), _evm_tx("t1", _send_tx("0xrouter"))])

    plain = extract_fragments(response, default_sender=USER, default_chain_id=8453)
    merged = extract_fragments(response, default_sender=USER, default_chain_id=8453, merge_swaps=True)

    assert [f.calls[0].to for f in plain.fragments] == ["0xrouter"]
    assert [f.calls[0].to for f in merged.fragments] == ["0xcow", "0xrouter"]


def test_swap_without_result_or_transaction_is_skipped() -> None:
    pending = ToolInvocation(call_id="s1", tool_name="swap", args={})
    quote_only = ToolInvocation(call_id="s2", tool_name="swap", result={"data": {"quote": {}}}, has_result=True)

    extraction = extract_fragments(
        AgentResponse(tool_calls=[pending, quote_only]), default_sender=USER, default_chain_id=8453
    )

    assert extraction.fragments == []
    assert extraction.failures == []


def test_other_tools_are_ignored() -> None:
    other = ToolInvocation(call_id="b1", tool_name="get-balances", result=json.dumps({"ok": True}), has_result=True)

    extraction = extract_fragments(AgentResponse(tool_calls=[other]), default_sender=USER, default_chain_id=1)

    assert extraction.fragments == []
    assert extraction.failures == []
