"""Merge batch fragments that share a (chain, sender, version) key."""

from __future__ import annotations

from collections.abc import Iterable

from courier.signing.models import CallDescriptor, TransactionBatch


def aggregate(fragments: Iterable[TransactionBatch]) -> list[TransactionBatch]:
    """Group fragments into batches, keeping call and group arrival order.

    Approval-then-action pairs arrive as consecutive calls and must stay in
    that order. Fragments without calls never produce a batch.
    """
    heads: dict[tuple[str, str, str], TransactionBatch] = {}
    calls: dict[tuple[str, str, str], list[CallDescriptor]] = {}

    for fragment in fragments:
        if not fragment.calls:
            continue
        key = fragment.group_key
        if key not in heads:
            heads[key] = fragment
            calls[key] = []
        calls[key].extend(fragment.calls)

    return [
        TransactionBatch(
            schema_version=head.schema_version,
            chain_id=head.chain_id,
            sender=head.sender,
            calls=tuple(calls[key]),
        )
        for key, head in heads.items()
    ]
