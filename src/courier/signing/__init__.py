"""Signing request normalization and wallet batch aggregation."""

from courier.signing.aggregator import aggregate
from courier.signing.models import (
    SIGNING_METHODS,
    WALLET_SEND_CALLS_VERSION,
    CallDescriptor,
    SigningRequest,
    TransactionBatch,
    decode_signing_request,
)
from courier.signing.normalizer import normalize

__all__ = [
    "SIGNING_METHODS",
    "WALLET_SEND_CALLS_VERSION",
    "CallDescriptor",
    "SigningRequest",
    "TransactionBatch",
    "aggregate",
    "decode_signing_request",
    "normalize",
]
