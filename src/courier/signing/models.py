"""Signing requests returned by the agent and the wallet batches built from them."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from courier.errors import MalformedSigningRequest, UnsupportedMethod

WALLET_SEND_CALLS_VERSION = "1.0"

SEND_TRANSACTION = "eth_sendTransaction"
SIGN_MESSAGE = "personal_sign"
SIGN_MESSAGE_LEGACY = "eth_sign"
SIGN_TYPED_DATA_V1 = "eth_signTypedData"
SIGN_TYPED_DATA_V4 = "eth_signTypedData_v4"

SIGNING_METHODS = frozenset(
    {
        SEND_TRANSACTION,
        SIGN_MESSAGE,
        SIGN_MESSAGE_LEGACY,
        SIGN_TYPED_DATA_V1,
        SIGN_TYPED_DATA_V4,
    }
)

Quantity = Union[str, int, float]


class _Request(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    chain_id: int = Field(alias="chainId", ge=0)


class TransactionParams(BaseModel):
    """One `eth_sendTransaction` call as the agent describes it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    to: str | None = None
    data: str | None = None
    value: Quantity | None = None
    gas: Quantity | None = None
    sender: str | None = Field(default=None, alias="from")


class SendTransactionRequest(_Request):
    method: Literal["eth_sendTransaction"]
    params: list[TransactionParams] = Field(min_length=1)


class SignMessageRequest(_Request):
    """`personal_sign`: params are `[message, address]`."""

    method: Literal["personal_sign"]
    params: tuple[str, str]

    @property
    def message(self) -> str:
        return self.params[0]

    @property
    def address(self) -> str:
        return self.params[1]


class LegacySignMessageRequest(_Request):
    """`eth_sign`: params are `[address, message]`."""

    method: Literal["eth_sign"]
    params: tuple[str, str]

    @property
    def message(self) -> str:
        return self.params[1]

    @property
    def address(self) -> str:
        return self.params[0]


class TypedDataRequest(_Request):
    """`eth_signTypedData` / `eth_signTypedData_v4`: params are `[address, typedDataJson]`."""

    method: Literal["eth_signTypedData", "eth_signTypedData_v4"]
    params: tuple[str, str]

    @property
    def address(self) -> str:
        return self.params[0]

    @property
    def typed_data(self) -> str:
        return self.params[1]

    @property
    def version_label(self) -> str:
        return "v4" if self.method == SIGN_TYPED_DATA_V4 else "v1"


SigningRequest = Annotated[
    Union[
        SendTransactionRequest,
        SignMessageRequest,
        LegacySignMessageRequest,
        TypedDataRequest,
    ],
    Field(discriminator="method"),
]

_signing_request_adapter: TypeAdapter[Any] = TypeAdapter(SigningRequest)


def decode_signing_request(
    raw: Mapping[str, Any],
    *,
    default_chain_id: int | None = None,
) -> SendTransactionRequest | SignMessageRequest | LegacySignMessageRequest | TypedDataRequest:
    """Decode an untyped signing request into its tagged variant.

    Raises `UnsupportedMethod` for tags outside the closed method set and
    `MalformedSigningRequest` when the params do not fit the method.
    """
    if not isinstance(raw, Mapping):
        raise MalformedSigningRequest(f"Signing request must be an object, got {type(raw).__name__}")

    method = raw.get("method")
    if method not in SIGNING_METHODS:
        raise UnsupportedMethod(method)

    payload = dict(raw)
    if payload.get("chainId") in (None, "") and default_chain_id is not None:
        payload["chainId"] = default_chain_id

    try:
        return _signing_request_adapter.validate_python(payload)
    except ValidationError as exc:
        raise MalformedSigningRequest(f"Invalid {method} request: {exc.errors(include_url=False)}") from exc


class CallDescriptor(BaseModel):
    """One call inside a wallet batch. Signing-only calls have no `to`."""

    model_config = ConfigDict(frozen=True)

    to: str | None = None
    data: str | None = None
    value: str | None = None
    gas: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class TransactionBatch(BaseModel):
    """Calls for one chain and one sender, reviewed together in the wallet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schema_version: str = Field(default=WALLET_SEND_CALLS_VERSION, alias="version")
    chain_id: str = Field(alias="chainId")
    sender: str = Field(alias="from")
    calls: tuple[CallDescriptor, ...] = ()

    @property
    def group_key(self) -> tuple[str, str, str]:
        return (self.chain_id, self.sender, self.schema_version)

    def to_wire(self) -> dict[str, Any]:
        """Render the `wallet_sendCalls` payload the signing surface consumes."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
