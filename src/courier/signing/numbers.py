"""Hex quantity helpers for wallet payloads."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from eth_utils import to_wei


def chain_id_to_hex(chain_id: int) -> str:
    """Render a chain id as a lower-case 0x-prefixed quantity."""
    if isinstance(chain_id, bool) or chain_id < 0:
        raise ValueError(f"Invalid chain id: {chain_id!r}")
    return hex(int(chain_id))


def _is_hex(value: str) -> bool:
    return value[:2].lower() == "0x"


def value_to_hex(value: str | int | float | None) -> str:
    """Hex values pass through; decimal ether amounts become hex wei."""
    if value is None:
        return "0x0"
    if isinstance(value, bool):
        raise ValueError(f"Invalid value: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        if _is_hex(text):
            return text
        if not text:
            return "0x0"
    else:
        text = str(value)

    try:
        amount = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {value!r}")

    return hex(to_wei(amount, "ether"))


def gas_to_hex(gas: str | int | float | None) -> str | None:
    """Hex gas passes through; a decimal gas figure is a unit count."""
    if gas is None:
        return None
    if isinstance(gas, bool):
        raise ValueError(f"Invalid gas: {gas!r}")
    if isinstance(gas, str):
        text = gas.strip()
        if not text:
            return None
        if _is_hex(text):
            return text
    else:
        text = str(gas)

    try:
        units = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid gas: {gas!r}") from exc
    if not units.is_finite() or units < 0 or units != units.to_integral_value():
        raise ValueError(f"Invalid gas: {gas!r}")
    return hex(int(units))
