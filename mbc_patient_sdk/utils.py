"""
Utility functions for the MBC Patient SDK.

Amount conversion between display units and on-chain subunits, and address
and hash normalization for the bridge wire format.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Union

from .exceptions import InvalidAmount, InvalidAddress, InvalidInput

USDC_DECIMALS = 6

_ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
_HEX40_RE = re.compile(r"[0-9a-fA-F]{40}")
_PRIVATE_KEY_RE = re.compile(r"[0-9a-fA-F]{64}")

Number = Union[int, float, Decimal, str]


def to_subunits(decimal_amount: Number, decimals: int = USDC_DECIMALS) -> int:
    """
    Convert a display amount to integer subunits, truncating toward zero.

    Args:
        decimal_amount: Amount in display units (e.g. 1.5 USDC)
        decimals: Token decimals (6 for USDC)

    Returns:
        Amount in subunits (e.g. 1_500_000)

    Raises:
        InvalidAmount: If the amount is not numeric, not finite or negative
    """
    if isinstance(decimal_amount, bool):
        raise InvalidAmount(f"Amount must be numeric, got {decimal_amount!r}")
    try:
        # str() keeps floats at their shortest repr, so 0.1 maps to 100000
        amount = decimal_amount if isinstance(decimal_amount, Decimal) else Decimal(str(decimal_amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount(f"Amount must be numeric, got {decimal_amount!r}") from e

    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {decimal_amount!r}")
    if amount < 0:
        raise InvalidAmount(f"Amount must not be negative, got {decimal_amount!r}")

    scaled = amount * (Decimal(10) ** decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_subunits(integer_amount: int, decimals: int = USDC_DECIMALS) -> float:
    """Convert subunits to a display amount. For display only."""
    return int(integer_amount) / (10 ** decimals)


def to_padded_address(address: str) -> str:
    """
    Left-pad a 20-byte address to the 32-byte form used by the bridge.

    Args:
        address: 40 hex digits, with or without a 0x prefix

    Returns:
        0x-prefixed string of 64 hex digits (24 zeros followed by the address)

    Raises:
        InvalidAddress: If the address is not exactly 40 hex digits
    """
    if not isinstance(address, str):
        raise InvalidAddress(f"Address must be a string, got {type(address).__name__}")
    digits = address[2:] if address[:2] in ("0x", "0X") else address
    if not _HEX40_RE.fullmatch(digits):
        raise InvalidAddress(f"Address must be 40 hex digits, got: {address!r}")
    return "0x" + digits.rjust(64, "0")


def is_valid_ethereum_address(address: str) -> bool:
    """Strict format check: 0x followed by 40 hex digits."""
    return isinstance(address, str) and bool(_ADDRESS_RE.fullmatch(address))


def normalize_private_key(private_key: str) -> str:
    """
    Validate a private key and return it with a 0x prefix.

    Raises:
        InvalidInput: If the key is missing, a placeholder, or not 64 hex digits
    """
    if not private_key:
        raise InvalidInput("Private key is required")
    key = private_key.strip()
    if "your_private_key" in key:
        raise InvalidInput("Private key is still the placeholder value; set a real key")
    digits = key[2:] if key.startswith("0x") else key
    if not _PRIVATE_KEY_RE.fullmatch(digits):
        raise InvalidInput("Invalid private key format: expected 64 hex characters (with or without 0x prefix)")
    return "0x" + digits


def normalize_tx_hash(tx_hash: str) -> str:
    """Return a lowercase 0x-prefixed transaction hash."""
    cleaned = (tx_hash or "").strip()
    if not cleaned:
        raise InvalidInput("Transaction hash is empty")
    if not cleaned.startswith(("0x", "0X")):
        cleaned = "0x" + cleaned
    return "0x" + cleaned[2:].lower()


def to_hex(value: Union[bytes, str]) -> str:
    """Render bytes (including HexBytes) or a hex string as 0x-prefixed hex."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    value = str(value)
    return value if value.startswith("0x") else "0x" + value
