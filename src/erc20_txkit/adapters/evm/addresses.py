"""
Address and hex-value normalization.

Pure helpers with no network access. Every externally supplied address passes
through ``validate_address`` before it reaches the encoder or the builder, and
every signed payload or hash passes through ``normalize_hex`` before it is
sent to the node.
"""

import re
from typing import Optional

from eth_utils import is_checksum_address, to_checksum_address

from ...engine.exceptions import InvalidAddress, InvalidHexValue

_ADDRESS_RE = re.compile(r"(0[xX])?[0-9a-fA-F]{40}")
_HEX_RE = re.compile(r"[0-9a-f]*")


def _is_mixed_case(body: str) -> bool:
    return body != body.lower() and body != body.upper()


def validate_address(value: str, *, strict_checksum: bool = True) -> str:
    """
    Validate an EVM address and return its EIP-55 checksummed form.

    Accepts 40 hex digits with or without a ``0x`` prefix. All-lowercase and
    all-uppercase input carries no checksum and is accepted as is; mixed-case
    input must match its EIP-55 checksum when ``strict_checksum`` is set.

    Args:
        value: Candidate address string.
        strict_checksum: Reject mixed-case input with a wrong checksum.

    Returns:
        str: Checksummed address. ``validate_address(validate_address(x))``
            equals ``validate_address(x)``.

    Raises:
        InvalidAddress: If the input is not a well-formed address.
    """
    if not isinstance(value, str):
        raise InvalidAddress(value)
    if not _ADDRESS_RE.fullmatch(value):
        raise InvalidAddress(value)

    body = value[2:] if value[:2] in ("0x", "0X") else value
    prefixed = "0x" + body
    if strict_checksum and _is_mixed_case(body) and not is_checksum_address(prefixed):
        raise InvalidAddress(value, f"Address checksum mismatch: {value!r}")
    return to_checksum_address(prefixed)


def is_valid_address(value: object) -> bool:
    """Boolean form of ``validate_address`` for guards and filters."""
    try:
        validate_address(value)  # type: ignore[arg-type]
    except InvalidAddress:
        return False
    return True


def normalize_hex(value: object, *, byte_length: Optional[int] = None, label: str = "value") -> str:
    """
    Normalize a hex-encoded byte string to lowercase ``0x``-prefixed form.

    Accepts ``str`` (with or without prefix) and ``bytes``-like values, which is
    what web3.py hands back for hashes and raw transactions.

    Args:
        value: Hex string or raw bytes.
        byte_length: Required length in bytes (32 for transaction hashes).
        label: Name used in the error message.

    Raises:
        InvalidHexValue: On non-hex characters, odd length, empty payloads or
            a length mismatch.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        body = bytes(value).hex()
    elif isinstance(value, str):
        body = value
        if body[:2] in ("0x", "0X"):
            body = body[2:]
        body = body.lower()
    else:
        raise InvalidHexValue(f"{label} must be a hex string, got {type(value).__name__}")

    if not body or len(body) % 2 or not _HEX_RE.fullmatch(body):
        raise InvalidHexValue(f"{label} is not valid hex: {value!r}")
    if byte_length is not None and len(body) != byte_length * 2:
        raise InvalidHexValue(f"{label} must be {byte_length} bytes, got {len(body) // 2}")
    return "0x" + body


def normalize_tx_hash(value: object) -> str:
    return normalize_hex(value, byte_length=32, label="transaction hash")
