"""
ERC-20 call data encoding.

Call data is the 4-byte function selector followed by the ABI-encoded
arguments. Selectors are derived from the fragments in ``ERC20_ABI`` so the
encoder and the read-path contract objects always agree on the interface.

Example:
    data = encode_transfer("0x1111111111111111111111111111111111111111", 10**18)
    # 0xa9059cbb000000000000000000000000111111111111111111111111111111111111111100...
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import function_signature_to_4byte_selector

from ...engine.exceptions import InputValidationError
from .addresses import normalize_hex, validate_address
from .constants import parse_amount
from .ERC20_ABI import function_signature, get_function_abi
from .schemas import (
    ApproveIntent,
    ContractCallIntent,
    TransferFromIntent,
    TransferIntent,
)

__all__ = [
    "parse_amount",
    "selector_for",
    "encode_call",
    "encode_transfer",
    "encode_approve",
    "encode_transfer_from",
    "encode_read_call",
    "encode_intent",
    "encode_deployment",
]

_READ_FUNCTIONS = ("name", "symbol", "decimals", "totalSupply", "balanceOf", "allowance")


def selector_for(function_name: str) -> bytes:
    """4-byte selector of an ERC-20 function, e.g. ``a9059cbb`` for ``transfer``."""
    return function_signature_to_4byte_selector(function_signature(get_function_abi(function_name)))


def encode_call(function_name: str, args: Sequence[Any]) -> str:
    """
    Encode a call to an ERC-20 function.

    Args:
        function_name: Name of a function in ``ERC20_ABI.get_erc20_abi()``.
        args: Positional arguments, already validated.

    Returns:
        str: Lowercase 0x hex call data.
    """
    entry = get_function_abi(function_name)
    types = [param["type"] for param in entry["inputs"]]
    if len(types) != len(args):
        raise InputValidationError(
            f"{function_name} takes {len(types)} arguments, got {len(args)}"
        )
    payload = selector_for(function_name) + encode(types, list(args))
    return "0x" + payload.hex()


def encode_transfer(recipient: str, amount: Union[int, str]) -> str:
    return encode_call("transfer", [validate_address(recipient), parse_amount(amount)])


def encode_approve(spender: str, amount: Union[int, str]) -> str:
    return encode_call("approve", [validate_address(spender), parse_amount(amount)])


def encode_transfer_from(owner: str, recipient: str, amount: Union[int, str]) -> str:
    return encode_call(
        "transferFrom",
        [validate_address(owner), validate_address(recipient), parse_amount(amount)],
    )


def encode_read_call(function_name: str, *args: str) -> str:
    """
    Encode one of the read-only ERC-20 calls (``name`` ... ``allowance``).

    Address arguments are validated before encoding.
    """
    if function_name not in _READ_FUNCTIONS:
        raise InputValidationError(f"Not a read-only ERC-20 function: {function_name!r}")
    return encode_call(function_name, [validate_address(arg) for arg in args])


def encode_intent(intent: Any) -> Tuple[str, int]:
    """
    Encode a transaction intent.

    Returns:
        Tuple[str, int]: Call data and native value for the transaction.
    """
    if isinstance(intent, TransferIntent):
        return encode_transfer(intent.recipient, intent.amount), 0
    if isinstance(intent, ApproveIntent):
        return encode_approve(intent.spender, intent.amount), 0
    if isinstance(intent, TransferFromIntent):
        return encode_transfer_from(intent.owner, intent.recipient, intent.amount), 0
    if isinstance(intent, ContractCallIntent):
        return intent.data, intent.value
    raise InputValidationError(f"Unsupported transaction intent: {type(intent).__name__}")


# ---------------------------------------------------------------------------
# Contract deployment
# ---------------------------------------------------------------------------

def _constructor_inputs(abi: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for entry in abi:
        if entry.get("type") == "constructor":
            return list(entry.get("inputs", []))
    return []


def _coerce_argument(abi_type: str, value: Any) -> Any:
    """Convert a command-line string to the Python value ``eth_abi`` expects for ``abi_type``."""
    if abi_type.endswith("]"):
        items = json.loads(value) if isinstance(value, str) else value
        if not isinstance(items, list):
            raise InputValidationError(f"Expected a JSON list for {abi_type}, got {value!r}")
        inner = abi_type[: abi_type.rindex("[")]
        return [_coerce_argument(inner, item) for item in items]

    if not isinstance(value, str):
        return value
    text = value.strip()

    if abi_type == "address":
        return validate_address(text)
    if abi_type.startswith(("uint", "int")):
        try:
            return int(text, 0)
        except ValueError:
            raise InputValidationError(f"Expected an integer for {abi_type}, got {value!r}")
    if abi_type == "bool":
        lowered = text.lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise InputValidationError(f"Expected a boolean for {abi_type}, got {value!r}")
    if abi_type.startswith("bytes"):
        return bytes.fromhex(normalize_hex(text, label=abi_type)[2:])
    return text


def encode_deployment(
    bytecode: str,
    abi: Optional[Sequence[Dict[str, Any]]] = None,
    args: Sequence[Any] = (),
) -> str:
    """
    Build contract-creation call data.

    Args:
        bytecode: Creation bytecode (0x prefix optional).
        abi: Contract ABI; only the constructor fragment is used.
        args: Constructor arguments, either native values or strings that are
            coerced according to their ABI type.

    Returns:
        str: Bytecode followed by the ABI-encoded constructor arguments.

    Raises:
        InputValidationError: On an argument count mismatch or an argument
            that cannot be encoded as its declared type.
    """
    code = normalize_hex(bytecode, label="bytecode")
    inputs = _constructor_inputs(abi or [])
    if len(inputs) != len(args):
        raise InputValidationError(
            f"Constructor takes {len(inputs)} arguments, got {len(args)}"
        )
    if not inputs:
        return code

    types = [param["type"] for param in inputs]
    values = [_coerce_argument(abi_type, arg) for abi_type, arg in zip(types, args)]
    try:
        encoded = encode(types, values)
    except (EncodingError, TypeError, ValueError) as exc:
        raise InputValidationError(f"Cannot encode constructor arguments: {exc}") from exc
    return code + encoded.hex()
