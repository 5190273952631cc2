"""
ERC-20 Smart Contract ABI Module

This module provides the ABI fragments of the standard ERC-20 interface used by
the transaction pipeline: the read-only metadata/balance functions and the
three state-changing functions (transfer, approve, transferFrom).

Usage:
    from ERC20_ABI import get_balance_abi, get_transfer_abi, get_erc20_abi

    # Query balance
    contract = web3.eth.contract(address=token_address, abi=get_balance_abi())
    balance = await contract.functions.balanceOf(owner).call()

    # Full interface
    contract = web3.eth.contract(address=token_address, abi=get_erc20_abi())
"""

from typing import Any, Dict, List


def _view(name: str, inputs: List[Dict[str, str]], output_type: str) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": [{"name": "", "type": output_type}],
    }


def _nonpayable(name: str, inputs: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "name": name,
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": inputs,
        "outputs": [{"name": "", "type": "bool"}],
    }


def get_metadata_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the ERC-20 metadata getters.

    Returns:
        List[Dict[str, Any]]: ABI for ``name``, ``symbol``, ``decimals`` and ``totalSupply``.
    """
    return [
        _view("name", [], "string"),
        _view("symbol", [], "string"),
        _view("decimals", [], "uint8"),
        _view("totalSupply", [], "uint256"),
    ]


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying an ERC-20 token balance.

    Returns:
        List[Dict[str, Any]]: ABI for the ``balanceOf`` function

    Example:
        abi = get_balance_abi()
        # Call: contract.functions.balanceOf(address).call()
    """
    return [_view("balanceOf", [{"name": "account", "type": "address"}], "uint256")]


def get_allowance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC-20 ``allowance(owner, spender)``.

    Returns:
        List[Dict[str, Any]]: ABI for the ``allowance`` function.
    """
    return [
        _view(
            "allowance",
            [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
            ],
            "uint256",
        )
    ]


def get_transfer_abi() -> List[Dict[str, Any]]:
    """Get ABI for ERC-20 ``transfer(to, value)``."""
    return [
        _nonpayable(
            "transfer",
            [
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
            ],
        )
    ]


def get_approve_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC-20 ``approve(spender, value)``.

    Returns:
        List[Dict[str, Any]]: ABI for the ``approve`` function.
    """
    return [
        _nonpayable(
            "approve",
            [
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
            ],
        )
    ]


def get_transfer_from_abi() -> List[Dict[str, Any]]:
    """Get ABI for ERC-20 ``transferFrom(from, to, value)``."""
    return [
        _nonpayable(
            "transferFrom",
            [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
            ],
        )
    ]


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get the complete ERC-20 ABI used by the pipeline.

    Returns:
        List[Dict[str, Any]]: Every fragment above, in one list.
    """
    return (
        get_metadata_abi()
        + get_balance_abi()
        + get_allowance_abi()
        + get_transfer_abi()
        + get_approve_abi()
        + get_transfer_from_abi()
    )


def get_function_abi(name: str) -> Dict[str, Any]:
    """
    Find a single function fragment of the ERC-20 ABI by name.

    Raises:
        KeyError: If the interface has no function with that name.
    """
    for entry in get_erc20_abi():
        if entry["name"] == name:
            return entry
    raise KeyError(f"ERC-20 ABI has no function named {name!r}")


def function_signature(entry: Dict[str, Any]) -> str:
    """Canonical signature of an ABI function fragment, e.g. ``transfer(address,uint256)``."""
    types = ",".join(param["type"] for param in entry.get("inputs", []))
    return f"{entry['name']}({types})"
