"""
EVM Chain Configuration Management

Provides the chain registry, environment-aware configuration loaders and the
typed settings objects injected into the pipeline components. The environment
is read here and only here: components receive ``GatewaySettings`` and
``SigningConfig`` instances and never consult process state themselves.

Environment Variables:
    - RPC_URL: JSON-RPC endpoint (default http://127.0.0.1:8545)
    - CHAIN_NAME: Registry name of the target chain (default hardhat)
    - CHAIN_ID: Optional numeric override of the chain id used for signing
    - RPC_TIMEOUT: Per-call timeout in seconds (default 30)
    - PRIVATE_KEY: Signing key, with or without 0x prefix
"""

import os
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, SecretStr, field_validator
from web3 import Web3
import dotenv

from ...engine.exceptions import AmountOutOfRange

dotenv.load_dotenv()

#: One gwei in wei.
GWEI: int = 10**9

#: Largest value representable by the ABI ``uint256`` type.
UINT256_MAX: int = 2**256 - 1

#: Placeholder EIP-1559 fees for local/test networks.
DEFAULT_MAX_FEE_GWEI: int = 20
DEFAULT_PRIORITY_FEE_GWEI: int = 2

#: Safety margin on estimated gas is ``estimated // GAS_MARGIN_DIVISOR`` (10%).
GAS_MARGIN_DIVISOR: int = 10

DEFAULT_RPC_URL: str = "http://127.0.0.1:8545"
DEFAULT_CHAIN_NAME: str = "hardhat"
DEFAULT_REQUEST_TIMEOUT: float = 30.0


class EvmChainConfig(BaseModel):
    """EVM blockchain network configuration."""
    name: str = Field(..., description="Registry name (lowercase)")
    display_name: str = Field(..., description="Human-readable network name")
    chain_id: int = Field(..., gt=0, description="EIP-155 chain id")
    public_rpc_url: str = Field(..., description="Default JSON-RPC endpoint")
    explorer_url: Optional[str] = Field(default=None, description="Block explorer URL")


# Raw chain configuration data, keyed by registry name.
_EVM_CHAINS_DATA: Dict[str, Dict] = {
    "hardhat": {
        "display_name": "Hardhat",
        "chain_id": 31337,
        "public_rpc_url": "http://127.0.0.1:8545",
    },
    "localhost": {
        "display_name": "Localhost",
        "chain_id": 1337,
        "public_rpc_url": "http://127.0.0.1:8545",
    },
    "mainnet": {
        "display_name": "Ethereum Mainnet",
        "chain_id": 1,
        "public_rpc_url": "https://eth.llamarpc.com",
        "explorer_url": "https://etherscan.io",
    },
    "sepolia": {
        "display_name": "Sepolia",
        "chain_id": 11155111,
        "public_rpc_url": "https://rpc.sepolia.org",
        "explorer_url": "https://sepolia.etherscan.io",
    },
    "holesky": {
        "display_name": "Holesky",
        "chain_id": 17000,
        "public_rpc_url": "https://ethereum-holesky-rpc.publicnode.com",
        "explorer_url": "https://holesky.etherscan.io",
    },
    "base": {
        "display_name": "Base Mainnet",
        "chain_id": 8453,
        "public_rpc_url": "https://mainnet.base.org",
        "explorer_url": "https://basescan.org",
    },
    "base-sepolia": {
        "display_name": "Base Sepolia",
        "chain_id": 84532,
        "public_rpc_url": "https://sepolia.base.org",
        "explorer_url": "https://sepolia.basescan.org",
    },
    "polygon": {
        "display_name": "Polygon Mainnet",
        "chain_id": 137,
        "public_rpc_url": "https://polygon-rpc.com",
        "explorer_url": "https://polygonscan.com",
    },
    "arbitrum": {
        "display_name": "Arbitrum One",
        "chain_id": 42161,
        "public_rpc_url": "https://arb1.arbitrum.io/rpc",
        "explorer_url": "https://arbiscan.io",
    },
    "optimism": {
        "display_name": "OP Mainnet",
        "chain_id": 10,
        "public_rpc_url": "https://mainnet.optimism.io",
        "explorer_url": "https://optimistic.etherscan.io",
    },
}

_EVM_CHAINS: Dict[str, EvmChainConfig] = {
    name: EvmChainConfig(name=name, **data) for name, data in _EVM_CHAINS_DATA.items()
}


def get_chain_config(chain: Union[str, int, None]) -> Optional[EvmChainConfig]:
    """
    Look up a chain by registry name (case-insensitive) or numeric chain id.

    Args:
        chain: Registry name such as ``"sepolia"`` or a chain id such as ``11155111``.

    Returns:
        EvmChainConfig if the chain is known, otherwise None.
    """
    if chain is None:
        return None
    if isinstance(chain, int):
        for config in _EVM_CHAINS.values():
            if config.chain_id == chain:
                return config
        return None
    key = str(chain).strip().lower()
    if key.isdigit():
        return get_chain_config(int(key))
    return _EVM_CHAINS.get(key)


def supported_chains() -> List[str]:
    """Return registry names of all known chains."""
    return sorted(_EVM_CHAINS)


# ---------------------------------------------------------------------------
# Environment loaders
# ---------------------------------------------------------------------------

def get_private_key_from_env() -> Optional[str]:
    """
    Load the signing private key from the environment.

    Returns:
        str: Private key from ``PRIVATE_KEY``, or None if not configured
    """
    value = os.getenv("PRIVATE_KEY")
    return value.strip() if value and value.strip() else None


def get_rpc_url_from_env() -> str:
    return os.getenv("RPC_URL") or DEFAULT_RPC_URL


def get_chain_name_from_env() -> str:
    return os.getenv("CHAIN_NAME") or DEFAULT_CHAIN_NAME


def get_chain_id_from_env() -> Optional[int]:
    value = os.getenv("CHAIN_ID")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def get_request_timeout_from_env() -> float:
    value = os.getenv("RPC_TIMEOUT")
    try:
        return float(value) if value else DEFAULT_REQUEST_TIMEOUT
    except ValueError:
        return DEFAULT_REQUEST_TIMEOUT


# ---------------------------------------------------------------------------
# Typed settings
# ---------------------------------------------------------------------------

class FeeSettings(BaseModel):
    """Fee policy used by the fee estimator when no live market data is read."""
    default_max_fee_gwei: int = Field(default=DEFAULT_MAX_FEE_GWEI, ge=0)
    default_priority_fee_gwei: int = Field(default=DEFAULT_PRIORITY_FEE_GWEI, ge=0)
    gas_margin_divisor: int = Field(default=GAS_MARGIN_DIVISOR, gt=0)

    @property
    def default_max_fee_wei(self) -> int:
        return self.default_max_fee_gwei * GWEI

    @property
    def default_priority_fee_wei(self) -> int:
        return self.default_priority_fee_gwei * GWEI


class GatewaySettings(BaseModel):
    """Immutable connection settings shared by every pipeline component."""
    rpc_url: str = Field(default=DEFAULT_RPC_URL, description="JSON-RPC endpoint URL")
    chain_name: str = Field(default=DEFAULT_CHAIN_NAME, description="Chain registry name")
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0, description="Per-call timeout (seconds)")
    fees: FeeSettings = Field(default_factory=FeeSettings)

    @classmethod
    def from_env(cls) -> "GatewaySettings":
        return cls(
            rpc_url=get_rpc_url_from_env(),
            chain_name=get_chain_name_from_env(),
            request_timeout=get_request_timeout_from_env(),
        )


class SigningConfig(BaseModel):
    """
    Signing configuration injected into the Signer.

    Attributes:
        private_key: Hex private key (0x prefix optional); held as a secret so it
            never appears in reprs or logs
        chain_id: EIP-155 chain id the transactions are signed for
        extra_chain_ids: Chain ids accepted in addition to the registry
    """
    private_key: Optional[SecretStr] = Field(default=None, description="Signing key")
    chain_id: Optional[int] = Field(default=None, description="Target chain id")
    extra_chain_ids: List[int] = Field(default_factory=list, description="Whitelisted custom chain ids")

    @field_validator("private_key")
    @classmethod
    def _normalize_key(cls, value: Optional[SecretStr]) -> Optional[SecretStr]:
        if value is None:
            return None
        raw = value.get_secret_value().strip()
        if not raw:
            return None
        if not raw.startswith(("0x", "0X")):
            raw = "0x" + raw
        return SecretStr(raw)

    @classmethod
    def from_env(cls, chain: Union[str, int, None] = None) -> "SigningConfig":
        """
        Build a signing configuration from ``PRIVATE_KEY``/``CHAIN_ID``/``CHAIN_NAME``.

        Args:
            chain: Chain name or id to sign for; defaults to ``CHAIN_NAME``.
        """
        chain_id = get_chain_id_from_env()
        if chain_id is None:
            config = get_chain_config(chain if chain is not None else get_chain_name_from_env())
            chain_id = config.chain_id if config else None
        return cls(private_key=get_private_key_from_env(), chain_id=chain_id)

    def is_chain_known(self) -> bool:
        if self.chain_id is None:
            return False
        return self.chain_id in self.extra_chain_ids or get_chain_config(self.chain_id) is not None


# ---------------------------------------------------------------------------
# Unit helpers
# ---------------------------------------------------------------------------

def to_gwei_wei(amount: Union[str, int, Decimal]) -> int:
    """
    Convert a gwei quantity (e.g. ``"1.5"``) to wei.

    Raises:
        AmountOutOfRange: If the value is not a non-negative number with at most
            nine decimal places.
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise AmountOutOfRange(amount, f"Not a gwei amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise AmountOutOfRange(amount)
    wei = value * GWEI
    if wei != wei.to_integral_value():
        raise AmountOutOfRange(amount, f"Gwei amount has sub-wei precision: {amount!r}")
    return int(wei)


def format_gwei(value: int) -> str:
    return f"{Decimal(Web3.from_wei(value, 'gwei')).normalize():f}"


def format_ether(value: int) -> str:
    return f"{Decimal(Web3.from_wei(value, 'ether')).normalize():f}"


def parse_amount(value: Union[int, str]) -> int:
    """
    Parse a token amount in the token's smallest unit.

    Amounts cross the boundary as decimal strings (``"250000000000000000000"``)
    or plain integers. The result always fits the ABI ``uint256`` type.

    Raises:
        AmountOutOfRange: If the value is negative, wider than 256 bits, or not
            an integer written in decimal digits.
    """
    if isinstance(value, bool):
        raise AmountOutOfRange(value)
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit() or not text.isascii():
            raise AmountOutOfRange(value, f"Amount must be a non-negative decimal integer: {value!r}")
        value = int(text)
    if not isinstance(value, int):
        raise AmountOutOfRange(value, f"Amount must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise AmountOutOfRange(value)
    return value
