"""
Boundary Payload Models for erc20-txkit

Wire shapes used to hand pipeline values to (and accept them from) an outer
transport layer such as a REST controller. Internally the pipeline works with
integers and typed models; on the wire:

    - big integers (wei amounts, gas, supply) are decimal strings
    - byte sequences are lowercase 0x hex
    - addresses are checksummed
    - field names are camelCase (``maxFeePerGas``, ``txHash``, ...)

Python attribute names stay snake_case; camelCase is the alias used for
serialization, and both spellings are accepted on input.
"""

from typing import Any, Mapping, Optional, Union

from pydantic import Field, ValidationError, field_validator

from ..adapters.evm.addresses import normalize_hex, normalize_tx_hash, validate_address
from ..adapters.evm.constants import parse_amount
from ..adapters.evm.schemas import SignedTransaction, TxDescriptor
from ..engine.exceptions import InputValidationError
from .bases import CanonicalModel, TokenInfo, TransactionStatus


def _decimal_string(value: Union[int, str]) -> str:
    return str(parse_amount(value))


# ============================================================================
# Transactions
# ============================================================================

class TxPayload(CanonicalModel):
    """Unsigned transaction on the wire.

    Attributes:
        to: Target address; null for contract creation.
        data: Call data as 0x hex.
        value: Native value in wei, decimal string.
        nonce: Sender nonce; null when it is resolved at signing time.
        gas: Gas limit, decimal string.
        max_fee_per_gas: EIP-1559 max fee per gas in wei, decimal string.
        max_priority_fee_per_gas: EIP-1559 tip per gas in wei, decimal string.
    """
    to: Optional[str] = Field(default=None, description="Target address")
    data: str = Field(default="0x", description="Call data")
    value: str = Field(default="0", description="Native value (wei)")
    nonce: Optional[int] = Field(default=None, ge=0, description="Sender nonce")
    gas: str = Field(..., description="Gas limit")
    max_fee_per_gas: str = Field(..., alias="maxFeePerGas", description="Max fee per gas (wei)")
    max_priority_fee_per_gas: str = Field(
        ..., alias="maxPriorityFeePerGas", description="Priority fee per gas (wei)"
    )

    @field_validator("value", "gas", "max_fee_per_gas", "max_priority_fee_per_gas", mode="before")
    @classmethod
    def _validate_decimal(cls, value: Union[int, str]) -> str:
        return _decimal_string(value)

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> "TxPayload":
        """Validate a client-supplied dict, reporting schema errors as InputValidationError."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InputValidationError(f"Invalid transaction payload: {exc}") from exc

    @classmethod
    def from_descriptor(cls, descriptor: TxDescriptor) -> "TxPayload":
        return cls(
            to=descriptor.to,
            data=descriptor.data,
            value=descriptor.value,
            nonce=descriptor.nonce,
            gas=descriptor.gas_limit,
            max_fee_per_gas=descriptor.max_fee_per_gas,
            max_priority_fee_per_gas=descriptor.max_priority_fee_per_gas,
        )

    def to_descriptor(self) -> TxDescriptor:
        return TxDescriptor(
            to=self.to,
            data=self.data,
            value=int(self.value),
            nonce=self.nonce,
            gas_limit=int(self.gas),
            max_fee_per_gas=int(self.max_fee_per_gas),
            max_priority_fee_per_gas=int(self.max_priority_fee_per_gas),
        )


class SignedTxPayload(CanonicalModel):
    """Signed transaction on the wire."""
    signed_tx: str = Field(..., alias="signedTx", description="Signed raw transaction (0x hex)")
    tx_hash: Optional[str] = Field(default=None, alias="txHash", description="Locally computed hash")

    @field_validator("signed_tx", mode="before")
    @classmethod
    def _validate_signed_tx(cls, value: object) -> str:
        return normalize_hex(value, label="signed transaction")

    @field_validator("tx_hash", mode="before")
    @classmethod
    def _validate_tx_hash(cls, value: object) -> Optional[str]:
        return None if value is None else normalize_tx_hash(value)

    @classmethod
    def from_signed(cls, signed: SignedTransaction) -> "SignedTxPayload":
        return cls(signed_tx=signed.raw, tx_hash=signed.hash)


class TxStatusPayload(CanonicalModel):
    """Status query result on the wire."""
    tx_hash: str = Field(..., alias="txHash")
    status: TransactionStatus

    @field_validator("tx_hash", mode="before")
    @classmethod
    def _validate_tx_hash(cls, value: object) -> str:
        return normalize_tx_hash(value)


# ============================================================================
# Token reads
# ============================================================================

class TokenInfoPayload(CanonicalModel):
    """ERC-20 metadata on the wire; ``totalSupply`` is a decimal string."""
    token_id: str = Field(..., alias="tokenId", description="Token contract address")
    name: str
    symbol: str
    decimals: int = Field(..., ge=0, le=255)
    total_supply: str = Field(..., alias="totalSupply")

    @field_validator("token_id", mode="before")
    @classmethod
    def _validate_token(cls, value: str) -> str:
        return validate_address(value)

    @field_validator("total_supply", mode="before")
    @classmethod
    def _validate_supply(cls, value: Union[int, str]) -> str:
        return _decimal_string(value)

    @classmethod
    def from_token_info(cls, token: str, info: TokenInfo) -> "TokenInfoPayload":
        return cls(
            token_id=token,
            name=info.name,
            symbol=info.symbol,
            decimals=info.decimals,
            total_supply=info.total_supply,
        )


class AmountPayload(CanonicalModel):
    """Balance or allowance on the wire."""
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _validate_value(cls, value: Union[int, str]) -> str:
        return _decimal_string(value)
