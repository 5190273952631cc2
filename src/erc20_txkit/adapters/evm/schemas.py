"""
EVM Transaction Schema Models

Pydantic models for the values handed between the pipeline stages. All classes
inherit from ``CanonicalModel`` and are therefore frozen: a stage never edits a
value it received, it builds a new one.

Fee / transaction classes:
    - FeeQuote: Gas limit plus EIP-1559 fee pair, with derived estimated cost.
    - TxDescriptor: Unsigned transaction ready for the signer.
    - SignedTransaction: Opaque signed payload plus its locally computed hash.
    - ReceiptSummary: Condensed receipt of a mined transaction.

Intent classes (discriminated on ``kind``):
    - TransferIntent, ApproveIntent, TransferFromIntent, ContractCallIntent

Deployment classes:
    - DeployPlan: Everything the deploy flow knows before submission.
    - DeployReport: Outcome of a mined deployment.
"""

from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import Field, computed_field, field_validator, model_validator
from typing_extensions import Annotated

from ...engine.exceptions import InvalidFeeQuote
from ...schemas.bases import CanonicalModel, TransactionStatus
from .addresses import normalize_hex, normalize_tx_hash, validate_address
from .constants import UINT256_MAX, parse_amount


def _normalize_data(value: object) -> str:
    if value is None or value in ("", "0x", b""):
        return "0x"
    return normalize_hex(value, label="data")


def _check_fee_pair(max_fee: int, priority_fee: int) -> None:
    if max_fee < priority_fee:
        raise InvalidFeeQuote(
            f"maxFeePerGas ({max_fee}) is below maxPriorityFeePerGas ({priority_fee})"
        )


class FeeQuote(CanonicalModel):
    """
    Gas limit and EIP-1559 fee pair for one transaction.

    Attributes:
        gas_limit: Hard gas limit (estimate plus safety margin)
        max_fee_per_gas: Upper bound on the total per-gas price, in wei
        max_priority_fee_per_gas: Tip paid to the block producer, in wei

    Invariant:
        max_fee_per_gas >= max_priority_fee_per_gas; violations raise
        InvalidFeeQuote at construction.
    """
    gas_limit: int = Field(default=0, ge=0, description="Gas limit")
    max_fee_per_gas: int = Field(..., ge=0, description="Max fee per gas (wei)")
    max_priority_fee_per_gas: int = Field(..., ge=0, description="Priority fee per gas (wei)")

    @model_validator(mode="after")
    def _fee_invariant(self) -> "FeeQuote":
        _check_fee_pair(self.max_fee_per_gas, self.max_priority_fee_per_gas)
        return self

    @computed_field  # type: ignore[misc]
    @property
    def estimated_cost(self) -> int:
        """Worst-case cost in wei: ``gas_limit * max_fee_per_gas``."""
        return self.gas_limit * self.max_fee_per_gas


class TxDescriptor(CanonicalModel):
    """
    Unsigned EIP-1559 transaction.

    Attributes:
        to: Checksummed target address; None only for contract creation
        data: Call data as lowercase 0x hex ("0x" when empty)
        value: Native value in wei
        nonce: Sender nonce, or None to resolve it at signing time
        gas_limit: Hard gas limit
        max_fee_per_gas: EIP-1559 max fee per gas (wei)
        max_priority_fee_per_gas: EIP-1559 priority fee per gas (wei)
    """
    to: Optional[str] = Field(default=None, description="Target address (None = contract creation)")
    data: str = Field(default="0x", description="Call data")
    value: int = Field(default=0, ge=0, le=UINT256_MAX, description="Native value (wei)")
    nonce: Optional[int] = Field(default=None, ge=0, description="Sender nonce")
    gas_limit: int = Field(..., ge=0, description="Gas limit")
    max_fee_per_gas: int = Field(..., ge=0, description="Max fee per gas (wei)")
    max_priority_fee_per_gas: int = Field(..., ge=0, description="Priority fee per gas (wei)")

    @field_validator("to", mode="before")
    @classmethod
    def _validate_to(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return validate_address(value)

    @field_validator("data", mode="before")
    @classmethod
    def _validate_data(cls, value: object) -> str:
        return _normalize_data(value)

    @model_validator(mode="after")
    def _fee_invariant(self) -> "TxDescriptor":
        _check_fee_pair(self.max_fee_per_gas, self.max_priority_fee_per_gas)
        return self

    @property
    def is_contract_creation(self) -> bool:
        return self.to is None

    @property
    def fee_quote(self) -> FeeQuote:
        return FeeQuote(
            gas_limit=self.gas_limit,
            max_fee_per_gas=self.max_fee_per_gas,
            max_priority_fee_per_gas=self.max_priority_fee_per_gas,
        )

    def with_nonce(self, nonce: int) -> "TxDescriptor":
        """Return a copy with the nonce resolved."""
        return self.model_copy(update={"nonce": nonce})

    def to_transaction_dict(self, chain_id: int) -> Dict[str, Any]:
        """
        Build the type-2 transaction dict expected by ``Account.sign_transaction``.

        The ``to`` key is omitted for contract creation.

        Raises:
            ValueError: If the nonce has not been resolved yet.
        """
        if self.nonce is None:
            raise ValueError("nonce must be resolved before building the transaction dict")
        tx: Dict[str, Any] = {
            "type": 2,
            "chainId": chain_id,
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "value": self.value,
            "data": self.data,
        }
        if self.to is not None:
            tx["to"] = self.to
        return tx


class SignedTransaction(CanonicalModel):
    """
    Signed transaction ready for broadcast.

    ``raw`` is treated as opaque by every downstream stage.

    Attributes:
        raw: Serialized signed transaction as lowercase 0x hex
        hash: Transaction hash computed locally at signing time
        sender: Checksummed address of the signing account
        nonce: Nonce the transaction was signed with
    """
    raw: str = Field(..., description="Signed raw transaction (0x hex)")
    hash: str = Field(..., description="Transaction hash (0x hex)")
    sender: str = Field(..., description="Signing account")
    nonce: int = Field(..., ge=0, description="Signed nonce")

    @field_validator("raw", mode="before")
    @classmethod
    def _validate_raw(cls, value: object) -> str:
        return normalize_hex(value, label="signed transaction")

    @field_validator("hash", mode="before")
    @classmethod
    def _validate_hash(cls, value: object) -> str:
        return normalize_tx_hash(value)

    @field_validator("sender", mode="before")
    @classmethod
    def _validate_sender(cls, value: str) -> str:
        return validate_address(value)


class ReceiptSummary(CanonicalModel):
    """
    Condensed transaction receipt.

    Attributes:
        tx_hash: Transaction hash
        status: SUCCESS when the receipt status is 1, FAILED otherwise
        block_number: Block that included the transaction
        gas_used: Gas consumed
        effective_gas_price: Price actually paid per gas (wei)
        contract_address: Created contract address, for deployments
    """
    tx_hash: str
    status: TransactionStatus
    block_number: int = Field(default=0, ge=0)
    gas_used: int = Field(default=0, ge=0)
    effective_gas_price: int = Field(default=0, ge=0)
    contract_address: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def actual_cost(self) -> int:
        """Cost actually paid in wei: ``gas_used * effective_gas_price``."""
        return self.gas_used * self.effective_gas_price

    @classmethod
    def from_receipt(cls, receipt: Mapping[str, Any]) -> "ReceiptSummary":
        """Build a summary from a web3.py ``TxReceipt``."""
        contract_address = receipt.get("contractAddress")
        return cls(
            tx_hash=normalize_tx_hash(receipt["transactionHash"]),
            status=TransactionStatus.SUCCESS if receipt.get("status") == 1 else TransactionStatus.FAILED,
            block_number=receipt.get("blockNumber") or 0,
            gas_used=receipt.get("gasUsed") or 0,
            effective_gas_price=receipt.get("effectiveGasPrice") or 0,
            contract_address=validate_address(contract_address) if contract_address else None,
        )


# ---------------------------------------------------------------------------
# Transaction intents
# ---------------------------------------------------------------------------

class _TokenIntent(CanonicalModel):
    amount: int = Field(..., description="Amount in smallest token units")

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Union[int, str]) -> int:
        return parse_amount(value)


class TransferIntent(_TokenIntent):
    """ERC-20 ``transfer(recipient, amount)`` from the sender."""
    kind: Literal["transfer"] = "transfer"
    recipient: str

    @field_validator("recipient", mode="before")
    @classmethod
    def _validate_recipient(cls, value: str) -> str:
        return validate_address(value)


class ApproveIntent(_TokenIntent):
    """ERC-20 ``approve(spender, amount)`` from the sender."""
    kind: Literal["approve"] = "approve"
    spender: str

    @field_validator("spender", mode="before")
    @classmethod
    def _validate_spender(cls, value: str) -> str:
        return validate_address(value)


class TransferFromIntent(_TokenIntent):
    """ERC-20 ``transferFrom(owner, recipient, amount)`` spending the sender's allowance."""
    kind: Literal["transfer_from"] = "transfer_from"
    owner: str
    recipient: str

    @field_validator("owner", "recipient", mode="before")
    @classmethod
    def _validate_addresses(cls, value: str) -> str:
        return validate_address(value)


class ContractCallIntent(CanonicalModel):
    """Arbitrary call with pre-encoded data against the target contract."""
    kind: Literal["contract_call"] = "contract_call"
    data: str = "0x"
    value: int = Field(default=0, ge=0, le=UINT256_MAX)

    @field_validator("data", mode="before")
    @classmethod
    def _validate_data(cls, value: object) -> str:
        return _normalize_data(value)


TxIntent = Annotated[
    Union[
        TransferIntent,      # kind: "transfer"
        ApproveIntent,       # kind: "approve"
        TransferFromIntent,  # kind: "transfer_from"
        ContractCallIntent,  # kind: "contract_call"
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Deployment values
# ---------------------------------------------------------------------------

class DeployPlan(CanonicalModel):
    """
    Deployment as quoted to the operator.

    Attributes:
        data: Creation bytecode with encoded constructor arguments
        sender: Deploying account
        nonce: Pending nonce the deployment will use
        predicted_address: CREATE address derived from sender and nonce
        quote: Current fee quote (replaced, never edited, on tip override)
    """
    data: str
    sender: str
    nonce: int = Field(..., ge=0)
    predicted_address: str
    quote: FeeQuote

    @field_validator("sender", "predicted_address", mode="before")
    @classmethod
    def _validate_addresses(cls, value: str) -> str:
        return validate_address(value)

    def with_quote(self, quote: FeeQuote) -> "DeployPlan":
        return self.model_copy(update={"quote": quote})


class DeployReport(CanonicalModel):
    """Outcome of a mined deployment."""
    plan: DeployPlan
    receipt: ReceiptSummary

    @property
    def tx_hash(self) -> str:
        return self.receipt.tx_hash

    @property
    def contract_address(self) -> Optional[str]:
        return self.receipt.contract_address or self.plan.predicted_address

    @property
    def quoted_cost(self) -> int:
        return self.plan.quote.estimated_cost

    @property
    def actual_cost(self) -> int:
        return self.receipt.actual_cost
