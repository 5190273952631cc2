"""
Base Schema Models for erc20-txkit

This module defines the base model and the chain-agnostic value types shared by
the transaction pipeline and the boundary payloads.

Core Classes:
    - CanonicalModel: Frozen Pydantic base model with canonical JSON serialization
    - TransactionStatus: Small status vocabulary for submitted transactions
    - TokenInfo: Immutable ERC-20 metadata snapshot

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Immutable Pydantic base model with canonical JSON serialization.

    Values in the pipeline are created by one component and handed downstream
    by value, so every model is frozen. Recomputing a value (for example a fee
    quote after a tip override) produces a new instance.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a deterministic JSON string.

        Keys are sorted and separators carry no whitespace, so two equal models
        always serialize to the same bytes.

        Returns:
            str: Compact JSON string with sorted keys.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )


class TransactionStatus(str, Enum):
    """
    Enumeration of transaction statuses reported by the status tracker.

    Attributes:
        PENDING: No receipt yet (including receipt lookups that return "not found")
        SUCCESS: Receipt observed with terminal success status
        FAILED: Receipt observed with terminal failure status (reverted)
    """
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class TokenInfo(CanonicalModel):
    """
    Snapshot of ERC-20 token metadata.

    Fetched fresh per request; never cached across calls.

    Attributes:
        name: Full token name (e.g. "MyToken")
        symbol: Ticker symbol (e.g. "MTK")
        decimals: Number of decimal places, 0..255
        total_supply: Total supply in the token's smallest unit
    """
    name: str = Field(..., description="Token name")
    symbol: str = Field(..., description="Token symbol")
    decimals: int = Field(..., ge=0, le=255, description="Token decimals (uint8)")
    total_supply: int = Field(..., ge=0, description="Total supply in smallest units")
