"""
Abstract Base Class for Token Gateways

Defines the interface a chain-specific gateway must implement to expose ERC-20
style reads, transaction preparation, signing, broadcast and status queries.
The EVM implementation lives in ``adapters.evm.adapter.EVMAdapter``.

Every method either returns a fully typed result or raises exactly one
``TxKitError`` subclass; no partial results are returned. Network-facing
methods take a keyword-only ``timeout`` in seconds that bounds each node call
they make; None falls back to the configured request timeout.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Union

from ..schemas.bases import TokenInfo, TransactionStatus


class TokenGateway(ABC):
    """
    Abstract base class for token gateways.

    Read operations:
        get_token_info, get_balance, get_allowance

    Write preparation:
        prepare_transaction (single pipeline for every intent kind) and the
        create_*_transaction convenience wrappers

    Submission:
        sign_transaction, send_signed_transaction, sign_and_send, get_tx_status
    """

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_token_info(self, token: str, *, timeout: Optional[float] = None) -> TokenInfo:
        """
        Fetch name, symbol, decimals and total supply of a token.

        Raises:
            InvalidAddress: If ``token`` is malformed.
            ContractCallFailed: If any of the four reads is rejected.
        """
        pass

    @abstractmethod
    async def get_balance(self, token: str, owner: str, *, timeout: Optional[float] = None) -> int:
        """Token balance of ``owner`` in smallest units."""
        pass

    @abstractmethod
    async def get_allowance(
        self, token: str, owner: str, spender: str, *, timeout: Optional[float] = None
    ) -> int:
        """Remaining amount ``spender`` may transfer on behalf of ``owner``."""
        pass

    # ------------------------------------------------------------------
    # Transaction preparation
    # ------------------------------------------------------------------

    @abstractmethod
    async def prepare_transaction(
        self, token: str, sender: str, intent: Any, *, timeout: Optional[float] = None
    ) -> Any:
        """
        Turn a transaction intent into an unsigned, priced transaction.

        Steps: validate addresses, encode call data, estimate gas, apply the
        safety margin, quote fees and assemble the descriptor (nonce unset).

        Raises:
            InvalidAddress / AmountOutOfRange: Before any network call.
            GasEstimationFailed: If the node cannot estimate the call.
        """
        pass

    @abstractmethod
    async def create_transfer_transaction(
        self, token: str, sender: str, recipient: str, amount: Union[int, str],
        *, timeout: Optional[float] = None,
    ) -> Any:
        """Prepare ``transfer(recipient, amount)`` sent by ``sender``."""
        pass

    @abstractmethod
    async def create_approve_transaction(
        self, token: str, sender: str, spender: str, amount: Union[int, str],
        *, timeout: Optional[float] = None,
    ) -> Any:
        """Prepare ``approve(spender, amount)`` sent by ``sender``."""
        pass

    @abstractmethod
    async def create_transfer_from_transaction(
        self, token: str, sender: str, owner: str, recipient: str, amount: Union[int, str],
        *, timeout: Optional[float] = None,
    ) -> Any:
        """Prepare ``transferFrom(owner, recipient, amount)`` spending ``sender``'s allowance."""
        pass

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    @abstractmethod
    async def sign_transaction(
        self,
        descriptor: Union[Any, Mapping[str, Any]],
        account: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Sign a descriptor (or a ``TxPayload``-shaped dict) with the configured key.

        Raises:
            MissingSigningKey / ChainNotConfigured / SigningFailed
        """
        pass

    @abstractmethod
    async def send_signed_transaction(self, raw_tx: str, *, timeout: Optional[float] = None) -> str:
        """
        Broadcast a signed transaction and return its hash.

        Raises:
            BroadcastRejected: With the node's reason preserved.
        """
        pass

    @abstractmethod
    async def get_tx_status(self, tx_hash: str, *, timeout: Optional[float] = None) -> TransactionStatus:
        """Single-shot status query; a receipt that is not found is PENDING."""
        pass

    async def sign_and_send(
        self, descriptor: Any, account: Optional[str] = None, *, timeout: Optional[float] = None
    ) -> str:
        """
        Sign and broadcast in one step.

        Returns:
            str: Transaction hash.
        """
        signed = await self.sign_transaction(descriptor, account, timeout=timeout)
        return await self.send_signed_transaction(signed.raw, timeout=timeout)
