"""
EVM Transaction Signing

Signs EIP-1559 (type 2) transactions in-process with ``eth_account``. The key
comes from an injected ``SigningConfig``; this module never reads the
environment and never logs or returns key material.

Main Components:
    - Signer: Resolves the nonce when absent and signs a TxDescriptor.
    - NonceSequencer: Optional per-account nonce allocator for concurrent
      signers sharing one account.

Example:
    signer = Signer(w3, SigningConfig.from_env())
    signed = await signer.sign(descriptor)
    tx_hash = await broadcaster.submit(signed)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3

from ...engine.exceptions import (
    BlockchainInteractionError,
    ChainNotConfigured,
    MissingSigningKey,
    SigningFailed,
)
from .addresses import validate_address
from .constants import DEFAULT_REQUEST_TIMEOUT, SigningConfig
from .rpc import rpc_call
from .schemas import SignedTransaction, TxDescriptor

logger = logging.getLogger(__name__)

NonceFetcher = Callable[[], Awaitable[int]]


class NonceSequencer:
    """
    Per-account nonce allocator.

    Each allocation runs under the account's ``asyncio.Lock`` and hands out
    ``max(network_pending_nonce, local_next)``, so concurrent signers on one
    account never reuse a nonce while the network view lags behind.

    Example:
        sequencer = NonceSequencer()
        signer = Signer(w3, config, sequencer=sequencer)
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._next: Dict[str, int] = {}

    def _lock_for(self, address: str) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = self._locks[address] = asyncio.Lock()
        return lock

    async def allocate(self, address: str, fetch: NonceFetcher) -> int:
        """
        Allocate the next nonce for ``address``.

        Args:
            address: Account address.
            fetch: Coroutine factory returning the network pending nonce.
        """
        key = validate_address(address)
        async with self._lock_for(key):
            network_nonce = await fetch()
            nonce = max(network_nonce, self._next.get(key, 0))
            self._next[key] = nonce + 1
            logger.debug("Allocated nonce %s for %s (network %s)", nonce, key, network_nonce)
            return nonce

    def release(self, address: str, nonce: Optional[int] = None) -> None:
        """
        Give back local state for ``address`` after a transaction never reached the node.

        When ``nonce`` is the most recent allocation the counter steps back to
        it. Otherwise (or without ``nonce``) local state is dropped and the next
        allocation re-reads the network pending count.
        """
        key = validate_address(address)
        if nonce is not None and self._next.get(key) == nonce + 1:
            self._next[key] = nonce
            logger.debug("Returned nonce %s for %s", nonce, key)
        else:
            self._next.pop(key, None)

    def peek(self, address: str) -> Optional[int]:
        return self._next.get(validate_address(address))


class Signer:
    """
    EIP-1559 transaction signer.

    Attributes:
        w3: AsyncWeb3 client used for nonce lookups
        config: Injected signing configuration (key and chain id)
        sequencer: Optional NonceSequencer; without it the pending nonce is
            queried from the node on every signature
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        config: SigningConfig,
        *,
        sequencer: Optional[NonceSequencer] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.w3 = w3
        self.config = config
        self.sequencer = sequencer
        self._request_timeout = request_timeout

    def _local_account(self) -> LocalAccount:
        if self.config.private_key is None:
            raise MissingSigningKey("No signing key configured (set PRIVATE_KEY)")
        try:
            return Account.from_key(self.config.private_key.get_secret_value())
        except (ValueError, TypeError):
            raise SigningFailed("Configured signing key is malformed") from None

    def _chain_id(self) -> int:
        if self.config.chain_id is None:
            raise ChainNotConfigured(None, "No chain id configured for signing")
        if not self.config.is_chain_known():
            raise ChainNotConfigured(self.config.chain_id)
        return self.config.chain_id

    @property
    def address(self) -> str:
        """Checksummed address of the configured key."""
        return self._local_account().address

    async def fetch_pending_nonce(self, address: str, *, timeout: Optional[float] = None) -> int:
        """Query ``eth_getTransactionCount(address, "pending")``."""
        nonce = await rpc_call(
            self.w3.eth.get_transaction_count(address, "pending"),
            error_cls=BlockchainInteractionError,
            rpc_method="eth_getTransactionCount",
            timeout=timeout if timeout is not None else self._request_timeout,
        )
        return int(nonce)

    async def resolve_nonce(self, address: str, *, timeout: Optional[float] = None) -> int:
        if self.sequencer is None:
            return await self.fetch_pending_nonce(address, timeout=timeout)
        return await self.sequencer.allocate(
            address, lambda: self.fetch_pending_nonce(address, timeout=timeout)
        )

    async def sign(
        self,
        descriptor: TxDescriptor,
        account: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> SignedTransaction:
        """
        Sign a transaction descriptor.

        The nonce is taken from the descriptor when present and resolved from
        the network (or the sequencer) otherwise.

        Args:
            descriptor: Unsigned transaction.
            account: Expected signing address; must match the configured key.
            timeout: Timeout for the nonce lookup.

        Returns:
            SignedTransaction: Raw signed payload, hash, sender and nonce.

        Raises:
            MissingSigningKey: If no key is configured.
            ChainNotConfigured: If the chain id is unset or unknown.
            SigningFailed: If ``account`` does not match the key, or signing fails.
        """
        local = self._local_account()
        chain_id = self._chain_id()
        if account is not None and validate_address(account) != local.address:
            raise SigningFailed(
                f"Requested account {account} does not match the configured signing key"
            )

        nonce = descriptor.nonce
        allocated = nonce is None
        if allocated:
            nonce = await self.resolve_nonce(local.address, timeout=timeout)

        tx = descriptor.with_nonce(nonce).to_transaction_dict(chain_id)
        try:
            signed = local.sign_transaction(tx)
        except Exception as exc:
            if allocated:
                self.release_nonce(local.address, nonce)
            raise SigningFailed(f"Could not sign transaction: {type(exc).__name__}") from None

        result = SignedTransaction(
            raw=Web3.to_hex(signed.raw_transaction),
            hash=Web3.to_hex(signed.hash),
            sender=local.address,
            nonce=nonce,
        )
        logger.info(
            "Signed tx %s from %s (nonce %s, chain %s)", result.hash, result.sender, nonce, chain_id
        )
        return result

    def release_nonce(self, address: str, nonce: Optional[int] = None) -> None:
        """Hand ``nonce`` back to the sequencer after a failed signature or broadcast."""
        if self.sequencer is not None:
            self.sequencer.release(address, nonce)
