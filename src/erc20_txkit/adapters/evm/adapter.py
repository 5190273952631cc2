"""
EVM Token Gateway

Wires the pipeline components together behind the ``TokenGateway`` interface:

    AddressCodec -> CallEncoder -> FeeEstimator -> TransactionBuilder
        -> Signer -> Broadcaster -> StatusTracker

Key Features:
    - ERC-20 metadata, balance and allowance reads
    - One preparation pipeline shared by transfer, approve, transferFrom and
      generic contract calls
    - In-process EIP-1559 signing with an injected signing configuration
    - Broadcast and single-shot status queries

Dependencies:
    - web3.py: For blockchain RPC interaction
    - eth_account: For transaction signing (via ``signatures.Signer``)
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError
from web3 import AsyncWeb3

from ...engine.exceptions import BlockchainInteractionError, ContractCallFailed, InputValidationError
from ...schemas.bases import TokenInfo, TransactionStatus
from ..bases import TokenGateway
from .addresses import validate_address
from .broadcaster import Broadcaster
from .builder import build
from .constants import GatewaySettings, SigningConfig
from .encoders import encode_intent
from .ERC20_ABI import get_erc20_abi
from .fees import FeeEstimator
from .rpc import rpc_call
from .schemas import (
    ApproveIntent,
    ReceiptSummary,
    SignedTransaction,
    TransferFromIntent,
    TransferIntent,
    TxDescriptor,
    TxIntent,
)
from .signatures import NonceSequencer, Signer
from .tracker import StatusTracker

logger = logging.getLogger(__name__)

_INTENT_ADAPTER: TypeAdapter = TypeAdapter(TxIntent)


class EVMAdapter(TokenGateway):
    """
    EVM implementation of the token gateway.

    Components are built once at construction and share a single AsyncWeb3
    client. All of them are exposed as attributes so callers (and the deploy
    flow) can compose them directly.

    Attributes:
        settings: Connection settings (RPC URL, chain, timeout, fee policy)
        signing: Signing configuration (key and chain id)
        w3: AsyncWeb3 client
        fees: FeeEstimator
        signer: Signer
        broadcaster: Broadcaster
        tracker: StatusTracker

    Example:
        adapter = EVMAdapter(GatewaySettings.from_env(), SigningConfig.from_env())
        tx = await adapter.create_transfer_transaction(token, sender, recipient, "250000000000000000000")
        tx_hash = await adapter.sign_and_send(tx)
        status = await adapter.get_tx_status(tx_hash)
    """

    def __init__(
        self,
        settings: Optional[GatewaySettings] = None,
        signing: Optional[SigningConfig] = None,
        *,
        w3: Optional[AsyncWeb3] = None,
        sequencer: Optional[NonceSequencer] = None,
    ):
        """
        Initialize the gateway.

        Args:
            settings: Connection settings; defaults to ``GatewaySettings.from_env()``.
            signing: Signing configuration; defaults to
                ``SigningConfig.from_env(settings.chain_name)``.
            w3: Pre-built AsyncWeb3 client (tests inject a mock here).
            sequencer: Optional NonceSequencer shared by concurrent signers.
        """
        self.settings = settings if settings is not None else GatewaySettings.from_env()
        self.signing = signing if signing is not None else SigningConfig.from_env(self.settings.chain_name)
        self.w3 = w3 if w3 is not None else self._get_web3_instance()

        timeout = self.settings.request_timeout
        self.fees = FeeEstimator(self.w3, self.settings)
        self.signer = Signer(self.w3, self.signing, sequencer=sequencer, request_timeout=timeout)
        self.broadcaster = Broadcaster(self.w3, request_timeout=timeout)
        self.tracker = StatusTracker(self.w3, request_timeout=timeout)

    def _get_web3_instance(self) -> AsyncWeb3:
        """Create an AsyncWeb3 client for the configured RPC endpoint."""
        return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            self.settings.rpc_url,
            request_kwargs={"timeout": self.settings.request_timeout}
        ))

    def _contract(self, token: str):
        return self.w3.eth.contract(address=token, abi=get_erc20_abi())

    async def _read(self, call: Any, function_name: str, timeout: Optional[float]) -> Any:
        return await rpc_call(
            call.call(),
            error_cls=ContractCallFailed,
            rpc_method=f"eth_call({function_name})",
            timeout=timeout if timeout is not None else self.settings.request_timeout,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_token_info(self, token: str, *, timeout: Optional[float] = None) -> TokenInfo:
        token = validate_address(token)
        contract = self._contract(token)
        name, symbol, decimals, total_supply = await asyncio.gather(
            self._read(contract.functions.name(), "name", timeout),
            self._read(contract.functions.symbol(), "symbol", timeout),
            self._read(contract.functions.decimals(), "decimals", timeout),
            self._read(contract.functions.totalSupply(), "totalSupply", timeout),
        )
        return TokenInfo(name=name, symbol=symbol, decimals=decimals, total_supply=total_supply)

    async def get_balance(self, token: str, owner: str, *, timeout: Optional[float] = None) -> int:
        """
        Query the token balance of ``owner``.

        Args:
            token: ERC-20 contract address.
            owner: Account address.
            timeout: Per-call timeout; defaults to ``settings.request_timeout``.

        Returns:
            int: Balance in the token's smallest unit.
        """
        token = validate_address(token)
        owner = validate_address(owner)
        contract = self._contract(token)
        return int(await self._read(contract.functions.balanceOf(owner), "balanceOf", timeout))

    async def get_allowance(
        self, token: str, owner: str, spender: str, *, timeout: Optional[float] = None
    ) -> int:
        token = validate_address(token)
        owner = validate_address(owner)
        spender = validate_address(spender)
        contract = self._contract(token)
        return int(await self._read(contract.functions.allowance(owner, spender), "allowance", timeout))

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------

    async def prepare_transaction(
        self,
        token: str,
        sender: str,
        intent: Union[TransferIntent, ApproveIntent, TransferFromIntent, Mapping[str, Any], Any],
        *,
        timeout: Optional[float] = None,
    ) -> TxDescriptor:
        """
        Turn an intent into an unsigned, priced transaction against ``token``.

        Args:
            token: Target contract address.
            sender: Account the transaction will be sent from (used for gas estimation).
            intent: A TxIntent variant, or a dict discriminated on ``kind``.
            timeout: Timeout for the gas estimate.

        Returns:
            TxDescriptor: Descriptor with the default fee quote and nonce unset.

        Raises:
            InputValidationError: If a dict intent does not match any intent kind.
        """
        token = validate_address(token)
        sender = validate_address(sender)
        if isinstance(intent, Mapping):
            try:
                intent = _INTENT_ADAPTER.validate_python(intent)
            except ValidationError as exc:
                raise InputValidationError(f"Invalid transaction intent: {exc}") from exc

        data, value = encode_intent(intent)
        estimated = await self.fees.estimate_gas(sender, token, data, value, timeout=timeout)
        quote = self.fees.quote_fees(gas_limit=self.fees.compute_gas_limit(estimated))
        descriptor = build(token, data, value, quote)
        logger.info(
            "Prepared %s on %s from %s (gas %s, estimated %s)",
            intent.kind, token, sender, descriptor.gas_limit, estimated,
        )
        return descriptor

    async def create_transfer_transaction(
        self, token: str, sender: str, recipient: str, amount: Union[int, str],
        *, timeout: Optional[float] = None,
    ) -> TxDescriptor:
        return await self.prepare_transaction(
            token, sender, TransferIntent(recipient=recipient, amount=amount), timeout=timeout
        )

    async def create_approve_transaction(
        self, token: str, sender: str, spender: str, amount: Union[int, str],
        *, timeout: Optional[float] = None,
    ) -> TxDescriptor:
        return await self.prepare_transaction(
            token, sender, ApproveIntent(spender=spender, amount=amount), timeout=timeout
        )

    async def create_transfer_from_transaction(
        self, token: str, sender: str, owner: str, recipient: str, amount: Union[int, str],
        *, timeout: Optional[float] = None,
    ) -> TxDescriptor:
        return await self.prepare_transaction(
            token,
            sender,
            TransferFromIntent(owner=owner, recipient=recipient, amount=amount),
            timeout=timeout,
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def sign_transaction(
        self,
        descriptor: Union[TxDescriptor, Mapping[str, Any]],
        account: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> SignedTransaction:
        """
        Sign a descriptor, or a ``TxPayload``-shaped dict as received from a client.

        Raises:
            InputValidationError: If a dict payload is malformed.
            MissingSigningKey: If no key is configured.
            ChainNotConfigured: If the signing chain is unset or unknown.
            SigningFailed: If signing fails or ``account`` does not match the key.
        """
        if isinstance(descriptor, Mapping):
            from ...schemas.payloads import TxPayload

            descriptor = TxPayload.from_wire(descriptor).to_descriptor()
        return await self.signer.sign(descriptor, account, timeout=timeout)

    async def send_signed_transaction(
        self, raw_tx: Union[SignedTransaction, str], *, timeout: Optional[float] = None
    ) -> str:
        """
        Broadcast a signed transaction.

        When ``raw_tx`` is a SignedTransaction and the broadcast fails, the
        sequencer gives its nonce back so the next signature reuses it.
        """
        try:
            return await self.broadcaster.submit(raw_tx, timeout=timeout)
        except BlockchainInteractionError:
            if isinstance(raw_tx, SignedTransaction):
                self.signer.release_nonce(raw_tx.sender, raw_tx.nonce)
            raise

    async def sign_and_send(
        self,
        descriptor: Union[TxDescriptor, Mapping[str, Any]],
        account: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Sign and broadcast in one step.

        A failed broadcast, rejected or unreachable node alike, gives the
        nonce back to the sequencer before the error propagates.
        """
        signed = await self.sign_transaction(descriptor, account, timeout=timeout)
        return await self.send_signed_transaction(signed, timeout=timeout)

    async def get_tx_status(self, tx_hash: str, *, timeout: Optional[float] = None) -> TransactionStatus:
        return await self.tracker.get_status(tx_hash, timeout=timeout)

    async def wait_for_receipt(self, tx_hash: str, **kwargs: Any) -> ReceiptSummary:
        return await self.tracker.wait_for_receipt(tx_hash, **kwargs)
