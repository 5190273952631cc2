"""Submission of signed transactions via ``eth_sendRawTransaction``."""

import logging
from typing import Optional, Union

from web3 import AsyncWeb3

from ...engine.exceptions import BroadcastRejected
from .addresses import normalize_hex, normalize_tx_hash
from .constants import DEFAULT_REQUEST_TIMEOUT
from .rpc import rpc_call
from .schemas import SignedTransaction

logger = logging.getLogger(__name__)


class Broadcaster:
    """Forwards signed raw transactions to the node. No retries."""

    def __init__(self, w3: AsyncWeb3, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.w3 = w3
        self._request_timeout = request_timeout

    async def submit(
        self,
        signed: Union[SignedTransaction, str],
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Broadcast a signed transaction.

        Args:
            signed: SignedTransaction or its raw 0x hex payload.
            timeout: Per-call timeout; defaults to the configured request timeout.

        Returns:
            str: Transaction hash as lowercase 0x hex.

        Raises:
            InvalidHexValue: If the raw payload is not valid hex.
            BroadcastRejected: If the node rejects the transaction; ``reason``
                carries the node's message (underpriced, nonce too low, ...).
            RpcConnectionError: If the node cannot be reached.
        """
        raw = signed.raw if isinstance(signed, SignedTransaction) else normalize_hex(
            signed, label="signed transaction"
        )
        tx_hash = await rpc_call(
            self.w3.eth.send_raw_transaction(raw),
            error_cls=BroadcastRejected,
            rpc_method="eth_sendRawTransaction",
            timeout=timeout if timeout is not None else self._request_timeout,
        )
        result = normalize_tx_hash(tx_hash)
        logger.info("Broadcast transaction %s", result)
        return result
