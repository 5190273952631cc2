"""
Transaction status tracking.

``get_status`` and ``get_receipt`` are single-shot lookups that never block
waiting for inclusion. ``wait_for_receipt`` composes them for callers that want
to wait until a transaction is mined.
"""

import asyncio
import logging
from typing import Optional

from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from ...engine.exceptions import ConfirmationTimeout, ReceiptLookupFailed
from ...schemas.bases import TransactionStatus
from .addresses import normalize_tx_hash
from .constants import DEFAULT_REQUEST_TIMEOUT
from .rpc import rpc_call
from .schemas import ReceiptSummary

logger = logging.getLogger(__name__)


class StatusTracker:
    """Receipt lookups against one node."""

    def __init__(self, w3: AsyncWeb3, *, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.w3 = w3
        self._request_timeout = request_timeout

    async def get_receipt(self, tx_hash: str, *, timeout: Optional[float] = None) -> Optional[ReceiptSummary]:
        """
        Fetch the receipt of a transaction.

        Returns:
            ReceiptSummary, or None while the transaction is not mined (including
            when the node reports it as not found).

        Raises:
            InvalidHexValue: If ``tx_hash`` is not a 32-byte hex value.
            ReceiptLookupFailed: For any lookup failure other than "not found".
            RpcConnectionError: If the node cannot be reached.
        """
        normalized = normalize_tx_hash(tx_hash)
        try:
            receipt = await rpc_call(
                self.w3.eth.get_transaction_receipt(normalized),
                error_cls=ReceiptLookupFailed,
                rpc_method="eth_getTransactionReceipt",
                timeout=timeout if timeout is not None else self._request_timeout,
                passthrough=(TransactionNotFound,),
            )
        except TransactionNotFound:
            return None
        if receipt is None:
            return None
        return ReceiptSummary.from_receipt(receipt)

    async def get_status(self, tx_hash: str, *, timeout: Optional[float] = None) -> TransactionStatus:
        """
        Single-shot status query.

        No receipt yet (or "not found") is PENDING, receipt status 1 is
        SUCCESS, any other receipt status is FAILED.
        """
        summary = await self.get_receipt(tx_hash, timeout=timeout)
        status = TransactionStatus.PENDING if summary is None else summary.status
        logger.debug("Status of %s: %s", tx_hash, status.value)
        return status

    async def wait_for_receipt(
        self,
        tx_hash: str,
        *,
        poll_interval: float = 1.0,
        max_interval: float = 8.0,
        deadline: Optional[float] = None,
    ) -> ReceiptSummary:
        """
        Poll ``get_receipt`` until the transaction is mined.

        The delay between polls doubles from ``poll_interval`` up to
        ``max_interval``.

        Args:
            tx_hash: Transaction hash.
            poll_interval: First delay in seconds.
            max_interval: Upper bound on the delay.
            deadline: Seconds to wait in total; None waits indefinitely.

        Raises:
            ConfirmationTimeout: If the deadline passes before a receipt appears.
        """
        loop = asyncio.get_running_loop()
        expires_at = loop.time() + deadline if deadline is not None else None
        delay = poll_interval

        while True:
            summary = await self.get_receipt(tx_hash)
            if summary is not None:
                logger.info(
                    "Transaction %s mined in block %s (%s)",
                    summary.tx_hash, summary.block_number, summary.status.value,
                )
                return summary

            if expires_at is not None:
                remaining = expires_at - loop.time()
                if remaining <= 0:
                    raise ConfirmationTimeout(
                        f"no receipt for {tx_hash} after {deadline}s",
                        rpc_method="eth_getTransactionReceipt",
                    )
                sleep_for = min(delay, remaining)
            else:
                sleep_for = delay

            logger.debug("No receipt for %s yet; retrying in %.2fs", tx_hash, sleep_for)
            await asyncio.sleep(sleep_for)
            delay = min(delay * 2, max_interval)
