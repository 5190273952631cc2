"""
Gas estimation and EIP-1559 fee quoting.

The estimator never invents a gas limit: when the node cannot estimate a call
(usually because it would revert) the caller gets ``GasEstimationFailed`` with
the node's reason.

Fee quotes come from one of two places:
    - ``quote_fees``: the configured defaults (20 gwei max fee, 2 gwei tip),
      optionally re-priced with a caller-chosen tip
    - ``market_quote``: live ``eth_feeHistory`` data, ``maxFee = 2 * baseFee + tip``
"""

import logging
from typing import Any, Dict, Optional

from web3 import AsyncWeb3

from ...engine.exceptions import (
    FeeDataUnavailable,
    GasEstimationFailed,
    InputValidationError,
)
from .addresses import validate_address
from .constants import FeeSettings, GatewaySettings, format_gwei
from .rpc import rpc_call
from .schemas import FeeQuote

logger = logging.getLogger(__name__)

#: Reward percentile sampled from ``eth_feeHistory`` for the priority fee.
FEE_HISTORY_PERCENTILE: float = 25.0


class FeeEstimator:
    """
    Gas and fee estimation against one node.

    Attributes:
        w3: AsyncWeb3 client
        settings: Connection settings; ``settings.fees`` holds the fee policy
    """

    def __init__(self, w3: AsyncWeb3, settings: Optional[GatewaySettings] = None):
        self.w3 = w3
        self.settings = settings or GatewaySettings()

    @property
    def fees(self) -> FeeSettings:
        return self.settings.fees

    def _timeout(self, timeout: Optional[float]) -> float:
        return timeout if timeout is not None else self.settings.request_timeout

    async def estimate_gas(
        self,
        sender: str,
        to: Optional[str],
        data: str,
        value: int = 0,
        *,
        timeout: Optional[float] = None,
    ) -> int:
        """
        Estimate the gas a call would consume.

        Args:
            sender: Account the call is simulated from.
            to: Target address, or None for contract creation.
            data: Call data (0x hex).
            value: Native value in wei.
            timeout: Per-call timeout; defaults to ``settings.request_timeout``.

        Raises:
            InvalidAddress: If ``sender`` or ``to`` is malformed.
            GasEstimationFailed: If the node rejects the estimate.
            RpcConnectionError: If the node cannot be reached.
        """
        tx: Dict[str, Any] = {"from": validate_address(sender), "data": data, "value": value}
        if to is not None:
            tx["to"] = validate_address(to)

        estimated = await rpc_call(
            self.w3.eth.estimate_gas(tx),
            error_cls=GasEstimationFailed,
            rpc_method="eth_estimateGas",
            timeout=self._timeout(timeout),
        )
        logger.debug("Estimated %s gas for call to %s", estimated, to or "<create>")
        return int(estimated)

    def compute_gas_limit(self, estimated: int) -> int:
        """Add the safety margin to an estimate: ``estimated + estimated // 10``."""
        if estimated < 0:
            raise InputValidationError(f"Gas estimate cannot be negative: {estimated}")
        return estimated + estimated // self.fees.gas_margin_divisor

    def default_quote(self, gas_limit: int = 0) -> FeeQuote:
        return FeeQuote(
            gas_limit=gas_limit,
            max_fee_per_gas=self.fees.default_max_fee_wei,
            max_priority_fee_per_gas=self.fees.default_priority_fee_wei,
        )

    def quote_fees(
        self,
        tip: Optional[int] = None,
        *,
        gas_limit: int = 0,
        previous: Optional[FeeQuote] = None,
    ) -> FeeQuote:
        """
        Produce a fee quote.

        Without a tip this is ``previous`` when given, else the configured
        defaults. With a tip (in wei) the base quote is re-priced so the margin
        above the tip is preserved (see ``override_tip``).

        Example:
            estimator.quote_fees()                           # 20 gwei / 2 gwei
            estimator.quote_fees(5 * GWEI, previous=q20_2)   # 23 gwei / 5 gwei
        """
        base = previous if previous is not None else self.default_quote(gas_limit)
        if tip is None:
            return base
        return self.override_tip(base, tip)

    @staticmethod
    def override_tip(quote: FeeQuote, tip: int) -> FeeQuote:
        """
        Re-price a quote with a new priority fee.

        ``new_max = old_max + tip - old_tip``. The old quote is left untouched.

        Raises:
            InputValidationError: If the tip is negative.
        """
        if tip < 0:
            raise InputValidationError(f"Priority fee cannot be negative: {tip}")
        new_max = quote.max_fee_per_gas + tip - quote.max_priority_fee_per_gas
        logger.info(
            "Priority fee override: %s -> %s gwei (max fee %s -> %s gwei)",
            format_gwei(quote.max_priority_fee_per_gas),
            format_gwei(tip),
            format_gwei(quote.max_fee_per_gas),
            format_gwei(new_max),
        )
        return FeeQuote(
            gas_limit=quote.gas_limit,
            max_fee_per_gas=new_max,
            max_priority_fee_per_gas=tip,
        )

    async def market_quote(self, gas_limit: int, *, timeout: Optional[float] = None) -> FeeQuote:
        """
        Quote fees from live fee-market data.

        Reads the latest base fee and the 25th percentile reward from
        ``eth_feeHistory(1, "latest", [25])``; when the node returns no reward
        sample, falls back to ``eth_maxPriorityFeePerGas``.

        Raises:
            FeeDataUnavailable: If the node does not expose EIP-1559 data.
            RpcConnectionError: If the node cannot be reached.
        """
        history = await rpc_call(
            self.w3.eth.fee_history(1, "latest", [FEE_HISTORY_PERCENTILE]),
            error_cls=FeeDataUnavailable,
            rpc_method="eth_feeHistory",
            timeout=self._timeout(timeout),
        )
        base_fees = history.get("baseFeePerGas") or []
        if not base_fees:
            raise FeeDataUnavailable("node returned no baseFeePerGas", rpc_method="eth_feeHistory")
        base_fee = int(base_fees[-1])

        rewards = history.get("reward") or []
        if rewards and rewards[0]:
            tip = int(rewards[0][0])
        else:
            tip = int(await rpc_call(
                self.w3.eth.max_priority_fee,
                error_cls=FeeDataUnavailable,
                rpc_method="eth_maxPriorityFeePerGas",
                timeout=self._timeout(timeout),
            ))

        quote = FeeQuote(
            gas_limit=gas_limit,
            max_fee_per_gas=base_fee * 2 + tip,
            max_priority_fee_per_gas=tip,
        )
        logger.debug(
            "Market quote: base fee %s gwei, tip %s gwei, max fee %s gwei",
            format_gwei(base_fee), format_gwei(tip), format_gwei(quote.max_fee_per_gas),
        )
        return quote
