"""Pure assembly of unsigned transactions from call data and a fee quote."""

import logging
from typing import Optional

from ...engine.exceptions import InvalidFeeQuote
from .addresses import validate_address
from .schemas import FeeQuote, TxDescriptor

logger = logging.getLogger(__name__)


def build(to: Optional[str], data: str, value: int, quote: FeeQuote) -> TxDescriptor:
    """
    Assemble a ``TxDescriptor``.

    The nonce is left unresolved; the signer fills it in.

    Args:
        to: Target address, or None for contract creation.
        data: Call data (0x hex).
        value: Native value in wei.
        quote: Gas limit and fee pair.

    Raises:
        InvalidAddress: If ``to`` is malformed.
        InvalidFeeQuote: If the quote has ``max_fee_per_gas < max_priority_fee_per_gas``.
    """
    if quote.max_fee_per_gas < quote.max_priority_fee_per_gas:
        raise InvalidFeeQuote(
            f"maxFeePerGas ({quote.max_fee_per_gas}) is below "
            f"maxPriorityFeePerGas ({quote.max_priority_fee_per_gas})"
        )
    descriptor = TxDescriptor(
        to=validate_address(to) if to is not None else None,
        data=data,
        value=value,
        nonce=None,
        gas_limit=quote.gas_limit,
        max_fee_per_gas=quote.max_fee_per_gas,
        max_priority_fee_per_gas=quote.max_priority_fee_per_gas,
    )
    logger.debug("Built descriptor to=%s gas=%s", descriptor.to or "<create>", descriptor.gas_limit)
    return descriptor
