"""
Exception and Error Definitions Module

Defines the exception hierarchy for address/amount validation, configuration,
signing, and blockchain interactions. All exceptions inherit from TxKitError
so callers can catch every classified pipeline failure in one place.

Exception Hierarchy:
    TxKitError (root)
    ├── InputValidationError
    │   ├── InvalidAddress
    │   ├── AmountOutOfRange
    │   └── InvalidHexValue
    ├── ConfigurationError
    │   ├── MissingSigningKey
    │   └── ChainNotConfigured
    ├── SigningFailed
    ├── InvalidFeeQuote
    ├── InvalidTransition
    └── BlockchainInteractionError
        ├── RpcConnectionError
        ├── ContractCallFailed
        ├── GasEstimationFailed
        ├── FeeDataUnavailable
        ├── BroadcastRejected
        ├── ReceiptLookupFailed
        └── ConfirmationTimeout
"""

from typing import Optional


class TxKitError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Every pipeline entry point either returns a fully typed result or raises
    exactly one subclass of this error.
    """
    pass


class InputValidationError(TxKitError):
    """
    Raised when externally supplied input is malformed.

    Validation errors are detected before any network call is made, so
    raising one never leaves side effects behind.
    """
    pass


class InvalidAddress(InputValidationError):
    """
    Raised when a string is not a well-formed 20-byte hex address.

    This includes scenarios such as:
    - Wrong length or non-hex characters
    - Mixed-case input whose EIP-55 checksum does not match

    Attributes:
        value: The rejected input
    """

    def __init__(self, value: object, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"Invalid address: {value!r}")


class AmountOutOfRange(InputValidationError):
    """
    Raised when an amount cannot be represented as an unsigned 256-bit integer.

    Attributes:
        value: The rejected amount
    """

    def __init__(self, value: object, message: Optional[str] = None):
        self.value = value
        super().__init__(message or f"Amount out of uint256 range: {value!r}")


class InvalidHexValue(InputValidationError):
    """Raised when a hex-encoded hash or signed transaction is malformed."""
    pass


class ConfigurationError(TxKitError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing signing key
    - Unknown or unset chain identifier
    - Unsupported network name
    """
    pass


class MissingSigningKey(ConfigurationError):
    """Raised when a signing operation is requested but no private key is configured."""
    pass


class ChainNotConfigured(ConfigurationError):
    """
    Raised when the signing chain identifier is unset or not a known chain.

    Attributes:
        chain: The chain id or name that could not be resolved
    """

    def __init__(self, chain: object, message: Optional[str] = None):
        self.chain = chain
        super().__init__(message or f"Chain is not configured: {chain!r}")


class SigningFailed(TxKitError):
    """
    Raised when the lower-level cryptographic signing step fails.

    The message never includes key material.
    """
    pass


class InvalidFeeQuote(TxKitError):
    """
    Raised when a fee quote violates maxFeePerGas >= maxPriorityFeePerGas.

    This is a programming-invariant violation rather than a user-facing
    error: fee quotes produced by the estimator always satisfy it.
    """
    pass


class InvalidTransition(TxKitError):
    """
    Raised when the deployment state machine receives an event that is not
    valid for its current state.

    Attributes:
        current_state: State the flow was in
        next_state: State the handler tried to move to
    """

    def __init__(self, current_state: object, next_state: object):
        self.current_state = current_state
        self.next_state = next_state
        super().__init__(f"Invalid transition: {current_state} -> {next_state}")


class BlockchainInteractionError(TxKitError):
    """
    Raised when blockchain interaction (RPC call) fails.

    Distinguishes "the call could not be made" (``rejected=False``) from
    "the network rejected the call" (``rejected=True``). For rejections the
    node's message is preserved in ``reason``.

    Attributes:
        reason: Error reason from the node or transport
        rejected: True when the node answered with an error
        rpc_method: RPC method that was called (e.g., 'eth_estimateGas')
    """

    default_rejected = True

    def __init__(
        self,
        reason: str,
        *,
        rejected: Optional[bool] = None,
        rpc_method: Optional[str] = None,
    ):
        self.reason = reason
        self.rejected = self.default_rejected if rejected is None else rejected
        self.rpc_method = rpc_method
        prefix = f"{rpc_method}: " if rpc_method else ""
        super().__init__(f"{prefix}{reason}")


class RpcConnectionError(BlockchainInteractionError):
    """Raised when the RPC endpoint could not be reached or did not answer in time."""

    default_rejected = False


class ContractCallFailed(BlockchainInteractionError):
    """Raised when a read-only contract call (name, balanceOf, ...) is rejected."""
    pass


class GasEstimationFailed(BlockchainInteractionError):
    """
    Raised when the node cannot estimate gas, typically because the call
    would revert. No default gas limit is ever substituted.
    """
    pass


class FeeDataUnavailable(BlockchainInteractionError):
    """Raised when the node does not provide EIP-1559 fee-market data."""
    pass


class BroadcastRejected(BlockchainInteractionError):
    """
    Raised when the node rejects a signed transaction.

    This includes scenarios such as:
    - Transaction underpriced
    - Nonce too low
    - Malformed or wrongly signed payload
    """
    pass


class ReceiptLookupFailed(BlockchainInteractionError):
    """
    Raised when a receipt query fails for any reason other than "not found".

    A missing receipt is the ``pending`` status, never this error.
    """
    pass


class ConfirmationTimeout(BlockchainInteractionError):
    """Raised when a caller-side receipt wait passes its deadline."""

    default_rejected = False
