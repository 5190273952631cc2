"""
JSON-RPC call wrapper.

Every network awaitable in the pipeline goes through ``rpc_call``, which bounds
it with a timeout and maps failures onto the error hierarchy:

    - timeout, refused or reset connections -> RpcConnectionError(rejected=False)
    - any other failure (node error response, revert, ...) -> the
      operation-specific error passed by the caller, with the node's message
      preserved in ``reason``
"""

import asyncio
import logging
from typing import Awaitable, Optional, Tuple, Type, TypeVar

from ...engine.exceptions import (
    BlockchainInteractionError,
    RpcConnectionError,
    TxKitError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONNECTIVITY_ERRORS: Tuple[Type[BaseException], ...] = (
    asyncio.TimeoutError,
    ConnectionError,
    OSError,
)


def extract_reason(exc: BaseException) -> str:
    """
    Pull the human-readable reason out of a web3/provider exception.

    web3.py surfaces node errors either as an exception whose first argument is
    the JSON-RPC error object (``{"code": ..., "message": ...}``) or as an
    exception with a ``message`` attribute.
    """
    if exc.args and isinstance(exc.args[0], dict):
        error = exc.args[0]
        message = error.get("message")
        if message:
            return str(message)
        return str(error)
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    text = str(exc)
    return text if text else type(exc).__name__


async def rpc_call(
    awaitable: Awaitable[T],
    *,
    error_cls: Type[BlockchainInteractionError],
    rpc_method: str,
    timeout: Optional[float],
    passthrough: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Await a network call with a timeout and classify its failure.

    Args:
        awaitable: Coroutine performing the RPC call.
        error_cls: Error raised when the node rejects the call.
        rpc_method: JSON-RPC method name, used in messages and logs.
        timeout: Seconds before the call is abandoned; None waits forever.
        passthrough: Exception types re-raised untouched (for example
            ``TransactionNotFound`` for receipt lookups).

    Raises:
        RpcConnectionError: If the call could not be made or timed out.
        error_cls: If the node answered with an error.
    """
    logger.debug("RPC %s (timeout=%s)", rpc_method, timeout)
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except passthrough:
        raise
    except TxKitError:
        raise
    except asyncio.TimeoutError:
        logger.warning("RPC %s timed out after %ss", rpc_method, timeout)
        raise RpcConnectionError(f"timed out after {timeout}s", rpc_method=rpc_method)
    except _CONNECTIVITY_ERRORS as exc:
        logger.warning("RPC %s could not reach the node: %s", rpc_method, exc)
        raise RpcConnectionError(extract_reason(exc), rpc_method=rpc_method) from exc
    except Exception as exc:
        reason = extract_reason(exc)
        logger.warning("RPC %s rejected: %s", rpc_method, reason)
        raise error_cls(reason, rejected=True, rpc_method=rpc_method) from exc
