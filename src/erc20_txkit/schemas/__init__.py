from .bases import CanonicalModel, TransactionStatus, TokenInfo

__all__ = [
    "CanonicalModel",
    "TransactionStatus",
    "TokenInfo",
]
