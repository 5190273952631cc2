from .bases import TokenGateway
from .evm import (
    EVMAdapter,
    FeeEstimator,
    Signer,
    NonceSequencer,
    Broadcaster,
    StatusTracker,
    GatewaySettings,
    SigningConfig,
)

__all__ = [
    "TokenGateway",
    "EVMAdapter",
    "FeeEstimator",
    "Signer",
    "NonceSequencer",
    "Broadcaster",
    "StatusTracker",
    "GatewaySettings",
    "SigningConfig",
]
