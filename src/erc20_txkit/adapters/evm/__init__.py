from .adapter import EVMAdapter
from .addresses import validate_address, is_valid_address, normalize_hex, normalize_tx_hash
from .broadcaster import Broadcaster
from .builder import build
from .constants import (
    EvmChainConfig,
    FeeSettings,
    GatewaySettings,
    SigningConfig,
    get_chain_config,
    supported_chains,
    parse_amount,
    to_gwei_wei,
    format_gwei,
    format_ether,
)
from .encoders import (
    encode_transfer,
    encode_approve,
    encode_transfer_from,
    encode_read_call,
    encode_intent,
    encode_deployment,
)
from .fees import FeeEstimator
from .schemas import (
    FeeQuote,
    TxDescriptor,
    SignedTransaction,
    ReceiptSummary,
    TransferIntent,
    ApproveIntent,
    TransferFromIntent,
    ContractCallIntent,
    TxIntent,
    DeployPlan,
    DeployReport,
)
from .signatures import Signer, NonceSequencer
from .tracker import StatusTracker

__all__ = [
    "EVMAdapter",
    "validate_address",
    "is_valid_address",
    "normalize_hex",
    "normalize_tx_hash",
    "Broadcaster",
    "build",
    "EvmChainConfig",
    "FeeSettings",
    "GatewaySettings",
    "SigningConfig",
    "get_chain_config",
    "supported_chains",
    "parse_amount",
    "to_gwei_wei",
    "format_gwei",
    "format_ether",
    "encode_transfer",
    "encode_approve",
    "encode_transfer_from",
    "encode_read_call",
    "encode_intent",
    "encode_deployment",
    "FeeEstimator",
    "FeeQuote",
    "TxDescriptor",
    "SignedTransaction",
    "ReceiptSummary",
    "TransferIntent",
    "ApproveIntent",
    "TransferFromIntent",
    "ContractCallIntent",
    "TxIntent",
    "DeployPlan",
    "DeployReport",
    "Signer",
    "NonceSequencer",
    "StatusTracker",
]
