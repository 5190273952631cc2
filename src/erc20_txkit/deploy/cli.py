"""
Command-line entry point: ``erc20-txkit-deploy``.

Deploys a compiled contract artifact (Hardhat-style JSON with ``abi`` and
``bytecode``) with an interactive fee review and confirmation.

Example:
    erc20-txkit-deploy --artifact artifacts/contracts/Token.sol/Token.json \\
        --arg 1000000000000 --chain sepolia
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ..adapters.evm.adapter import EVMAdapter
from ..adapters.evm.constants import GatewaySettings, SigningConfig, supported_chains, to_gwei_wei
from ..adapters.evm.encoders import encode_deployment
from ..engine.events import DeployState
from ..engine.exceptions import TxKitError
from .decisions import AutoApprove, DecisionSource, PromptDecisionSource
from .flows import InteractiveDeployFlow

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erc20-txkit-deploy",
        description="Deploy a compiled contract with fee review and confirmation.",
    )
    parser.add_argument("--artifact", required=True, type=Path,
                        help="Compiled artifact JSON containing 'abi' and 'bytecode'")
    parser.add_argument("--arg", dest="args", action="append", default=[],
                        help="Constructor argument (repeat in declaration order)")
    parser.add_argument("--rpc-url", help="JSON-RPC endpoint (default: RPC_URL or http://127.0.0.1:8545)")
    parser.add_argument("--chain", help=f"Chain name or id; known names: {', '.join(supported_chains())}")
    parser.add_argument("--yes", action="store_true", help="Accept the recommended fees without prompting")
    parser.add_argument("--tip", help="Tip in gwei; requires --yes")
    parser.add_argument("--poll-interval", type=float, default=1.0,
                        help="Initial receipt polling interval in seconds")
    parser.add_argument("--deadline", type=float, default=None,
                        help="Give up waiting for the receipt after this many seconds")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def load_artifact(path: Path) -> Dict[str, Any]:
    """
    Read a compiled artifact.

    Raises:
        ValueError: If the file is not JSON or lacks ``bytecode``.
    """
    artifact = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(artifact, dict) or not artifact.get("bytecode"):
        raise ValueError(f"{path} has no 'bytecode' entry")
    bytecode = artifact["bytecode"]
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object", "")
    return {"abi": artifact.get("abi", []), "bytecode": bytecode}


def _settings_from_args(args: argparse.Namespace) -> GatewaySettings:
    settings = GatewaySettings.from_env()
    update: Dict[str, Any] = {}
    if args.rpc_url:
        update["rpc_url"] = args.rpc_url
    if args.chain:
        update["chain_name"] = args.chain
    return settings.model_copy(update=update) if update else settings


def _decisions_from_args(args: argparse.Namespace) -> DecisionSource:
    if args.yes:
        return AutoApprove(tip=to_gwei_wei(args.tip) if args.tip else None)
    return PromptDecisionSource()


async def deploy(args: argparse.Namespace, artifact: Dict[str, Any]) -> int:
    data = encode_deployment(artifact["bytecode"], artifact["abi"], args.args)

    settings = _settings_from_args(args)
    adapter = EVMAdapter(settings, SigningConfig.from_env(settings.chain_name))
    flow = InteractiveDeployFlow.from_adapter(
        adapter,
        _decisions_from_args(args),
        poll_interval=args.poll_interval,
        confirmation_deadline=args.deadline,
    )
    final = await flow.run(data)
    logger.info("Deploy flow finished in state %s", final.state.value)
    return 0 if final.state in (DeployState.REPORTED, DeployState.ABORTED) else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.tip is not None and not args.yes:
        parser.error("--tip requires --yes; without it the tip is asked interactively")
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        artifact = load_artifact(args.artifact)
    except (OSError, ValueError) as exc:
        print(f"Cannot read artifact: {exc}", file=sys.stderr)
        return 2
    try:
        return asyncio.run(deploy(args, artifact))
    except TxKitError as exc:
        print(f"Deployment failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
