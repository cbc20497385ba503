"""
Contract Deployer - Main Entry Point
Deploys a compiled contract bundle and reports its finalized address
"""

import asyncio
import json
import sys
from typing import Optional

from loguru import logger

from blockchain.connection import JsonRpcConnection
from deployer.artifacts import load_artifact
from deployer.deployment_engine import ContractDeployer
from deployer.exceptions import DeploymentError
from deployer.types import DeploymentResult
from deployer.wallet_manager import load_credential
from utils.config import load_config
from utils.gas_calculator import GasCalculator


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Replace loguru's default sink with the deployer's formats"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=level
    )
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}",
            level="DEBUG"
        )


async def run(config_path: Optional[str] = None) -> DeploymentResult:
    """Load configuration, deploy once, and return the result"""
    config = load_config(config_path)
    setup_logging(config.log_level, config.log_file)

    if not config.artifact_path:
        raise DeploymentError("No artifact configured: set artifact_path or DEPLOYER_ARTIFACT")

    artifact = load_artifact(config.artifact_path)
    credential = load_credential()

    logger.info("=" * 70)
    logger.info(f"🚀 Deploying {artifact.name or config.artifact_path} to {config.ws_url}")
    logger.info("=" * 70)

    async with JsonRpcConnection(config.ws_url, request_timeout=config.request_timeout) as connection:
        deployer = ContractDeployer(
            connection,
            credential,
            limits=config.limits,
            gas_calculator=GasCalculator(max_fee_gwei=config.max_fee_gwei)
        )
        return await deployer.deploy_with_timeout(
            artifact,
            config.constructor_args,
            constructor=config.constructor,
            timeout=config.timeout_seconds
        )


def main(argv=None) -> int:
    """Command-line entry point; optional first argument is the config path"""
    argv = sys.argv[1:] if argv is None else argv
    config_path = argv[0] if argv else None

    try:
        result = asyncio.run(run(config_path))
    except DeploymentError as e:
        logger.error(f"Cannot start deployment: {e}")
        return 2
    except KeyboardInterrupt:
        # Stop observing only; a broadcast transaction may still land
        logger.warning("Interrupted by user")
        return 130

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
