#!/usr/bin/env python3

import argparse
import asyncio
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv
from web3 import Web3

from ordinals_bridge.api import create_app
from ordinals_bridge.config import ApiConfig, IndexerConfig, ListenerConfig
from ordinals_bridge.indexer import EventIndexer, create_session_factory
from ordinals_bridge.listener_api import create_listener_app

logger = logging.getLogger(__name__)

REQUIRED_VARIABLES = {
    "api": [
        "  - BRIDGE_LISTENER_URL: Bridge listener API (default http://localhost:3001)",
        "  - BRIDGE_SERVICE_URL: HTLC bridge service (optional)",
        "  - ESPLORA_API_URL: Bitcoin block explorer API (optional)",
    ],
    "listener": [
        "  - RPC_URL: EVM chain RPC endpoint",
        "  - PRIVATE_KEY: Bridge service account key",
        "  - BRIDGE_CONTRACT_ADDRESS: Bridge contract address",
    ],
    "indexer": [
        "  - RPC_URL: EVM chain RPC endpoint",
        "  - BRIDGE_CONTRACT_ADDRESS: Bridge contract address",
        "  - MARKETPLACE_CONTRACT_ADDRESS: Marketplace contract address",
        "  - DATABASE_URL: SQLAlchemy database URL (optional)",
    ],
}


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def run_api() -> None:
    config = ApiConfig.from_env()
    config.log_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


def run_listener() -> None:
    config = ListenerConfig.from_env()
    config.log_config()
    uvicorn.run(create_listener_app(config), host=config.host, port=config.port)


async def run_indexer() -> None:
    config = IndexerConfig.from_env()
    config.log_config()

    indexer = EventIndexer(
        w3=Web3(Web3.HTTPProvider(config.evm.rpc_url)),
        session_factory=create_session_factory(config.database_url),
        bridge_address=config.evm.bridge_address,
        marketplace_address=config.evm.marketplace_address,
        start_block=config.start_block,
        finality_confirmations=config.finality_confirmations,
        batch_size=config.batch_size,
    )
    try:
        await indexer.start_polling(interval=config.polling_interval)
    finally:
        await indexer.stop()


def main() -> None:
    """Main entry point for the Ordinals bridge services."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Ordinals Bridge")
    parser.add_argument(
        "command",
        choices=["api", "listener", "indexer"],
        help="Service to run"
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Logging level (default: LOG_LEVEL or INFO)"
    )
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger.info(f"Starting {args.command} service")

    try:
        match args.command:
            case "api":
                run_api()
            case "listener":
                run_listener()
            case "indexer":
                asyncio.run(run_indexer())
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Required environment variables:")
        for line in REQUIRED_VARIABLES[args.command]:
            logger.error(line)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
