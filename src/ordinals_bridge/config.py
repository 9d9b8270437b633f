#!/usr/bin/env python3
"""Configuration management for the Ordinals bridge services.

This module provides type-safe configuration dataclasses with validation
for the frontend API, the bridge listener and the event indexer.
Configuration is loaded from environment variables with sensible defaults
where appropriate.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from web3 import Web3

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_ESPLORA_API_URL = "https://blockstream.info/api"
DEFAULT_HIRO_API_BASE = "https://api.hiro.so/ordinals/v1"
DEFAULT_BRIDGE_BTC_ADDRESS = "bc1pmgv3st9cr2lk8mthty73lct3dkntec2p60s587keeaafm8la6u6qv9nrnk"


def _validate_http_url(url: str, name: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError(
            f"Invalid {name} scheme: {parsed.scheme or '<none>'}. Expected http or https"
        )


def _checksum(address: str, name: str) -> str:
    if not Web3.is_address(address):
        raise ValueError(f"Invalid {name}: {address}")
    return Web3.to_checksum_address(address)


def _mask(secret: str | None) -> str:
    return "[SET]" if secret else "[NOT SET]"


@dataclass(frozen=True, slots=True)
class BitcoinConfig:
    """Configuration for the Bitcoin side of the bridge.

    Attributes:
        esplora_api_url: Block-explorer API used for confirmation polling
        hiro_api_base: Hiro ordinals API used for inscription lookups
        bridge_btc_address: Address that receives ordinals to be bridged
        required_confirmations: Confirmations needed before a proof is produced
        polling_interval: Seconds between confirmation checks
    """

    esplora_api_url: str = DEFAULT_ESPLORA_API_URL
    hiro_api_base: str = DEFAULT_HIRO_API_BASE
    bridge_btc_address: str = DEFAULT_BRIDGE_BTC_ADDRESS
    required_confirmations: int = 6
    polling_interval: int = 60

    def __post_init__(self) -> None:
        """Validate Bitcoin configuration."""
        _validate_http_url(self.esplora_api_url, "ESPLORA_API_URL")
        _validate_http_url(self.hiro_api_base, "HIRO_API_BASE")

        if not self.bridge_btc_address:
            raise ValueError("Bridge BTC address is required (BRIDGE_BTC_ADDRESS)")
        if self.required_confirmations <= 0:
            raise ValueError(
                f"Required confirmations must be positive, got {self.required_confirmations}"
            )
        if self.polling_interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {self.polling_interval}")

        # Trailing slashes would produce '//' in request paths
        object.__setattr__(self, 'esplora_api_url', self.esplora_api_url.rstrip('/'))
        object.__setattr__(self, 'hiro_api_base', self.hiro_api_base.rstrip('/'))

    @classmethod
    def from_env(cls) -> "BitcoinConfig":
        return cls(
            esplora_api_url=os.environ.get("ESPLORA_API_URL", DEFAULT_ESPLORA_API_URL),
            hiro_api_base=os.environ.get("HIRO_API_BASE", DEFAULT_HIRO_API_BASE),
            bridge_btc_address=os.environ.get("BRIDGE_BTC_ADDRESS", DEFAULT_BRIDGE_BTC_ADDRESS),
            required_confirmations=int(os.environ.get("REQUIRED_CONFIRMATIONS", "6")),
            polling_interval=int(os.environ.get("CONFIRMATION_POLL_INTERVAL", "60")),
        )


@dataclass(frozen=True, slots=True)
class EvmConfig:
    """Configuration for the EVM chain hosting the Bridge and Marketplace.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
        bridge_address: Checksummed Bridge contract address
        marketplace_address: Checksummed Marketplace contract address (optional)
        private_key: Bridge service key used to sign mint transactions (optional)
    """

    rpc_url: str
    bridge_address: str
    marketplace_address: str | None = None
    private_key: str | None = None

    def __post_init__(self) -> None:
        """Validate EVM configuration."""
        if not self.rpc_url:
            raise ValueError("RPC URL is required (RPC_URL)")

        parsed = urlparse(self.rpc_url)
        if parsed.scheme not in ('http', 'https'):
            raise ValueError(
                f"Invalid RPC URL scheme: {parsed.scheme}. "
                "Expected http or https"
            )

        if not self.bridge_address:
            raise ValueError("Bridge contract address is required (BRIDGE_CONTRACT_ADDRESS)")
        object.__setattr__(
            self, 'bridge_address', _checksum(self.bridge_address, "bridge contract address")
        )

        if self.marketplace_address:
            object.__setattr__(
                self,
                'marketplace_address',
                _checksum(self.marketplace_address, "marketplace contract address"),
            )

        if self.private_key:
            key = self.private_key.removeprefix('0x')
            if len(key) != 64:
                raise ValueError(
                    f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
                )
            try:
                int(key, 16)
            except ValueError:
                raise ValueError("Invalid private key format. Must be hexadecimal") from None

    @classmethod
    def from_env(cls) -> "EvmConfig":
        rpc_url = os.environ.get("RPC_URL", "")
        if not rpc_url:
            raise ValueError(
                "RPC_URL environment variable is required. "
                "Example: https://rpc.coredao.org"
            )

        bridge_address = os.environ.get("BRIDGE_CONTRACT_ADDRESS", "")
        if not bridge_address:
            raise ValueError(
                "BRIDGE_CONTRACT_ADDRESS environment variable is required. "
                "This is the address of the deployed Bridge contract"
            )

        return cls(
            rpc_url=rpc_url,
            bridge_address=bridge_address,
            marketplace_address=os.environ.get("MARKETPLACE_CONTRACT_ADDRESS") or None,
            private_key=os.environ.get("PRIVATE_KEY") or None,
        )


@dataclass(frozen=True, slots=True)
class ApiConfig:
    """Configuration for the frontend-facing HTTP API."""

    bridge_listener_url: str
    bridge_service_url: str | None = None
    state_file: Path = Path("data/bridge-state.json")
    host: str = "0.0.0.0"
    port: int = 3000
    frontend_url: str = "http://localhost:3000"
    bitcoin: BitcoinConfig = field(default_factory=BitcoinConfig)
    graph_endpoint: str | None = None

    def __post_init__(self) -> None:
        """Validate API configuration."""
        if not self.bridge_listener_url:
            raise ValueError("Bridge listener URL is required (BRIDGE_LISTENER_URL)")
        _validate_http_url(self.bridge_listener_url, "BRIDGE_LISTENER_URL")
        object.__setattr__(self, 'bridge_listener_url', self.bridge_listener_url.rstrip('/'))

        # BRIDGE_SERVICE_URL is checked per request; a bad value is reported to the caller
        if not 0 < self.port < 65536:
            raise ValueError(f"Port out of range: {self.port}")

    @classmethod
    def from_env(cls) -> "ApiConfig":
        return cls(
            bridge_listener_url=os.environ.get("BRIDGE_LISTENER_URL", "http://localhost:3001"),
            bridge_service_url=os.environ.get("BRIDGE_SERVICE_URL") or None,
            state_file=Path(os.environ.get("STATE_FILE", "data/bridge-state.json")),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3000")),
            frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
            bitcoin=BitcoinConfig.from_env(),
            graph_endpoint=os.environ.get("GRAPH_ENDPOINT") or None,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("Bridge API Configuration")
        logger.info("=" * 60)
        logger.info(f"  Listener URL: {self.bridge_listener_url}")
        logger.info(f"  Bridge Service URL: {self.bridge_service_url or '[NOT SET]'}")
        logger.info(f"  State File: {self.state_file}")
        logger.info(f"  Bind: {self.host}:{self.port}")
        logger.info(f"  CORS Origin: {self.frontend_url}")
        logger.info(f"  Graph Endpoint: {self.graph_endpoint or '[NOT SET]'}")
        logger.info(f"  Esplora API: {self.bitcoin.esplora_api_url}")
        logger.info(f"  Required Confirmations: {self.bitcoin.required_confirmations}")
        logger.info("=" * 60)


@dataclass(frozen=True, slots=True)
class ListenerConfig:
    """Configuration for the off-chain bridge listener service."""

    evm: EvmConfig
    bitcoin: BitcoinConfig = field(default_factory=BitcoinConfig)
    data_dir: Path = Path("data")
    monitor_interval: int = 60  # seconds between pending request sweeps
    max_retries: int = 5
    mint_gas_limit: int = 500_000
    host: str = "0.0.0.0"
    port: int = 3001
    frontend_url: str = "http://localhost:3000"

    def __post_init__(self) -> None:
        """Validate listener configuration."""
        if not self.evm.private_key:
            raise ValueError(
                "PRIVATE_KEY environment variable is required. "
                "It must belong to the bridge service account of the Bridge contract"
            )
        if self.monitor_interval <= 0:
            raise ValueError(f"Monitor interval must be positive, got {self.monitor_interval}")
        if self.max_retries <= 0:
            raise ValueError(f"Max retries must be positive, got {self.max_retries}")

    @classmethod
    def from_env(cls) -> "ListenerConfig":
        return cls(
            evm=EvmConfig.from_env(),
            bitcoin=BitcoinConfig.from_env(),
            data_dir=Path(os.environ.get("DATA_DIR", "data")),
            monitor_interval=int(os.environ.get("MONITOR_INTERVAL", "60")),
            max_retries=int(os.environ.get("MAX_RETRIES", "5")),
            mint_gas_limit=int(os.environ.get("MINT_GAS_LIMIT", "500000")),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "3001")),
            frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
        )

    def log_config(self) -> None:
        """Log configuration settings (hiding sensitive data)."""
        logger.info("=" * 60)
        logger.info("Bridge Listener Configuration")
        logger.info("=" * 60)
        logger.info("EVM Chain:")
        logger.info(f"  RPC URL: {self.evm.rpc_url}")
        logger.info(f"  Bridge: {self.evm.bridge_address}")
        logger.info(f"  Private Key: {_mask(self.evm.private_key)}")
        logger.info("Bitcoin:")
        logger.info(f"  Hiro API: {self.bitcoin.hiro_api_base}")
        logger.info(f"  Bridge BTC Address: {self.bitcoin.bridge_btc_address}")
        logger.info("Monitoring Settings:")
        logger.info(f"  Data Dir: {self.data_dir}")
        logger.info(f"  Monitor Interval: {self.monitor_interval}s")
        logger.info(f"  Max Retries: {self.max_retries}")
        logger.info("=" * 60)


@dataclass(frozen=True, slots=True)
class IndexerConfig:
    """Configuration for the Bridge/Marketplace event indexer."""

    evm: EvmConfig
    database_url: str = "sqlite:///data/indexer.db"
    start_block: int = 0
    finality_confirmations: int = 10
    batch_size: int = 1000
    polling_interval: int = 12

    def __post_init__(self) -> None:
        """Validate indexer configuration."""
        if not self.evm.marketplace_address:
            raise ValueError(
                "MARKETPLACE_CONTRACT_ADDRESS environment variable is required for the indexer"
            )
        if self.start_block < 0:
            raise ValueError(f"Start block must be non-negative, got {self.start_block}")
        if self.finality_confirmations < 0:
            raise ValueError(
                f"Finality confirmations must be non-negative, got {self.finality_confirmations}"
            )
        if self.batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {self.batch_size}")
        if not 0 < self.polling_interval <= 300:
            raise ValueError(
                f"Polling interval must be between 1 and 300s, got {self.polling_interval}"
            )

    @classmethod
    def from_env(cls) -> "IndexerConfig":
        return cls(
            evm=EvmConfig.from_env(),
            database_url=os.environ.get("DATABASE_URL", "sqlite:///data/indexer.db"),
            start_block=int(os.environ.get("START_BLOCK", "0")),
            finality_confirmations=int(os.environ.get("FINALITY_CONFIRMATIONS", "10")),
            batch_size=int(os.environ.get("BATCH_SIZE", "1000")),
            polling_interval=int(os.environ.get("POLLING_INTERVAL", "12")),
        )

    def log_config(self) -> None:
        logger.info("=" * 60)
        logger.info("Event Indexer Configuration")
        logger.info("=" * 60)
        logger.info(f"  RPC URL: {self.evm.rpc_url}")
        logger.info(f"  Bridge: {self.evm.bridge_address}")
        logger.info(f"  Marketplace: {self.evm.marketplace_address}")
        logger.info(f"  Database: {self.database_url}")
        logger.info(f"  Start Block: {self.start_block}")
        logger.info(f"  Finality Confirmations: {self.finality_confirmations}")
        logger.info(f"  Batch Size: {self.batch_size}")
        logger.info(f"  Polling Interval: {self.polling_interval}s")
        logger.info("=" * 60)
