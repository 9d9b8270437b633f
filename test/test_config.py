#!/usr/bin/env python3
"""Tests for the configuration module."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from ordinals_bridge.config import (
    DEFAULT_BRIDGE_BTC_ADDRESS,
    ApiConfig,
    BitcoinConfig,
    EvmConfig,
    IndexerConfig,
    ListenerConfig,
)

BRIDGE_ADDRESS = "0x85BfE05492aFC3D04Ff3B2ca6771ACF6f853d90d"
MARKETPLACE_ADDRESS = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
PRIVATE_KEY = "0x" + "1" * 64


class TestBitcoinConfig:
    """Tests for BitcoinConfig."""

    def test_defaults(self):
        config = BitcoinConfig()

        assert config.esplora_api_url == "https://blockstream.info/api"
        assert config.hiro_api_base == "https://api.hiro.so/ordinals/v1"
        assert config.bridge_btc_address == DEFAULT_BRIDGE_BTC_ADDRESS
        assert config.required_confirmations == 6
        assert config.polling_interval == 60

    def test_trailing_slash_removed(self):
        config = BitcoinConfig(esplora_api_url="https://mempool.space/api/")
        assert config.esplora_api_url == "https://mempool.space/api"

    def test_invalid_scheme(self):
        with pytest.raises(ValueError, match="Invalid ESPLORA_API_URL scheme"):
            BitcoinConfig(esplora_api_url="ftp://blockstream.info/api")

    def test_non_positive_confirmations(self):
        with pytest.raises(ValueError, match="Required confirmations must be positive"):
            BitcoinConfig(required_confirmations=0)


class TestEvmConfig:
    """Tests for EvmConfig."""

    def test_checksum_address_conversion(self):
        config = EvmConfig(
            rpc_url="https://rpc.coredao.org",
            bridge_address=BRIDGE_ADDRESS.lower(),
            marketplace_address=MARKETPLACE_ADDRESS.lower(),
        )

        assert config.bridge_address == BRIDGE_ADDRESS
        assert config.marketplace_address == MARKETPLACE_ADDRESS

    def test_invalid_rpc_url_scheme(self):
        with pytest.raises(ValueError, match="Invalid RPC URL scheme"):
            EvmConfig(rpc_url="ws://localhost:8546", bridge_address=BRIDGE_ADDRESS)

    def test_invalid_bridge_address(self):
        with pytest.raises(ValueError, match="Invalid bridge contract address"):
            EvmConfig(rpc_url="https://rpc.coredao.org", bridge_address="0x1234")

    def test_invalid_private_key_length(self):
        with pytest.raises(ValueError, match="Invalid private key length"):
            EvmConfig(
                rpc_url="https://rpc.coredao.org",
                bridge_address=BRIDGE_ADDRESS,
                private_key="0x1234",
            )

    def test_invalid_private_key_format(self):
        with pytest.raises(ValueError, match="Must be hexadecimal"):
            EvmConfig(
                rpc_url="https://rpc.coredao.org",
                bridge_address=BRIDGE_ADDRESS,
                private_key="z" * 64,
            )

    def test_from_env_missing_rpc_url(self):
        with patch.dict(os.environ, {"BRIDGE_CONTRACT_ADDRESS": BRIDGE_ADDRESS}, clear=True):
            with pytest.raises(ValueError, match="RPC_URL environment variable is required"):
                EvmConfig.from_env()

    def test_from_env(self):
        env = {
            "RPC_URL": "https://rpc.test.btcs.network",
            "BRIDGE_CONTRACT_ADDRESS": BRIDGE_ADDRESS,
            "MARKETPLACE_CONTRACT_ADDRESS": MARKETPLACE_ADDRESS,
            "PRIVATE_KEY": PRIVATE_KEY,
        }
        with patch.dict(os.environ, env, clear=True):
            config = EvmConfig.from_env()

        assert config.rpc_url == "https://rpc.test.btcs.network"
        assert config.marketplace_address == MARKETPLACE_ADDRESS
        assert config.private_key == PRIVATE_KEY


class TestApiConfig:
    """Tests for ApiConfig."""

    def test_from_env_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = ApiConfig.from_env()

        assert config.bridge_listener_url == "http://localhost:3001"
        assert config.bridge_service_url is None
        assert config.state_file == Path("data/bridge-state.json")
        assert config.port == 3000
        assert config.graph_endpoint is None

    def test_from_env_graph_endpoint(self):
        with patch.dict(os.environ, {"GRAPH_ENDPOINT": "http://indexer.test/graphql"}, clear=True):
            config = ApiConfig.from_env()

        assert config.graph_endpoint == "http://indexer.test/graphql"

    def test_invalid_listener_url(self):
        with pytest.raises(ValueError, match="Invalid BRIDGE_LISTENER_URL scheme"):
            ApiConfig(bridge_listener_url="localhost:3001")

    def test_port_out_of_range(self):
        with pytest.raises(ValueError, match="Port out of range"):
            ApiConfig(bridge_listener_url="http://localhost:3001", port=70000)


class TestListenerConfig:
    """Tests for ListenerConfig."""

    def test_requires_private_key(self):
        evm = EvmConfig(rpc_url="https://rpc.coredao.org", bridge_address=BRIDGE_ADDRESS)
        with pytest.raises(ValueError, match="PRIVATE_KEY environment variable is required"):
            ListenerConfig(evm=evm)

    def test_from_env(self):
        env = {
            "RPC_URL": "https://rpc.coredao.org",
            "BRIDGE_CONTRACT_ADDRESS": BRIDGE_ADDRESS,
            "PRIVATE_KEY": PRIVATE_KEY,
            "DATA_DIR": "/tmp/bridge-data",
            "MAX_RETRIES": "3",
        }
        with patch.dict(os.environ, env, clear=True):
            config = ListenerConfig.from_env()

        assert config.data_dir == Path("/tmp/bridge-data")
        assert config.max_retries == 3
        assert config.monitor_interval == 60
        assert config.mint_gas_limit == 500_000
        assert config.port == 3001

    def test_log_config_masks_private_key(self, caplog):
        evm = EvmConfig(
            rpc_url="https://rpc.coredao.org",
            bridge_address=BRIDGE_ADDRESS,
            private_key=PRIVATE_KEY,
        )
        with caplog.at_level("INFO"):
            ListenerConfig(evm=evm).log_config()

        assert "[SET]" in caplog.text
        assert PRIVATE_KEY not in caplog.text


class TestIndexerConfig:
    """Tests for IndexerConfig."""

    def test_requires_marketplace_address(self):
        evm = EvmConfig(rpc_url="https://rpc.coredao.org", bridge_address=BRIDGE_ADDRESS)
        with pytest.raises(ValueError, match="MARKETPLACE_CONTRACT_ADDRESS"):
            IndexerConfig(evm=evm)

    def test_defaults(self):
        evm = EvmConfig(
            rpc_url="https://rpc.coredao.org",
            bridge_address=BRIDGE_ADDRESS,
            marketplace_address=MARKETPLACE_ADDRESS,
        )
        config = IndexerConfig(evm=evm)

        assert config.finality_confirmations == 10
        assert config.batch_size == 1000
        assert config.database_url == "sqlite:///data/indexer.db"

    def test_invalid_polling_interval(self):
        evm = EvmConfig(
            rpc_url="https://rpc.coredao.org",
            bridge_address=BRIDGE_ADDRESS,
            marketplace_address=MARKETPLACE_ADDRESS,
        )
        with pytest.raises(ValueError, match="Polling interval must be between"):
            IndexerConfig(evm=evm, polling_interval=0)
