#!/usr/bin/env python3
"""
Unit tests for configuration loading
"""

import pytest

from nft_indexer.config import load_config
from nft_indexer.exceptions import ConfigError

CONFIG = """
indexer:
  log_level: DEBUG
  block_batch_size: 500
database:
  url: ${TEST_DATABASE_URL}
network:
  name: polygon
  chain_id: 137
  rpc_url: ${TEST_RPC_URL}
  poa: true
marketplace:
  address: ${TEST_MARKETPLACE}
  start_block: 1200
  platform_token: ${TEST_PLATFORM_TOKEN_UNSET}
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_DATABASE_URL", "postgresql://localhost/nft")
    monkeypatch.setenv("TEST_RPC_URL", "http://localhost:8545")
    monkeypatch.setenv("TEST_MARKETPLACE", "0x" + "9A" * 20)
    monkeypatch.delenv("TEST_PLATFORM_TOKEN_UNSET", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    return path


def test_load_expands_env(config_file):
    config = load_config(str(config_file))

    assert config.database.url == "postgresql://localhost/nft"
    assert config.network.rpc_url == "http://localhost:8545"
    assert config.network.poa is True
    assert config.marketplace.address == "0x" + "9a" * 20
    assert config.marketplace.start_block == 1200
    assert config.indexer.block_batch_size == 500
    assert config.indexer.poll_interval == 12
    assert config.indexer.id_delimiter == ""


def test_unset_platform_token_is_none(config_file):
    assert load_config(str(config_file)).marketplace.platform_token is None


def test_default_abis(config_file):
    config = load_config(str(config_file))
    assert set(config.abis) == {"marketplace", "erc20", "erc20_bytes32", "erc721"}


def test_yaml_int_address(tmp_path):
    """Test an unquoted hex address parsed by YAML as an int"""
    path = tmp_path / "config.yaml"
    path.write_text(
        "database: {url: 'postgresql://localhost/nft'}\n"
        "network: {chain_id: 1, rpc_url: 'http://localhost:8545'}\n"
        "marketplace: {address: 0x00000000000000000000000000000000000000ff}\n"
    )

    config = load_config(str(path))

    assert config.marketplace.address == "0x" + "0" * 38 + "ff"


def test_missing_marketplace(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("database: {url: x}\nnetwork: {chain_id: 1, rpc_url: x}\n")

    with pytest.raises(ConfigError):
        load_config(str(path))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "absent.yaml"))
