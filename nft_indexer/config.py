#!/usr/bin/env python3
"""
Configuration loading for the marketplace indexer.

YAML file with ${ENV_VAR} expansion; .env is loaded first.
"""

import logging
import os
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .gateway import DEFAULT_ABIS
from .ids import normalize_address

logger = logging.getLogger(__name__)

_UNSET = ("", "none", "null")


def _is_unset(value) -> bool:
    # Unset ${VARS} survive expandvars verbatim
    return value is None or str(value).strip().lower() in _UNSET or str(value).startswith("${")


class IndexerSettings(BaseModel):
    log_level: str = "INFO"
    poll_interval: int = Field(12, description="Seconds between head polls")
    block_batch_size: int = Field(2000, description="Blocks per eth_getLogs window")
    id_delimiter: str = Field("", description="Separator for composite NFT/Bid ids, empty keeps plain concatenation")


class DatabaseSettings(BaseModel):
    url: str


class NetworkSettings(BaseModel):
    name: str = "local"
    chain_id: int
    rpc_url: str
    poa: bool = Field(False, description="Inject the PoA extra-data middleware")


class MarketplaceSettings(BaseModel):
    address: str
    start_block: int = 0
    platform_token: Optional[str] = None

    @field_validator("address", mode="before")
    @classmethod
    def parse_address(cls, v):
        """Handle YAML int conversion and unset env vars"""
        if _is_unset(v):
            raise ValueError("marketplace address is required")
        return normalize_address(v)

    @field_validator("platform_token", mode="before")
    @classmethod
    def parse_platform_token(cls, v):
        if _is_unset(v):
            return None
        return normalize_address(v)

    @field_validator("start_block", mode="before")
    @classmethod
    def parse_start_block(cls, v):
        """Handle empty strings for start block"""
        if _is_unset(v):
            return 0
        return v


class IndexerConfig(BaseModel):
    indexer: IndexerSettings = Field(default_factory=IndexerSettings)
    database: DatabaseSettings
    network: NetworkSettings
    marketplace: MarketplaceSettings
    abis: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ABIS))


def load_config(config_path: str = "config.yaml") -> IndexerConfig:
    """Load and expand environment variables in config"""
    load_dotenv()
    try:
        with open(config_path, "r") as f:
            config_content = os.path.expandvars(f.read())
        raw = yaml.safe_load(config_content) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config {config_path}: {e}") from e

    try:
        config = IndexerConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e

    logger.info(f"Loaded configuration for {config.network.name} (chain_id: {config.network.chain_id})")
    return config
