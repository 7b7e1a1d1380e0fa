#!/usr/bin/env python3
"""
Marketplace indexer database setup script.
Creates the entity tables and the indexer cursor table.
"""

import argparse
import logging
import sys

from nft_indexer.config import load_config
from nft_indexer.store import PostgresStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_schema(config_path: str) -> bool:
    """Apply the bundled schema.sql to the configured database"""
    config = load_config(config_path)
    logger.info("Setting up marketplace indexer schema...")

    try:
        store = PostgresStore(config.database.url)
        store.ensure_schema()
        store.close()
    except Exception as e:
        logger.error(f"❌ Setup failed: {e}")
        return False

    logger.info("🎉 Setup complete! Start indexing with: nft-indexer --config " + config_path)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Create marketplace indexer tables')
    parser.add_argument('--config', '-c', help='Path to config file', default='config.yaml')
    args = parser.parse_args()
    sys.exit(0 if setup_schema(args.config) else 1)
