#!/usr/bin/env python3
"""
Web3.py marketplace indexer.

Polls the chain for marketplace events, orders them by (block, log index)
and feeds them one at a time to the projector. The cursor only advances
past blocks whose events were all projected.
"""

import argparse
import logging
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .config import IndexerConfig, load_config
from .events import EVENT_NAMES, EventContext, decode_event
from .exceptions import IndexerError
from .gateway import ContractReader, load_abis
from .ids import IdentityResolver, normalize_address
from .projector import MarketplaceProjector
from .store import EntityStore, PostgresStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class MarketplaceIndexer:
    """Event source for the marketplace projector"""

    MAX_BLOCK_CACHE = 1000
    MAX_SENDER_CACHE = 5000

    def __init__(self, config: IndexerConfig, store: Optional[EntityStore] = None, w3: Optional[Web3] = None):
        self.config = config
        self.chain_id = config.network.chain_id
        self.marketplace_address = config.marketplace.address
        self.store = store if store is not None else PostgresStore(config.database.url)
        self.w3 = w3 if w3 is not None else self._init_web3_connection()
        self.contract_abis = load_abis(config.abis)

        self.reader = ContractReader(self.w3, config.marketplace.platform_token, self.contract_abis)
        self.projector = MarketplaceProjector(
            self.store, self.reader, IdentityResolver(config.indexer.id_delimiter)
        )
        self.marketplace = self.w3.eth.contract(
            address=Web3.to_checksum_address(self.marketplace_address),
            abi=self.contract_abis["marketplace"],
        )

        # Performance caches
        self.block_cache: Dict[int, int] = {}  # {block_number: timestamp}
        self.sender_cache: Dict[str, str] = {}  # {tx_hash: sender}

    def _init_web3_connection(self) -> Web3:
        """Initialize Web3 connection for the configured network"""
        network = self.config.network
        w3 = Web3(Web3.HTTPProvider(network.rpc_url))
        if network.poa:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        if not w3.is_connected():
            raise IndexerError(f"Failed to connect to {network.name}")

        latest_block = w3.eth.block_number
        logger.info(f"[{latest_block}] Connected to {network.name} (chain_id: {network.chain_id})")
        return w3

    def _get_block_timestamp(self, block_number: int) -> int:
        """Get block timestamp with caching to reduce Web3 calls"""
        if block_number in self.block_cache:
            return self.block_cache[block_number]

        # Evict oldest blocks if cache too large
        if len(self.block_cache) >= self.MAX_BLOCK_CACHE:
            del self.block_cache[min(self.block_cache)]

        timestamp = self.w3.eth.get_block(block_number)["timestamp"]
        self.block_cache[block_number] = timestamp
        return timestamp

    def _get_sender(self, tx_hash: str) -> str:
        if tx_hash not in self.sender_cache:
            if len(self.sender_cache) >= self.MAX_SENDER_CACHE:
                self.sender_cache.clear()
            self.sender_cache[tx_hash] = normalize_address(self.w3.eth.get_transaction(tx_hash)["from"])
        return self.sender_cache[tx_hash]

    def _get_event_logs_with_split(self, event_cls, from_block: int, to_block: int, min_span: int = 500) -> List[Any]:
        """Fetch logs for an event with adaptive range splitting on provider size/limit errors"""
        try:
            return list(event_cls.get_logs(from_block=from_block, to_block=to_block))
        except Exception as e:
            span = to_block - from_block
            msg = str(e).lower()
            should_split = span > min_span and any(x in msg for x in [
                'too many results',
                'response size',
                'limit',
                'timeout',
                'gateway',
                'internal error',
                'server error',
            ])
            if should_split:
                mid = from_block + span // 2
                left = self._get_event_logs_with_split(event_cls, from_block, mid, min_span)
                right = self._get_event_logs_with_split(event_cls, mid + 1, to_block, min_span)
                return left + right
            raise

    def _fetch_logs(self, from_block: int, to_block: int) -> List[Tuple[str, Any]]:
        """All marketplace logs in the range, in chain order"""
        logs = []
        for name in EVENT_NAMES:
            event_cls = getattr(self.marketplace.events, name)
            for log in self._get_event_logs_with_split(event_cls, from_block, to_block):
                logs.append((name, log))
        logs.sort(key=lambda item: (item[1]["blockNumber"], item[1]["logIndex"]))
        return logs

    def _context(self, log) -> EventContext:
        tx_hash = Web3.to_hex(log["transactionHash"])
        return EventContext(
            block_number=log["blockNumber"],
            timestamp=self._get_block_timestamp(log["blockNumber"]),
            sender=self._get_sender(tx_hash),
            tx_hash=tx_hash,
            log_index=log["logIndex"],
            contract_address=normalize_address(log["address"]),
        )

    def process_range(self, from_block: int, to_block: int) -> int:
        """Project every marketplace event in [from_block, to_block]; returns the event count"""
        logs = self._fetch_logs(from_block, to_block)
        if logs:
            logger.info(f"[{to_block}] Found {len(logs)} marketplace events in blocks {from_block}-{to_block}")

        current_block = None
        for name, log in logs:
            block_number = log["blockNumber"]
            if current_block is not None and block_number != current_block:
                self.store.set_last_indexed_block(self.chain_id, self.marketplace_address, current_block)
            current_block = block_number

            event = decode_event(name, log["args"], self._context(log))
            try:
                self.projector.handle(event)
            except Exception as e:
                logger.error(f"[{block_number}] Failed to project {name} (tx {event.ctx.tx_hash}, log {event.ctx.log_index}): {e}")
                raise

        self.store.set_last_indexed_block(self.chain_id, self.marketplace_address, to_block)
        return len(logs)

    def last_indexed_block(self) -> int:
        last = self.store.get_last_indexed_block(self.chain_id, self.marketplace_address)
        if last is None:
            return self.config.marketplace.start_block - 1
        return last

    def sync(self, from_block: Optional[int] = None) -> int:
        """Catch up to the chain head; returns the last indexed block"""
        head = self.w3.eth.block_number
        if from_block is None:
            from_block = self.last_indexed_block() + 1

        if from_block > head:
            logger.debug(f"Marketplace {self.marketplace_address} up to date at block {head}")
            return head

        batch_size = self.config.indexer.block_batch_size
        logger.info(f"[{head}, -{head - from_block + 1}] Syncing marketplace {self.marketplace_address[:5]}..{self.marketplace_address[-4:]} from {from_block}")
        while from_block <= head:
            to_block = min(from_block + batch_size - 1, head)
            self.process_range(from_block, to_block)
            logger.debug(f"[{to_block}, -{head - to_block}] Processed batch {from_block}-{to_block}")
            from_block = to_block + 1
        return head

    def run(self, from_block: Optional[int] = None, once: bool = False) -> None:
        """Run the polling loop"""
        logger.info(f"🚀 Starting marketplace indexer on {self.config.network.name}")
        poll_interval = self.config.indexer.poll_interval

        try:
            while True:
                try:
                    self.sync(from_block)
                except Exception as e:
                    if once:
                        raise
                    # Cursor was not advanced past the failing block; retried next poll
                    logger.error(f"Sync failed, retrying in {poll_interval}s: {e}")
                from_block = None
                if once:
                    return
                logger.debug(f"⏸️  Sleeping for {poll_interval} seconds...")
                time.sleep(poll_interval)
        except KeyboardInterrupt:
            logger.info("Indexer stopped by user")


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='NFT Marketplace Indexer')
    parser.add_argument('--config', '-c',
                        help='Path to config file',
                        default='config.yaml')
    parser.add_argument('--from-block',
                        help='Start from this block instead of the stored cursor',
                        dest='from_block', type=int, default=None)
    parser.add_argument('--once',
                        help='Catch up to the chain head and exit',
                        action='store_true')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    try:
        config = load_config(args.config)
        logging.getLogger().setLevel(getattr(logging, config.indexer.log_level.upper(), logging.INFO))
        indexer = MarketplaceIndexer(config)
        indexer.run(from_block=args.from_block, once=args.once)
    except Exception as e:
        logger.error(f"Indexer failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
