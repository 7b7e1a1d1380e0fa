"""
NFT price/ownership history.

One row per NFT, overwritten on every change: the row is the latest
snapshot, not a timeline.
"""

import logging
from typing import Optional

from .models import NFT, NFTTokenHistory
from .store import EntityStore

logger = logging.getLogger(__name__)


class HistoryRecorder:

    def __init__(self, store: EntityStore):
        self.store = store

    def _row(self, nft: NFT) -> NFTTokenHistory:
        history, _ = self.store.get_or_create(
            NFTTokenHistory, nft.id, token=nft.contract_address, token_id=nft.token_id
        )
        history.token = nft.contract_address
        history.token_id = nft.token_id
        return history

    def record_listing(self, nft: NFT, price: int, payment_method: Optional[str], timestamp: int) -> NFTTokenHistory:
        """Seed or refresh the snapshot when the NFT is listed"""
        history = self._row(nft)
        history.payment_method = payment_method
        history.timestamp = timestamp
        history.current_price = price
        self.store.save(history)
        return history

    def record_sale(self, nft: NFT, seller: str, buyer: str, price: int, timestamp: int) -> NFTTokenHistory:
        """Final snapshot after a sale"""
        history = self._row(nft)
        history.previous_owner = seller
        history.current_owner = buyer
        history.last_historical_price = price
        history.timestamp = timestamp
        self.store.save(history)
        logger.debug(f"History {nft.id}: {seller} -> {buyer} at {price}")
        return history

    def set_payment_method(self, nft: NFT, payment_method: str) -> NFTTokenHistory:
        history = self._row(nft)
        history.payment_method = payment_method
        self.store.save(history)
        return history
