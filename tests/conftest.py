#!/usr/bin/env python3
"""
Pytest configuration for projector tests
"""

import pytest

from nft_indexer.events import EventContext
from nft_indexer.gateway import CallResult, PaymentBreakdown
from nft_indexer.projector import MarketplaceProjector
from nft_indexer.store import MemoryStore

MARKETPLACE = "0x" + "9" * 40
SELLER = "0x" + "a1" * 20
BIDDER_1 = "0x" + "b1" * 20
BIDDER_2 = "0x" + "b2" * 20
CREATOR = "0x" + "c1" * 20
NFT_TOKEN = "0x" + "d1" * 20
PAYMENT_TOKEN = "0x" + "e1" * 20
PLATFORM_TOKEN = "0x" + "f1" * 20


class FakeReader:
    """Scripted stand-in for ContractReader; unknown keys revert"""

    def __init__(self):
        self.names = {}
        self.symbols = {}
        self.uris = {}
        self.categories = {}
        self.cuts = {}
        self.platform_token = PLATFORM_TOKEN
        self.calls = []

    def _result(self, table, key):
        if key in table:
            return CallResult(table[key])
        return CallResult(reverted=True)

    def token_name(self, token):
        self.calls.append(("name", token))
        return self._result(self.names, token)

    def token_symbol(self, token):
        self.calls.append(("symbol", token))
        return self._result(self.symbols, token)

    def token_uri(self, nft_token, token_id):
        self.calls.append(("tokenURI", nft_token, token_id))
        return self._result(self.uris, (nft_token, token_id))

    def category(self, marketplace, auction_id):
        self.calls.append(("category", auction_id))
        return self._result(self.categories, auction_id)

    def platform_cut(self, marketplace, auction_id):
        self.calls.append(("getPlatformCut", auction_id))
        return self._result(self.cuts, auction_id)

    def is_platform_token(self, token):
        return token == self.platform_token


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def reader():
    fake = FakeReader()
    fake.names = {PAYMENT_TOKEN: "Delfy", PLATFORM_TOKEN: "Platform"}
    fake.symbols = {PAYMENT_TOKEN: "DLF", PLATFORM_TOKEN: "PLT"}
    fake.uris = {(NFT_TOKEN, 5): "ipfs://five"}
    fake.categories = {"0x1": "art"}
    fake.cuts = {"0x1": PaymentBreakdown(platform_cut=5, ref_bonus=1, cash_back=2, total_value=20)}
    return fake


@pytest.fixture
def projector(store, reader):
    return MarketplaceProjector(store, reader)


@pytest.fixture
def make_ctx():
    """Build an EventContext; timestamps follow block numbers"""
    def _make(block=10, sender=SELLER, log_index=0):
        return EventContext(
            block_number=block,
            timestamp=1_700_000_000 + block,
            sender=sender,
            tx_hash=f"0x{block:064x}",
            log_index=log_index,
            contract_address=MARKETPLACE,
        )
    return _make
