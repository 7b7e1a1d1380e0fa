#!/usr/bin/env python3
"""
Unit tests for the entity store adapters
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from nft_indexer.constants import AuctionStatus
from nft_indexer.exceptions import EntityNotFoundError
from nft_indexer.models import Auction, User
from nft_indexer.store import MemoryStore, PostgresStore

ADDRESS = "0x" + "a1" * 20


class TestMemoryStore:

    def test_get_or_create_tags_result(self):
        store = MemoryStore()

        user, created = store.get_or_create(User, ADDRESS, address=ADDRESS)
        assert created
        assert store.load(User, ADDRESS) is None

        store.save(user)
        found, created = store.get_or_create(User, ADDRESS, address=ADDRESS)
        assert not created
        assert found == user

    def test_loaded_entities_are_copies(self):
        """Test unsaved mutations never leak into the store"""
        store = MemoryStore()
        store.save(User(id=ADDRESS, address=ADDRESS))

        loaded = store.load(User, ADDRESS)
        loaded.bids.append("0x10")

        assert store.load(User, ADDRESS).bids == []

    def test_require(self):
        store = MemoryStore()
        with pytest.raises(EntityNotFoundError) as exc:
            store.require(Auction, "0x1")
        assert str(exc.value) == "Auction 0x1 not found"

    def test_cursor(self):
        store = MemoryStore()
        assert store.get_last_indexed_block(1, ADDRESS) is None

        store.set_last_indexed_block(1, ADDRESS.upper().replace("0X", "0x"), 42)

        assert store.get_last_indexed_block(1, ADDRESS) == 42
        assert store.get_last_indexed_block(137, ADDRESS) is None


class TestPostgresStore:

    @pytest.fixture(autouse=True)
    def setup(self):
        self.conn = MagicMock()
        self.cursor = self.conn.cursor.return_value.__enter__.return_value
        self.store = PostgresStore("postgresql://unused", connection=self.conn)

    def test_save_upserts_all_columns(self):
        self.store.save(User(id=ADDRESS, address=ADDRESS, bids=["0x10"]))

        sql, params = self.cursor.execute.call_args[0]
        assert sql.startswith("INSERT INTO users (id, address, nfts, bids, active_sell_orders)")
        assert "ON CONFLICT (id) DO UPDATE SET address = EXCLUDED.address" in sql
        assert "id = EXCLUDED.id" not in sql
        assert params == [ADDRESS, ADDRESS, [], ["0x10"], []]

    def test_save_renders_enum_values(self):
        self.store.save(Auction(id="0x1", status=AuctionStatus.SOLD, sold_price=10**30))

        sql, params = self.cursor.execute.call_args[0]
        assert "INSERT INTO auctions" in sql
        assert "SOLD" in params
        assert 10**30 in params

    def test_load_converts_numeric_columns(self):
        """Test NUMERIC values come back as ints"""
        self.cursor.fetchone.return_value = {
            "id": "0x1", "status": "OPEN", "base_price": Decimal("100"),
            "royalty_fees": Decimal("250"), "bids": ["0x10"], "bid_count": 1,
            "block_number": 10, "created_at": 1000,
        }

        auction = self.store.load(Auction, "0x1")

        assert auction.base_price == 100
        assert isinstance(auction.base_price, int)
        assert auction.status == AuctionStatus.OPEN
        assert auction.bids == ["0x10"]
        self.cursor.execute.assert_called_with("SELECT * FROM auctions WHERE id = %s", ("0x1",))

    def test_load_missing(self):
        self.cursor.fetchone.return_value = None
        assert self.store.load(User, ADDRESS) is None

    def test_cursor_roundtrip_queries(self):
        self.cursor.fetchone.return_value = {"last_indexed_block": 42}
        assert self.store.get_last_indexed_block(137, ADDRESS) == 42

        self.store.set_last_indexed_block(137, ADDRESS, 43)
        sql, params = self.cursor.execute.call_args[0]
        assert "INSERT INTO indexer_state" in sql
        assert params == (137, ADDRESS, 43)

    def test_ensure_schema_runs_bundled_sql(self):
        self.store.ensure_schema()

        sql = self.cursor.execute.call_args[0][0]
        for table in ("users", "payment_methods", "nfts", "auctions", "bids",
                      "payments", "nft_token_history", "indexer_state"):
            assert f"CREATE TABLE IF NOT EXISTS {table}" in sql
