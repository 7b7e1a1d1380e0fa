#!/usr/bin/env python3
"""
Print the stored entity graph of one auction: auction, NFT, bids,
payment, payment method and price history.
"""

import argparse
import json

from nft_indexer.config import load_config
from nft_indexer.ids import to_hex_id
from nft_indexer.models import NFT, Auction, Bid, NFTTokenHistory, Payment, PaymentMethod
from nft_indexer.store import PostgresStore


def dump(title: str, entity) -> None:
    if entity is None:
        print(f"❌ {title}: missing")
        return
    print(f"📊 {title}")
    print(json.dumps(entity.model_dump(mode="json"), indent=2))


def main():
    parser = argparse.ArgumentParser(description='Inspect a projected auction')
    parser.add_argument('auction_id', help='Auction id (hex)')
    parser.add_argument('--config', '-c', help='Path to config file', default='config.yaml')
    args = parser.parse_args()

    config = load_config(args.config)
    store = PostgresStore(config.database.url)
    auction_id = to_hex_id(args.auction_id)

    auction = store.load(Auction, auction_id)
    dump(f"Auction {auction_id}", auction)
    if auction is None:
        return

    nft = store.load(NFT, auction.nft) if auction.nft else None
    dump(f"NFT {auction.nft}", nft)
    for bid_id in auction.bids:
        dump(f"Bid {bid_id}", store.load(Bid, bid_id))
    dump("Payment", store.load(Payment, auction_id))
    if auction.payment_method:
        dump(f"Payment method {auction.payment_method}", store.load(PaymentMethod, auction.payment_method))
    if nft is not None:
        dump("Price history", store.load(NFTTokenHistory, nft.id))

    store.close()


if __name__ == "__main__":
    main()
