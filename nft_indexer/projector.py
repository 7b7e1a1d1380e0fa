#!/usr/bin/env python3
"""
Marketplace event projector.

One handler per event kind. Each handler loads the entities it touches,
applies the transition and writes them back. Handlers set absolute values
and append ids only when absent, so re-delivered events converge to the
same state. Entities the event requires (the auction of a bid, say) must
already exist; a missing one raises EntityNotFoundError. Cancelled is the
only handler that tolerates an unknown auction.
"""

import logging
from typing import Callable, Dict, List, Optional, Type

from .constants import ADDRESS_ZERO, AuctionStatus, BidStatus
from .events import (
    AuctionCreated, BidMade, Cancelled, Executed, FeesUpdated,
    MarketplaceEvent, PriceUpdated, UpdatePaymentMethod,
)
from .exceptions import EntityNotFoundError, IndexerError
from .gateway import ContractReader
from .history import HistoryRecorder
from .ids import IdentityResolver
from .models import NFT, Auction, Bid, Payment, PaymentMethod, User
from .store import EntityStore

logger = logging.getLogger(__name__)


def _append_unique(seq: List[str], item: str) -> None:
    if item not in seq:
        seq.append(item)


def _remove(seq: List[str], item: str) -> None:
    if item in seq:
        seq.remove(item)


class MarketplaceProjector:
    """Applies marketplace events to the entity store"""

    def __init__(self, store: EntityStore, reader: ContractReader,
                 ids: Optional[IdentityResolver] = None,
                 history: Optional[HistoryRecorder] = None):
        self.store = store
        self.reader = reader
        self.ids = ids or IdentityResolver()
        self.history = history or HistoryRecorder(store)
        self._handlers: Dict[Type[MarketplaceEvent], Callable] = {
            AuctionCreated: self.handle_auction_created,
            Cancelled: self.handle_cancelled,
            BidMade: self.handle_bid_made,
            Executed: self.handle_executed,
            UpdatePaymentMethod: self.handle_update_payment_method,
            PriceUpdated: self.handle_price_updated,
            FeesUpdated: self.handle_fees_updated,
        }

    def handle(self, event: MarketplaceEvent) -> None:
        """Dispatch an event to its handler"""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise IndexerError(f"No handler for {type(event).__name__}")
        handler(event)

    # -- lookups -----------------------------------------------------------

    def _user(self, address: str) -> User:
        user_id = self.ids.user_id(address)
        user, _ = self.store.get_or_create(User, user_id, address=user_id)
        return user

    def _payment_method(self, token: str, resolve_symbol: bool) -> PaymentMethod:
        """Get or create a payment method, resolving metadata only when first seen"""
        pm_id = self.ids.payment_method_id(token)
        pm, created = self.store.get_or_create(PaymentMethod, pm_id, token_address=pm_id)
        changed = created
        if created:
            name = self.reader.token_name(pm_id)
            pm.name = "" if name.reverted else name.value
            pm.is_platform_token = self.reader.is_platform_token(pm_id)
        if resolve_symbol and not pm.symbol:
            symbol = self.reader.token_symbol(pm_id)
            if not symbol.reverted:
                pm.symbol = symbol.value
                changed = True
        if changed:
            self.store.save(pm)
        return pm

    def _release_listing(self, auction: Auction, nft: Optional[NFT], seller: Optional[User]) -> None:
        """Drop references that only make sense while the auction is open"""
        if nft is not None and nft.active_order == auction.id:
            nft.active_order = None
        if seller is not None:
            _remove(seller.active_sell_orders, auction.id)

    # -- handlers ----------------------------------------------------------

    def handle_auction_created(self, event: AuctionCreated) -> None:
        ctx = event.ctx
        auction, created = self.store.get_or_create(Auction, event.auction_id)
        if not created and auction.status != AuctionStatus.OPEN:
            logger.warning(f"[{ctx.block_number}] AuctionCreated for closed auction {auction.id} ({auction.status.value}), skipping")
            return

        owner = self._user(ctx.sender)
        royalty = owner if self.ids.user_id(event.royalty_recipient) == owner.id else self._user(event.royalty_recipient)
        payment_method = self._payment_method(event.payment_method, resolve_symbol=False)

        category = self.reader.category(ctx.contract_address, auction.id)
        if not category.reverted:
            auction.category = category.value

        nft_id = self.ids.nft_id(event.nft_token, event.token_id)
        nft, _ = self.store.get_or_create(NFT, nft_id, contract_address=event.nft_token, token_id=event.token_id)
        nft.contract_address = event.nft_token
        nft.token_id = event.token_id
        nft.owner = owner.id
        nft.royalty = royalty.id
        nft.active_order = auction.id
        _append_unique(nft.orders, auction.id)
        token_uri = self.reader.token_uri(event.nft_token, event.token_id)
        if not token_uri.reverted:
            nft.token_uri = token_uri.value

        auction.nft = nft.id
        auction.nft_address = event.nft_token
        auction.tx_hash = ctx.tx_hash or auction.tx_hash
        auction.owner = owner.id
        auction.status = AuctionStatus.OPEN
        auction.block_number = ctx.block_number
        auction.created_at = ctx.timestamp
        auction.base_price = event.base_price
        auction.royalty_fees = event.royalty_fees
        auction.payment_method = payment_method.id

        _append_unique(owner.active_sell_orders, auction.id)

        payment, _ = self.store.get_or_create(Payment, auction.id)
        payment.total_value = event.base_price
        payment.payment_method = payment_method.id

        if royalty is not owner:
            self.store.save(royalty)
        self.store.save(owner)
        self.store.save(nft)
        self.store.save(auction)
        self.store.save(payment)
        self.history.record_listing(nft, event.base_price, payment_method.id, ctx.timestamp)

        logger.info(f"[{ctx.block_number}] 🆕 Auction {auction.id} opened for NFT {nft.id} at {event.base_price}")

    def handle_cancelled(self, event: Cancelled) -> None:
        ctx = event.ctx
        auction = self.store.load(Auction, event.auction_id)
        if auction is None:
            logger.debug(f"[{ctx.block_number}] Cancelled for unknown auction {event.auction_id}, ignoring")
            return
        if auction.status == AuctionStatus.SOLD:
            logger.warning(f"[{ctx.block_number}] Cancelled for sold auction {auction.id}, ignoring")
            return

        auction.status = AuctionStatus.CANCELLED
        auction.expires_at = ctx.timestamp
        sentinel = self._user(ADDRESS_ZERO)
        auction.buyer = sentinel.id

        # An outstanding bid dies with the auction
        if auction.bids:
            last_bid = self.store.load(Bid, auction.bids[-1])
            if last_bid is not None and last_bid.status == BidStatus.ACTIVE:
                last_bid.status = BidStatus.DROPPED
                last_bid.closed_at = ctx.timestamp
                self.store.save(last_bid)

        nft = self.store.load(NFT, auction.nft) if auction.nft else None
        seller = self.store.load(User, auction.owner) if auction.owner else None
        self._release_listing(auction, nft, seller)

        self.store.save(sentinel)
        if nft is not None:
            self.store.save(nft)
        if seller is not None:
            self.store.save(seller)
        self.store.save(auction)

        logger.info(f"[{ctx.block_number}] ❌ Auction {auction.id} cancelled")

    def handle_bid_made(self, event: BidMade) -> None:
        ctx = event.ctx
        auction = self.store.require(Auction, event.auction_id)
        previous = self.store.load(Bid, auction.bids[-1]) if auction.bids else None
        # Logs arrive in (block, log index) order; anything at or before the latest bid is a re-delivery
        if previous is not None and previous.log_index is not None \
                and (ctx.block_number, ctx.log_index) <= (previous.block_number, previous.log_index):
            logger.debug(f"[{ctx.block_number}] BidMade log {ctx.log_index} on {auction.id} already applied, skipping")
            return
        if auction.status != AuctionStatus.OPEN:
            logger.warning(f"[{ctx.block_number}] Bid on {auction.status.value} auction {auction.id}, skipping")
            return
        nft = self.store.require(NFT, self.ids.nft_id(event.nft_token, event.token_id))

        if previous is not None and previous.status == BidStatus.ACTIVE:
            previous.status = BidStatus.DROPPED
            previous.closed_at = ctx.timestamp
            self.store.save(previous)

        ordinal = auction.bid_count
        bid_id = self.ids.bid_id(auction.id, ordinal)
        bid, _ = self.store.get_or_create(Bid, bid_id, auction=auction.id)

        seller = self._user(auction.owner or ADDRESS_ZERO)
        bidder = seller if self.ids.user_id(ctx.sender) == seller.id else self._user(ctx.sender)
        _append_unique(bidder.bids, bid.id)

        bid.nft = nft.id
        bid.nft_address = event.nft_token
        bid.seller = seller.id
        bid.bidder = bidder.id
        bid.bid_value = event.bid_value
        bid.status = BidStatus.ACTIVE
        bid.block_number = ctx.block_number
        bid.created_at = ctx.timestamp
        bid.closed_at = None
        bid.tx_hash = ctx.tx_hash or None
        bid.log_index = ctx.log_index

        _append_unique(auction.bids, bid.id)
        _append_unique(nft.bids, bid.id)
        auction.bid_count = ordinal + 1

        self.store.save(bid)
        if bidder is not seller:
            self.store.save(seller)
        self.store.save(bidder)
        self.store.save(nft)
        # Auction last: until the counter is saved a redelivery reuses the same bid id
        self.store.save(auction)

        logger.info(f"[{ctx.block_number}] 💸 Bid {bid.id} of {event.bid_value} by {bidder.id}")

    def handle_executed(self, event: Executed) -> None:
        ctx = event.ctx
        auction = self.store.require(Auction, event.auction_id)
        if auction.status == AuctionStatus.CANCELLED:
            logger.warning(f"[{ctx.block_number}] Executed for cancelled auction {auction.id}, ignoring")
            return
        if auction.bid_count == 0:
            raise EntityNotFoundError("Bid", f"{auction.id} (no bids recorded)")

        # The last bid made is the accepted one
        bid = self.store.require(Bid, self.ids.bid_id(auction.id, auction.bid_count - 1))
        nft = self.store.require(NFT, self.ids.nft_id(event.nft_token, event.token_id))

        auction.status = AuctionStatus.SOLD
        auction.buyer = bid.bidder
        auction.closed_at = ctx.timestamp
        auction.sold_price = bid.bid_value
        bid.status = BidStatus.ACCEPTED
        bid.closed_at = ctx.timestamp

        buyer = self._user(bid.bidder)
        if auction.owner and auction.owner != buyer.id:
            seller = self.store.load(User, auction.owner)
        else:
            seller = buyer
        self._release_listing(auction, nft, seller)
        if seller is not None and seller is not buyer:
            _remove(seller.nfts, nft.id)
        _append_unique(buyer.nfts, nft.id)
        nft.owner = buyer.id

        payment, _ = self.store.get_or_create(Payment, auction.id, payment_method=auction.payment_method)
        breakdown = self.reader.platform_cut(ctx.contract_address, auction.id)
        if breakdown.reverted:
            payment.platform_cut = 0
            payment.ref_bonus = 0
            payment.cash_back = 0
        else:
            payment.platform_cut = breakdown.value.platform_cut
            payment.ref_bonus = breakdown.value.ref_bonus
            payment.cash_back = breakdown.value.cash_back
            payment.total_value = breakdown.value.total_value
        payment.owner_cash_back = payment.cash_back
        payment.owner_payment = event.owner_payment - payment.owner_cash_back
        payment.royalty_cut = event.creator_payment
        payment.total_cash_back = payment.cash_back + payment.owner_cash_back

        self.store.save(bid)
        self.store.save(buyer)
        if seller is not None and seller is not buyer:
            self.store.save(seller)
        self.store.save(nft)
        self.store.save(payment)
        self.history.record_sale(nft, auction.owner, bid.bidder, bid.bid_value, ctx.timestamp)
        self.store.save(auction)

        logger.info(f"[{ctx.block_number}] ✅ Auction {auction.id} sold to {buyer.id} for {bid.bid_value}")

    def handle_update_payment_method(self, event: UpdatePaymentMethod) -> None:
        ctx = event.ctx
        auction = self.store.require(Auction, event.auction_id)
        nft = self.store.require(NFT, auction.nft)
        payment_method = self._payment_method(event.new_payment_method, resolve_symbol=True)

        # Auction, Payment and history move together
        auction.payment_method = payment_method.id
        payment, _ = self.store.get_or_create(Payment, auction.id)
        payment.payment_method = payment_method.id

        self.store.save(auction)
        self.store.save(payment)
        self.history.set_payment_method(nft, payment_method.id)

        logger.info(f"[{ctx.block_number}] Auction {auction.id} payment method -> {payment_method.id}")

    def handle_price_updated(self, event: PriceUpdated) -> None:
        auction = self.store.require(Auction, event.auction_id)
        auction.base_price = event.new_price
        self.store.save(auction)
        logger.info(f"[{event.ctx.block_number}] Auction {auction.id} price -> {event.new_price}")

    def handle_fees_updated(self, event: FeesUpdated) -> None:
        auction = self.store.require(Auction, event.auction_id)
        auction.royalty_fees = event.new_fees
        self.store.save(auction)
        logger.info(f"[{event.ctx.block_number}] Auction {auction.id} royalty fees -> {event.new_fees}")
