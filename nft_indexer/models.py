#!/usr/bin/env python3
"""
Pydantic models for the projected marketplace entities.

Cross-entity references are id strings, never embedded copies. Token
amounts are raw uint256 integers as emitted on-chain.
"""

from typing import ClassVar, List, NamedTuple, Optional

from pydantic import BaseModel, Field

from .constants import ADDRESS_ZERO, AuctionStatus, BidStatus


class Entity(BaseModel):
    """Base for every stored entity"""
    table: ClassVar[str] = ""

    id: str = Field(..., description="Entity key")


class User(Entity):
    """Wallet seen by the marketplace, created on first reference"""
    table: ClassVar[str] = "users"

    address: str = Field(..., description="Lowercase wallet address")
    nfts: List[str] = Field(default_factory=list, description="Owned NFT ids")
    bids: List[str] = Field(default_factory=list, description="Bid ids made by this user")
    active_sell_orders: List[str] = Field(default_factory=list, description="Open auction ids listed by this user")


class PaymentMethod(Entity):
    """ERC20 token accepted as payment"""
    table: ClassVar[str] = "payment_methods"

    token_address: str = Field(..., description="Token contract address")
    name: str = Field("", description="Token name, empty when the call reverted")
    symbol: str = Field("", description="Token symbol, back-filled when first resolved")
    is_platform_token: bool = Field(False, description="Whether this is the marketplace's native token")


class NFT(Entity):
    """A single token of an ERC721 collection, keyed by contract and token id"""
    table: ClassVar[str] = "nfts"

    contract_address: str = Field(..., description="ERC721 contract address")
    token_id: int = Field(..., description="Token id within the collection")
    owner: str = Field(ADDRESS_ZERO, description="Owning user id")
    royalty: Optional[str] = Field(None, description="Royalty recipient user id")
    active_order: Optional[str] = Field(None, description="Open auction id, cleared on sale or cancellation")
    token_uri: str = Field("", description="Token metadata URI")
    orders: List[str] = Field(default_factory=list, description="Auction ids, oldest first")
    bids: List[str] = Field(default_factory=list, description="Bid ids, oldest first")


class Auction(Entity):
    """A listing of one NFT"""
    table: ClassVar[str] = "auctions"

    nft: Optional[str] = Field(None, description="NFT id")
    nft_address: Optional[str] = Field(None, description="ERC721 contract address")
    tx_hash: Optional[str] = Field(None, description="Creating transaction hash")
    owner: Optional[str] = Field(None, description="Seller user id")
    buyer: Optional[str] = Field(None, description="Buyer user id, zero address when cancelled")
    status: AuctionStatus = Field(AuctionStatus.OPEN, description="OPEN, SOLD or CANCELLED")
    base_price: int = Field(0, description="Listing price")
    royalty_fees: int = Field(0, description="Royalty fee")
    payment_method: Optional[str] = Field(None, description="PaymentMethod id")
    category: Optional[str] = Field(None, description="Category label, unset when the call reverted")
    block_number: int = Field(0, description="Creation block")
    created_at: int = Field(0, description="Creation block timestamp")
    closed_at: Optional[int] = Field(None, description="Sale block timestamp")
    expires_at: Optional[int] = Field(None, description="Cancellation block timestamp")
    bids: List[str] = Field(default_factory=list, description="Bid ids, oldest first")
    bid_count: int = Field(0, description="Number of bids made, next bid ordinal")
    sold_price: Optional[int] = Field(None, description="Accepted bid value")


class Bid(Entity):
    """An offer against an auction"""
    table: ClassVar[str] = "bids"

    auction: str = Field(..., description="Auction id")
    nft: Optional[str] = Field(None, description="NFT id")
    nft_address: Optional[str] = Field(None, description="ERC721 contract address")
    seller: Optional[str] = Field(None, description="Seller user id")
    bidder: Optional[str] = Field(None, description="Bidder user id")
    bid_value: int = Field(0, description="Offered amount")
    status: BidStatus = Field(BidStatus.ACTIVE, description="ACTIVE, DROPPED or ACCEPTED")
    block_number: int = Field(0, description="Bid block")
    created_at: int = Field(0, description="Bid block timestamp")
    closed_at: Optional[int] = Field(None, description="When the bid was dropped or accepted")
    tx_hash: Optional[str] = Field(None, description="Transaction that emitted the bid")
    log_index: Optional[int] = Field(None, description="Log index of the bid event")


class Payment(Entity):
    """Proceeds of an auction, keyed by auction id"""
    table: ClassVar[str] = "payments"

    total_value: int = Field(0, description="Base price until sale, then the full paid value")
    owner_payment: int = Field(0, description="Net payment to the seller")
    royalty_cut: int = Field(0, description="Creator royalty")
    platform_cut: int = Field(0, description="Marketplace fee")
    ref_bonus: int = Field(0, description="Referral bonus")
    cash_back: int = Field(0, description="Buyer cash-back")
    owner_cash_back: int = Field(0, description="Seller cash-back")
    total_cash_back: int = Field(0, description="cash_back + owner_cash_back")
    payment_method: Optional[str] = Field(None, description="PaymentMethod id")


class NFTTokenHistory(Entity):
    """Latest price and ownership snapshot of an NFT, keyed by NFT id"""
    table: ClassVar[str] = "nft_token_history"

    token: str = Field(..., description="ERC721 contract address")
    token_id: int = Field(..., description="Token id")
    payment_method: Optional[str] = Field(None, description="PaymentMethod id")
    timestamp: int = Field(0, description="Snapshot block timestamp")
    current_price: int = Field(0, description="Listing price")
    previous_owner: Optional[str] = Field(None, description="Seller at last sale")
    current_owner: Optional[str] = Field(None, description="Buyer at last sale")
    last_historical_price: Optional[int] = Field(None, description="Last sale price")


ENTITY_MODELS = (User, PaymentMethod, NFT, Auction, Bid, Payment, NFTTokenHistory)


class Lookup(NamedTuple):
    """Result of a get-or-create: the entity and whether it was just created"""
    entity: Entity
    created: bool
