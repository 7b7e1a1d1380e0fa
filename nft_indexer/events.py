"""
Typed marketplace events.

Each event carries the context of its enclosing block and transaction.
Raw web3 log args are converted with ``decode_event``.
"""

from typing import Any, Callable, Dict, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import IndexerError
from .ids import normalize_address, to_hex_id


class EventContext(BaseModel):
    """Block and transaction context shared by every event"""
    model_config = ConfigDict(frozen=True)

    block_number: int
    timestamp: int
    sender: str = Field(..., description="Transaction sender address")
    tx_hash: str = ""
    log_index: int = 0
    contract_address: str = Field("", description="Emitting marketplace contract")


class MarketplaceEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    ctx: EventContext


class AuctionCreated(MarketplaceEvent):
    auction_id: str
    nft_token: str
    token_id: int
    base_price: int
    royalty_fees: int
    payment_method: str
    royalty_recipient: str


class Cancelled(MarketplaceEvent):
    auction_id: str


class BidMade(MarketplaceEvent):
    auction_id: str
    nft_token: str
    token_id: int
    bid_value: int


class Executed(MarketplaceEvent):
    auction_id: str
    nft_token: str
    token_id: int
    owner_payment: int
    creator_payment: int


class UpdatePaymentMethod(MarketplaceEvent):
    auction_id: str
    new_payment_method: str


class PriceUpdated(MarketplaceEvent):
    auction_id: str
    new_price: int


class FeesUpdated(MarketplaceEvent):
    auction_id: str
    new_fees: int


AnyEvent = Union[
    AuctionCreated, Cancelled, BidMade, Executed,
    UpdatePaymentMethod, PriceUpdated, FeesUpdated,
]

# Event name -> converter from ABI-named log args
_DECODERS: Dict[str, Callable[[Mapping[str, Any], EventContext], MarketplaceEvent]] = {
    "AuctionCreated": lambda a, ctx: AuctionCreated(
        ctx=ctx,
        auction_id=to_hex_id(a["id"]),
        nft_token=normalize_address(a["token"]),
        token_id=a["tokenId"],
        base_price=a["_basePrice"],
        royalty_fees=a["royaltyFees"],
        payment_method=normalize_address(a["paymentMethod"]),
        royalty_recipient=normalize_address(a["royalty"]),
    ),
    "Cancelled": lambda a, ctx: Cancelled(ctx=ctx, auction_id=to_hex_id(a["id"])),
    "BidMade": lambda a, ctx: BidMade(
        ctx=ctx,
        auction_id=to_hex_id(a["id"]),
        nft_token=normalize_address(a["token"]),
        token_id=a["tokenId"],
        bid_value=a["bidValue"],
    ),
    "Executed": lambda a, ctx: Executed(
        ctx=ctx,
        auction_id=to_hex_id(a["auctionId"]),
        nft_token=normalize_address(a["token"]),
        token_id=a["tokenId"],
        owner_payment=a["ownerPayment"],
        creator_payment=a["creatorPayment"],
    ),
    "UpdatePaymentMethod": lambda a, ctx: UpdatePaymentMethod(
        ctx=ctx,
        auction_id=to_hex_id(a["auctionId"]),
        new_payment_method=normalize_address(a["newPaymentMtd"]),
    ),
    "PriceUpdated": lambda a, ctx: PriceUpdated(
        ctx=ctx, auction_id=to_hex_id(a["auctionId"]), new_price=a["newPrice"]
    ),
    "FeesUpdated": lambda a, ctx: FeesUpdated(
        ctx=ctx, auction_id=to_hex_id(a["auctionId"]), new_fees=a["newFees"]
    ),
}

EVENT_NAMES = tuple(_DECODERS)


def decode_event(name: str, args: Mapping[str, Any], ctx: EventContext) -> MarketplaceEvent:
    """Build a typed event from decoded log args"""
    decoder = _DECODERS.get(name)
    if decoder is None:
        raise IndexerError(f"Unknown marketplace event: {name}")
    return decoder(args, ctx)
