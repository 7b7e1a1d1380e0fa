"""
Shared constants for the marketplace projection.
"""

from enum import Enum

ADDRESS_ZERO = "0x0000000000000000000000000000000000000000"


class AuctionStatus(str, Enum):
    """Auction lifecycle states"""
    OPEN = "OPEN"
    SOLD = "SOLD"
    CANCELLED = "CANCELLED"


class BidStatus(str, Enum):
    """Bid lifecycle states"""
    ACTIVE = "ACTIVE"
    DROPPED = "DROPPED"
    ACCEPTED = "ACCEPTED"


# Marketplace category enum, indexed by on-chain code
CATEGORY_LABELS = (
    "art",
    "music",
    "sport",
    "meme",
    "photo",
    "game",
    "animal",
    "license",
    "legendary",
)
CATEGORY_OTHERS = "others"


def category_label(code: int) -> str:
    """Convert a marketplace category code to its label"""
    if 0 <= code < len(CATEGORY_LABELS):
        return CATEGORY_LABELS[code]
    return CATEGORY_OTHERS
