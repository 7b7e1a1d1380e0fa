"""
Identity resolution for projected entities.

Composite keys are plain concatenations by default (``address + tokenId``,
``auctionId + ordinal``), which is the format existing consumers query by.
A non-empty delimiter can be configured to make the keys collision free
when components are not fixed width.
"""

from typing import Any

from web3 import Web3


def normalize_address(address_raw: Any) -> str:
    """Normalize an address to lowercase 0x-prefixed hex, handling YAML int conversion"""
    if isinstance(address_raw, int):
        return f"0x{address_raw:040x}"
    if isinstance(address_raw, (bytes, bytearray)):
        return Web3.to_hex(address_raw).lower()
    address_hex = str(address_raw).strip()
    if not address_hex.startswith(("0x", "0X")):
        address_hex = f"0x{address_hex}"
    return address_hex.lower()


def to_hex_id(value: Any) -> str:
    """Render an event id (bytes32, HexBytes, int or str) as 0x-prefixed lowercase hex"""
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value).lower()
    if isinstance(value, int):
        return hex(value)
    # HexBytes from older hexbytes releases render without a prefix
    hx = getattr(value, "hex", None)
    if callable(hx) and not isinstance(value, str):
        value = hx()
    s = str(value).lower()
    return s if s.startswith("0x") else f"0x{s}"


def id_to_bytes32(entity_id: str) -> bytes:
    """Convert a hex id back to a left-padded bytes32 call argument"""
    return Web3.to_bytes(hexstr=entity_id).rjust(32, b"\0")


class IdentityResolver:
    """Builds deterministic entity keys from event fields"""

    def __init__(self, delimiter: str = ""):
        self.delimiter = delimiter

    def nft_id(self, contract_address: Any, token_id: int) -> str:
        return f"{normalize_address(contract_address)}{self.delimiter}{int(token_id)}"

    def bid_id(self, auction_id: str, ordinal: int) -> str:
        return f"{auction_id}{self.delimiter}{int(ordinal)}"

    def user_id(self, address: Any) -> str:
        return normalize_address(address)

    def payment_method_id(self, token_address: Any) -> str:
        return normalize_address(token_address)
