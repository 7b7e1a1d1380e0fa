#!/usr/bin/env python3
"""
External read gateway.

Read-only calls against the marketplace and token contracts for metadata
the events do not carry. Every call may revert; a revert is logged and
reported as a CallResult so callers can fall back to a default. There is
no retry: a reverted read is a permanent miss for that event.
"""

import json
import logging
import os
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from web3 import Web3

from .constants import category_label
from .ids import id_to_bytes32, normalize_address

logger = logging.getLogger(__name__)

ABI_DIR = os.path.join(os.path.dirname(__file__), "abis")
DEFAULT_ABIS = {
    "marketplace": "abis/marketplace.json",
    "erc20": "abis/erc20.json",
    "erc20_bytes32": "abis/erc20_bytes32.json",
    "erc721": "abis/erc721.json",
}


class CallResult(NamedTuple):
    """Outcome of a contract read"""
    value: Any = None
    reverted: bool = False


class PaymentBreakdown(NamedTuple):
    platform_cut: int
    ref_bonus: int
    cash_back: int
    total_value: int


def load_abis(paths: Dict[str, str]) -> Dict[str, List[Dict]]:
    """Load contract ABIs from JSON files relative to the package"""
    abis = {}
    for name, path in paths.items():
        full_path = path if os.path.isabs(path) else os.path.join(os.path.dirname(__file__), path)
        with open(full_path, "r") as f:
            data = json.load(f)

        # Handle both formats: array or dict with 'abi' key (build artifact)
        if isinstance(data, dict) and "abi" in data:
            abis[name] = data["abi"]
        elif isinstance(data, list):
            abis[name] = data
        else:
            raise ValueError(f"Invalid ABI format for {name}")
    return abis


class ContractReader:
    """Wraps possibly-reverting contract reads used by the projector"""

    def __init__(self, w3: Web3, platform_token: Optional[str] = None,
                 abis: Optional[Dict[str, List[Dict]]] = None):
        self.w3 = w3
        self.platform_token = normalize_address(platform_token) if platform_token else None
        self.contract_abis = abis if abis is not None else load_abis(DEFAULT_ABIS)
        self._contracts = {}

    def _contract(self, address: str, contract_type: str):
        """Get (cached) contract instance for given address and type"""
        key = (contract_type, address.lower())
        if key not in self._contracts:
            abi = self.contract_abis.get(contract_type)
            if not abi:
                raise ValueError(f"Unknown contract type: {contract_type}")
            self._contracts[key] = self.w3.eth.contract(
                address=Web3.to_checksum_address(address), abi=abi
            )
        return self._contracts[key]

    def _try_call(self, label: str, target: str, call: Callable[[], Any]) -> CallResult:
        try:
            return CallResult(call())
        except Exception as e:
            logger.warning(f"{label} reverted for {target}: {e}")
            return CallResult(reverted=True)

    def _erc20_text(self, token: str, fn_name: str) -> CallResult:
        """Read name()/symbol(), falling back to the bytes32 variant some tokens use"""
        result = self._try_call(
            f"ERC20 {fn_name}", token,
            lambda: getattr(self._contract(token, "erc20").functions, fn_name)().call(),
        )
        if not result.reverted:
            return result

        raw = self._try_call(
            f"ERC20 bytes32 {fn_name}", token,
            lambda: getattr(self._contract(token, "erc20_bytes32").functions, fn_name)().call(),
        )
        if raw.reverted:
            return raw
        return CallResult(raw.value.rstrip(b"\0").decode("utf-8", errors="ignore"))

    def token_symbol(self, token: str) -> CallResult:
        return self._erc20_text(token, "symbol")

    def token_name(self, token: str) -> CallResult:
        return self._erc20_text(token, "name")

    def token_uri(self, nft_token: str, token_id: int) -> CallResult:
        return self._try_call(
            "ERC721 tokenURI", f"{nft_token}#{token_id}",
            lambda: self._contract(nft_token, "erc721").functions.tokenURI(token_id).call(),
        )

    def category(self, marketplace: str, auction_id: str) -> CallResult:
        """Category label of an auction"""
        result = self._try_call(
            "Auction category", auction_id,
            lambda: self._contract(marketplace, "marketplace").functions.category(id_to_bytes32(auction_id)).call(),
        )
        if result.reverted:
            return result
        return CallResult(category_label(int(result.value)))

    def platform_cut(self, marketplace: str, auction_id: str) -> CallResult:
        """Payment split of a sold auction as a PaymentBreakdown"""
        result = self._try_call(
            "Platform payment", auction_id,
            lambda: self._contract(marketplace, "marketplace").functions.getPlatformCut(id_to_bytes32(auction_id)).call(),
        )
        if result.reverted:
            return result
        return CallResult(PaymentBreakdown(*(int(v) for v in result.value)))

    def is_platform_token(self, token: str) -> bool:
        """Local comparison against the configured platform token, no call issued"""
        return self.platform_token is not None and normalize_address(token) == self.platform_token
