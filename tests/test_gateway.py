#!/usr/bin/env python3
"""
Unit tests for the contract read gateway
"""

from unittest.mock import MagicMock

import pytest
from web3.exceptions import ContractLogicError

from conftest import MARKETPLACE, NFT_TOKEN, PAYMENT_TOKEN, PLATFORM_TOKEN
from nft_indexer.gateway import ContractReader, PaymentBreakdown


class TestContractReader:

    @pytest.fixture(autouse=True)
    def setup(self):
        """One mock contract per ABI so fallbacks can be told apart"""
        self.w3 = MagicMock()
        self.reader = ContractReader(self.w3, platform_token=PLATFORM_TOKEN)
        self.contracts = {name: MagicMock(name=name) for name in self.reader.contract_abis}
        abis = self.reader.contract_abis

        def contract(address, abi):
            return self.contracts[next(name for name, value in abis.items() if value is abi)]

        self.w3.eth.contract.side_effect = contract

    def revert(self, fn):
        fn.return_value.call.side_effect = ContractLogicError("execution reverted")

    def test_symbol_and_name(self):
        self.contracts["erc20"].functions.symbol.return_value.call.return_value = "DLF"
        self.contracts["erc20"].functions.name.return_value.call.return_value = "Delfy"

        assert self.reader.token_symbol(PAYMENT_TOKEN).value == "DLF"
        assert self.reader.token_name(PAYMENT_TOKEN).value == "Delfy"

    def test_bytes32_symbol_fallback(self):
        """Test tokens returning bytes32 instead of string"""
        self.revert(self.contracts["erc20"].functions.symbol)
        self.contracts["erc20_bytes32"].functions.symbol.return_value.call.return_value = b"MKR" + b"\0" * 29

        result = self.reader.token_symbol(PAYMENT_TOKEN)

        assert not result.reverted
        assert result.value == "MKR"

    def test_name_revert(self):
        self.revert(self.contracts["erc20"].functions.name)
        self.revert(self.contracts["erc20_bytes32"].functions.name)

        result = self.reader.token_name(PAYMENT_TOKEN)

        assert result.reverted
        assert result.value is None

    def test_token_uri(self):
        self.contracts["erc721"].functions.tokenURI.return_value.call.return_value = "ipfs://five"

        assert self.reader.token_uri(NFT_TOKEN, 5).value == "ipfs://five"
        self.contracts["erc721"].functions.tokenURI.assert_called_with(5)

    def test_category_label(self):
        """Test the category code is converted and the id sent as bytes32"""
        self.contracts["marketplace"].functions.category.return_value.call.return_value = 2

        assert self.reader.category(MARKETPLACE, "0x1").value == "sport"
        self.contracts["marketplace"].functions.category.assert_called_with(b"\0" * 31 + b"\x01")

    def test_unknown_category_code(self):
        self.contracts["marketplace"].functions.category.return_value.call.return_value = 42
        assert self.reader.category(MARKETPLACE, "0x1").value == "others"

    def test_category_revert(self):
        self.revert(self.contracts["marketplace"].functions.category)
        assert self.reader.category(MARKETPLACE, "0x1").reverted

    def test_platform_cut(self):
        self.contracts["marketplace"].functions.getPlatformCut.return_value.call.return_value = [5, 1, 2, 20]

        result = self.reader.platform_cut(MARKETPLACE, "0x1")

        assert result.value == PaymentBreakdown(platform_cut=5, ref_bonus=1, cash_back=2, total_value=20)

    def test_platform_cut_revert(self):
        self.revert(self.contracts["marketplace"].functions.getPlatformCut)
        assert self.reader.platform_cut(MARKETPLACE, "0x1").reverted

    def test_is_platform_token_is_local(self):
        """Test the platform token check issues no call"""
        assert self.reader.is_platform_token(PLATFORM_TOKEN.upper().replace("0X", "0x"))
        assert not self.reader.is_platform_token(PAYMENT_TOKEN)
        self.w3.eth.contract.assert_not_called()

    def test_contracts_are_cached(self):
        self.contracts["erc20"].functions.symbol.return_value.call.return_value = "DLF"

        self.reader.token_symbol(PAYMENT_TOKEN)
        self.reader.token_symbol(PAYMENT_TOKEN)

        assert self.w3.eth.contract.call_count == 1


def test_no_platform_token_configured():
    reader = ContractReader(MagicMock())
    assert not reader.is_platform_token(PLATFORM_TOKEN)
