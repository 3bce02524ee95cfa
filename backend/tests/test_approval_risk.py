"""Unlimited-allowance detection and spender classification."""
import pytest

from chainledger.models.token_approval import RiskLevel
from chainledger.services.approval_risk import (
    MAX_UINT256,
    MAX_UINT256_HEX,
    classify,
    is_unlimited_allowance,
    resolve_spender_name,
)

from conftest import UNISWAP_V3, UNKNOWN_SPENDER


class TestUnlimited:
    @pytest.mark.parametrize("allowance", [
        str(MAX_UINT256),
        MAX_UINT256_HEX,
        MAX_UINT256_HEX.upper().replace("0X", "0x"),
        "unlimited",
        "Infinite",
    ])
    def test_unlimited(self, allowance):
        assert is_unlimited_allowance(allowance)

    @pytest.mark.parametrize("allowance", [None, "", "0", "1000", str(MAX_UINT256 - 1)])
    def test_bounded(self, allowance):
        assert not is_unlimited_allowance(allowance)


class TestClassify:
    def test_known_protocols_are_low(self):
        assert classify(UNISWAP_V3, "Uniswap V3 Router") is RiskLevel.low
        assert classify("0x1", "Aave V3 Pool") is RiskLevel.low
        assert classify("0x1", "curve router") is RiskLevel.low

    def test_everything_else_is_unknown(self):
        assert classify(UNKNOWN_SPENDER, None) is RiskLevel.unknown
        assert classify(UNKNOWN_SPENDER, "Totally Legit Drainer") is RiskLevel.unknown

    def test_resolve_spender_name(self):
        assert resolve_spender_name(UNISWAP_V3.upper().replace("0X", "0x")) == "Uniswap V3 Router"
        assert resolve_spender_name(UNKNOWN_SPENDER) is None
