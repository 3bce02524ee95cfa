from __future__ import annotations
import enum
from typing import Optional

import base58
from web3 import Web3

from chainledger.errors import InvalidAddressError, UnsupportedChainError


class ChainFamily(str, enum.Enum):
    evm = "evm"
    solana = "solana"


class Chain(str, enum.Enum):
    ethereum = "ethereum"
    polygon = "polygon"
    arbitrum = "arbitrum"
    optimism = "optimism"
    solana = "solana"

    @classmethod
    def parse(cls, tag: str | "Chain") -> "Chain":
        if isinstance(tag, Chain):
            return tag
        try:
            return cls((tag or "").strip().lower())
        except ValueError:
            raise UnsupportedChainError(f"Unsupported chain: {tag}") from None

    @property
    def family(self) -> ChainFamily:
        return ChainFamily.solana if self is Chain.solana else ChainFamily.evm

    @property
    def is_evm(self) -> bool:
        return self.family is ChainFamily.evm

    @property
    def chain_id(self) -> Optional[int]:
        return EVM_CHAIN_IDS.get(self)

    @property
    def alchemy_network(self) -> Optional[str]:
        return ALCHEMY_NETWORKS.get(self)


EVM_CHAIN_IDS = {
    Chain.ethereum: 1,
    Chain.polygon: 137,
    Chain.arbitrum: 42161,
    Chain.optimism: 10,
}

ALCHEMY_NETWORKS = {
    Chain.ethereum: "eth-mainnet",
    Chain.polygon: "polygon-mainnet",
    Chain.arbitrum: "arb-mainnet",
    Chain.optimism: "opt-mainnet",
}


def is_valid_address(chain: Chain, address: str) -> bool:
    if not address:
        return False
    if chain.is_evm:
        # mixed-case input must carry a valid EIP-55 checksum
        return address.startswith("0x") and Web3.is_address(address)
    if not (32 <= len(address) <= 44):
        return False
    try:
        return len(base58.b58decode(address)) == 32
    except ValueError:
        return False


def normalize_address(chain: Chain, address: str) -> str:
    """Canonical stored form of a wallet address.

    EVM addresses are lower-cased. Solana addresses are base58 and case
    sensitive, so they are validated and kept as given.
    """
    address = (address or "").strip()
    if not is_valid_address(chain, address):
        raise InvalidAddressError(f"Invalid {chain.value} address: {address}")
    if chain.is_evm:
        return address.lower()
    return address


def canonical_lookup(address: Optional[str]) -> Optional[str]:
    """Stored form of an address when the chain is not known (filters, lookups)."""
    if not address:
        return None
    address = address.strip()
    return address.lower() if address.lower().startswith("0x") else address


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()
