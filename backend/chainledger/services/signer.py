from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Optional, Protocol

from web3 import Web3

from chainledger.chains import Chain
from chainledger.services.adapters.erc20 import encode_approve_call


@dataclass(frozen=True)
class ContractCall:
    """An unsigned contract call for an external wallet to sign and send."""

    chain: str
    chain_id: Optional[int]
    from_address: str
    to: str
    data: str
    value: str = "0"

    def as_dict(self) -> dict:
        return asdict(self)


class WalletSigner(Protocol):
    """Browser/extension-style signer. Returns the submitted transaction hash."""

    async def send_transaction(self, call: ContractCall) -> str:
        ...


def build_revoke_call(chain: Chain, wallet_address: str, token_address: str, spender_address: str) -> ContractCall:
    """``approve(spender, 0)`` on the token, sent from the approving wallet."""
    return ContractCall(
        chain=chain.value,
        chain_id=chain.chain_id,
        from_address=Web3.to_checksum_address(wallet_address),
        to=Web3.to_checksum_address(token_address),
        data=encode_approve_call(spender_address, 0),
    )
