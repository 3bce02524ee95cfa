from __future__ import annotations
import asyncio
import logging
from typing import Optional

import httpx
from eth_abi.exceptions import DecodingError

from chainledger.chains import Chain
from chainledger.errors import ProviderError
from chainledger.schemas.transfer import TokenBalance, TransferDirection, TransferQueryOptions
from chainledger.services.adapters.base import ChainAdapter, JsonRpcClient, hex_to_int_str
from chainledger.services.adapters.erc20 import (
    APPROVAL_TOPIC,
    address_topic,
    decode_uint256,
    encode_allowance_call,
    topic_to_address,
)

logger = logging.getLogger(__name__)

TRANSFER_CATEGORIES = ["external", "erc20", "erc721", "erc1155"]
GENESIS_BLOCK = "0x0"
LATEST_BLOCK = "latest"


class EvmAdapter(JsonRpcClient, ChainAdapter):
    """Alchemy-backed adapter shared by every EVM chain."""

    provider = "alchemy"

    def __init__(
        self,
        chain: Chain,
        rpc_url: str,
        max_count: int = 100,
        timeout: float = 30.0,
        rate_limit: int = 10,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(rpc_url, timeout=timeout, rate_limit=rate_limit, http_client=http_client)
        self.chain = chain
        self.max_count = max_count

    # ── transfers (alchemy_getAssetTransfers) ──────────────────────

    async def _asset_transfers(
        self, address_filter: dict, options: TransferQueryOptions
    ) -> list[dict]:
        max_count = options.max_count or self.max_count
        params = {
            "fromBlock": options.from_block or GENESIS_BLOCK,
            "toBlock": options.to_block or LATEST_BLOCK,
            "category": TRANSFER_CATEGORIES,
            "maxCount": hex(max_count),
            "withMetadata": True,
            "excludeZeroValue": False,
            **address_filter,
        }
        result = await self._rpc("alchemy_getAssetTransfers", [params])
        if not isinstance(result, dict):
            raise ProviderError(
                f"alchemy_getAssetTransfers returned no result for {self.chain.value}",
                provider=self.provider,
            )
        transfers = result.get("transfers") or []
        return list(transfers)[:max_count]

    async def fetch_transfers(
        self,
        address: str,
        direction: TransferDirection = TransferDirection.both,
        options: Optional[TransferQueryOptions] = None,
    ) -> list[dict]:
        """Sent and/or received transfers, concatenated without dedup.

        A self-transfer shows up in both result sets.
        """
        options = options or TransferQueryOptions()
        transfers: list[dict] = []
        if direction in (TransferDirection.outgoing, TransferDirection.both):
            transfers.extend(await self._asset_transfers({"fromAddress": address}, options))
        if direction in (TransferDirection.incoming, TransferDirection.both):
            transfers.extend(await self._asset_transfers({"toAddress": address}, options))
        logger.info(f"Fetched {len(transfers)} {self.chain.value} transfers for {address}")
        return transfers

    # ── balances ───────────────────────────────────────────────────

    async def fetch_native_balance(self, address: str) -> str:
        result = await self._rpc("eth_getBalance", [address, LATEST_BLOCK])
        try:
            return hex_to_int_str(result)
        except (TypeError, ValueError) as e:
            raise ProviderError(f"eth_getBalance returned {result!r}", provider=self.provider) from e

    async def fetch_token_metadata(self, contract_address: str) -> dict:
        result = await self._rpc("alchemy_getTokenMetadata", [contract_address])
        return result if isinstance(result, dict) else {}

    async def fetch_token_balances(self, address: str) -> list[TokenBalance]:
        result = await self._rpc("alchemy_getTokenBalances", [address, "erc20"])
        entries = (result or {}).get("tokenBalances", []) if isinstance(result, dict) else []

        non_zero = []
        for entry in entries:
            raw = entry.get("tokenBalance")
            try:
                balance = hex_to_int_str(raw)
            except (TypeError, ValueError):
                logger.warning(f"Skipping unparseable token balance {raw!r} on {self.chain.value}")
                continue
            if balance != "0":
                non_zero.append((entry.get("contractAddress", ""), balance))

        metadata = await asyncio.gather(
            *(self.fetch_token_metadata(contract) for contract, _ in non_zero)
        )
        return [
            TokenBalance(
                contract_address=contract,
                balance=balance,
                name=meta.get("name") or "Unknown",
                symbol=meta.get("symbol") or "UNKNOWN",
                decimals=meta.get("decimals") or 18,
                logo=meta.get("logo") or None,
            )
            for (contract, balance), meta in zip(non_zero, metadata)
        ]

    # ── approvals (eth_getLogs / eth_call) ─────────────────────────

    async def fetch_approval_events(
        self, owner: str, from_block: Optional[str] = None, to_block: Optional[str] = None
    ) -> list[dict]:
        """ERC-20 ``Approval`` logs emitted with ``owner`` as the approver."""
        logs = await self._rpc(
            "eth_getLogs",
            [{
                "fromBlock": from_block or GENESIS_BLOCK,
                "toBlock": to_block or LATEST_BLOCK,
                "topics": [APPROVAL_TOPIC, address_topic(owner)],
            }],
        )
        events = []
        for log in logs or []:
            topics = log.get("topics") or []
            if len(topics) != 3:
                # ERC-721 Approval indexes the token id as a fourth topic
                continue
            try:
                spender = topic_to_address(topics[2])
                value = decode_uint256(log.get("data") or "0x")
            except (DecodingError, ValueError) as e:
                logger.warning(f"Skipping malformed Approval log in {log.get('transactionHash')}: {e}")
                continue
            events.append({
                "token_address": (log.get("address") or "").lower(),
                "spender_address": spender,
                "value": value,
                "block_number": log.get("blockNumber"),
                "tx_hash": log.get("transactionHash"),
            })
        return events

    async def read_allowance(self, token_address: str, owner: str, spender: str) -> str:
        result = await self._rpc(
            "eth_call",
            [{"to": token_address, "data": encode_allowance_call(owner, spender)}, LATEST_BLOCK],
        )
        if not isinstance(result, str) or result in ("", "0x"):
            raise ProviderError(
                f"allowance() returned no data for token {token_address}", provider=self.provider
            )
        try:
            return decode_uint256(result)
        except (DecodingError, ValueError) as e:
            raise ProviderError(
                f"allowance() returned malformed data for token {token_address}: {result!r}",
                provider=self.provider,
            ) from e
