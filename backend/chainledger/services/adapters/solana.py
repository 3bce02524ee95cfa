from __future__ import annotations
import asyncio
import logging
from typing import Optional

import httpx

from chainledger.chains import Chain
from chainledger.errors import ProviderError
from chainledger.schemas.transfer import TokenBalance, TransferDirection, TransferQueryOptions
from chainledger.services.adapters.base import ChainAdapter, JsonRpcClient

logger = logging.getLogger(__name__)

SPL_TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


class SolanaAdapter(JsonRpcClient, ChainAdapter):
    """Signature-then-detail adapter for Solana RPC.

    Detail fetches run concurrently but never more than ``detail_concurrency``
    at a time, so a 100-signature wallet does not burst 100 requests at a
    rate-limited provider.
    """

    provider = "solana"

    def __init__(
        self,
        rpc_url: str,
        signature_limit: int = 100,
        detail_concurrency: int = 10,
        timeout: float = 30.0,
        rate_limit: int = 10,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(rpc_url, timeout=timeout, rate_limit=rate_limit, http_client=http_client)
        self.chain = Chain.solana
        self.signature_limit = signature_limit
        self.detail_concurrency = max(detail_concurrency, 1)

    # ── transfers ──────────────────────────────────────────────────

    async def get_signatures(self, address: str, limit: int) -> list[dict]:
        result = await self._rpc("getSignaturesForAddress", [address, {"limit": limit}])
        if not isinstance(result, list):
            raise ProviderError(
                f"getSignaturesForAddress returned no result for {address}", provider=self.provider
            )
        return result

    async def get_parsed_transaction(self, signature: str) -> Optional[dict]:
        return await self._rpc(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )

    async def fetch_transfers(
        self,
        address: str,
        direction: TransferDirection = TransferDirection.both,
        options: Optional[TransferQueryOptions] = None,
    ) -> list[dict]:
        """Parsed transactions touching ``address``.

        The signature index covers sent and received alike, so ``direction``
        does not narrow the query. A signature whose detail fetch fails is
        dropped; the batch carries on.
        """
        limit = (options.max_count if options and options.max_count else None) or self.signature_limit
        signatures = await self.get_signatures(address, limit)
        semaphore = asyncio.Semaphore(self.detail_concurrency)

        async def _fetch_one(entry: dict) -> Optional[dict]:
            signature = entry.get("signature", "")
            async with semaphore:
                try:
                    tx = await self.get_parsed_transaction(signature)
                except ProviderError as e:
                    logger.warning(f"Dropping Solana transaction {signature}: {e}")
                    return None
            if not tx:
                return None
            return {**tx, "signature": signature}

        transactions = await asyncio.gather(*(_fetch_one(entry) for entry in signatures))
        fetched = [tx for tx in transactions if tx is not None]
        logger.info(
            f"Fetched {len(fetched)}/{len(signatures)} Solana transactions for {address}"
        )
        return fetched

    # ── balances ───────────────────────────────────────────────────

    async def fetch_native_balance(self, address: str) -> str:
        result = await self._rpc("getBalance", [address])
        value = result.get("value") if isinstance(result, dict) else result
        if value is None:
            raise ProviderError(f"getBalance returned no value for {address}", provider=self.provider)
        return str(int(value))

    async def fetch_token_balances(self, address: str) -> list[TokenBalance]:
        result = await self._rpc(
            "getParsedTokenAccountsByOwner",
            [address, {"programId": SPL_TOKEN_PROGRAM}, {"encoding": "jsonParsed"}],
        )
        accounts = result.get("value", []) if isinstance(result, dict) else []
        balances = []
        for account in accounts:
            info = (
                account.get("account", {})
                .get("data", {})
                .get("parsed", {})
                .get("info", {})
            )
            token_amount = info.get("tokenAmount", {})
            mint = info.get("mint")
            if not mint:
                continue
            balances.append(TokenBalance(
                contract_address=mint,
                balance=str(token_amount.get("amount", "0")),
                decimals=token_amount.get("decimals", 0) or 0,
            ))
        return balances
