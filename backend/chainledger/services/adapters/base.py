from __future__ import annotations
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from chainledger.chains import Chain
from chainledger.errors import ProviderError
from chainledger.schemas.transfer import TokenBalance, TransferDirection, TransferQueryOptions

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """JSON-RPC 2.0 over httpx with a per-client concurrency limit.

    Pass ``http_client`` to share a connection pool (or a mock transport in
    tests); otherwise a short-lived client is opened per call.
    """

    provider = "rpc"

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        rate_limit: int = 10,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self._timeout = timeout
        self._http_client = http_client
        self._semaphore = asyncio.Semaphore(max(rate_limit, 1))

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        resp = await client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        return resp

    async def _rpc(self, method: str, params: list | dict) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        async with self._semaphore:
            try:
                if self._http_client is not None:
                    resp = await self._post(self._http_client, payload)
                else:
                    async with httpx.AsyncClient(timeout=self._timeout) as client:
                        resp = await self._post(client, payload)
                data = resp.json()
            except httpx.HTTPStatusError as e:
                raise ProviderError(
                    f"{self.provider} {method} failed with HTTP {e.response.status_code}",
                    provider=self.provider,
                    status_code=e.response.status_code,
                ) from e
            except httpx.HTTPError as e:
                raise ProviderError(
                    f"{self.provider} {method} request failed: {e}", provider=self.provider
                ) from e
            except ValueError as e:
                raise ProviderError(
                    f"{self.provider} {method} returned invalid JSON", provider=self.provider
                ) from e

        if not isinstance(data, dict):
            raise ProviderError(f"{self.provider} {method} returned an unexpected payload", provider=self.provider)
        if data.get("error"):
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ProviderError(f"{self.provider} RPC error in {method}: {message}", provider=self.provider)
        return data.get("result")


class ChainAdapter(ABC):
    """One normalized fetch contract per chain family."""

    chain: Chain

    @abstractmethod
    async def fetch_transfers(
        self,
        address: str,
        direction: TransferDirection = TransferDirection.both,
        options: Optional[TransferQueryOptions] = None,
    ) -> list[dict]:
        """Provider-native transfer objects for ``address``."""

    @abstractmethod
    async def fetch_native_balance(self, address: str) -> str:
        """Native balance in the chain's smallest unit, as a decimal integer string."""

    @abstractmethod
    async def fetch_token_balances(self, address: str) -> list[TokenBalance]:
        ...

    async def fetch_all_transfers(
        self, address: str, options: Optional[TransferQueryOptions] = None
    ) -> list[dict]:
        return await self.fetch_transfers(address, TransferDirection.both, options)


def hex_to_int_str(value: Optional[str]) -> str:
    """``"0x1bc16d674ec80000"`` -> ``"2000000000000000000"``; empty/None -> ``"0"``."""
    if value is None or value in ("", "0x"):
        return "0"
    if isinstance(value, int):
        return str(value)
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return str(int(text, 16))
    return str(int(text))
