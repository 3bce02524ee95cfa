from __future__ import annotations
from typing import Callable, Optional

import httpx

from chainledger.chains import Chain, ChainFamily
from chainledger.config import ProviderConfig
from chainledger.errors import UnsupportedChainError
from chainledger.services.adapters.base import ChainAdapter
from chainledger.services.adapters.evm import EvmAdapter
from chainledger.services.adapters.solana import SolanaAdapter

AdapterFactory = Callable[[Chain], ChainAdapter]


def build_adapter(
    chain: Chain | str,
    providers: ProviderConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ChainAdapter:
    """Adapter for ``chain`` wired to its configured provider.

    Raises ``UnsupportedChainError`` for unknown tags and for chains with no
    configured endpoint (for example an EVM chain without an Alchemy key).
    """
    chain = Chain.parse(chain)
    endpoint = providers.endpoint_for(chain)
    if endpoint is None:
        raise UnsupportedChainError(f"No provider configured for chain: {chain.value}")

    if chain.family is ChainFamily.solana:
        return SolanaAdapter(
            rpc_url=endpoint.rpc_url,
            signature_limit=providers.solana_signature_limit,
            detail_concurrency=providers.solana_detail_concurrency,
            timeout=providers.timeout_seconds,
            rate_limit=providers.rate_limit,
            http_client=http_client,
        )
    return EvmAdapter(
        chain=chain,
        rpc_url=endpoint.rpc_url,
        max_count=providers.evm_max_transfer_count,
        timeout=providers.timeout_seconds,
        rate_limit=providers.rate_limit,
        http_client=http_client,
    )


def adapter_factory(
    providers: ProviderConfig, http_client: Optional[httpx.AsyncClient] = None
) -> AdapterFactory:
    def _factory(chain: Chain) -> ChainAdapter:
        return build_adapter(chain, providers, http_client=http_client)

    return _factory
