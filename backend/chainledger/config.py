from __future__ import annotations
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings

from chainledger.chains import Chain, ChainFamily

ALCHEMY_RPC_TEMPLATE = "https://{network}.g.alchemy.com/v2/{api_key}"
SOLANA_PUBLIC_RPC = "https://api.mainnet-beta.solana.com"


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./chainledger.db"
    secret_key: str = "dev-secret-key-change-in-production"
    access_token_expire_minutes: int = 60

    frontend_url: str = "http://localhost:3000"
    extra_cors_origins: str = ""  # comma-separated additional origins for production

    # Chain providers
    alchemy_api_key: str = ""
    ethereum_rpc_url: str = ""  # overrides the Alchemy URL when set
    polygon_rpc_url: str = ""
    arbitrum_rpc_url: str = ""
    optimism_rpc_url: str = ""
    solana_rpc_url: str = SOLANA_PUBLIC_RPC
    provider_timeout_seconds: float = 30.0
    provider_rate_limit: int = 10  # concurrent requests per provider client

    # Sync settings
    evm_max_transfer_count: int = 100
    solana_signature_limit: int = 100
    solana_detail_concurrency: int = 10
    sync_history_limit: int = 50

    # Approval settings
    approval_scan_from_block: str = "0x0"

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@dataclass(frozen=True)
class ProviderEndpoint:
    rpc_url: str
    api_key: str = ""


@dataclass(frozen=True)
class ProviderConfig:
    """Explicit chain -> provider mapping handed to the adapter factory."""

    endpoints: dict[Chain, ProviderEndpoint] = field(default_factory=dict)
    timeout_seconds: float = 30.0
    rate_limit: int = 10
    evm_max_transfer_count: int = 100
    solana_signature_limit: int = 100
    solana_detail_concurrency: int = 10

    def endpoint_for(self, chain: Chain) -> Optional[ProviderEndpoint]:
        return self.endpoints.get(chain)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        endpoints: dict[Chain, ProviderEndpoint] = {}
        for chain in Chain:
            if chain.family is ChainFamily.solana:
                if settings.solana_rpc_url:
                    endpoints[chain] = ProviderEndpoint(rpc_url=settings.solana_rpc_url)
                continue
            override = getattr(settings, f"{chain.value}_rpc_url", "")
            if override:
                endpoints[chain] = ProviderEndpoint(rpc_url=override, api_key=settings.alchemy_api_key)
            elif settings.alchemy_api_key:
                endpoints[chain] = ProviderEndpoint(
                    rpc_url=ALCHEMY_RPC_TEMPLATE.format(
                        network=chain.alchemy_network, api_key=settings.alchemy_api_key
                    ),
                    api_key=settings.alchemy_api_key,
                )
        return cls(
            endpoints=endpoints,
            timeout_seconds=settings.provider_timeout_seconds,
            rate_limit=settings.provider_rate_limit,
            evm_max_transfer_count=settings.evm_max_transfer_count,
            solana_signature_limit=settings.solana_signature_limit,
            solana_detail_concurrency=settings.solana_detail_concurrency,
        )
