from chainledger.services.adapters.base import ChainAdapter, JsonRpcClient
from chainledger.services.adapters.evm import EvmAdapter
from chainledger.services.adapters.solana import SolanaAdapter
from chainledger.services.adapters.factory import AdapterFactory, adapter_factory, build_adapter

__all__ = [
    "ChainAdapter",
    "JsonRpcClient",
    "EvmAdapter",
    "SolanaAdapter",
    "AdapterFactory",
    "adapter_factory",
    "build_adapter",
]
