"""Map provider-native transfer shapes onto ``TransferRecord``.

Rules shared by every chain:

* ``value`` stays a decimal integer string; nothing is routed through float.
* a missing recipient stays ``None``.
* timestamps come from the payload or are left as ``""``; no extra lookups.
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from chainledger.chains import Chain
from chainledger.errors import PerRecordError
from chainledger.schemas.transfer import TransferCategory, TransferRecord
from chainledger.services.adapters.base import hex_to_int_str

logger = logging.getLogger(__name__)

EVM_CATEGORIES = {
    "external": TransferCategory.native,
    "internal": TransferCategory.native,
    "erc20": TransferCategory.fungible,
    "erc721": TransferCategory.nft,
    "specialnft": TransferCategory.nft,
    "erc1155": TransferCategory.multi_token,
}

SOL_NATIVE_ASSET = "SOL"
SPL_TRANSFER_TYPES = ("transfer", "transferChecked")


def _evm_raw_value(raw: dict) -> str:
    raw_contract = raw.get("rawContract") or {}
    contract_value = raw_contract.get("value")
    if contract_value:
        return hex_to_int_str(contract_value)
    value = raw.get("value")
    if value is None:
        return "0"
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    # Alchemy's decimal-adjusted float; its text form is the best that survives
    return repr(value)


def _evm_decimals(raw_contract: dict) -> Optional[int]:
    decimal = raw_contract.get("decimal")
    if decimal in (None, ""):
        return None
    return int(hex_to_int_str(decimal))


def normalize_evm_transfer(chain: Chain, raw: dict) -> TransferRecord:
    tx_hash = raw.get("hash")
    if not tx_hash:
        raise PerRecordError("Transfer is missing its transaction hash")
    raw_contract = raw.get("rawContract") or {}
    metadata = raw.get("metadata") or {}
    category = EVM_CATEGORIES.get((raw.get("category") or "").lower())
    if category is None:
        raise PerRecordError(f"Unknown transfer category {raw.get('category')!r}", tx_hash=tx_hash)

    try:
        value = _evm_raw_value(raw)
        decimals = _evm_decimals(raw_contract)
    except (TypeError, ValueError) as e:
        raise PerRecordError(f"Unparseable transfer amount: {e}", tx_hash=tx_hash) from e

    token_id = raw.get("erc721TokenId") or raw.get("tokenId")
    return TransferRecord(
        hash=tx_hash,
        chain=chain.value,
        from_address=(raw.get("from") or "").lower(),
        to_address=raw["to"].lower() if raw.get("to") else None,
        asset=raw.get("asset") or None,
        value=value,
        category=category,
        block_ref=raw.get("blockNum") or "",
        timestamp=metadata.get("blockTimestamp") or "",
        contract_address=(raw_contract.get("address") or None),
        decimals=decimals,
        token_id=token_id,
    )


def _account_key(key) -> str:
    return key if isinstance(key, str) else (key or {}).get("pubkey", "")


def _iter_parsed_instructions(tx: dict) -> Iterable[dict]:
    message = tx.get("transaction", {}).get("message", {})
    yield from message.get("instructions", []) or []
    for inner in (tx.get("meta") or {}).get("innerInstructions", []) or []:
        yield from inner.get("instructions", []) or []


def _first_transfer(tx: dict) -> Optional[dict]:
    """First System or SPL token transfer instruction, flattened."""
    for instruction in _iter_parsed_instructions(tx):
        parsed = instruction.get("parsed")
        if not isinstance(parsed, dict):
            continue
        info = parsed.get("info") or {}
        kind = parsed.get("type")
        program = instruction.get("program")
        if program == "system" and kind == "transfer":
            return {
                "from": info.get("source"),
                "to": info.get("destination"),
                "value": str(info.get("lamports", 0)),
                "asset": SOL_NATIVE_ASSET,
                "mint": None,
                "decimals": 9,
            }
        if program in ("spl-token", "spl-token-2022") and kind in SPL_TRANSFER_TYPES:
            token_amount = info.get("tokenAmount") or {}
            return {
                "from": info.get("authority") or info.get("source"),
                "to": info.get("destination"),
                "value": str(info.get("amount") or token_amount.get("amount") or "0"),
                "asset": info.get("mint"),
                "mint": info.get("mint"),
                "decimals": token_amount.get("decimals"),
            }
    return None


def _block_time_iso(block_time) -> str:
    if block_time is None:
        return ""
    return datetime.fromtimestamp(int(block_time), tz=timezone.utc).isoformat()


def normalize_solana_transaction(raw: dict) -> TransferRecord:
    signature = raw.get("signature") or next(
        iter(raw.get("transaction", {}).get("signatures", []) or []), None
    )
    if not signature:
        raise PerRecordError("Transaction is missing its signature")
    meta = raw.get("meta") or {}

    try:
        transfer = _first_transfer(raw)
        account_keys = raw.get("transaction", {}).get("message", {}).get("accountKeys", []) or []
        fee_payer = _account_key(account_keys[0]) if account_keys else ""
        timestamp = _block_time_iso(raw.get("blockTime"))
    except (TypeError, ValueError, AttributeError) as e:
        raise PerRecordError(f"Unparseable Solana transaction: {e}", tx_hash=signature) from e

    if transfer is None:
        transfer = {"from": fee_payer, "to": None, "value": "0", "asset": None, "mint": None, "decimals": None}

    return TransferRecord(
        hash=signature,
        chain=Chain.solana.value,
        from_address=transfer["from"] or fee_payer,
        to_address=transfer["to"] or None,
        asset=transfer["asset"],
        value=transfer["value"],
        category=TransferCategory.transfer,
        block_ref=str(raw.get("slot", "")),
        timestamp=timestamp,
        contract_address=transfer["mint"],
        decimals=transfer["decimals"],
        fee=str(meta.get("fee", 0)),
        status="failed" if meta.get("err") else "success",
    )


def normalize_transfer(chain: Chain, raw: dict) -> TransferRecord:
    if chain is Chain.solana:
        return normalize_solana_transaction(raw)
    return normalize_evm_transfer(chain, raw)


def dedupe_transfers(records: Iterable[TransferRecord]) -> list[TransferRecord]:
    """Keep the first record per ``(hash, chain)``."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for record in records:
        if record.key in seen:
            continue
        seen.add(record.key)
        unique.append(record)
    return unique
