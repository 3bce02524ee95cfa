from __future__ import annotations
import logging
from typing import Optional

from chainledger.chains import Chain, canonical_lookup, normalize_address
from chainledger.errors import (
    ChainLedgerError,
    NoSignerError,
    PersistenceError,
    ProviderError,
    UnsupportedChainError,
)
from chainledger.models.token_approval import RiskLevel
from chainledger.schemas.approval import (
    ApprovalListResult,
    ApprovalResult,
    ContractCallResponse,
    RevokeCallResult,
    RevokeResult,
    ScanResult,
    TokenApprovalInfo,
    TokenApprovalResponse,
)
from chainledger.services.adapters.factory import AdapterFactory
from chainledger.services.approval_risk import classify, is_unlimited_allowance, resolve_spender_name
from chainledger.services.ledger_store import LedgerStore
from chainledger.services.signer import WalletSigner, build_revoke_call

logger = logging.getLogger(__name__)


def _evm_chain(chain: str) -> Chain:
    chain_tag = Chain.parse(chain)
    if not chain_tag.is_evm:
        raise UnsupportedChainError(f"Token approvals are not supported on {chain_tag.value}")
    return chain_tag


class TokenApprovalService:
    def __init__(self, store: LedgerStore, adapters: AdapterFactory, default_from_block: str = "0x0"):
        self.store = store
        self.adapters = adapters
        self.default_from_block = default_from_block

    # ── discovery ──────────────────────────────────────────────────

    async def scan_approvals(
        self,
        owner_id: str,
        wallet_address: str,
        chain: str,
        from_block: Optional[str] = None,
    ) -> ScanResult:
        """Find live ERC-20 allowances granted by a wallet and store snapshots.

        Spenders come from the wallet's ``Approval`` logs; the current
        allowance is read from the token. Zero allowances are skipped, and
        stored approvals are never marked revoked from chain state.
        """
        try:
            chain_tag = _evm_chain(chain)
            address = normalize_address(chain_tag, wallet_address)
            adapter = self.adapters(chain_tag)
            events = await adapter.fetch_approval_events(address, from_block or self.default_from_block)
        except ChainLedgerError as e:
            logger.error(f"Approval scan failed for {wallet_address} on {chain}: {e}")
            return ScanResult(success=False, error=str(e) or "Failed to fetch approvals")

        # latest Approval event per (token, spender); logs arrive oldest first
        latest: dict[tuple[str, str], dict] = {}
        for event in events:
            latest[(event["token_address"], event["spender_address"])] = event

        token_metadata: dict[str, dict] = {}
        saved = []
        for (token, spender), event in latest.items():
            try:
                allowance = await adapter.read_allowance(token, address, spender)
            except ProviderError as e:
                logger.warning(f"Could not read allowance of {spender} on {token}: {e}")
                continue
            if allowance == "0":
                continue

            if token not in token_metadata:
                try:
                    token_metadata[token] = await adapter.fetch_token_metadata(token)
                except ProviderError as e:
                    logger.warning(f"Token metadata unavailable for {token}: {e}")
                    token_metadata[token] = {}
            metadata = token_metadata[token]

            spender_name = resolve_spender_name(spender)
            info = TokenApprovalInfo(
                wallet_address=address,
                chain=chain_tag.value,
                token_address=token,
                token_name=metadata.get("name") or None,
                token_symbol=metadata.get("symbol") or None,
                spender_address=spender,
                spender_name=spender_name,
                allowance=allowance,
                is_unlimited=is_unlimited_allowance(allowance),
                risk_level=classify(spender, spender_name),
                approval_tx_hash=event.get("tx_hash"),
            )
            try:
                saved.append(await self.store.upsert_approval(owner_id, info, keep_risk=True))
            except PersistenceError as e:
                logger.error(f"Error saving approval {token} -> {spender}: {e}")
                return ScanResult(success=False, error=str(e))

        logger.info(f"Approval scan for {address} on {chain_tag.value}: {len(saved)} live approvals")
        return ScanResult(
            success=True,
            found=len(saved),
            approvals=[TokenApprovalResponse.model_validate(a) for a in saved],
        )

    # ── storage ────────────────────────────────────────────────────

    async def save_token_approval(self, owner_id: str, approval: TokenApprovalInfo) -> ApprovalResult:
        try:
            chain_tag = _evm_chain(approval.chain)
            spender = normalize_address(chain_tag, approval.spender_address)
            spender_name = approval.spender_name or resolve_spender_name(spender)
            risk = approval.risk_level
            if risk is RiskLevel.unknown:
                risk = classify(spender, spender_name)
            info = approval.model_copy(update={
                "chain": chain_tag.value,
                "wallet_address": normalize_address(chain_tag, approval.wallet_address),
                "token_address": normalize_address(chain_tag, approval.token_address),
                "spender_address": spender,
                "spender_name": spender_name,
                "is_unlimited": is_unlimited_allowance(approval.allowance),
                "risk_level": risk,
            })
            await self.store.upsert_approval(owner_id, info)
            return ApprovalResult(success=True)
        except ChainLedgerError as e:
            logger.error(f"Error saving token approval: {e}")
            return ApprovalResult(success=False, error=str(e) or "Failed to save approval")

    async def get_token_approvals(
        self,
        owner_id: str,
        wallet_address: Optional[str] = None,
        include_revoked: bool = False,
    ) -> ApprovalListResult:
        try:
            approvals = await self.store.list_approvals(
                owner_id, canonical_lookup(wallet_address), include_revoked=include_revoked
            )
            return ApprovalListResult(
                success=True,
                approvals=[TokenApprovalResponse.model_validate(a) for a in approvals],
            )
        except PersistenceError as e:
            logger.error(f"Error fetching token approvals: {e}")
            return ApprovalListResult(success=False, error=str(e) or "Failed to fetch approvals")

    # ── revocation ─────────────────────────────────────────────────

    async def get_revoke_call(self, owner_id: str, approval_id: int) -> RevokeCallResult:
        """The ``approve(spender, 0)`` call a browser wallet should sign."""
        try:
            approval = await self.store.get_approval(owner_id, approval_id)
            if approval is None:
                return RevokeCallResult(success=False, error="Approval not found")
            call = build_revoke_call(
                _evm_chain(approval.chain),
                approval.wallet_address,
                approval.token_address,
                approval.spender_address,
            )
            return RevokeCallResult(success=True, call=ContractCallResponse(**call.as_dict()))
        except ChainLedgerError as e:
            return RevokeCallResult(success=False, error=str(e))

    async def revoke_approval(
        self, owner_id: str, approval_id: int, signer: Optional[WalletSigner]
    ) -> RevokeResult:
        if signer is None:
            return RevokeResult(success=False, error=str(NoSignerError()))

        try:
            approval = await self.store.get_approval(owner_id, approval_id)
            if approval is None:
                return RevokeResult(success=False, error="Approval not found")
            if approval.is_revoked:
                return RevokeResult(success=False, error="Approval already revoked")
            call = build_revoke_call(
                _evm_chain(approval.chain),
                approval.wallet_address,
                approval.token_address,
                approval.spender_address,
            )
        except ChainLedgerError as e:
            logger.error(f"Error preparing revoke for approval {approval_id}: {e}")
            return RevokeResult(success=False, error=str(e) or "Failed to prepare revoke")

        try:
            tx_hash = await signer.send_transaction(call)
        except Exception as e:
            logger.error(f"Error revoking approval {approval_id}: {e}")
            return RevokeResult(success=False, error=str(e) or "Failed to revoke approval")
        if not tx_hash:
            return RevokeResult(success=False, error="Wallet did not return a transaction hash")

        marked = await self.mark_approval_revoked(owner_id, approval_id, tx_hash)
        if not marked.success:
            return RevokeResult(
                success=False,
                tx_hash=tx_hash,
                error=f"Revoke sent ({tx_hash}) but not saved: {marked.error}",
            )
        return RevokeResult(success=True, tx_hash=tx_hash)

    async def mark_approval_revoked(self, owner_id: str, approval_id: int, tx_hash: str) -> ApprovalResult:
        try:
            await self.store.mark_approval_revoked(owner_id, approval_id, tx_hash)
            return ApprovalResult(success=True)
        except PersistenceError as e:
            logger.error(f"Error marking approval as revoked: {e}")
            return ApprovalResult(success=False, error=str(e) or "Failed to update approval")

    async def record_reapproval(
        self,
        owner_id: str,
        approval_id: int,
        allowance: str,
        approval_tx_hash: Optional[str] = None,
    ) -> ApprovalResult:
        """The one path that clears revoked fields on an existing approval."""
        if not allowance or not allowance.isdigit() or int(allowance) == 0:
            return ApprovalResult(success=False, error="Re-approval needs a positive allowance")
        try:
            await self.store.reactivate_approval(
                owner_id,
                approval_id,
                allowance=allowance,
                is_unlimited=is_unlimited_allowance(allowance),
                approval_tx_hash=approval_tx_hash,
            )
            return ApprovalResult(success=True)
        except PersistenceError as e:
            logger.error(f"Error recording re-approval: {e}")
            return ApprovalResult(success=False, error=str(e) or "Failed to update approval")
