"""Recover a campaign's escrow contract id after an incomplete creation."""

import logging
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.orm import Session

from pevi_api.escrow.gateway import EscrowGateway, EscrowRecord, EscrowServiceError
from pevi_api.models import Campaign
from pevi_api.services.errors import NotFoundError
from pevi_api.services.escrow_lifecycle import assign_escrow_id
from pevi_api.utils.metrics import reconciliation_results

logger = logging.getLogger(__name__)


class SyncResult(BaseModel):
    """Outcome of a reconciliation attempt.

    ``found`` False means the contract does not exist (yet); it is not an error.
    """

    campaign_id: int
    found: bool
    escrow_id: Optional[str] = None
    source: Optional[str] = None  # existing, provided, engagement, legacy_engagement, signer


class EscrowReconciler:
    """Resolves ``Campaign.escrow_id`` through ordered fallbacks."""

    def __init__(self, db: Session, gateway: EscrowGateway):
        """Initialize reconciler."""
        self.db = db
        self.gateway = gateway

    def sync(
        self,
        campaign_id: int,
        wallet_address: Optional[str] = None,
        contract_id: Optional[str] = None,
    ) -> SyncResult:
        """Resolve and persist the contract id.

        Order: already set -> caller-supplied id -> ``campaign-{id}`` ->
        bare ``{id}`` (legacy) -> contracts signed by ``wallet_address``.
        """
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFoundError(f"Campaign {campaign_id} not found")

        if campaign.escrow_id:
            return self._found(campaign, campaign.escrow_id, "existing", persist=False)

        if contract_id:
            return self._found(campaign, contract_id, "provided")

        canonical = campaign.engagement_id
        legacy = str(campaign.id)
        fallbacks = [
            ("engagement", lambda: self.gateway.get_escrow_by_engagement_id(canonical)),
            ("legacy_engagement", lambda: self.gateway.get_escrow_by_engagement_id(legacy)),
        ]
        if wallet_address:
            fallbacks.append(
                ("signer", lambda: self._match_signer(wallet_address, (canonical, legacy)))
            )

        last_error = None
        for source, lookup in fallbacks:
            try:
                record = lookup()
            except EscrowServiceError as e:
                logger.warning(f"Escrow sync for campaign {campaign.id}: {source} lookup failed: {e}")
                last_error = e
                continue
            if record:
                return self._found(campaign, record.contract_id, source)
            logger.info(f"Escrow sync for campaign {campaign.id}: no match via {source}")

        if last_error is not None:
            # A lookup could not be answered, so absence is not established
            raise last_error

        reconciliation_results.labels(source="not_found").inc()
        return SyncResult(campaign_id=campaign.id, found=False)

    def _match_signer(self, wallet_address: str, engagement_ids: tuple) -> Optional[EscrowRecord]:
        for record in self.gateway.get_escrows_by_signer(wallet_address):
            if record.engagement_id in engagement_ids:
                return record
        return None

    def _found(self, campaign: Campaign, contract_id: str, source: str, persist: bool = True) -> SyncResult:
        if persist:
            assign_escrow_id(campaign, contract_id)
            self.db.commit()
            logger.info(f"Campaign {campaign.id} bound to escrow {contract_id} via {source}")
        reconciliation_results.labels(source=source).inc()
        return SyncResult(campaign_id=campaign.id, found=True, escrow_id=contract_id, source=source)
