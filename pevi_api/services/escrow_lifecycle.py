"""Escrow lifecycle: contract creation, donor funding and the milestone release protocol.

A release is four signed round trips, strictly in order::

    change_status -> approve -> release -> prepare_payout

Each request step returns an unsigned envelope for the approver's wallet; the
matching ``submit_*`` step forwards the signed copy of that same envelope and,
only once it is accepted, advances the milestone's persisted ``release_stage``.
The campaign completes when its last milestone is paid out. Request steps
whose outcome is already reflected (persisted checkpoint, or the contract's
own state) are skipped so a resumed release does not prompt twice.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from pevi_api.domain.states import (
    AwardStatus,
    CampaignStatus,
    EscrowState,
    MilestoneStatus,
    ReleaseStage,
    RELEASE_ORDER,
    release_reached,
    transition,
)
from pevi_api.escrow.gateway import (
    ContractResult,
    EngagementKind,
    EscrowGateway,
    EscrowServiceError,
    is_already_approved,
)
from pevi_api.ledger.client import LedgerClient
from pevi_api.ledger.transactions import (
    build_payout_transaction,
    envelope_hash,
    is_valid_address,
    resolve_asset,
    split_evenly,
)
from pevi_api.models import Award, Campaign, Donation, Milestone
from pevi_api.services.approval import milestone_cleared_for_release
from pevi_api.services.errors import (
    EnvelopeMismatchError,
    EscrowConflictError,
    EscrowCreationError,
    LeaseConflictError,
    NotFoundError,
    ReleaseGateError,
    StepOrderError,
    ValidationError,
)
from pevi_api.settings import Settings, get_settings
from pevi_api.utils.metrics import (
    escrow_creations,
    escrow_steps,
    ledger_submissions,
    release_lease_conflicts,
)

logger = logging.getLogger(__name__)


class ReleaseStep(str, Enum):
    """Discriminator accepted by the release endpoint."""

    CHANGE_STATUS = "change_status"
    SUBMIT_CHANGE = "submit_change"
    APPROVE = "approve"
    SUBMIT_APPROVE = "submit_approve"
    RELEASE = "release"
    SUBMIT_RELEASE = "submit_release"
    PREPARE_PAYOUT = "prepare_payout"
    SUBMIT_PAYOUT = "submit_payout"

    @property
    def is_submit(self) -> bool:
        return self.value.startswith("submit_")

    @property
    def target_stage(self) -> ReleaseStage:
        return STEP_TARGETS[self]


STEP_TARGETS = {
    ReleaseStep.CHANGE_STATUS: ReleaseStage.STATUS_CHANGED,
    ReleaseStep.SUBMIT_CHANGE: ReleaseStage.STATUS_CHANGED,
    ReleaseStep.APPROVE: ReleaseStage.APPROVED,
    ReleaseStep.SUBMIT_APPROVE: ReleaseStage.APPROVED,
    ReleaseStep.RELEASE: ReleaseStage.RELEASED,
    ReleaseStep.SUBMIT_RELEASE: ReleaseStage.RELEASED,
    ReleaseStep.PREPARE_PAYOUT: ReleaseStage.PAID_OUT,
    ReleaseStep.SUBMIT_PAYOUT: ReleaseStage.PAID_OUT,
}

COMPLETED_MILESTONE_STATUSES = ("completed", "approved")


class StepResult(BaseModel):
    """Outcome of one release step."""

    step: ReleaseStep
    release_stage: ReleaseStage
    unsigned_xdr: Optional[str] = None
    skipped: bool = False
    reason: Optional[str] = None
    hash: Optional[str] = None
    details: dict = Field(default_factory=dict)


class CampaignCreation(BaseModel):
    """Result of creating a campaign with escrow backing."""

    campaign_id: int
    escrow_id: Optional[str] = None
    unsigned_xdr: Optional[str] = None


class FundingPreparation(BaseModel):
    """Donation row plus the envelope the donor must sign."""

    donation_id: int
    unsigned_xdr: Optional[str] = None
    already_funded: bool = False
    reused: bool = False


def assign_escrow_id(record, contract_id: str) -> bool:
    """Bind a contract id to a campaign/milestone; returns False when already bound to it."""
    if record.escrow_id == contract_id:
        return False
    if record.escrow_id:
        raise EscrowConflictError(
            f"{type(record).__name__} {record.id} is already bound to contract {record.escrow_id}"
        )
    record.escrow_id = contract_id
    if isinstance(record, Campaign) and record.status == CampaignStatus.DRAFT.value:
        record.status = transition(record.status, CampaignStatus.ACTIVE).value
    return True


class EscrowLifecycle:
    """Coordinates escrow contract state with campaign, milestone, donation and award records."""

    def __init__(
        self,
        db: Session,
        gateway: EscrowGateway,
        ledger: LedgerClient,
        settings: Optional[Settings] = None,
    ):
        """Initialize lifecycle service."""
        self.db = db
        self.gateway = gateway
        self.ledger = ledger
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get(self, model, record_id: int):
        record = self.db.query(model).filter(model.id == record_id).first()
        if not record:
            raise NotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def _tx_hash(self, result: ContractResult, signed_xdr: str) -> str:
        if result.hash:
            return result.hash
        return envelope_hash(signed_xdr, self.ledger.network_passphrase)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_campaign(
        self,
        title: str,
        cost: Decimal,
        currency: str = "USDC",
        org_id: Optional[int] = None,
        description: Optional[str] = None,
        funding_wallet: Optional[str] = None,
    ) -> CampaignCreation:
        """Create a campaign and, when a funding wallet is given, its escrow contract.

        Fails closed: if the escrow service yields neither a contract id nor
        an envelope to sign, the campaign row is deleted again.
        """
        if funding_wallet and not is_valid_address(funding_wallet):
            raise ValidationError(f"Invalid funding wallet address: {funding_wallet}")

        campaign = Campaign(
            org_id=org_id,
            title=title,
            description=description,
            cost=cost,
            currency=currency.upper(),
            funding_wallet=funding_wallet,
            status=CampaignStatus.DRAFT.value,
        )
        self.db.add(campaign)
        self.db.commit()
        self.db.refresh(campaign)

        if not funding_wallet:
            return CampaignCreation(campaign_id=campaign.id)

        try:
            result = self.gateway.create_escrow(
                EngagementKind.CAMPAIGN,
                campaign.id,
                amount=Decimal(cost),
                currency=campaign.currency,
                approver=funding_wallet,
                service_provider=funding_wallet,
                platform_address=self.settings.platform_wallet or funding_wallet,
                title=title,
                description=description,
            )
        except EscrowServiceError as e:
            self._discard_campaign(campaign, reason=str(e))
            raise EscrowCreationError(f"Escrow creation failed: {e.message}", body=e.body) from e

        if result.contract_id:
            assign_escrow_id(campaign, result.contract_id)
            self.db.commit()
            escrow_creations.labels(kind="campaign", outcome="created").inc()
            return CampaignCreation(campaign_id=campaign.id, escrow_id=campaign.escrow_id)

        if result.unsigned_xdr:
            escrow_creations.labels(kind="campaign", outcome="pending_signature").inc()
            return CampaignCreation(campaign_id=campaign.id, unsigned_xdr=result.unsigned_xdr)

        self._discard_campaign(campaign, reason="no contract id and no unsigned transaction")
        raise EscrowCreationError(
            "Escrow service returned neither a contract id nor a transaction to sign"
        )

    def _discard_campaign(self, campaign: Campaign, reason: str):
        logger.error(f"Rolling back campaign {campaign.id}: escrow backing unavailable ({reason})")
        escrow_creations.labels(kind="campaign", outcome="rolled_back").inc()
        self.db.delete(campaign)
        self.db.commit()

    def create_milestone_escrow(
        self, milestone_id: int, approver_address: str, beneficiary_address: str
    ) -> ContractResult:
        """Create a per-milestone contract paying ``beneficiary_address``."""
        for address in (approver_address, beneficiary_address):
            if not is_valid_address(address):
                raise ValidationError(f"Invalid wallet address: {address}")

        milestone = self._get(Milestone, milestone_id)
        result = self.gateway.create_escrow(
            EngagementKind.MILESTONE,
            milestone.id,
            amount=Decimal(milestone.total_amount or 0),
            currency=milestone.currency or milestone.campaign.currency,
            approver=approver_address,
            service_provider=beneficiary_address,
            platform_address=self.settings.platform_wallet or approver_address,
            title=milestone.name,
            description=milestone.description,
        )
        if result.contract_id:
            assign_escrow_id(milestone, result.contract_id)
            self.db.commit()
            escrow_creations.labels(kind="milestone", outcome="created").inc()
        elif result.unsigned_xdr:
            escrow_creations.labels(kind="milestone", outcome="pending_signature").inc()
        else:
            raise EscrowCreationError(
                "Escrow service returned neither a contract id nor a transaction to sign"
            )
        return result

    # ------------------------------------------------------------------
    # Funding
    # ------------------------------------------------------------------

    def prepare_donation(
        self,
        user_id: int,
        campaign_id: int,
        amount: Decimal,
        sender_public_key: str,
        donation_id: Optional[int] = None,
    ) -> FundingPreparation:
        """Create (or reuse an unfunded) donation and prepare its funding transaction."""
        if Decimal(amount) <= 0:
            raise ValidationError("amount must be positive")
        if not is_valid_address(sender_public_key):
            raise ValidationError(f"Invalid sender address: {sender_public_key}")

        campaign = self._get(Campaign, campaign_id)
        if not campaign.escrow_id:
            raise ValidationError(f"Campaign {campaign_id} has no escrow contract")

        created = False
        if donation_id is not None:
            donation = self._get(Donation, donation_id)
            if donation.campaign_id != campaign.id or donation.user_id != user_id:
                raise ValidationError(f"Donation {donation_id} does not belong to this donor/campaign")
        else:
            donation = (
                self.db.query(Donation)
                .filter(
                    Donation.campaign_id == campaign.id,
                    Donation.user_id == user_id,
                    Donation.amount == Decimal(amount),
                    Donation.hash.is_(None),
                )
                .order_by(Donation.id.desc())
                .first()
            )
            if not donation:
                donation = Donation(
                    campaign_id=campaign.id,
                    user_id=user_id,
                    amount=Decimal(amount),
                    date=datetime.utcnow(),
                )
                self.db.add(donation)
                self.db.flush()
                created = True

        if donation.hash:
            self.db.commit()
            return FundingPreparation(donation_id=donation.id, already_funded=True, reused=True)

        donation.sender_public_key = sender_public_key
        try:
            unsigned_xdr = self._prepare_funding_xdr(campaign.escrow_id, donation.amount, sender_public_key)
        except EscrowServiceError:
            if created:
                logger.warning(f"Deleting donation {donation.id}: escrow funding could not be prepared")
                self.db.delete(donation)
                self.db.commit()
            else:
                self.db.rollback()
            raise

        self.db.commit()
        return FundingPreparation(donation_id=donation.id, unsigned_xdr=unsigned_xdr, reused=not created)

    def prepare_funding(self, donation_id: int, sender_public_key: Optional[str] = None) -> FundingPreparation:
        """Re-prepare the funding transaction for an existing donation."""
        donation = self._get(Donation, donation_id)
        if donation.hash:
            return FundingPreparation(donation_id=donation.id, already_funded=True, reused=True)
        sender = sender_public_key or donation.sender_public_key
        if not is_valid_address(sender):
            raise ValidationError(f"Invalid sender address: {sender}")
        if not donation.campaign.escrow_id:
            raise ValidationError(f"Campaign {donation.campaign_id} has no escrow contract")

        unsigned_xdr = self._prepare_funding_xdr(donation.campaign.escrow_id, donation.amount, sender)
        donation.sender_public_key = sender
        self.db.commit()
        return FundingPreparation(donation_id=donation.id, unsigned_xdr=unsigned_xdr, reused=True)

    def _prepare_funding_xdr(self, contract_id: str, amount: Decimal, sender: str) -> str:
        result = self.gateway.fund_escrow(contract_id, Decimal(amount), sender)
        # The service has shipped the envelope under both names
        unsigned_xdr = result.unsigned_xdr or result.signed_xdr
        if not unsigned_xdr:
            raise EscrowServiceError("Escrow service returned no funding transaction")
        return unsigned_xdr

    def submit_funding(self, donation_id: int, signed_xdr: str) -> Donation:
        """Submit the donor's signed funding transaction and record its hash once."""
        donation = self._get(Donation, donation_id)
        if donation.hash:
            logger.info(f"Donation {donation.id} already funded ({donation.hash}); skipping submission")
            return donation

        try:
            result = self.gateway.send_transaction(signed_xdr)
        except EscrowServiceError:
            ledger_submissions.labels(target="escrow", outcome="failed").inc()
            raise
        ledger_submissions.labels(target="escrow", outcome="accepted").inc()

        donation.hash = self._tx_hash(result, signed_xdr)
        self.db.commit()
        self.db.refresh(donation)
        logger.info(f"Donation {donation.id} funded with transaction {donation.hash}")
        return donation

    # ------------------------------------------------------------------
    # Release lease
    # ------------------------------------------------------------------

    def _acquire_lease(self, campaign: Campaign, token: str):
        """Atomically claim (or refresh) the campaign's release lease."""
        now = datetime.utcnow()
        expired_before = now - timedelta(seconds=self.settings.release_lease_ttl_seconds)
        updated = (
            self.db.query(Campaign)
            .filter(
                Campaign.id == campaign.id,
                or_(
                    Campaign.release_token.is_(None),
                    Campaign.release_token == token,
                    Campaign.releasing_since < expired_before,
                ),
            )
            .update(
                {Campaign.release_token: token, Campaign.releasing_since: now},
                synchronize_session=False,
            )
        )
        if not updated:
            self.db.rollback()
            release_lease_conflicts.inc()
            logger.warning(f"Release lease for campaign {campaign.id} held by another release")
            raise LeaseConflictError(campaign.id, held_since=campaign.releasing_since)
        self.db.flush()
        self.db.refresh(campaign)

    @staticmethod
    def _clear_lease(campaign: Campaign):
        campaign.release_token = None
        campaign.releasing_since = None

    # ------------------------------------------------------------------
    # Release protocol
    # ------------------------------------------------------------------

    def handle_step(
        self,
        step: ReleaseStep,
        milestone_id: int,
        approver_public_key: str,
        release_id: Optional[str] = None,
        signed_xdr: Optional[str] = None,
    ) -> StepResult:
        """Dispatch one release step."""
        step = ReleaseStep(step)
        if not is_valid_address(approver_public_key):
            raise ValidationError(f"Invalid approver address: {approver_public_key}")
        token = release_id or approver_public_key
        milestone = self._get(Milestone, milestone_id)

        try:
            if step.is_submit:
                if not signed_xdr:
                    raise ValidationError("Missing signed_xdr")
                result = self._submit_step(step, milestone, token, signed_xdr)
            else:
                result = self._request_step(step, milestone, approver_public_key, token)
        except Exception:
            escrow_steps.labels(step=step.value, outcome="failed").inc()
            raise

        outcome = "skipped" if result.skipped else ("submitted" if step.is_submit else "prepared")
        escrow_steps.labels(step=step.value, outcome=outcome).inc()
        return result

    def _check_order(self, milestone: Milestone, target: ReleaseStage):
        required = RELEASE_ORDER[RELEASE_ORDER.index(target) - 1]
        if not release_reached(milestone.release_stage, required):
            raise StepOrderError(
                f"Milestone {milestone.id} is at '{milestone.release_stage}'; "
                f"'{required.value}' must be confirmed first"
            )

    def _check_gate(self, milestone: Milestone) -> str:
        campaign = milestone.campaign
        contract_id = milestone.effective_escrow_id
        if not contract_id:
            raise ReleaseGateError(f"Milestone {milestone.id} has no escrow contract")
        if campaign.status != CampaignStatus.ACTIVE.value:
            raise ReleaseGateError(f"Campaign {campaign.id} is '{campaign.status}', not active")
        if not milestone_cleared_for_release(milestone):
            raise ReleaseGateError(
                f"Milestone {milestone.id} still has activities awaiting verification"
            )
        return contract_id

    def _advance(self, milestone: Milestone, target: ReleaseStage):
        milestone.release_stage = transition(milestone.release_stage, target).value
        milestone.pending_tx_hash = None
        if target == ReleaseStage.RELEASED and milestone.status == MilestoneStatus.APPROVED.value:
            milestone.status = transition(milestone.status, MilestoneStatus.RELEASED).value

    def _skip(self, step: ReleaseStep, milestone: Milestone, reason: str, advance: bool = False) -> StepResult:
        if advance:
            logger.info(f"Milestone {milestone.id}: {reason}; checkpoint moves to {step.target_stage.value}")
            self._advance(milestone, step.target_stage)
            self.db.commit()
        return StepResult(
            step=step,
            release_stage=ReleaseStage(milestone.release_stage),
            skipped=True,
            reason=reason,
        )

    def _request_step(
        self, step: ReleaseStep, milestone: Milestone, approver: str, token: str
    ) -> StepResult:
        target = step.target_stage
        if release_reached(milestone.release_stage, target):
            return self._skip(step, milestone, f"already_{target.value}")

        self._check_order(milestone, target)
        contract_id = self._check_gate(milestone)
        self._acquire_lease(milestone.campaign, token)
        logger.info(f"Release step {step.value} for milestone {milestone.id} (contract {contract_id})")

        details = {}
        if step == ReleaseStep.CHANGE_STATUS:
            escrow = self.gateway.get_escrow_status(contract_id)
            if escrow.milestones and (escrow.milestones[0].status or "").lower() in COMPLETED_MILESTONE_STATUSES:
                return self._skip(step, milestone, "already_status_changed", advance=True)
            result = self.gateway.change_milestone_status(contract_id, service_provider=approver)
        elif step == ReleaseStep.APPROVE:
            escrow = self.gateway.get_escrow_status(contract_id)
            if escrow.milestones and escrow.milestones[0].approved:
                return self._skip(step, milestone, "already_approved", advance=True)
            try:
                result = self.gateway.approve_milestone(contract_id, approver=approver)
            except EscrowServiceError as e:
                if is_already_approved(e):
                    return self._skip(step, milestone, "already_approved", advance=True)
                raise
        elif step == ReleaseStep.RELEASE:
            escrow = self.gateway.get_escrow_status(contract_id)
            if escrow.status == EscrowState.RELEASED:
                return self._skip(step, milestone, "already_released", advance=True)
            result = self.gateway.release_escrow(contract_id, approver_public_key=approver)
        else:
            unsigned_xdr, details = self._prepare_payout(milestone, approver)
            result = ContractResult(unsigned_xdr=unsigned_xdr)

        if not result.unsigned_xdr:
            raise EscrowServiceError(f"No unsigned transaction returned for step {step.value}")
        try:
            milestone.pending_tx_hash = envelope_hash(result.unsigned_xdr, self.ledger.network_passphrase)
        except Exception as e:
            raise EscrowServiceError(f"Unreadable transaction returned for step {step.value}: {e}") from e
        self.db.commit()
        return StepResult(
            step=step,
            release_stage=ReleaseStage(milestone.release_stage),
            unsigned_xdr=result.unsigned_xdr,
            details=details,
        )

    def _prepare_payout(self, milestone: Milestone, approver: str) -> tuple[str, dict]:
        """Split the milestone amount across the campaign's active beneficiaries with linked wallets.

        Milestones without an amount of their own pay out the campaign cost.
        """
        campaign = milestone.campaign
        active = [b for b in campaign.beneficiaries if b.status == "active"]
        if not active:
            raise ValidationError("No active beneficiaries found for payout")

        total = milestone.total_amount if milestone.total_amount is not None else campaign.cost
        share = split_evenly(Decimal(total or 0), len(active))
        if share <= 0:
            raise ValidationError(f"Milestone {milestone.id} amount is too small to split")
        payouts = [
            (b.user.wallet_address, share)
            for b in active
            if b.user is not None and is_valid_address(b.user.wallet_address)
        ]
        if not payouts:
            raise ValidationError("None of the active beneficiaries have a linked wallet")

        currency = milestone.currency or campaign.currency or self.settings.payout_currency
        try:
            asset = resolve_asset(currency, self.settings.trustline_addresses)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        sequence = self.ledger.load_sequence(approver)
        unsigned_xdr = build_payout_transaction(
            approver, sequence, payouts, asset, self.ledger.network_passphrase
        )
        return unsigned_xdr, {
            "beneficiary_count": len(payouts),
            "amount_per_beneficiary": str(share),
        }

    def _submit_step(
        self, step: ReleaseStep, milestone: Milestone, token: str, signed_xdr: str
    ) -> StepResult:
        target = step.target_stage
        if release_reached(milestone.release_stage, target):
            return self._skip(step, milestone, f"already_{target.value}")

        self._check_order(milestone, target)
        campaign = milestone.campaign
        self._acquire_lease(campaign, token)
        self._check_envelope(step, milestone, signed_xdr)

        if step == ReleaseStep.SUBMIT_PAYOUT:
            try:
                receipt = self.ledger.submit(signed_xdr)
            except Exception:
                ledger_submissions.labels(target="ledger", outcome="failed").inc()
                raise
            ledger_submissions.labels(target="ledger", outcome="accepted").inc()
            tx_hash = receipt.hash
        else:
            try:
                result = self.gateway.send_transaction(signed_xdr)
            except EscrowServiceError:
                ledger_submissions.labels(target="escrow", outcome="failed").inc()
                raise
            ledger_submissions.labels(target="escrow", outcome="accepted").inc()
            tx_hash = self._tx_hash(result, signed_xdr)

        self._advance(milestone, target)
        if step == ReleaseStep.SUBMIT_RELEASE:
            milestone.release_hash = tx_hash
        elif step == ReleaseStep.SUBMIT_PAYOUT:
            self._finalize_payout(milestone, tx_hash)

        self.db.commit()
        logger.info(
            f"Release step {step.value} confirmed for milestone {milestone.id}: "
            f"stage={milestone.release_stage} hash={tx_hash}"
        )
        return StepResult(
            step=step,
            release_stage=ReleaseStage(milestone.release_stage),
            hash=tx_hash,
        )

    def _check_envelope(self, step: ReleaseStep, milestone: Milestone, signed_xdr: str):
        """Only the envelope handed out by the matching request step may be submitted."""
        if not milestone.pending_tx_hash:
            raise StepOrderError(
                f"No transaction has been prepared for {step.value} on milestone {milestone.id}"
            )
        try:
            submitted = envelope_hash(signed_xdr, self.ledger.network_passphrase)
        except Exception as e:
            raise ValidationError(f"Could not decode signed transaction: {e}") from e
        if submitted != milestone.pending_tx_hash:
            logger.warning(
                f"Milestone {milestone.id}: {step.value} got transaction {submitted}, "
                f"expected {milestone.pending_tx_hash}"
            )
            raise EnvelopeMismatchError(milestone.id, step.value)

    def _finalize_payout(self, milestone: Milestone, tx_hash: str):
        now = datetime.utcnow()
        awards = (
            self.db.query(Award)
            .filter(
                Award.activity_id.in_([a.id for a in milestone.activities]),
                Award.status == AwardStatus.PENDING.value,
            )
            .all()
        )
        for award in awards:
            award.hash = tx_hash
            award.status = transition(award.status, AwardStatus.PAID).value
            award.paid_at = now

        campaign = milestone.campaign
        self._clear_lease(campaign)
        logger.info(f"Milestone {milestone.id} paid out; {len(awards)} award(s) paid in {tx_hash}")
        if all(m.release_stage == ReleaseStage.PAID_OUT.value for m in campaign.milestones):
            campaign.status = transition(campaign.status, CampaignStatus.COMPLETED).value
            logger.info(f"Campaign {campaign.id} completed")

    # ------------------------------------------------------------------
    # Generic relay
    # ------------------------------------------------------------------

    def relay(self, signed_xdr: str, target: str = "escrow") -> dict:
        """Forward a signed envelope to the escrow service or straight to the ledger."""
        if target == "ledger":
            try:
                receipt = self.ledger.submit(signed_xdr)
            except Exception:
                ledger_submissions.labels(target="ledger", outcome="failed").inc()
                raise
            ledger_submissions.labels(target="ledger", outcome="accepted").inc()
            return {"hash": receipt.hash, "ledger": receipt.ledger}
        if target != "escrow":
            raise ValidationError(f"Unknown submission target: {target}")
        try:
            result = self.gateway.send_transaction(signed_xdr)
        except EscrowServiceError:
            ledger_submissions.labels(target="escrow", outcome="failed").inc()
            raise
        ledger_submissions.labels(target="escrow", outcome="accepted").inc()
        return {
            "status": result.status,
            "message": result.message,
            "contract_id": result.contract_id,
            "hash": result.hash,
        }
