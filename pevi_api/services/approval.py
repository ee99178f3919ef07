"""Evidence -> evaluation -> verification pipeline gating milestone releases."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from pevi_api.domain.states import (
    ActivityStage,
    AwardStatus,
    CampaignStatus,
    MilestoneStatus,
    next_release_stage,
    transition,
)
from pevi_api.ledger.client import LedgerClient
from pevi_api.ledger.transactions import build_proof_transaction, is_valid_address, proof_memo
from pevi_api.models import Activity, Award, Campaign, Milestone
from pevi_api.services.errors import NotFoundError, ValidationError
from pevi_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)

DECISIONS = ("approve", "reject")


def milestone_cleared_for_release(milestone: Milestone) -> bool:
    """True when every activity under the milestone is verifier-approved."""
    activities = milestone.activities
    if not activities:
        return False
    return all(a.stage == ActivityStage.VERIFIER_APPROVED.value for a in activities)


def set_stage(activity: Activity, target: ActivityStage):
    """Move an activity through the pipeline and project its status columns."""
    stage = transition(activity.stage, target)
    activity.stage = stage.value
    for column, value in stage.columns.items():
        setattr(activity, column, value)


class ApprovalPipeline:
    """Sequential human sign-off that gates escrow releases."""

    def __init__(self, db: Session, ledger: LedgerClient, settings: Optional[Settings] = None):
        """Initialize approval pipeline."""
        self.db = db
        self.ledger = ledger
        self.settings = settings or get_settings()

    def _activity(self, activity_id: int) -> Activity:
        activity = self.db.query(Activity).filter(Activity.id == activity_id).first()
        if not activity:
            raise NotFoundError(f"Activity {activity_id} not found")
        return activity

    def submit_evidence(
        self, activity_id: int, evidence_ref: str, observation: Optional[str] = None
    ) -> Activity:
        """Beneficiary submits (or resubmits after rejection) evidence."""
        activity = self._activity(activity_id)
        set_stage(activity, ActivityStage.SUBMITTED)
        activity.evidence_ref = evidence_ref
        activity.activity_observation = observation
        activity.evaluation_proof_hash = None
        self.db.commit()
        self.db.refresh(activity)
        return activity

    def _start_evaluation(self, activity: Activity):
        if activity.stage == ActivityStage.SUBMITTED.value:
            set_stage(activity, ActivityStage.UNDER_EVALUATION)

    def build_proof(self, activity_id: int, evaluator_address: str) -> str:
        """Unsigned attestation transaction the evaluator signs before approving."""
        if not is_valid_address(evaluator_address):
            raise ValidationError(f"Invalid evaluator address: {evaluator_address}")
        activity = self._activity(activity_id)
        if activity.stage not in (ActivityStage.SUBMITTED.value, ActivityStage.UNDER_EVALUATION.value):
            raise ValidationError(f"Activity {activity_id} is '{activity.stage}', not awaiting evaluation")

        sequence = self.ledger.load_sequence(evaluator_address)
        destination = self.settings.platform_wallet or evaluator_address
        xdr = build_proof_transaction(
            evaluator_address,
            sequence,
            activity.id,
            destination,
            self.ledger.network_passphrase,
        )
        self._start_evaluation(activity)
        self.db.commit()
        return xdr

    def _check_proof(self, activity: Activity, proof_hash: Optional[str]):
        if not proof_hash:
            raise ValidationError("Approval requires a proof transaction hash")
        record = self.ledger.get_transaction(proof_hash)
        if record is None:
            raise ValidationError(f"Proof transaction {proof_hash} not found on ledger")
        if not record.get("successful", True):
            raise ValidationError(f"Proof transaction {proof_hash} did not succeed")
        if record.get("memo") != proof_memo(activity.id):
            raise ValidationError(
                f"Proof transaction {proof_hash} does not reference activity {activity.id}"
            )

    def evaluate(
        self,
        activity_id: int,
        decision: str,
        note: Optional[str] = None,
        proof_hash: Optional[str] = None,
    ) -> Activity:
        """Evaluator decision; approval hands the activity to verification."""
        if decision not in DECISIONS:
            raise ValidationError(f"decision must be one of {DECISIONS}")
        activity = self._activity(activity_id)
        self._start_evaluation(activity)

        if decision == "approve":
            self._check_proof(activity, proof_hash)
            set_stage(activity, ActivityStage.EVALUATOR_APPROVED)
            activity.evaluation_proof_hash = proof_hash
            set_stage(activity, ActivityStage.UNDER_VERIFICATION)
        else:
            set_stage(activity, ActivityStage.EVALUATOR_REJECTED)
        activity.evaluation_note = note

        self.db.commit()
        self.db.refresh(activity)
        logger.info(f"Activity {activity.id} evaluated: {decision}")
        return activity

    def verify(self, activity_id: int, decision: str, note: Optional[str] = None) -> Activity:
        """Verifier decision; the last approval clears the milestone."""
        if decision not in DECISIONS:
            raise ValidationError(f"decision must be one of {DECISIONS}")
        activity = self._activity(activity_id)

        target = ActivityStage.VERIFIER_APPROVED if decision == "approve" else ActivityStage.VERIFIER_REJECTED
        set_stage(activity, target)
        activity.verification_note = note

        if decision == "approve":
            self._maybe_approve_milestone(activity.milestone)

        self.db.commit()
        self.db.refresh(activity)
        logger.info(f"Activity {activity.id} verified: {decision}")
        return activity

    def _maybe_approve_milestone(self, milestone: Milestone):
        if milestone.status != MilestoneStatus.PENDING.value:
            return
        self.db.flush()
        if not milestone_cleared_for_release(milestone):
            return
        milestone.status = transition(milestone.status, MilestoneStatus.APPROVED).value
        for activity in milestone.activities:
            if not activity.awards:
                self.db.add(Award(activity_id=activity.id, status=AwardStatus.PENDING.value))
        logger.info(f"Milestone {milestone.id} approved; {len(milestone.activities)} award(s) opened")

    def evaluator_queue(self, campaign_id: Optional[int] = None) -> list[Activity]:
        """Activities awaiting an evaluator decision."""
        query = self.db.query(Activity).filter(
            Activity.stage.in_([ActivityStage.SUBMITTED.value, ActivityStage.UNDER_EVALUATION.value])
        )
        if campaign_id is not None:
            query = query.join(Milestone).filter(Milestone.campaign_id == campaign_id)
        return query.order_by(Activity.id).all()

    def verifier_queue(self, campaign_id: Optional[int] = None) -> list[Activity]:
        """Activities awaiting a verifier decision."""
        query = self.db.query(Activity).filter(Activity.stage == ActivityStage.UNDER_VERIFICATION.value)
        if campaign_id is not None:
            query = query.join(Milestone).filter(Milestone.campaign_id == campaign_id)
        return query.order_by(Activity.id).all()

    def release_readiness(self, milestone_id: int) -> dict:
        """Summary of whether a release may be initiated for a milestone."""
        milestone = self.db.query(Milestone).filter(Milestone.id == milestone_id).first()
        if not milestone:
            raise NotFoundError(f"Milestone {milestone_id} not found")
        campaign: Campaign = milestone.campaign
        pending = [a.id for a in milestone.activities if a.stage != ActivityStage.VERIFIER_APPROVED.value]
        return {
            "milestone_id": milestone.id,
            "campaign_id": campaign.id,
            "escrow_id": milestone.effective_escrow_id,
            "milestone_status": milestone.status,
            "release_stage": milestone.release_stage,
            "next_release_stage": getattr(next_release_stage(milestone.release_stage), "value", None),
            "campaign_status": campaign.status,
            "pending_activities": pending,
            "ready": bool(milestone.effective_escrow_id)
            and campaign.status == CampaignStatus.ACTIVE.value
            and milestone_cleared_for_release(milestone),
        }
