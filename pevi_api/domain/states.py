"""Status enums and the transition tables that govern them.

Every status column in the relational store is written through
``transition()`` (or ``ActivityStage.columns``) so that the set of legal
moves lives in exactly one place.
"""

from enum import Enum
from typing import Optional

from pevi_api.services.errors import InvalidTransitionError


class CampaignStatus(str, Enum):
    """Campaign lifecycle."""

    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MilestoneStatus(str, Enum):
    """Milestone approval lifecycle."""

    PENDING = "pending"
    APPROVED = "approved"
    RELEASED = "released"


class ReleaseStage(str, Enum):
    """Per-milestone release checkpoint, advanced only by confirmed submissions."""

    READY = "ready"
    STATUS_CHANGED = "status_changed"
    APPROVED = "approved"
    RELEASED = "released"
    PAID_OUT = "paid_out"


class AwardStatus(str, Enum):
    """Award payout state."""

    PENDING = "pending"
    PAID = "paid"


class EscrowState(str, Enum):
    """State reported by the external escrow service."""

    PENDING = "pending"
    FUNDED = "funded"
    RELEASED = "released"
    DISPUTED = "disputed"


class ActivityStage(str, Enum):
    """Evidence / evaluation / verification pipeline for one beneficiary claim."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    UNDER_EVALUATION = "under_evaluation"
    EVALUATOR_APPROVED = "evaluator_approved"
    EVALUATOR_REJECTED = "evaluator_rejected"
    UNDER_VERIFICATION = "under_verification"
    VERIFIER_APPROVED = "verifier_approved"
    VERIFIER_REJECTED = "verifier_rejected"

    @property
    def columns(self) -> dict:
        """Stored (activity_status, evidence_status, verification_status) for this stage."""
        activity_status, evidence_status, verification_status = ACTIVITY_COLUMNS[self]
        return {
            "activity_status": activity_status,
            "evidence_status": evidence_status,
            "verification_status": verification_status,
        }


# Rejected stages project back to "draft" so the beneficiary can resubmit.
ACTIVITY_COLUMNS = {
    ActivityStage.PENDING: ("draft", "pending", "pending"),
    ActivityStage.SUBMITTED: ("submitted", "pending", "pending"),
    ActivityStage.UNDER_EVALUATION: ("under_evaluation", "pending", "pending"),
    ActivityStage.EVALUATOR_APPROVED: ("evaluated", "approved", "pending"),
    ActivityStage.EVALUATOR_REJECTED: ("draft", "rejected", "pending"),
    ActivityStage.UNDER_VERIFICATION: ("under_verification", "approved", "pending"),
    ActivityStage.VERIFIER_APPROVED: ("verified", "approved", "approved"),
    ActivityStage.VERIFIER_REJECTED: ("draft", "rejected", "rejected"),
}


TRANSITIONS = {
    CampaignStatus: {
        CampaignStatus.DRAFT: {CampaignStatus.ACTIVE, CampaignStatus.CANCELLED},
        CampaignStatus.ACTIVE: {CampaignStatus.COMPLETED, CampaignStatus.CANCELLED},
        CampaignStatus.COMPLETED: set(),
        CampaignStatus.CANCELLED: set(),
    },
    MilestoneStatus: {
        MilestoneStatus.PENDING: {MilestoneStatus.APPROVED},
        MilestoneStatus.APPROVED: {MilestoneStatus.RELEASED},
        MilestoneStatus.RELEASED: set(),
    },
    ReleaseStage: {
        ReleaseStage.READY: {ReleaseStage.STATUS_CHANGED},
        ReleaseStage.STATUS_CHANGED: {ReleaseStage.APPROVED},
        ReleaseStage.APPROVED: {ReleaseStage.RELEASED},
        ReleaseStage.RELEASED: {ReleaseStage.PAID_OUT},
        ReleaseStage.PAID_OUT: set(),
    },
    AwardStatus: {
        AwardStatus.PENDING: {AwardStatus.PAID},
        AwardStatus.PAID: set(),
    },
    ActivityStage: {
        ActivityStage.PENDING: {ActivityStage.SUBMITTED},
        ActivityStage.SUBMITTED: {ActivityStage.UNDER_EVALUATION},
        ActivityStage.UNDER_EVALUATION: {
            ActivityStage.EVALUATOR_APPROVED,
            ActivityStage.EVALUATOR_REJECTED,
        },
        ActivityStage.EVALUATOR_APPROVED: {ActivityStage.UNDER_VERIFICATION},
        ActivityStage.EVALUATOR_REJECTED: {ActivityStage.SUBMITTED},
        ActivityStage.UNDER_VERIFICATION: {
            ActivityStage.VERIFIER_APPROVED,
            ActivityStage.VERIFIER_REJECTED,
        },
        ActivityStage.VERIFIER_APPROVED: set(),
        ActivityStage.VERIFIER_REJECTED: {ActivityStage.SUBMITTED},
    },
}

RELEASE_ORDER = [
    ReleaseStage.READY,
    ReleaseStage.STATUS_CHANGED,
    ReleaseStage.APPROVED,
    ReleaseStage.RELEASED,
    ReleaseStage.PAID_OUT,
]


def can_transition(current: Enum, target: Enum) -> bool:
    """Check whether ``current`` -> ``target`` is in the transition table."""
    table = TRANSITIONS[type(target)]
    return target in table.get(type(target)(current), set())


def transition(current, target: Enum) -> Enum:
    """Validate a move and return the target, raising on illegal transitions."""
    kind = type(target)
    current = kind(current)
    if not can_transition(current, target):
        raise InvalidTransitionError(kind.__name__, current.value, target.value)
    return target


def release_reached(current, stage: ReleaseStage) -> bool:
    """True when the persisted checkpoint is at or past ``stage``."""
    return RELEASE_ORDER.index(ReleaseStage(current)) >= RELEASE_ORDER.index(stage)


def next_release_stage(current) -> Optional[ReleaseStage]:
    """Stage that follows ``current``, or None when fully paid out."""
    index = RELEASE_ORDER.index(ReleaseStage(current))
    if index + 1 >= len(RELEASE_ORDER):
        return None
    return RELEASE_ORDER[index + 1]
