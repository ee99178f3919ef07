"""Activity and award models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from pevi_api.db.base import Base
from pevi_api.domain.states import ActivityStage, AwardStatus


class Activity(Base):
    """One beneficiary's claim against one milestone.

    ``stage`` is authoritative; the three status columns are its projection
    and are only written through ``ActivityStage.columns``.
    """

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    milestone_id = Column(Integer, ForeignKey("milestones.id"), nullable=False, index=True)
    campaign_beneficiary_id = Column(
        Integer, ForeignKey("campaign_beneficiaries.id"), nullable=False, index=True
    )
    stage = Column(String(50), nullable=False, default=ActivityStage.PENDING.value, index=True)
    activity_status = Column(String(50), nullable=False, default="draft")
    evidence_status = Column(String(50), nullable=False, default="pending", index=True)
    verification_status = Column(String(50), nullable=False, default="pending", index=True)
    evidence_ref = Column(Text, nullable=True)
    activity_observation = Column(Text, nullable=True)
    evaluation_note = Column(Text, nullable=True)
    evaluation_proof_hash = Column(String(255), nullable=True)
    verification_note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    milestone = relationship("Milestone", back_populates="activities")
    beneficiary = relationship("CampaignBeneficiary", back_populates="activities")
    awards = relationship("Award", back_populates="activity", cascade="all, delete-orphan")


class Award(Base):
    """Recognition of an activity, finalized once its payout hash is known."""

    __tablename__ = "awards"

    id = Column(Integer, primary_key=True, index=True)
    activity_id = Column(Integer, ForeignKey("activities.id"), nullable=False, index=True)
    hash = Column(String(255), nullable=True)  # On-chain payout transaction hash
    status = Column(String(50), nullable=False, default=AwardStatus.PENDING.value)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    # Relationships
    activity = relationship("Activity", back_populates="awards")
