"""Campaign, milestone and beneficiary models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from pevi_api.db.base import Base
from pevi_api.domain.states import CampaignStatus, MilestoneStatus, ReleaseStage


class Campaign(Base):
    """Corporate-funded campaign backed by an escrow contract."""

    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer, nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Numeric(18, 2), nullable=False, default=0)
    currency = Column(String(12), nullable=False, default="USDC")
    status = Column(String(50), nullable=False, default=CampaignStatus.DRAFT.value, index=True)
    funding_wallet = Column(String(56), nullable=True)
    escrow_id = Column(String(255), nullable=True, index=True)  # External contract id
    # Release lease: at most one in-flight release per campaign
    releasing_since = Column(DateTime, nullable=True)
    release_token = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    milestones = relationship("Milestone", back_populates="campaign", cascade="all, delete-orphan")
    beneficiaries = relationship(
        "CampaignBeneficiary", back_populates="campaign", cascade="all, delete-orphan"
    )
    donations = relationship("Donation", back_populates="campaign", cascade="all, delete-orphan")

    @property
    def engagement_id(self) -> str:
        return f"campaign-{self.id}"


class Milestone(Base):
    """Milestone within a campaign; may carry its own escrow contract."""

    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    total_amount = Column(Numeric(18, 2), nullable=True)
    currency = Column(String(12), nullable=True)
    status = Column(String(50), nullable=False, default=MilestoneStatus.PENDING.value, index=True)
    escrow_id = Column(String(255), nullable=True, index=True)
    release_stage = Column(String(50), nullable=False, default=ReleaseStage.READY.value)
    release_hash = Column(String(255), nullable=True)
    # Hash of the envelope handed out by the last request step, awaiting its signed copy
    pending_tx_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    campaign = relationship("Campaign", back_populates="milestones")
    activities = relationship("Activity", back_populates="milestone", cascade="all, delete-orphan")

    @property
    def engagement_id(self) -> str:
        return f"milestone-{self.id}"

    @property
    def effective_escrow_id(self):
        """Per-milestone contract when present, else the campaign-level one."""
        return self.escrow_id or self.campaign.escrow_id


class CampaignBeneficiary(Base):
    """Beneficiary enrolled in a campaign."""

    __tablename__ = "campaign_beneficiaries"

    id = Column(Integer, primary_key=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="active")  # active, inactive
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    campaign = relationship("Campaign", back_populates="beneficiaries")
    user = relationship("User")
    activities = relationship("Activity", back_populates="beneficiary")
