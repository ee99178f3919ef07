"""Donation model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from pevi_api.db.base import Base


class Donation(Base):
    """One funding contribution.

    ``hash`` stays NULL until the donor's signed funding transaction is
    accepted; an unfunded row is a legitimate state.
    """

    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(18, 2), nullable=False)
    sender_public_key = Column(String(56), nullable=True)
    hash = Column(String(255), nullable=True)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    campaign = relationship("Campaign", back_populates="donations")
    user = relationship("User")
