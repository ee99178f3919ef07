"""Donation endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pevi_api.db.session import get_db
from pevi_api.dependencies import get_lifecycle
from pevi_api.models import Donation
from pevi_api.services.escrow_lifecycle import EscrowLifecycle, FundingPreparation

router = APIRouter(prefix="/v1", tags=["donations"])


class DonationCreate(BaseModel):
    """Donation request."""

    user_id: int
    campaign_id: int
    amount: Decimal = Field(..., gt=0)
    sender_public_key: str
    donation_id: Optional[int] = Field(None, description="Retry funding for this unfunded donation")


class DonationResponse(BaseModel):
    """Donation response."""

    id: int
    campaign_id: int
    user_id: int
    amount: Decimal
    sender_public_key: Optional[str] = None
    hash: Optional[str] = None
    date: datetime

    class Config:
        from_attributes = True


@router.post("/donations", response_model=FundingPreparation, status_code=status.HTTP_201_CREATED)
def create_donation(
    donation_data: DonationCreate,
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """Record a donation and return the escrow funding transaction to sign.

    An unfunded donation with the same donor, campaign and amount is reused.
    """
    return lifecycle.prepare_donation(
        user_id=donation_data.user_id,
        campaign_id=donation_data.campaign_id,
        amount=donation_data.amount,
        sender_public_key=donation_data.sender_public_key,
        donation_id=donation_data.donation_id,
    )


@router.get("/donations/{donation_id}", response_model=DonationResponse)
def get_donation(donation_id: int, db: Session = Depends(get_db)):
    """Get a donation."""
    donation = db.query(Donation).filter(Donation.id == donation_id).first()
    if not donation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Donation {donation_id} not found",
        )
    return donation
