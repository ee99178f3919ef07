"""Campaign creation (with escrow backing) and escrow id sync."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from pevi_api.db.session import get_db
from pevi_api.dependencies import get_lifecycle, get_reconciler
from pevi_api.models import Campaign
from pevi_api.services.escrow_lifecycle import EscrowLifecycle
from pevi_api.services.reconciliation import EscrowReconciler

router = APIRouter(prefix="/v1", tags=["campaigns"])


class CampaignCreate(BaseModel):
    """Campaign creation request."""

    title: str
    cost: Decimal = Field(..., ge=0)
    currency: str = "USDC"
    org_id: Optional[int] = None
    description: Optional[str] = None
    funding_wallet: Optional[str] = Field(None, description="Corporation wallet that funds and approves the escrow")


class CampaignResponse(BaseModel):
    """Campaign response."""

    id: int
    org_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    cost: Decimal
    currency: str
    status: str
    funding_wallet: Optional[str] = None
    escrow_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CampaignCreateResponse(BaseModel):
    """Created campaign plus, when pending, the escrow deployment envelope to sign."""

    campaign: CampaignResponse
    unsigned_xdr: Optional[str] = None


class CampaignSync(BaseModel):
    """Escrow sync request."""

    wallet_address: Optional[str] = None
    escrow_contract_id: Optional[str] = None


@router.post("/campaigns", response_model=CampaignCreateResponse, status_code=status.HTTP_201_CREATED)
def create_campaign(
    campaign_data: CampaignCreate,
    db: Session = Depends(get_db),
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """Create a campaign; deploys its escrow when a funding wallet is supplied."""
    creation = lifecycle.create_campaign(
        title=campaign_data.title,
        cost=campaign_data.cost,
        currency=campaign_data.currency,
        org_id=campaign_data.org_id,
        description=campaign_data.description,
        funding_wallet=campaign_data.funding_wallet,
    )
    campaign = db.query(Campaign).filter(Campaign.id == creation.campaign_id).first()
    return CampaignCreateResponse(
        campaign=CampaignResponse.model_validate(campaign),
        unsigned_xdr=creation.unsigned_xdr,
    )


@router.get("/campaigns/{campaign_id}", response_model=CampaignResponse)
def get_campaign(campaign_id: int, db: Session = Depends(get_db)):
    """Get a campaign."""
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
    if not campaign:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Campaign {campaign_id} not found",
        )
    return campaign


@router.patch("/campaigns/{campaign_id}")
def sync_campaign_escrow(
    campaign_id: int,
    sync_data: CampaignSync,
    reconciler: EscrowReconciler = Depends(get_reconciler),
):
    """Resolve a missing escrow id (no-op when already set)."""
    result = reconciler.sync(
        campaign_id,
        wallet_address=sync_data.wallet_address,
        contract_id=sync_data.escrow_contract_id,
    )
    if not result.found:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={**result.model_dump(), "detail": "Escrow contract not found yet"},
        )
    return result.model_dump()
