"""Escrow endpoints: milestone contracts, donor funding, release steps and relay."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from pevi_api.dependencies import get_gateway, get_lifecycle
from pevi_api.escrow.gateway import ContractResult, EscrowGateway, EscrowStatus
from pevi_api.services.escrow_lifecycle import (
    EscrowLifecycle,
    FundingPreparation,
    ReleaseStep,
    StepResult,
)

router = APIRouter(prefix="/v1/escrow", tags=["escrow"])


class MilestoneEscrowCreate(BaseModel):
    """Per-milestone contract request."""

    milestone_id: int
    approver_address: str
    beneficiary_address: str


class FundRequest(BaseModel):
    """Re-prepare the funding envelope for an existing donation."""

    donation_id: int
    sender_public_key: Optional[str] = None


class FundSubmit(BaseModel):
    """Signed donor funding envelope."""

    donation_id: int
    signed_xdr: str


class FundSubmitResponse(BaseModel):
    """Funded donation."""

    donation_id: int
    hash: Optional[str] = None


class ReleaseRequest(BaseModel):
    """One step of the milestone release protocol."""

    milestone_id: int
    approver_public_key: str
    step: ReleaseStep
    signed_xdr: Optional[str] = None
    release_id: Optional[str] = Field(None, max_length=64, description="Client release token for the campaign lease")


class SubmitRequest(BaseModel):
    """Signed envelope for the generic relay."""

    signed_xdr: str
    target: str = Field("escrow", pattern="^(escrow|ledger)$")


@router.post("/milestones", response_model=ContractResult, status_code=status.HTTP_201_CREATED)
def create_milestone_escrow(
    request: MilestoneEscrowCreate,
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """Create the escrow contract backing a single milestone."""
    return lifecycle.create_milestone_escrow(
        request.milestone_id,
        approver_address=request.approver_address,
        beneficiary_address=request.beneficiary_address,
    )


@router.post("/fund", response_model=FundingPreparation)
def prepare_funding(
    request: FundRequest,
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """Unsigned funding transaction for an existing donation."""
    return lifecycle.prepare_funding(request.donation_id, request.sender_public_key)


@router.post("/fund/submit", response_model=FundSubmitResponse)
def submit_funding(
    request: FundSubmit,
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """Submit the donor's signed funding transaction."""
    donation = lifecycle.submit_funding(request.donation_id, request.signed_xdr)
    return FundSubmitResponse(donation_id=donation.id, hash=donation.hash)


@router.post("/release", response_model=StepResult)
def release_step(
    request: ReleaseRequest,
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """
    Run one release step.

    Request steps return an unsigned envelope (or ``skipped``); submit steps
    take the signed envelope and advance the milestone checkpoint.
    """
    return lifecycle.handle_step(
        request.step,
        request.milestone_id,
        request.approver_public_key,
        release_id=request.release_id,
        signed_xdr=request.signed_xdr,
    )


@router.post("/submit")
def submit_transaction(
    request: SubmitRequest,
    lifecycle: EscrowLifecycle = Depends(get_lifecycle),
):
    """Relay a signed envelope to the escrow service or the ledger."""
    return lifecycle.relay(request.signed_xdr, target=request.target)


@router.get("/{contract_id}", response_model=EscrowStatus)
def get_escrow(contract_id: str, gateway: EscrowGateway = Depends(get_gateway)):
    """Current contract state as reported by the escrow service."""
    return gateway.get_escrow_status(contract_id)
