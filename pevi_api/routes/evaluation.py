"""Evidence, evaluation and verification endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from pevi_api.dependencies import get_pipeline
from pevi_api.services.approval import ApprovalPipeline

router = APIRouter(prefix="/v1", tags=["evaluation"])


class ActivityResponse(BaseModel):
    """Activity response."""

    id: int
    milestone_id: int
    campaign_beneficiary_id: Optional[int] = None
    stage: str
    activity_status: str
    evidence_status: str
    verification_status: str
    evidence_ref: Optional[str] = None
    activity_observation: Optional[str] = None
    evaluation_note: Optional[str] = None
    evaluation_proof_hash: Optional[str] = None
    verification_note: Optional[str] = None

    class Config:
        from_attributes = True


class EvidenceSubmit(BaseModel):
    """Beneficiary evidence."""

    evidence_ref: str
    observation: Optional[str] = None


class ProofRequest(BaseModel):
    """Attestation transaction request."""

    activity_id: int
    evaluator_address: str


class ProofResponse(BaseModel):
    """Unsigned attestation transaction."""

    activity_id: int
    unsigned_xdr: str


class EvaluatorReview(BaseModel):
    """Evaluator decision."""

    activity_id: int
    decision: str = Field(..., pattern="^(approve|reject)$")
    note: Optional[str] = None
    proof_hash: Optional[str] = None


class VerifierReview(BaseModel):
    """Verifier decision."""

    activity_id: int
    decision: str = Field(..., pattern="^(approve|reject)$")
    note: Optional[str] = None


@router.post("/activities/{activity_id}/evidence", response_model=ActivityResponse)
def submit_evidence(
    activity_id: int,
    evidence: EvidenceSubmit,
    pipeline: ApprovalPipeline = Depends(get_pipeline),
):
    """Submit (or resubmit) evidence for an activity."""
    return pipeline.submit_evidence(activity_id, evidence.evidence_ref, evidence.observation)


@router.post("/evaluator/proof", response_model=ProofResponse)
def build_proof(request: ProofRequest, pipeline: ApprovalPipeline = Depends(get_pipeline)):
    """Unsigned attestation transaction for the evaluator to sign."""
    unsigned_xdr = pipeline.build_proof(request.activity_id, request.evaluator_address)
    return ProofResponse(activity_id=request.activity_id, unsigned_xdr=unsigned_xdr)


@router.post("/evaluator/review", response_model=ActivityResponse)
def evaluator_review(review: EvaluatorReview, pipeline: ApprovalPipeline = Depends(get_pipeline)):
    """Record an evaluator decision."""
    return pipeline.evaluate(review.activity_id, review.decision, review.note, review.proof_hash)


@router.post("/verifier/review", response_model=ActivityResponse)
def verifier_review(review: VerifierReview, pipeline: ApprovalPipeline = Depends(get_pipeline)):
    """Record a verifier decision."""
    return pipeline.verify(review.activity_id, review.decision, review.note)


@router.get("/evaluator/queue", response_model=List[ActivityResponse])
def evaluator_queue(
    campaign_id: Optional[int] = None,
    pipeline: ApprovalPipeline = Depends(get_pipeline),
):
    return pipeline.evaluator_queue(campaign_id)


@router.get("/verifier/queue", response_model=List[ActivityResponse])
def verifier_queue(
    campaign_id: Optional[int] = None,
    pipeline: ApprovalPipeline = Depends(get_pipeline),
):
    return pipeline.verifier_queue(campaign_id)


@router.get("/milestones/{milestone_id}/release-readiness")
def release_readiness(milestone_id: int, pipeline: ApprovalPipeline = Depends(get_pipeline)):
    """Whether a release may be initiated for the milestone."""
    return pipeline.release_readiness(milestone_id)
