"""Single-signature flows: donor funding, campaign escrow deployment, evaluator attestation."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Union

from pevi_sdk.bridge import SigningBridge
from pevi_sdk.client import PeviAPIError, PeviClient

logger = logging.getLogger(__name__)


@dataclass
class FlowOutcome:
    """Result of a flow; ``data`` holds the last server response."""

    status: str  # completed, cancelled, failed
    data: dict = field(default_factory=dict)
    error: Optional[object] = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"


def _sign(bridge: SigningBridge, unsigned_xdr: str, data: dict) -> Union[str, FlowOutcome]:
    signed = bridge.sign(unsigned_xdr)
    if signed.ok:
        return signed.signed_xdr
    return FlowOutcome(status="cancelled" if signed.cancelled else "failed", data=data, error=signed.error)


def fund_donation(
    client: PeviClient,
    bridge: SigningBridge,
    user_id: int,
    campaign_id: int,
    amount: Union[Decimal, float, str],
    donation_id: Optional[int] = None,
) -> FlowOutcome:
    """Record a donation and fund the campaign escrow with it.

    Abandoning the signature leaves the donation unfunded; calling again with
    the same arguments reuses that row.
    """
    try:
        prepared = client.create_donation(
            user_id, campaign_id, amount, bridge.public_key, donation_id=donation_id
        )
    except PeviAPIError as e:
        return FlowOutcome(status="failed", error=e.detail)
    if prepared.get("already_funded"):
        return FlowOutcome(status="completed", data=prepared)

    signed = _sign(bridge, prepared["unsigned_xdr"], prepared)
    if isinstance(signed, FlowOutcome):
        return signed

    try:
        funded = client.submit_funding(prepared["donation_id"], signed)
    except PeviAPIError as e:
        return FlowOutcome(status="failed", data=prepared, error=e.detail)
    logger.info(f"Donation {funded['donation_id']} funded ({funded.get('hash')})")
    return FlowOutcome(status="completed", data=funded)


def create_campaign_with_escrow(
    client: PeviClient,
    bridge: SigningBridge,
    title: str,
    cost: Union[Decimal, float, str],
    currency: str = "USDC",
    org_id: Optional[int] = None,
    description: Optional[str] = None,
) -> FlowOutcome:
    """Create a campaign funded by the bridge's wallet and bind its escrow contract."""
    try:
        created = client.create_campaign(
            title,
            cost,
            currency=currency,
            funding_wallet=bridge.public_key,
            org_id=org_id,
            description=description,
        )
    except PeviAPIError as e:
        return FlowOutcome(status="failed", error=e.detail)

    campaign = created["campaign"]
    if campaign.get("escrow_id") or not created.get("unsigned_xdr"):
        return FlowOutcome(status="completed", data=campaign)

    signed = _sign(bridge, created["unsigned_xdr"], campaign)
    if isinstance(signed, FlowOutcome):
        return signed

    try:
        deployed = bridge.submit(signed)
        synced = client.sync_campaign(
            campaign["id"],
            wallet_address=bridge.public_key,
            contract_id=deployed.get("contract_id"),
        )
    except PeviAPIError as e:
        return FlowOutcome(status="failed", data=campaign, error=e.detail)

    if not synced.get("found"):
        # Contract may not be indexed yet; a later sync resolves it
        return FlowOutcome(status="completed", data={**campaign, "escrow_pending": True})
    return FlowOutcome(status="completed", data={**campaign, "escrow_id": synced["escrow_id"]})


def attest_evaluation(
    client: PeviClient,
    bridge: SigningBridge,
    activity_id: int,
    note: Optional[str] = None,
) -> FlowOutcome:
    """Sign the on-chain proof for an activity, then record the evaluator approval."""
    try:
        proof = client.request_proof(activity_id, bridge.public_key)
    except PeviAPIError as e:
        return FlowOutcome(status="failed", error=e.detail)

    signed = _sign(bridge, proof["unsigned_xdr"], proof)
    if isinstance(signed, FlowOutcome):
        return signed

    try:
        submitted = bridge.submit(signed, target="ledger")
        reviewed = client.evaluator_review(
            activity_id, "approve", note=note, proof_hash=submitted["hash"]
        )
    except PeviAPIError as e:
        return FlowOutcome(status="failed", data=proof, error=e.detail)
    return FlowOutcome(status="completed", data=reviewed)
