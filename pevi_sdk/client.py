"""PEVI API client."""

from decimal import Decimal
from typing import Optional, Union

import requests


class PeviAPIError(Exception):
    """Non-success response from the PEVI API, with its detail preserved."""

    def __init__(self, status_code: int, detail):
        message = detail.get("detail", detail) if isinstance(detail, dict) else detail
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.detail = detail


class PeviClient:
    """Client for PEVI API.

    ``session`` may be any requests-compatible session (a FastAPI
    ``TestClient`` works too).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        api_key: Optional[str] = None,
        session=None,
    ):
        """Initialize client."""
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        if api_key:
            self.session.headers.update({"x-api-key": api_key})

    def _handle(self, response) -> dict:
        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            raise PeviAPIError(response.status_code, detail)
        return response.json()

    def _post(self, path: str, payload: dict) -> dict:
        return self._handle(self.session.post(f"{self.base_url}{path}", json=payload))

    def _get(self, path: str, params: Optional[dict] = None) -> dict:
        return self._handle(self.session.get(f"{self.base_url}{path}", params=params))

    # Campaigns

    def create_campaign(
        self,
        title: str,
        cost: Union[Decimal, float, str],
        currency: str = "USDC",
        funding_wallet: Optional[str] = None,
        org_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> dict:
        """Create a campaign; includes ``unsigned_xdr`` when the escrow awaits a signature."""
        payload = {
            "title": title,
            "cost": str(cost),
            "currency": currency,
            "funding_wallet": funding_wallet,
            "org_id": org_id,
            "description": description,
        }
        return self._post("/v1/campaigns", payload)

    def get_campaign(self, campaign_id: int) -> dict:
        return self._get(f"/v1/campaigns/{campaign_id}")

    def sync_campaign(
        self,
        campaign_id: int,
        wallet_address: Optional[str] = None,
        contract_id: Optional[str] = None,
    ) -> dict:
        """Resolve a missing escrow id. A miss returns ``{"found": False}`` rather than raising."""
        response = self.session.patch(
            f"{self.base_url}/v1/campaigns/{campaign_id}",
            json={"wallet_address": wallet_address, "escrow_contract_id": contract_id},
        )
        if response.status_code == 404:
            body = response.json()
            if "found" in body:
                return body
        return self._handle(response)

    # Donations / funding

    def create_donation(
        self,
        user_id: int,
        campaign_id: int,
        amount: Union[Decimal, float, str],
        sender_public_key: str,
        donation_id: Optional[int] = None,
    ) -> dict:
        payload = {
            "user_id": user_id,
            "campaign_id": campaign_id,
            "amount": str(amount),
            "sender_public_key": sender_public_key,
            "donation_id": donation_id,
        }
        return self._post("/v1/donations", payload)

    def get_donation(self, donation_id: int) -> dict:
        return self._get(f"/v1/donations/{donation_id}")

    def prepare_funding(self, donation_id: int, sender_public_key: Optional[str] = None) -> dict:
        return self._post(
            "/v1/escrow/fund",
            {"donation_id": donation_id, "sender_public_key": sender_public_key},
        )

    def submit_funding(self, donation_id: int, signed_xdr: str) -> dict:
        return self._post(
            "/v1/escrow/fund/submit",
            {"donation_id": donation_id, "signed_xdr": signed_xdr},
        )

    # Escrow

    def create_milestone_escrow(
        self, milestone_id: int, approver_address: str, beneficiary_address: str
    ) -> dict:
        payload = {
            "milestone_id": milestone_id,
            "approver_address": approver_address,
            "beneficiary_address": beneficiary_address,
        }
        return self._post("/v1/escrow/milestones", payload)

    def release_step(
        self,
        milestone_id: int,
        approver_public_key: str,
        step: str,
        signed_xdr: Optional[str] = None,
        release_id: Optional[str] = None,
    ) -> dict:
        """Run one release step (see ``ReleaseDriver`` for the full sequence)."""
        payload = {
            "milestone_id": milestone_id,
            "approver_public_key": approver_public_key,
            "step": step,
            "signed_xdr": signed_xdr,
            "release_id": release_id,
        }
        return self._post("/v1/escrow/release", payload)

    def submit_transaction(self, signed_xdr: str, target: str = "escrow") -> dict:
        """Relay a signed envelope to the escrow service or the ledger."""
        return self._post("/v1/escrow/submit", {"signed_xdr": signed_xdr, "target": target})

    def get_escrow(self, contract_id: str) -> dict:
        return self._get(f"/v1/escrow/{contract_id}")

    # Evidence / evaluation / verification

    def submit_evidence(self, activity_id: int, evidence_ref: str, observation: Optional[str] = None) -> dict:
        return self._post(
            f"/v1/activities/{activity_id}/evidence",
            {"evidence_ref": evidence_ref, "observation": observation},
        )

    def request_proof(self, activity_id: int, evaluator_address: str) -> dict:
        return self._post(
            "/v1/evaluator/proof",
            {"activity_id": activity_id, "evaluator_address": evaluator_address},
        )

    def evaluator_review(
        self,
        activity_id: int,
        decision: str,
        note: Optional[str] = None,
        proof_hash: Optional[str] = None,
    ) -> dict:
        payload = {
            "activity_id": activity_id,
            "decision": decision,
            "note": note,
            "proof_hash": proof_hash,
        }
        return self._post("/v1/evaluator/review", payload)

    def verifier_review(self, activity_id: int, decision: str, note: Optional[str] = None) -> dict:
        return self._post(
            "/v1/verifier/review",
            {"activity_id": activity_id, "decision": decision, "note": note},
        )

    def release_readiness(self, milestone_id: int) -> dict:
        return self._get(f"/v1/milestones/{milestone_id}/release-readiness")
