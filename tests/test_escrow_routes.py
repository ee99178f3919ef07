"""Tests for per-milestone escrow, status lookup and the signed-envelope relay."""

from decimal import Decimal

import pytest
from stellar_sdk import Keypair

from pevi_api.escrow.gateway import ContractResult, EngagementKind, EscrowServiceError
from pevi_api.ledger.client import LedgerSubmissionError
from pevi_api.models import Campaign, Milestone


@pytest.fixture
def milestone(db):
    campaign = Campaign(title="Per milestone", cost=Decimal("300"), status="active", escrow_id="CCAMP")
    db.add(campaign)
    db.flush()
    milestone = Milestone(campaign_id=campaign.id, name="Phase 1", total_amount=Decimal("300"), currency="XLM")
    db.add(milestone)
    db.commit()
    return milestone


def test_milestone_escrow_binds_contract(client, db, gateway, milestone):
    gateway.create_result = ContractResult(contract_id="CMILE")
    body = {
        "milestone_id": milestone.id,
        "approver_address": Keypair.random().public_key,
        "beneficiary_address": Keypair.random().public_key,
    }

    response = client.post("/v1/escrow/milestones", json=body)

    assert response.status_code == 201
    assert response.json()["contract_id"] == "CMILE"
    assert gateway.calls[0] == ("create_escrow", EngagementKind.MILESTONE, milestone.id)
    db.refresh(milestone)
    assert milestone.escrow_id == "CMILE"
    assert milestone.effective_escrow_id == "CMILE"


def test_milestone_without_own_contract_uses_campaign_escrow(milestone):
    assert milestone.effective_escrow_id == "CCAMP"


def test_milestone_escrow_rejects_bad_addresses(client, gateway, milestone):
    body = {"milestone_id": milestone.id, "approver_address": "nope", "beneficiary_address": "nope"}
    assert client.post("/v1/escrow/milestones", json=body).status_code == 400
    assert gateway.calls == []


def test_escrow_status_endpoint(client, gateway):
    gateway.approved = True

    response = client.get("/v1/escrow/CANY")

    assert response.status_code == 200
    data = response.json()
    assert data["escrow_id"] == "CANY"
    assert data["status"] == "funded"
    assert data["milestones"][0]["approved"] is True


def test_escrow_status_gateway_error_is_502(client, gateway):
    def fail(contract_id):
        raise EscrowServiceError("status failed (500)", 500, "boom")

    gateway.get_escrow_status = fail
    response = client.get("/v1/escrow/CANY")

    assert response.status_code == 502
    assert response.json()["body"] == "boom"
    assert response.json()["upstream_status"] == 500


def test_relay_to_escrow_service(client, gateway):
    response = client.post("/v1/escrow/submit", json={"signed_xdr": "signed:xdr-x"})

    assert response.status_code == 200
    assert response.json()["status"] == "SUCCESS"
    assert gateway.sent == ["signed:xdr-x"]


def test_relay_to_ledger(client, ledger):
    response = client.post("/v1/escrow/submit", json={"signed_xdr": "signed:tx", "target": "ledger"})

    assert response.status_code == 200
    assert response.json() == {"hash": "ledger-hash-1", "ledger": 1001}


def test_relay_ledger_error_keeps_structure(client, ledger):
    def reject(signed_xdr):
        raise LedgerSubmissionError(
            "Network error: Codes: tx_insufficient_fee",
            status_code=400,
            result_codes={"transaction": "tx_insufficient_fee"},
        )

    ledger.submit = reject
    response = client.post("/v1/escrow/submit", json={"signed_xdr": "signed:tx", "target": "ledger"})

    assert response.status_code == 502
    assert response.json()["detail"] == "Network error: Codes: tx_insufficient_fee"
    assert response.json()["status_code"] == 400


def test_relay_rejects_unknown_target(client):
    response = client.post("/v1/escrow/submit", json={"signed_xdr": "x", "target": "mars"})
    assert response.status_code == 422
