"""Tests for the milestone release protocol endpoint."""

from datetime import datetime, timedelta
from decimal import Decimal

from stellar_sdk import Keypair

from pevi_api.domain.states import ActivityStage
from pevi_api.ledger.transactions import build_proof_transaction
from pevi_api.models import Activity, Award, Campaign, Milestone
from pevi_api.settings import TESTNET_PASSPHRASE
from pevi_sdk.wallet import KeypairWalletSigner


def step(client, milestone, approver, name, signed_xdr=None, release_id="rel-1"):
    return client.post(
        "/v1/escrow/release",
        json={
            "milestone_id": milestone.id,
            "approver_public_key": approver.public_key,
            "step": name,
            "signed_xdr": signed_xdr,
            "release_id": release_id,
        },
    )


def sign(keypair, unsigned_xdr):
    return KeypairWalletSigner(keypair.secret).sign_transaction(unsigned_xdr, TESTNET_PASSPHRASE).signed_xdr


def run_pair(client, milestone, approver, request_step, submit_step, release_id="rel-1"):
    prepared = step(client, milestone, approver, request_step, release_id=release_id).json()
    return step(
        client,
        milestone,
        approver,
        submit_step,
        signed_xdr=sign(approver, prepared["unsigned_xdr"]),
        release_id=release_id,
    )


def test_request_then_submit_advances_checkpoint(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready

    prepared = step(client, milestone, approver, "change_status")
    assert prepared.status_code == 200
    assert gateway.action_of(prepared.json()["unsigned_xdr"]) == "change"
    assert prepared.json()["release_stage"] == "ready"

    submitted = step(
        client, milestone, approver, "submit_change", signed_xdr=sign(approver, prepared.json()["unsigned_xdr"])
    )
    assert submitted.status_code == 200
    assert submitted.json()["release_stage"] == "status_changed"
    db.refresh(milestone)
    assert milestone.release_stage == "status_changed"
    assert milestone.pending_tx_hash is None


def test_submit_rejects_transaction_that_was_not_prepared(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    step(client, milestone, approver, "change_status")
    other = gateway.envelope("change")

    response = step(client, milestone, approver, "submit_change", signed_xdr=sign(approver, other))

    assert response.status_code == 409
    assert "does not match" in response.json()["detail"]
    assert gateway.sent == []
    db.refresh(milestone)
    assert milestone.release_stage == "ready"


def test_submit_without_prepared_transaction_is_refused(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready

    response = step(client, milestone, approver, "submit_change", signed_xdr=sign(approver, gateway.envelope("change")))

    assert response.status_code == 409
    assert gateway.sent == []


def test_undecodable_submission_is_rejected(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    step(client, milestone, approver, "change_status")

    response = step(client, milestone, approver, "submit_change", signed_xdr="not-an-envelope")

    assert response.status_code == 400
    assert gateway.sent == []


def test_payout_cannot_be_settled_with_unrelated_transaction(client, db, gateway, ledger, approver, release_ready):
    campaign, milestone = release_ready
    milestone.release_stage = "released"
    db.commit()
    step(client, milestone, approver, "prepare_payout")
    proof = build_proof_transaction(approver.public_key, 200, 1, Keypair.random().public_key, TESTNET_PASSPHRASE)

    response = step(client, milestone, approver, "submit_payout", signed_xdr=sign(approver, proof))

    assert response.status_code == 409
    assert ledger.submitted == []
    db.expire_all()
    assert db.query(Campaign).filter(Campaign.id == campaign.id).one().status == "active"
    assert {a.status for a in db.query(Award).all()} == {"pending"}
    assert db.query(Milestone).one().release_stage == "released"


def test_steps_must_follow_order(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready

    response = step(client, milestone, approver, "release")
    assert response.status_code == 409
    assert gateway.calls == []

    response = step(client, milestone, approver, "submit_approve", signed_xdr="signed:xdr-approve")
    assert response.status_code == 409
    assert gateway.sent == []


def test_submit_requires_signed_envelope(client, approver, release_ready):
    campaign, milestone = release_ready
    assert step(client, milestone, approver, "submit_change").status_code == 400


def test_release_gate_requires_verified_activities(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    activity = milestone.activities[0]
    activity.stage = ActivityStage.UNDER_VERIFICATION.value
    db.commit()

    response = step(client, milestone, approver, "change_status")

    assert response.status_code == 409
    assert "awaiting verification" in response.json()["detail"]
    assert gateway.calls == []


def test_release_gate_requires_escrow(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    campaign.escrow_id = None
    db.commit()

    assert step(client, milestone, approver, "change_status").status_code == 409


def test_approve_is_idempotent(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    run_pair(client, milestone, approver, "change_status", "submit_change")

    first = step(client, milestone, approver, "approve")
    assert gateway.action_of(first.json()["unsigned_xdr"]) == "approve"
    step(client, milestone, approver, "submit_approve", signed_xdr=sign(approver, first.json()["unsigned_xdr"]))

    second = step(client, milestone, approver, "approve")
    assert second.status_code == 200
    assert second.json()["skipped"] is True
    assert second.json()["unsigned_xdr"] is None
    assert [c[0] for c in gateway.calls].count("approve_milestone") == 1


def test_approve_skipped_when_contract_already_approved(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    run_pair(client, milestone, approver, "change_status", "submit_change")
    gateway.approved = True

    response = step(client, milestone, approver, "approve")

    assert response.json()["skipped"] is True
    assert response.json()["reason"] == "already_approved"
    assert response.json()["release_stage"] == "approved"


def test_already_approved_error_is_treated_as_done(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    milestone.release_stage = "status_changed"
    db.commit()
    # Contract status lags behind, but the approve call reports the work as done
    gateway.approved = True
    gateway.get_escrow_status = lambda contract_id: type(gateway).get_escrow_status(gateway, contract_id).model_copy(
        update={"milestones": []}
    )

    response = step(client, milestone, approver, "approve")

    assert response.json()["skipped"] is True
    db.refresh(milestone)
    assert milestone.release_stage == "approved"


def test_release_lease_blocks_concurrent_release(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready

    assert step(client, milestone, approver, "change_status", release_id="tab-1").status_code == 200
    conflict = step(client, milestone, approver, "change_status", release_id="tab-2")

    assert conflict.status_code == 409
    assert "in progress" in conflict.json()["detail"]
    db.refresh(campaign)
    assert campaign.release_token == "tab-1"


def test_expired_lease_can_be_taken_over(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    step(client, milestone, approver, "change_status", release_id="tab-1")
    db.query(Campaign).filter(Campaign.id == campaign.id).update(
        {Campaign.releasing_since: datetime.utcnow() - timedelta(hours=1)}
    )
    db.commit()

    response = step(client, milestone, approver, "change_status", release_id="tab-2")

    assert response.status_code == 200
    db.refresh(campaign)
    assert campaign.release_token == "tab-2"


def test_full_release_completes_campaign_only_after_payout(client, db, gateway, ledger, approver, release_ready):
    campaign, milestone = release_ready
    pairs = [
        ("change_status", "submit_change"),
        ("approve", "submit_approve"),
        ("release", "submit_release"),
    ]
    for request_step, submit_step in pairs:
        assert run_pair(client, milestone, approver, request_step, submit_step).status_code == 200
        db.refresh(campaign)
        assert campaign.status == "active"

    db.refresh(milestone)
    assert milestone.release_stage == "released"
    assert milestone.status == "released"
    assert milestone.release_hash == "escrow-hash-3"

    payout = step(client, milestone, approver, "prepare_payout").json()
    assert payout["details"] == {"beneficiary_count": 2, "amount_per_beneficiary": "500.00"}

    done = step(client, milestone, approver, "submit_payout", signed_xdr=sign(approver, payout["unsigned_xdr"]))
    assert done.status_code == 200
    assert done.json()["hash"] == "ledger-hash-1"

    db.expire_all()
    campaign = db.query(Campaign).filter(Campaign.id == campaign.id).one()
    assert campaign.status == "completed"
    assert campaign.release_token is None
    awards = db.query(Award).all()
    assert {a.status for a in awards} == {"paid"}
    assert {a.hash for a in awards} == {"ledger-hash-1"}
    assert db.query(Milestone).one().release_stage == "paid_out"


def test_release_skipped_when_contract_already_released(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    milestone.release_stage = "approved"
    db.commit()
    gateway.released = True

    response = step(client, milestone, approver, "release")

    assert response.json()["skipped"] is True
    assert [c[0] for c in gateway.calls].count("release_escrow") == 0


def test_payout_needs_beneficiary_wallets(client, db, gateway, approver, release_ready):
    campaign, milestone = release_ready
    milestone.release_stage = "released"
    for beneficiary in campaign.beneficiaries:
        beneficiary.user.wallet_address = None
    db.commit()

    response = step(client, milestone, approver, "prepare_payout")
    assert response.status_code == 400


def test_payout_submission_failure_leaves_campaign_active(client, db, gateway, ledger, approver, release_ready):
    from pevi_api.ledger.client import LedgerSubmissionError

    campaign, milestone = release_ready
    milestone.release_stage = "released"
    db.commit()
    payout = step(client, milestone, approver, "prepare_payout").json()
    signed = sign(approver, payout["unsigned_xdr"])
    accept = ledger.submit

    def reject(signed_xdr):
        raise LedgerSubmissionError(
            "Network error: Codes: tx_bad_seq",
            status_code=400,
            result_codes={"transaction": "tx_bad_seq"},
        )

    ledger.submit = reject
    response = step(client, milestone, approver, "submit_payout", signed_xdr=signed)

    assert response.status_code == 502
    assert response.json()["result_codes"] == {"transaction": "tx_bad_seq"}
    db.refresh(campaign)
    assert campaign.status == "active"
    db.refresh(milestone)
    assert milestone.release_stage == "released"

    ledger.submit = accept
    retried = step(client, milestone, approver, "submit_payout", signed_xdr=signed)
    assert retried.status_code == 200
    assert retried.json()["release_stage"] == "paid_out"


def add_approved_milestone(db, campaign, total_amount):
    milestone = Milestone(
        campaign_id=campaign.id,
        name="Second phase",
        total_amount=total_amount,
        currency="XLM",
        status="approved",
    )
    db.add(milestone)
    db.flush()
    for beneficiary in campaign.beneficiaries:
        activity = Activity(
            milestone_id=milestone.id,
            campaign_beneficiary_id=beneficiary.id,
            stage=ActivityStage.VERIFIER_APPROVED.value,
            **ActivityStage.VERIFIER_APPROVED.columns,
        )
        db.add(activity)
        db.flush()
        db.add(Award(activity_id=activity.id))
    db.commit()
    return milestone


def pay_out(client, db, milestone, approver):
    milestone.release_stage = "released"
    db.commit()
    payout = step(client, milestone, approver, "prepare_payout").json()
    done = step(client, milestone, approver, "submit_payout", signed_xdr=sign(approver, payout["unsigned_xdr"]))
    assert done.status_code == 200
    return payout


def test_payout_splits_milestone_amount_and_keeps_campaign_open(client, db, gateway, ledger, approver, release_ready):
    campaign, first = release_ready
    first.total_amount = Decimal("600")
    db.commit()
    second = add_approved_milestone(db, campaign, Decimal("400"))

    payout = pay_out(client, db, first, approver)

    assert payout["details"] == {"beneficiary_count": 2, "amount_per_beneficiary": "300.00"}
    db.refresh(campaign)
    assert campaign.status == "active"
    assert campaign.release_token is None
    assert {a.status for a in db.query(Award).join(Activity).filter(Activity.milestone_id == second.id)} == {"pending"}

    next_step = step(client, second, approver, "change_status")
    assert next_step.status_code == 200
    assert next_step.json()["unsigned_xdr"]

    payout = pay_out(client, db, second, approver)

    assert payout["details"]["amount_per_beneficiary"] == "200.00"
    db.refresh(campaign)
    assert campaign.status == "completed"
    assert {a.status for a in db.query(Award).all()} == {"paid"}


def test_milestone_without_amount_pays_out_campaign_cost(client, db, gateway, ledger, approver, release_ready):
    campaign, milestone = release_ready
    milestone.total_amount = None
    campaign.cost = Decimal("90")
    milestone.release_stage = "released"
    db.commit()

    payout = step(client, milestone, approver, "prepare_payout").json()

    assert payout["details"]["amount_per_beneficiary"] == "45.00"
