"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from stellar_sdk import Account, Keypair, TransactionBuilder

from pevi_api.db.base import Base
from pevi_api.db.session import get_db
from pevi_api.dependencies import get_gateway, get_ledger_client
from pevi_api.domain.states import ActivityStage, CampaignStatus, EscrowState, MilestoneStatus
from pevi_api.escrow.gateway import (
    ContractResult,
    EscrowRecord,
    EscrowServiceError,
    EscrowStatus,
    MilestoneState,
)
from pevi_api.ledger.client import LedgerReceipt
from pevi_api.ledger.transactions import envelope_hash
from pevi_api.main import app
from pevi_api.models import Activity, Award, Campaign, CampaignBeneficiary, Milestone, User
from pevi_api.settings import TESTNET_PASSPHRASE
from pevi_sdk.wallet import KeypairWalletSigner, SignResult


TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture(scope="function")
def db():
    """Create a test database session."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


class FakeGateway:
    """In-memory escrow service that applies a step once its signed envelope is sent.

    Envelopes are real transactions from a throwaway account; ``actions`` maps
    each envelope hash to the step that produced it.
    """

    def __init__(self):
        self.create_result = ContractResult(contract_id="CESCROW1")
        self.create_error: Optional[EscrowServiceError] = None
        self.fund_error: Optional[EscrowServiceError] = None
        self.milestone_status = "Pending"
        self.approved = False
        self.released = False
        self.engagements = {}
        self.signer_records = {}
        self.lookup_errors = {}
        self.sent = []
        self.calls = []
        self.actions = {}
        self._source = Keypair.random().public_key
        self._sequence = 0

    def envelope(self, action: str) -> str:
        """Fresh unsigned envelope tagged with ``action``."""
        self._sequence += 1
        tx = (
            TransactionBuilder(
                Account(self._source, self._sequence),
                network_passphrase=TESTNET_PASSPHRASE,
                base_fee=100,
            )
            .append_bump_sequence_op(bump_to=self._sequence + 1)
            .set_timeout(300)
            .build()
        )
        xdr = tx.to_xdr()
        self.actions[envelope_hash(xdr, TESTNET_PASSPHRASE)] = action
        return xdr

    def action_of(self, xdr: str) -> Optional[str]:
        """Action an (unsigned or signed) envelope was prepared for; None for anything else."""
        try:
            return self.actions.get(envelope_hash(xdr, TESTNET_PASSPHRASE))
        except Exception:
            return None

    def create_escrow(self, engagement_kind, owner_id, **kwargs):
        self.calls.append(("create_escrow", engagement_kind, owner_id))
        if self.create_error:
            raise self.create_error
        return self.create_result

    def fund_escrow(self, contract_id, amount, sender_public_key):
        self.calls.append(("fund_escrow", contract_id, amount))
        if self.fund_error:
            raise self.fund_error
        return ContractResult(unsigned_xdr=self.envelope(f"fund-{contract_id}"))

    def change_milestone_status(self, contract_id, service_provider, **kwargs):
        self.calls.append(("change_milestone_status", contract_id))
        return ContractResult(unsigned_xdr=self.envelope("change"))

    def approve_milestone(self, contract_id, approver, milestone_index="0"):
        self.calls.append(("approve_milestone", contract_id))
        if self.approved:
            raise EscrowServiceError(
                "Escrow service approve failed (400)",
                status_code=400,
                body='{"message": "This milestone has already been approved"}',
            )
        return ContractResult(unsigned_xdr=self.envelope("approve"))

    def release_escrow(self, contract_id, approver_public_key):
        self.calls.append(("release_escrow", contract_id))
        return ContractResult(unsigned_xdr=self.envelope("release"))

    def send_transaction(self, signed_xdr):
        self.sent.append(signed_xdr)
        action = self.action_of(signed_xdr)
        if action == "change":
            self.milestone_status = "Completed"
        elif action == "approve":
            self.approved = True
        elif action == "release":
            self.released = True
        return ContractResult(status="SUCCESS", hash=f"escrow-hash-{len(self.sent)}")

    def get_escrow_status(self, contract_id):
        self.calls.append(("get_escrow_status", contract_id))
        return EscrowStatus(
            escrow_id=contract_id,
            balance=Decimal("0") if self.released else Decimal("1000"),
            status=EscrowState.RELEASED if self.released else EscrowState.FUNDED,
            milestones=[MilestoneState(status=self.milestone_status, approved=self.approved)],
        )

    def get_escrow_by_engagement_id(self, engagement):
        self.calls.append(("get_escrow_by_engagement_id", engagement))
        if engagement in self.lookup_errors:
            raise self.lookup_errors[engagement]
        contract_id = self.engagements.get(engagement)
        if not contract_id:
            return None
        return EscrowRecord(contract_id=contract_id, engagement_id=engagement)

    def get_escrows_by_signer(self, address):
        self.calls.append(("get_escrows_by_signer", address))
        return self.signer_records.get(address, [])


class FakeLedger:
    """Horizon double: fixed sequences, sequential hashes."""

    network_passphrase = TESTNET_PASSPHRASE

    def __init__(self):
        self.submitted = []
        self.transactions = {}

    def submit(self, signed_xdr):
        self.submitted.append(signed_xdr)
        return LedgerReceipt(hash=f"ledger-hash-{len(self.submitted)}", ledger=1000 + len(self.submitted))

    def load_sequence(self, address):
        return 100

    def get_transaction(self, tx_hash):
        return self.transactions.get(tx_hash)


class FakeWallet(KeypairWalletSigner):
    """Keypair wallet with scripted answers per prompt number (1-based)."""

    def __init__(self, keypair: Keypair, answers: Optional[dict] = None):
        super().__init__(keypair.secret)
        self.answers = answers or {}
        self.prompts = []

    def sign_transaction(self, unsigned_xdr: str, network_passphrase: str) -> SignResult:
        self.prompts.append(unsigned_xdr)
        answer = self.answers.get(len(self.prompts))
        if answer is not None:
            return answer
        return super().sign_transaction(unsigned_xdr, network_passphrase)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def client(db: Session, gateway: FakeGateway, ledger: FakeLedger):
    """API test client wired to the test database and the fakes."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_ledger_client] = lambda: ledger
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def approver() -> Keypair:
    return Keypair.random()


@pytest.fixture
def release_ready(db: Session, approver: Keypair):
    """Active XLM campaign (cost 1000) with one fully verified milestone and two beneficiaries."""
    campaign = Campaign(
        title="Reforestation",
        cost=Decimal("1000"),
        currency="XLM",
        status=CampaignStatus.ACTIVE.value,
        funding_wallet=approver.public_key,
        escrow_id="CESCROW1",
    )
    db.add(campaign)
    db.flush()

    milestone = Milestone(
        campaign_id=campaign.id,
        name="Planting",
        total_amount=Decimal("1000"),
        currency="XLM",
        status=MilestoneStatus.APPROVED.value,
    )
    db.add(milestone)
    db.flush()

    for name in ("Ana", "Luis"):
        user = User(full_name=name, wallet_address=Keypair.random().public_key)
        db.add(user)
        db.flush()
        beneficiary = CampaignBeneficiary(campaign_id=campaign.id, user_id=user.id, status="active")
        db.add(beneficiary)
        db.flush()
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
    return campaign, milestone


@pytest.fixture
def wallet_factory():
    """Build scripted wallets: ``wallet_factory(keypair, answers={2: SignResult(error={})})``."""
    return FakeWallet
