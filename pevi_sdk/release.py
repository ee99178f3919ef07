"""Client-side driver for the four-step milestone release."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from pevi_sdk.bridge import SigningBridge
from pevi_sdk.client import PeviAPIError, PeviClient

logger = logging.getLogger(__name__)

RELEASE_STEPS = [
    ("change_status", "submit_change"),
    ("approve", "submit_approve"),
    ("release", "submit_release"),
    ("prepare_payout", "submit_payout"),
]

COMPLETED = "completed"
CANCELLED = "cancelled"
FAILED = "failed"


@dataclass
class ReleaseOutcome:
    """Where a release run stopped."""

    status: str
    completed_steps: List[str] = field(default_factory=list)
    skipped_steps: List[str] = field(default_factory=list)
    prompts: List[str] = field(default_factory=list)
    hashes: dict = field(default_factory=dict)
    failed_step: Optional[str] = None
    error: Optional[object] = None

    @property
    def completed(self) -> bool:
        return self.status == COMPLETED


class ReleaseDriver:
    """Runs change-status, approve, release and payout in strict order.

    A run can be repeated after a cancellation or failure: steps the server
    reports as already done are skipped without prompting the wallet.
    """

    def __init__(
        self,
        client: PeviClient,
        bridge: SigningBridge,
        milestone_id: int,
        release_id: Optional[str] = None,
        on_step: Optional[Callable[[str], None]] = None,
    ):
        """Initialize driver."""
        self.client = client
        self.bridge = bridge
        self.milestone_id = milestone_id
        self.release_id = release_id or uuid.uuid4().hex
        self.on_step = on_step

    def _step(self, step: str, signed_xdr: Optional[str] = None) -> dict:
        if self.on_step:
            self.on_step(step)
        return self.client.release_step(
            self.milestone_id,
            self.bridge.public_key,
            step,
            signed_xdr=signed_xdr,
            release_id=self.release_id,
        )

    def run(self) -> ReleaseOutcome:
        outcome = ReleaseOutcome(status=COMPLETED)
        for request_step, submit_step in RELEASE_STEPS:
            try:
                prepared = self._step(request_step)
            except PeviAPIError as e:
                return self._halt(outcome, FAILED, request_step, e.detail)

            if prepared.get("skipped"):
                logger.info(f"Milestone {self.milestone_id}: {request_step} skipped ({prepared.get('reason')})")
                outcome.skipped_steps.append(request_step)
                continue

            outcome.prompts.append(request_step)
            signed = self.bridge.sign(prepared["unsigned_xdr"])
            if signed.cancelled:
                return self._halt(outcome, CANCELLED, request_step, signed.error)
            if not signed.ok:
                return self._halt(outcome, FAILED, request_step, signed.error)

            try:
                submitted = self._step(submit_step, signed_xdr=signed.signed_xdr)
            except PeviAPIError as e:
                return self._halt(outcome, FAILED, submit_step, e.detail)
            outcome.completed_steps.append(request_step)
            if submitted.get("hash"):
                outcome.hashes[request_step] = submitted["hash"]

        logger.info(f"Milestone {self.milestone_id}: release completed")
        return outcome

    def _halt(self, outcome: ReleaseOutcome, status: str, step: str, error) -> ReleaseOutcome:
        logger.warning(f"Milestone {self.milestone_id}: release {status} at {step}: {error}")
        outcome.status = status
        outcome.failed_step = step
        outcome.error = error
        return outcome
