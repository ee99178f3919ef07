"""Transaction Signing Bridge: wallet prompt in, signed envelope out, relay to the network."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from pevi_sdk.client import PeviClient
from pevi_sdk.wallet import WalletSigner

logger = logging.getLogger(__name__)

TESTNET_PASSPHRASE = "Test SDF Network ; September 2015"

SIGNED = "signed"
CANCELLED = "cancelled"
FAILED = "failed"


class SigningInProgressError(RuntimeError):
    """A second signing prompt was requested while one is still open."""


@dataclass
class SignOutcome:
    """Interpreted wallet answer."""

    status: str
    signed_xdr: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SIGNED

    @property
    def cancelled(self) -> bool:
        return self.status == CANCELLED


def interpret(signed_xdr: Optional[str], error) -> SignOutcome:
    """Map a raw wallet answer onto signed / cancelled / failed."""
    if error is not None:
        if isinstance(error, dict):
            if not error:
                return SignOutcome(status=CANCELLED, error="Signing was cancelled")
            return SignOutcome(status=FAILED, error=str(error.get("message") or error))
        return SignOutcome(status=FAILED, error=str(error))
    if not signed_xdr:
        return SignOutcome(status=FAILED, error="Wallet returned no signed transaction")
    return SignOutcome(status=SIGNED, signed_xdr=signed_xdr)


class SigningBridge:
    """One bridge per user session; prompts are strictly one at a time."""

    def __init__(
        self,
        signer: WalletSigner,
        client: PeviClient,
        network_passphrase: str = TESTNET_PASSPHRASE,
    ):
        """Initialize bridge."""
        self.signer = signer
        self.client = client
        self.network_passphrase = network_passphrase
        self._prompt = threading.Lock()

    @property
    def public_key(self) -> str:
        return self.signer.public_key

    def sign(self, unsigned_xdr: str) -> SignOutcome:
        """Prompt the wallet. Blocks for as long as the user takes."""
        if not self._prompt.acquire(blocking=False):
            raise SigningInProgressError("Another signing prompt is already open")
        try:
            result = self.signer.sign_transaction(unsigned_xdr, self.network_passphrase)
        finally:
            self._prompt.release()

        outcome = interpret(result.signed_xdr, result.error)
        if outcome.cancelled:
            logger.info("Signing cancelled by user")
        elif not outcome.ok:
            logger.warning(f"Signing failed: {outcome.error}")
        return outcome

    def submit(self, signed_xdr: str, target: str = "escrow") -> dict:
        """Relay a signed envelope; raises PeviAPIError carrying the network's detail."""
        return self.client.submit_transaction(signed_xdr, target=target)
