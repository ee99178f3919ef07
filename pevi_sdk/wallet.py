"""Wallet signing abstraction.

A wallet answers ``sign_transaction`` the way browser extensions do: either a
signed envelope, or an ``error`` that is an empty dict when the user
dismissed the prompt and a message otherwise.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from stellar_sdk import Keypair, TransactionEnvelope


@dataclass
class SignResult:
    """Raw wallet answer."""

    signed_xdr: Optional[str] = None
    error: Optional[Union[dict, str]] = None


class WalletSigner(ABC):
    """Abstract wallet interface."""

    @property
    @abstractmethod
    def public_key(self) -> str:
        """Account id of the signing key."""
        pass

    @abstractmethod
    def sign_transaction(self, unsigned_xdr: str, network_passphrase: str) -> SignResult:
        """Ask the wallet to sign an envelope."""
        pass


class KeypairWalletSigner(WalletSigner):
    """Signs with a secret seed held in process (scripts, back-office tooling)."""

    def __init__(self, secret: str):
        """Initialize signer."""
        self._keypair = Keypair.from_secret(secret)

    @property
    def public_key(self) -> str:
        return self._keypair.public_key

    def sign_transaction(self, unsigned_xdr: str, network_passphrase: str) -> SignResult:
        try:
            envelope = TransactionEnvelope.from_xdr(unsigned_xdr, network_passphrase)
        except Exception as e:
            return SignResult(error=f"Could not decode transaction: {e}")
        envelope.sign(self._keypair)
        return SignResult(signed_xdr=envelope.to_xdr())
