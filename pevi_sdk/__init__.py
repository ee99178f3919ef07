"""PEVI Python SDK."""

__version__ = "0.1.0"

from pevi_sdk.bridge import SignOutcome, SigningBridge, SigningInProgressError
from pevi_sdk.client import PeviAPIError, PeviClient
from pevi_sdk.flows import FlowOutcome, attest_evaluation, create_campaign_with_escrow, fund_donation
from pevi_sdk.release import ReleaseDriver, ReleaseOutcome
from pevi_sdk.wallet import KeypairWalletSigner, SignResult, WalletSigner

__all__ = [
    "FlowOutcome",
    "KeypairWalletSigner",
    "PeviAPIError",
    "PeviClient",
    "ReleaseDriver",
    "ReleaseOutcome",
    "SignOutcome",
    "SignResult",
    "SigningBridge",
    "SigningInProgressError",
    "WalletSigner",
    "attest_evaluation",
    "create_campaign_with_escrow",
    "fund_donation",
]
