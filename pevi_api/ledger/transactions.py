"""Unsigned transaction builders for the proof and payout envelopes."""

from decimal import ROUND_DOWN, Decimal
from typing import Optional

from stellar_sdk import Account, Asset, StrKey, TransactionBuilder, TransactionEnvelope

PROOF_BASE_FEE = 10000
PROOF_AMOUNT = "0.0000001"  # 1 stroop
PROOF_TIMEOUT_SECONDS = 300
PAYOUT_TIMEOUT_SECONDS = 300
MEMO_TEXT_LIMIT = 28


def is_valid_address(address: Optional[str]) -> bool:
    """Check that ``address`` is an ed25519 account id (G...)."""
    if not address:
        return False
    return StrKey.is_valid_ed25519_public_key(address)


def proof_memo(activity_id: int) -> str:
    return f"EVAL-OK-{activity_id}"[:MEMO_TEXT_LIMIT]


def resolve_asset(currency: str, trustline_addresses: dict) -> Asset:
    """Asset for a currency code: native lumens or an issued asset."""
    address = trustline_addresses.get(currency.upper())
    if not address:
        raise ValueError(f"No asset configured for currency '{currency}'")
    if address == "native":
        return Asset.native()
    return Asset(currency.upper(), address)


def split_evenly(total: Decimal, count: int) -> Decimal:
    """Equal share per recipient, rounded down to cents so the sum never exceeds total."""
    if count <= 0:
        raise ValueError("count must be positive")
    return (Decimal(total) / count).quantize(Decimal("0.01"), rounding=ROUND_DOWN)


def build_proof_transaction(
    evaluator_address: str,
    sequence: int,
    activity_id: int,
    destination: str,
    network_passphrase: str,
) -> str:
    """Trivial payment carrying an ``EVAL-OK-<activity>`` memo, as base64 XDR."""
    account = Account(evaluator_address, sequence)
    tx = (
        TransactionBuilder(
            source_account=account,
            network_passphrase=network_passphrase,
            base_fee=PROOF_BASE_FEE,
        )
        .append_payment_op(destination=destination, asset=Asset.native(), amount=PROOF_AMOUNT)
        .add_text_memo(proof_memo(activity_id))
        .set_timeout(PROOF_TIMEOUT_SECONDS)
        .build()
    )
    return tx.to_xdr()


def build_payout_transaction(
    source_address: str,
    sequence: int,
    payouts: list[tuple[str, Decimal]],
    asset: Asset,
    network_passphrase: str,
    base_fee: int = 100,
) -> str:
    """One payment operation per (destination, amount), as base64 XDR."""
    if not payouts:
        raise ValueError("payouts must not be empty")
    builder = TransactionBuilder(
        source_account=Account(source_address, sequence),
        network_passphrase=network_passphrase,
        base_fee=base_fee,
    )
    for destination, amount in payouts:
        builder.append_payment_op(destination=destination, asset=asset, amount=str(amount))
    return builder.set_timeout(PAYOUT_TIMEOUT_SECONDS).build().to_xdr()


def envelope_hash(signed_xdr: str, network_passphrase: str) -> str:
    """Transaction hash (hex) of a signed envelope."""
    return TransactionEnvelope.from_xdr(signed_xdr, network_passphrase).hash_hex()
