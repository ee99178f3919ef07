"""Tests for the ledger client and transaction builders."""

from decimal import Decimal

import httpx
import pytest
from stellar_sdk import Asset, Keypair, TransactionEnvelope

from pevi_api.ledger.client import LedgerClient, LedgerConfig, LedgerError, LedgerSubmissionError
from pevi_api.ledger.transactions import (
    build_payout_transaction,
    build_proof_transaction,
    envelope_hash,
    is_valid_address,
    proof_memo,
    resolve_asset,
    split_evenly,
)
from pevi_api.settings import TESTNET_PASSPHRASE


def make_client(handler):
    config = LedgerConfig(horizon_url="https://horizon.test", network_passphrase=TESTNET_PASSPHRASE)
    return LedgerClient(config, transport=httpx.MockTransport(handler))


def test_submit_returns_receipt():
    def handler(request):
        assert request.url.path == "/transactions"
        assert b"tx=SIGNED" in request.content
        return httpx.Response(200, json={"hash": "abc", "ledger": 42, "successful": True})

    receipt = make_client(handler).submit("SIGNED")
    assert receipt.hash == "abc"
    assert receipt.ledger == 42


def test_submit_failure_preserves_result_codes():
    def handler(request):
        return httpx.Response(
            400,
            json={
                "title": "Transaction Failed",
                "extras": {
                    "result_codes": {"transaction": "tx_failed", "operations": ["op_underfunded"]},
                    "result_xdr": "AAAA",
                },
            },
        )

    with pytest.raises(LedgerSubmissionError) as exc_info:
        make_client(handler).submit("SIGNED")
    error = exc_info.value
    assert error.detail == "Network error: Codes: tx_failed [op_underfunded]"
    assert error.to_dict()["result_codes"]["operations"] == ["op_underfunded"]
    assert error.to_dict()["result_xdr"] == "AAAA"


def test_load_sequence_and_missing_account():
    def handler(request):
        if request.url.path.endswith("/GKNOWN"):
            return httpx.Response(200, json={"sequence": "123456"})
        return httpx.Response(404, json={"title": "Resource Missing"})

    client = make_client(handler)
    assert client.load_sequence("GKNOWN") == 123456
    with pytest.raises(LedgerError) as exc_info:
        client.load_sequence("GMISSING")
    assert exc_info.value.status_code == 404


def test_get_transaction_missing_is_none():
    client = make_client(lambda request: httpx.Response(404, json={}))
    assert client.get_transaction("deadbeef") is None


def test_split_evenly_rounds_down():
    assert split_evenly(Decimal("1000"), 3) == Decimal("333.33")
    assert split_evenly(Decimal("1000"), 2) == Decimal("500.00")
    with pytest.raises(ValueError):
        split_evenly(Decimal("10"), 0)


def test_proof_memo_fits_text_memo():
    assert proof_memo(17) == "EVAL-OK-17"
    assert len(proof_memo(10 ** 30)) == 28


def test_resolve_asset():
    assert resolve_asset("xlm", {"XLM": "native"}).is_native()
    issuer = Keypair.random().public_key
    asset = resolve_asset("USDC", {"USDC": issuer})
    assert asset.code == "USDC" and asset.issuer == issuer
    with pytest.raises(ValueError):
        resolve_asset("EUR", {"XLM": "native"})


def test_proof_transaction_shape():
    evaluator = Keypair.random()
    platform = Keypair.random().public_key
    xdr = build_proof_transaction(evaluator.public_key, 100, 9, platform, TESTNET_PASSPHRASE)

    envelope = TransactionEnvelope.from_xdr(xdr, TESTNET_PASSPHRASE)
    tx = envelope.transaction
    assert tx.fee == 10000
    assert tx.sequence == 101
    assert tx.memo.memo_text == b"EVAL-OK-9"
    assert len(tx.operations) == 1
    assert Decimal(tx.operations[0].amount) == Decimal("0.0000001")


def test_payout_transaction_has_one_payment_per_beneficiary():
    source = Keypair.random()
    payouts = [(Keypair.random().public_key, Decimal("500.00")) for _ in range(2)]
    xdr = build_payout_transaction(source.public_key, 7, payouts, Asset.native(), TESTNET_PASSPHRASE)

    envelope = TransactionEnvelope.from_xdr(xdr, TESTNET_PASSPHRASE)
    assert [op.destination.account_id for op in envelope.transaction.operations] == [p[0] for p in payouts]
    assert all(Decimal(op.amount) == Decimal("500") for op in envelope.transaction.operations)

    envelope.sign(source)
    assert len(envelope_hash(envelope.to_xdr(), TESTNET_PASSPHRASE)) == 64


def test_address_validation():
    assert is_valid_address(Keypair.random().public_key)
    assert not is_valid_address("GNOTANADDRESS")
    assert not is_valid_address(None)
