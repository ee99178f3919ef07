"""Horizon ledger client: submission, account and transaction lookups."""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class LedgerConfig(BaseModel):
    """Connection settings for one Horizon network."""

    horizon_url: str
    network_passphrase: str
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings) -> "LedgerConfig":
        return cls(
            horizon_url=settings.horizon_url_computed,
            network_passphrase=settings.network_passphrase,
            timeout=settings.ledger_timeout_seconds,
        )


class LedgerError(Exception):
    """Ledger request failed."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"detail": self.detail, "status_code": self.status_code}


class LedgerSubmissionError(LedgerError):
    """Horizon rejected a signed envelope.

    ``result_codes`` keeps the transaction and per-operation codes
    (``tx_bad_seq``, ``tx_insufficient_fee``, ``op_underfunded`` ...).
    """

    def __init__(
        self,
        detail: str,
        status_code: Optional[int] = None,
        result_codes: Optional[dict] = None,
        extras: Optional[dict] = None,
    ):
        super().__init__(detail, status_code)
        self.result_codes = result_codes or {}
        self.extras = extras or {}

    @classmethod
    def from_response(cls, response: httpx.Response) -> "LedgerSubmissionError":
        try:
            data = response.json()
        except ValueError:
            data = {}
        extras = data.get("extras") or {}
        result_codes = extras.get("result_codes") or {}
        if result_codes:
            detail = f"Codes: {result_codes.get('transaction')}"
            operations = result_codes.get("operations")
            if operations:
                detail += f" [{','.join(operations)}]"
        else:
            detail = data.get("detail") or data.get("title") or response.text or "Submission failed"
        return cls(
            detail=f"Network error: {detail}",
            status_code=response.status_code,
            result_codes=result_codes,
            extras=extras,
        )

    def to_dict(self) -> dict:
        return {
            "detail": self.detail,
            "status_code": self.status_code,
            "result_codes": self.result_codes,
            "result_xdr": self.extras.get("result_xdr"),
        }


class LedgerReceipt(BaseModel):
    """Accepted transaction."""

    hash: str
    ledger: Optional[int] = None
    successful: bool = True


class LedgerClient:
    """Thin Horizon client."""

    def __init__(self, config: LedgerConfig, transport: Optional[httpx.BaseTransport] = None):
        """Initialize ledger client."""
        self.config = config
        self.client = httpx.Client(
            base_url=config.horizon_url.rstrip("/"),
            timeout=config.timeout,
            transport=transport,
        )

    @property
    def network_passphrase(self) -> str:
        return self.config.network_passphrase

    def close(self):
        self.client.close()

    def submit(self, signed_xdr: str) -> LedgerReceipt:
        """Submit a signed envelope; raises LedgerSubmissionError with Horizon's detail."""
        try:
            response = self.client.post("/transactions", data={"tx": signed_xdr})
        except httpx.HTTPError as e:
            logger.error(f"Ledger submission transport failure: {e}")
            raise LedgerSubmissionError(f"Execution error: {e}") from e

        if response.is_success:
            data = response.json()
            if data.get("hash"):
                return LedgerReceipt(
                    hash=data["hash"],
                    ledger=data.get("ledger"),
                    successful=data.get("successful", True),
                )
        error = LedgerSubmissionError.from_response(response)
        logger.warning(f"Ledger rejected transaction: {error.detail}")
        raise error

    def load_sequence(self, address: str) -> int:
        """Current sequence number of an account."""
        try:
            response = self.client.get(f"/accounts/{address}")
        except httpx.HTTPError as e:
            raise LedgerError(f"Execution error: {e}") from e
        if response.status_code == 404:
            raise LedgerError(f"Account {address} not found on ledger", status_code=404)
        if not response.is_success:
            raise LedgerError(f"Account lookup failed: {response.text}", status_code=response.status_code)
        return int(response.json()["sequence"])

    def get_transaction(self, tx_hash: str) -> Optional[dict]:
        """Fetch a transaction record, or None when the ledger does not know it."""
        try:
            response = self.client.get(f"/transactions/{tx_hash}")
        except httpx.HTTPError as e:
            raise LedgerError(f"Execution error: {e}") from e
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise LedgerError(f"Transaction lookup failed: {response.text}", status_code=response.status_code)
        return response.json()
