"""Typed client for the Trustless Work escrow service.

The service is inconsistent about naming the contract identifier
(``contractId``, ``escrowId``, ``id``) and the transaction envelope
(``unsignedTransaction``, ``unsignedXdr``, ``xdr``). Every response is passed
through ``normalize_contract_response`` so callers only ever see
``contract_id`` / ``unsigned_xdr``.
"""

import logging
import time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, Field

from pevi_api.domain.states import EscrowState
from pevi_api.utils.metrics import gateway_call_duration

logger = logging.getLogger(__name__)

CONTRACT_ID_ALIASES = ("contractId", "contract_id", "escrowId", "escrow_id", "id")
UNSIGNED_XDR_ALIASES = ("unsignedTransaction", "unsignedXdr", "unsigned_xdr", "xdr")
SIGNED_XDR_ALIASES = ("signedXdr", "signed_xdr", "signedTxXdr")
HASH_ALIASES = ("hash", "txHash", "transactionHash")

ALREADY_APPROVED_MARKER = "already been approved"


class EngagementKind(str, Enum):
    """Kind of application record an escrow contract is bound to."""

    CAMPAIGN = "campaign"
    MILESTONE = "milestone"


def engagement_id(kind: Union[EngagementKind, str], owner_id: int) -> str:
    """Deterministic key correlating a record with its escrow contract."""
    return f"{EngagementKind(kind).value}-{owner_id}"


class EscrowServiceError(Exception):
    """Non-success response (or transport failure) from the escrow service."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message if not body else f"{message}: {body}")
        self.message = message
        self.status_code = status_code
        self.body = body or ""


def is_already_approved(error: EscrowServiceError) -> bool:
    """Check whether an approve-milestone failure means the work is already done."""
    text = f"{error.message} {error.body}".lower()
    return ALREADY_APPROVED_MARKER in text


class GatewayConfig(BaseModel):
    """Connection settings for one escrow service environment."""

    base_url: str
    api_key: Optional[str] = None
    timeout: float = 30.0
    trustline_addresses: dict[str, str] = Field(default_factory=dict)
    trustline_decimals: int = 10_000_000

    @classmethod
    def from_settings(cls, settings) -> "GatewayConfig":
        return cls(
            base_url=settings.trustless_work_base_url,
            api_key=settings.trustless_work_api_key,
            timeout=settings.trustless_work_timeout_seconds,
            trustline_addresses=settings.trustline_addresses,
            trustline_decimals=settings.trustline_decimals,
        )


class ContractResult(BaseModel):
    """Normalized result of a prepare/submit call."""

    contract_id: Optional[str] = None
    unsigned_xdr: Optional[str] = None
    signed_xdr: Optional[str] = None
    hash: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    raw: dict = Field(default_factory=dict)


class EscrowRecord(BaseModel):
    """Contract record as returned by lookup endpoints."""

    contract_id: str
    engagement_id: Optional[str] = None
    raw: dict = Field(default_factory=dict)


class MilestoneState(BaseModel):
    """On-chain state of one escrow milestone."""

    status: Optional[str] = None
    approved: bool = False


class EscrowStatus(BaseModel):
    """Escrow contract status."""

    escrow_id: str
    balance: Decimal = Decimal("0")
    status: EscrowState = EscrowState.PENDING
    milestones: list[MilestoneState] = Field(default_factory=list)


def _first(data: dict, aliases: tuple) -> Optional[Any]:
    for key in aliases:
        value = data.get(key)
        if value:
            return value
    return None


def normalize_contract_response(data: Optional[dict]) -> ContractResult:
    """Map every identifier alias onto one canonical field."""
    data = data or {}
    contract_id = _first(data, CONTRACT_ID_ALIASES)
    # Send-transaction nests the created escrow
    if not contract_id and isinstance(data.get("escrow"), dict):
        contract_id = _first(data["escrow"], CONTRACT_ID_ALIASES)
    return ContractResult(
        contract_id=str(contract_id) if contract_id else None,
        unsigned_xdr=_first(data, UNSIGNED_XDR_ALIASES),
        signed_xdr=_first(data, SIGNED_XDR_ALIASES),
        hash=_first(data, HASH_ALIASES),
        status=data.get("status"),
        message=data.get("message"),
        raw=data,
    )


def _normalize_record(data: dict) -> Optional[EscrowRecord]:
    contract_id = _first(data, CONTRACT_ID_ALIASES)
    if not contract_id:
        return None
    return EscrowRecord(
        contract_id=str(contract_id),
        engagement_id=data.get("engagementId") or data.get("engagement_id"),
        raw=data,
    )


def _derive_state(data: dict) -> EscrowState:
    raw_status = str(data.get("status") or "").lower()
    if raw_status in EscrowState._value2member_map_:
        return EscrowState(raw_status)
    flags = data.get("flags") or {}
    if flags.get("disputed") or flags.get("dispute"):
        return EscrowState.DISPUTED
    if flags.get("released"):
        return EscrowState.RELEASED
    if Decimal(str(data.get("balance") or 0)) > 0:
        return EscrowState.FUNDED
    return EscrowState.PENDING


def _milestone_state(data: dict) -> MilestoneState:
    flags = data.get("flags") or {}
    approved = bool(data.get("approved") or data.get("approvedFlag") or flags.get("approved"))
    return MilestoneState(status=data.get("status"), approved=approved)


class EscrowGateway:
    """Client for the external escrow service."""

    def __init__(self, config: GatewayConfig, transport: Optional[httpx.BaseTransport] = None):
        """Initialize gateway."""
        self.config = config
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        self.client = httpx.Client(
            base_url=config.base_url.rstrip("/"),
            headers=headers,
            timeout=config.timeout,
            transport=transport,
        )

    def close(self):
        self.client.close()

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        allow_not_found: bool = False,
    ):
        """Perform a call, raising EscrowServiceError on any non-2xx response."""
        started = time.perf_counter()
        try:
            response = self.client.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Escrow service {operation} transport failure: {e}")
            raise EscrowServiceError(f"Escrow service {operation} unreachable: {e}") from e
        finally:
            gateway_call_duration.labels(operation=operation).observe(time.perf_counter() - started)

        if allow_not_found and response.status_code == 404:
            return None
        if not response.is_success:
            logger.warning(
                f"Escrow service {operation} failed with {response.status_code}: {response.text[:500]}"
            )
            raise EscrowServiceError(
                f"Escrow service {operation} failed ({response.status_code})",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return {}
        return response.json()

    def _trustline(self, currency: str) -> dict:
        address = self.config.trustline_addresses.get(currency.upper())
        if not address:
            raise EscrowServiceError(f"No trustline configured for currency '{currency}'")
        return {"address": address, "decimals": self.config.trustline_decimals}

    def create_escrow(
        self,
        engagement_kind: Union[EngagementKind, str],
        owner_id: int,
        amount: Decimal,
        currency: str,
        approver: str,
        service_provider: str,
        platform_address: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ContractResult:
        """Deploy a single-release escrow.

        The service either creates the contract synchronously (``contract_id``
        set) or hands back an envelope the approver must sign first
        (``unsigned_xdr`` set). Callers must branch on which one is present.
        """
        kind = EngagementKind(engagement_kind)
        title = title or f"{kind.value.title()} {owner_id}"
        description = description or f"Escrow for {kind.value} {owner_id}"
        payload = {
            "signer": approver,
            "engagementId": engagement_id(kind, owner_id),
            "title": title,
            "description": description,
            "roles": {
                "approver": approver,
                "serviceProvider": service_provider,
                "platformAddress": platform_address,
                "releaseSigner": approver,
                "disputeResolver": platform_address,
                "receiver": service_provider,
            },
            "amount": float(amount),
            "platformFee": 0,
            "milestones": [{"description": description}],
            "trustline": self._trustline(currency),
            "receiverMemo": owner_id,
        }
        data = self._request("POST", "/deployer/single-release", "create", json=payload)
        result = normalize_contract_response(data)
        logger.info(
            f"Escrow create for {payload['engagementId']}: "
            f"contract_id={result.contract_id} unsigned={'yes' if result.unsigned_xdr else 'no'}"
        )
        return result

    def fund_escrow(self, contract_id: str, amount: Decimal, sender_public_key: str) -> ContractResult:
        """Prepare a funding transaction for ``sender_public_key`` to sign."""
        payload = {
            "contractId": contract_id,
            "amount": float(amount),
            "signer": sender_public_key,
        }
        data = self._request("POST", "/escrow/single-release/fund-escrow", "fund", json=payload)
        return normalize_contract_response(data)

    def change_milestone_status(
        self,
        contract_id: str,
        service_provider: str,
        new_status: str = "Completed",
        new_evidence: str = "Evidence submitted by PEVI platform upon milestone approval",
        milestone_index: str = "0",
    ) -> ContractResult:
        """Prepare the service provider's status-change transaction."""
        payload = {
            "contractId": contract_id,
            "milestoneIndex": milestone_index,
            "newStatus": new_status,
            "newEvidence": new_evidence,
            "serviceProvider": service_provider,
        }
        data = self._request(
            "POST", "/escrow/single-release/change-milestone-status", "change_status", json=payload
        )
        return normalize_contract_response(data)

    def approve_milestone(self, contract_id: str, approver: str, milestone_index: str = "0") -> ContractResult:
        """Prepare the approver's milestone approval transaction."""
        payload = {
            "contractId": contract_id,
            "milestoneIndex": milestone_index,
            "approver": approver,
        }
        data = self._request(
            "POST", "/escrow/single-release/approve-milestone", "approve", json=payload
        )
        return normalize_contract_response(data)

    def release_escrow(self, contract_id: str, approver_public_key: str) -> ContractResult:
        """Prepare a release transaction for the release signer."""
        payload = {
            "contractId": contract_id,
            "releaseSigner": approver_public_key,
        }
        data = self._request("POST", "/escrow/single-release/release-funds", "release", json=payload)
        return normalize_contract_response(data)

    def send_transaction(self, signed_xdr: str) -> ContractResult:
        """Forward a signed escrow transaction to the ledger through the service."""
        data = self._request(
            "POST", "/helper/send-transaction", "send_transaction", json={"signedXdr": signed_xdr}
        )
        result = normalize_contract_response(data)
        if result.status and result.status.upper() not in ("SUCCESS", "OK"):
            raise EscrowServiceError(
                "Escrow service rejected transaction",
                body=result.message or result.status,
            )
        return result

    def get_escrow_status(self, contract_id: str) -> EscrowStatus:
        """Get escrow contract status."""
        data = self._request("GET", f"/escrow/{contract_id}", "status") or {}
        milestones = [_milestone_state(m) for m in data.get("milestones") or []]
        return EscrowStatus(
            escrow_id=str(_first(data, CONTRACT_ID_ALIASES) or contract_id),
            balance=Decimal(str(data.get("balance") or 0)),
            status=_derive_state(data),
            milestones=milestones,
        )

    def get_escrow_by_engagement_id(self, engagement: str) -> Optional[EscrowRecord]:
        """Look up a contract by engagement id; None when none exists yet."""
        data = self._request(
            "GET", f"/escrow/engagement/{engagement}", "lookup_engagement", allow_not_found=True
        )
        if not data:
            return None
        if isinstance(data, list):
            data = data[0] if data else {}
        return _normalize_record(data)

    def get_escrows_by_signer(self, address: str) -> list[EscrowRecord]:
        """List every contract signed by ``address``."""
        data = self._request(
            "GET", "/escrow", "lookup_signer", params={"signer": address}, allow_not_found=True
        )
        if not data:
            return []
        if isinstance(data, dict):
            data = data.get("escrows") or data.get("data") or []
        records = (_normalize_record(item) for item in data if isinstance(item, dict))
        return [record for record in records if record is not None]
