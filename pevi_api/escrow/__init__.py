"""Escrow Contract Gateway."""

from pevi_api.escrow.gateway import (
    ContractResult,
    EngagementKind,
    EscrowGateway,
    EscrowRecord,
    EscrowServiceError,
    EscrowStatus,
    GatewayConfig,
    engagement_id,
    is_already_approved,
    normalize_contract_response,
)

__all__ = [
    "ContractResult",
    "EngagementKind",
    "EscrowGateway",
    "EscrowRecord",
    "EscrowServiceError",
    "EscrowStatus",
    "GatewayConfig",
    "engagement_id",
    "is_already_approved",
    "normalize_contract_response",
]
