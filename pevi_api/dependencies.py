"""FastAPI dependency providers for external collaborators and services."""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from pevi_api.db.session import get_db
from pevi_api.escrow.gateway import EscrowGateway, GatewayConfig
from pevi_api.ledger.client import LedgerClient, LedgerConfig
from pevi_api.services.approval import ApprovalPipeline
from pevi_api.services.escrow_lifecycle import EscrowLifecycle
from pevi_api.services.reconciliation import EscrowReconciler
from pevi_api.settings import get_settings


@lru_cache()
def get_gateway() -> EscrowGateway:
    """Escrow gateway bound to the configured network."""
    return EscrowGateway(GatewayConfig.from_settings(get_settings()))


@lru_cache()
def get_ledger_client() -> LedgerClient:
    """Horizon client bound to the configured network."""
    return LedgerClient(LedgerConfig.from_settings(get_settings()))


def get_lifecycle(
    db: Session = Depends(get_db),
    gateway: EscrowGateway = Depends(get_gateway),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> EscrowLifecycle:
    return EscrowLifecycle(db, gateway, ledger, get_settings())


def get_reconciler(
    db: Session = Depends(get_db),
    gateway: EscrowGateway = Depends(get_gateway),
) -> EscrowReconciler:
    return EscrowReconciler(db, gateway)


def get_pipeline(
    db: Session = Depends(get_db),
    ledger: LedgerClient = Depends(get_ledger_client),
) -> ApprovalPipeline:
    return ApprovalPipeline(db, ledger, get_settings())
