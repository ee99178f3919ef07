"""CLI commands for PEVI API."""

import click
import uvicorn

from pevi_api.db.base import Base
from pevi_api.db.session import SessionLocal, engine
from pevi_api.dependencies import get_gateway
from pevi_api.escrow.gateway import EscrowServiceError
from pevi_api.services.errors import ServiceError
from pevi_api.services.reconciliation import EscrowReconciler
from pevi_api.settings import get_settings


@click.group()
def cli():
    """PEVI API CLI."""
    pass


@cli.command("serve")
@click.option("--host", default=None, help="Bind address (defaults to API_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API_PORT).")
def serve(host, port):
    """Run the API server."""
    settings = get_settings()
    uvicorn.run(
        "pevi_api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


@cli.command("init-db")
def init_db():
    """Create tables directly (development only; use alembic elsewhere)."""
    import pevi_api.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created.")


@cli.command("sync-escrow")
@click.argument("campaign_id", type=int)
@click.option("--wallet", "wallet_address", default=None, help="Funding wallet to search contracts by signer.")
@click.option("--contract-id", default=None, help="Known contract id to bind directly.")
def sync_escrow(campaign_id, wallet_address, contract_id):
    """Recover a campaign's missing escrow contract id."""
    db = SessionLocal()
    try:
        result = EscrowReconciler(db, get_gateway()).sync(
            campaign_id, wallet_address=wallet_address, contract_id=contract_id
        )
        if result.found:
            click.echo(f"✓ Campaign {campaign_id} -> {result.escrow_id} ({result.source})")
        else:
            click.echo(f"✗ No escrow contract found for campaign {campaign_id}", err=True)
            raise SystemExit(1)
    except (ServiceError, EscrowServiceError) as e:
        click.echo(f"✗ Error syncing escrow: {e}", err=True)
        db.rollback()
        raise SystemExit(1)
    finally:
        db.close()


@cli.command("escrow-status")
@click.argument("contract_id")
def escrow_status(contract_id):
    """Show contract state as reported by the escrow service."""
    try:
        status = get_gateway().get_escrow_status(contract_id)
    except EscrowServiceError as e:
        click.echo(f"✗ Error fetching escrow: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Contract: {status.escrow_id}")
    click.echo(f"State:    {status.status.value}")
    click.echo(f"Balance:  {status.balance}")
    for index, milestone in enumerate(status.milestones):
        approved = "approved" if milestone.approved else "not approved"
        click.echo(f"  milestone {index}: {milestone.status or '-'} ({approved})")


if __name__ == "__main__":
    cli()
