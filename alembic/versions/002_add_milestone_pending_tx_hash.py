"""Add pending_tx_hash to milestones.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column('milestones', sa.Column('pending_tx_hash', sa.String(length=64), nullable=True))


def downgrade() -> None:
    op.drop_column('milestones', 'pending_tx_hash')
