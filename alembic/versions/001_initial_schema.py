"""Initial schema: campaigns, milestones, beneficiaries, activities, awards, donations.

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('wallet_address', sa.String(length=56), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'campaigns',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('org_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cost', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency', sa.String(length=12), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('funding_wallet', sa.String(length=56), nullable=True),
        sa.Column('escrow_id', sa.String(length=255), nullable=True),
        sa.Column('releasing_since', sa.DateTime(), nullable=True),
        sa.Column('release_token', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_campaigns_id', 'campaigns', ['id'])
    op.create_index('ix_campaigns_org_id', 'campaigns', ['org_id'])
    op.create_index('ix_campaigns_status', 'campaigns', ['status'])
    op.create_index('ix_campaigns_escrow_id', 'campaigns', ['escrow_id'])

    op.create_table(
        'milestones',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('campaign_id', sa.Integer(), sa.ForeignKey('campaigns.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('total_amount', sa.Numeric(18, 2), nullable=True),
        sa.Column('currency', sa.String(length=12), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('escrow_id', sa.String(length=255), nullable=True),
        sa.Column('release_stage', sa.String(length=50), nullable=False, server_default='ready'),
        sa.Column('release_hash', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_milestones_id', 'milestones', ['id'])
    op.create_index('ix_milestones_campaign_id', 'milestones', ['campaign_id'])
    op.create_index('ix_milestones_status', 'milestones', ['status'])
    op.create_index('ix_milestones_escrow_id', 'milestones', ['escrow_id'])

    op.create_table(
        'campaign_beneficiaries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('campaign_id', sa.Integer(), sa.ForeignKey('campaigns.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_campaign_beneficiaries_id', 'campaign_beneficiaries', ['id'])
    op.create_index('ix_campaign_beneficiaries_campaign_id', 'campaign_beneficiaries', ['campaign_id'])
    op.create_index('ix_campaign_beneficiaries_user_id', 'campaign_beneficiaries', ['user_id'])

    op.create_table(
        'activities',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('milestone_id', sa.Integer(), sa.ForeignKey('milestones.id'), nullable=False),
        sa.Column(
            'campaign_beneficiary_id',
            sa.Integer(),
            sa.ForeignKey('campaign_beneficiaries.id'),
            nullable=False,
        ),
        sa.Column('stage', sa.String(length=50), nullable=False),
        sa.Column('activity_status', sa.String(length=50), nullable=False),
        sa.Column('evidence_status', sa.String(length=50), nullable=False),
        sa.Column('verification_status', sa.String(length=50), nullable=False),
        sa.Column('evidence_ref', sa.Text(), nullable=True),
        sa.Column('activity_observation', sa.Text(), nullable=True),
        sa.Column('evaluation_note', sa.Text(), nullable=True),
        sa.Column('evaluation_proof_hash', sa.String(length=255), nullable=True),
        sa.Column('verification_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_activities_id', 'activities', ['id'])
    op.create_index('ix_activities_milestone_id', 'activities', ['milestone_id'])
    op.create_index('ix_activities_campaign_beneficiary_id', 'activities', ['campaign_beneficiary_id'])
    op.create_index('ix_activities_stage', 'activities', ['stage'])
    op.create_index('ix_activities_evidence_status', 'activities', ['evidence_status'])
    op.create_index('ix_activities_verification_status', 'activities', ['verification_status'])

    op.create_table(
        'awards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('activity_id', sa.Integer(), sa.ForeignKey('activities.id'), nullable=False),
        sa.Column('hash', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_awards_id', 'awards', ['id'])
    op.create_index('ix_awards_activity_id', 'awards', ['activity_id'])

    op.create_table(
        'donations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('campaign_id', sa.Integer(), sa.ForeignKey('campaigns.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('sender_public_key', sa.String(length=56), nullable=True),
        sa.Column('hash', sa.String(length=255), nullable=True),
        sa.Column('date', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_donations_id', 'donations', ['id'])
    op.create_index('ix_donations_campaign_id', 'donations', ['campaign_id'])
    op.create_index('ix_donations_user_id', 'donations', ['user_id'])


def downgrade() -> None:
    op.drop_table('donations')
    op.drop_table('awards')
    op.drop_table('activities')
    op.drop_table('campaign_beneficiaries')
    op.drop_table('milestones')
    op.drop_table('campaigns')
    op.drop_table('users')
