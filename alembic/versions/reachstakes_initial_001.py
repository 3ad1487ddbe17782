"""Create Reachstakes escrow and approval tables

This migration adds:
1. users, brand_profiles and social_accounts
2. wallets (brand vault / creator earnings)
3. campaigns with escrow and managed-approval columns
4. collaborations with the approval workflow and verified metrics
5. transactions (Tazapay checkouts and vault movements)
6. escrow_ledger
7. documents
8. notifications

Revision ID: reachstakes_initial_001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = 'reachstakes_initial_001'
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    'usertype': ('brand', 'creator', 'admin'),
    'socialplatform': ('youtube', 'instagram', 'tiktok'),
    'campaignstatusdb': ('Draft', 'Pending Payment', 'Active', 'Completed'),
    'campaignescrowstatusdb': ('Unfunded', 'Locked', 'Partially_Released', 'Released', 'Refunded'),
    'managedapprovalmodedb': ('Manual', 'AutoManaged'),
    'collaborationstatusdb': (
        'Applied', 'Active', 'Pending_Review', 'Under_Review', 'Approved', 'Changes_Requested', 'Rejected', 'Paid'
    ),
    'approvalstatusdb': (
        'BrandPending', 'CMReview', 'CMEscalated', 'ApprovedByBrand', 'ApprovedByCM',
        'ChangesRequestedByBrand', 'RejectedByBrand', 'RejectedByCM'
    ),
    'escalationreasondb': ('auto_managed', '24h_timeout', 'brand_request'),
    'collaborationescrowstatusdb': ('Held', 'Released', 'Refunded'),
    'transactiontypedb': ('Deposit', 'Withdrawal', 'Payment', 'Refund'),
    'transactionstatusdb': ('Pending', 'Processing', 'Completed', 'Failed'),
    'ledgerentrytypedb': ('Funding', 'Release', 'Refund', 'Adjustment'),
    'ledgerentrystatusdb': ('Pending', 'Completed', 'Failed'),
    'documenttypedb': ('Contract', 'W9', 'W8BEN', 'Invoice', 'Other'),
    'documentstatusdb': ('Draft', 'Pending_Signature', 'Signed'),
}


def _enum(name):
    return sa.Enum(*ENUMS[name], name=name)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade():
    # 1. Users and profiles
    op.create_table('users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('user_type', _enum('usertype'), server_default='brand'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('brand_profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('company_name', sa.String(255)),
        sa.Column('website', sa.String(500)),
        sa.Column('industry', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('logo_url', sa.String(500)),
        sa.Column('location', sa.String(255)),
        *_timestamps(),
    )

    op.create_table('social_accounts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', _enum('socialplatform'), nullable=False),
        sa.Column('handle', sa.String(255)),
        sa.Column('platform_user_id', sa.String(255)),
        sa.Column('access_token', sa.Text()),
        sa.Column('refresh_token', sa.Text()),
        sa.Column('token_expires_at', sa.DateTime()),
        sa.Column('connected_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'platform', name='uq_social_account_user_platform'),
    )

    # 2. Wallets
    op.create_table('wallets',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('balance', sa.Integer(), server_default='0'),
        sa.Column('total_earned', sa.Integer(), server_default='0'),
        sa.Column('total_spent', sa.Integer(), server_default='0'),
        sa.Column('currency', sa.String(3), server_default='USD'),
        *_timestamps(),
    )

    # 3. Campaigns
    op.create_table('campaigns',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('platform', sa.String(50)),
        sa.Column('deliverables', sa.JSON()),
        sa.Column('target_budget', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_funded', sa.Integer(), server_default='0'),
        sa.Column('escrow_balance', sa.Integer(), server_default='0'),
        sa.Column('total_released', sa.Integer(), server_default='0'),
        sa.Column('total_refunded', sa.Integer(), server_default='0'),
        sa.Column('currency', sa.String(3), server_default='USD'),
        sa.Column('status', _enum('campaignstatusdb'), server_default='Draft'),
        sa.Column('escrow_status', _enum('campaignescrowstatusdb'), server_default='Unfunded'),
        sa.Column('escrow_funded_at', sa.DateTime()),
        sa.Column('is_managed_approval', sa.Boolean(), server_default=sa.false()),
        sa.Column('managed_approval_mode', _enum('managedapprovalmodedb'), server_default='Manual'),
        sa.Column('start_date', sa.DateTime()),
        sa.Column('end_date', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        *_timestamps(),
    )
    op.create_index('idx_campaigns_brand', 'campaigns', ['brand_id'])
    op.create_index('idx_campaigns_status', 'campaigns', ['status'])

    # 4. Collaborations
    op.create_table('collaborations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('creator_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('agreed_price', sa.Integer(), server_default='0'),
        sa.Column('pitch', sa.Text()),
        sa.Column('status', _enum('collaborationstatusdb'), server_default='Applied'),
        sa.Column('submission_url', sa.String(500)),
        sa.Column('submission_title', sa.String(255)),
        sa.Column('submission_platform', sa.String(50)),
        sa.Column('video_id', sa.String(100)),
        sa.Column('submitted_at', sa.DateTime()),
        sa.Column('revision_count', sa.Integer(), server_default='0'),
        sa.Column('approval_status', _enum('approvalstatusdb'), nullable=True),
        sa.Column('approval_deadline', sa.DateTime()),
        sa.Column('warning_sent_at', sa.DateTime()),
        sa.Column('escalated_at', sa.DateTime()),
        sa.Column('escalated_reason', _enum('escalationreasondb'), nullable=True),
        sa.Column('approved_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_by_role', sa.String(20)),
        sa.Column('decided_at', sa.DateTime()),
        sa.Column('managed_note', sa.Text()),
        sa.Column('feedback_notes', sa.Text()),
        sa.Column('views', sa.Integer(), server_default='0'),
        sa.Column('likes', sa.Integer(), server_default='0'),
        sa.Column('comments', sa.Integer(), server_default='0'),
        sa.Column('shares', sa.Integer(), server_default='0'),
        sa.Column('engagement_rate', sa.Float(), server_default='0'),
        sa.Column('metrics_verified_at', sa.DateTime()),
        sa.Column('milestones', sa.JSON()),
        sa.Column('payout_released', sa.Boolean(), server_default=sa.false()),
        sa.Column('payout_date', sa.DateTime()),
        sa.Column('escrow_status', _enum('collaborationescrowstatusdb'), server_default='Held'),
        *_timestamps(),
        sa.UniqueConstraint('campaign_id', 'creator_id', name='uq_collaboration_campaign_creator'),
    )
    op.create_index('ix_collaborations_approval_deadline', 'collaborations', ['approval_deadline'])
    op.create_index('idx_collaborations_approval_status', 'collaborations', ['approval_status'])

    # 5. Transactions
    op.create_table('transactions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='SET NULL'), nullable=True),
        sa.Column('collaboration_id', sa.String(36), sa.ForeignKey('collaborations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', _enum('transactiontypedb'), nullable=False),
        sa.Column('status', _enum('transactionstatusdb'), server_default='Pending'),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('platform_fee', sa.Integer(), server_default='0'),
        sa.Column('processing_fee', sa.Integer(), server_default='0'),
        sa.Column('net_amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD'),
        sa.Column('provider', sa.String(20)),
        sa.Column('external_reference_id', sa.String(255), nullable=True),
        sa.Column('checkout_url', sa.String(1000)),
        sa.Column('gateway_status', sa.String(50)),
        sa.Column('received_amount', sa.Integer()),
        sa.Column('received_currency', sa.String(3)),
        sa.Column('description', sa.Text()),
        sa.Column('metadata_json', sa.JSON()),
        *_timestamps(),
        sa.Column('processed_at', sa.DateTime()),
    )
    op.create_index('ix_transactions_external_reference_id', 'transactions', ['external_reference_id'], unique=True)
    op.create_index('idx_transactions_user', 'transactions', ['user_id'])

    # 6. Escrow ledger
    op.create_table('escrow_ledger',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('brand_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='CASCADE'), nullable=True),
        sa.Column('collaboration_id', sa.String(36), sa.ForeignKey('collaborations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('milestone_id', sa.String(100)),
        sa.Column('type', _enum('ledgerentrytypedb'), nullable=False),
        sa.Column('status', _enum('ledgerentrystatusdb'), server_default='Completed'),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_escrow_ledger_brand_id', 'escrow_ledger', ['brand_id'])
    op.create_index('ix_escrow_ledger_created_at', 'escrow_ledger', ['created_at'])

    # 7. Documents
    op.create_table('documents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('campaign_id', sa.String(36), sa.ForeignKey('campaigns.id', ondelete='SET NULL'), nullable=True),
        sa.Column('collaboration_id', sa.String(36), sa.ForeignKey('collaborations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', _enum('documenttypedb'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('file_url', sa.String(1000)),
        sa.Column('tax_year', sa.Integer()),
        sa.Column('status', _enum('documentstatusdb'), server_default='Draft'),
        sa.Column('content', sa.JSON()),
        sa.Column('signed_by_name', sa.String(255)),
        sa.Column('signed_file_url', sa.String(1000)),
        sa.Column('signature_id', sa.String(255)),
        sa.Column('signed_at', sa.DateTime()),
        *_timestamps(),
    )
    op.create_index('idx_documents_user', 'documents', ['user_id'])

    # 8. Notifications
    op.create_table('notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text()),
        sa.Column('action_url', sa.String(500)),
        sa.Column('data', sa.JSON()),
        sa.Column('read', sa.Boolean(), server_default=sa.false()),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('idx_notifications_user_read', 'notifications', ['user_id', 'read'])


def downgrade():
    for table in (
        'notifications', 'documents', 'escrow_ledger', 'transactions',
        'collaborations', 'campaigns', 'wallets', 'social_accounts', 'brand_profiles', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        sa.Enum(name=name).drop(bind, checkfirst=True)
