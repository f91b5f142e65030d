"""Create carbon ledger tables

Revision ID: 001_create_carbon_ledger
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_create_carbon_ledger'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, credit account, transaction and notification tables."""

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    # Create carbon_credit_accounts table
    op.create_table(
        'carbon_credit_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('balance', sa.Numeric(18, 4), nullable=False),
        sa.Column('total_earned', sa.Numeric(18, 4), nullable=False),
        sa.Column('total_spent', sa.Numeric(18, 4), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.CheckConstraint('balance >= 0', name='ck_carbon_credit_accounts_balance_non_negative'),
    )
    op.create_index('ix_carbon_credit_accounts_user_id', 'carbon_credit_accounts', ['user_id'], unique=True)
    op.create_index('ix_carbon_credit_accounts_balance', 'carbon_credit_accounts', ['balance'])

    # Create carbon_transactions table
    op.create_table(
        'carbon_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('credit_account_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(18, 4), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['credit_account_id'], ['carbon_credit_accounts.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
    )
    op.create_index('ix_carbon_transactions_credit_account_id', 'carbon_transactions', ['credit_account_id'])
    op.create_index('ix_carbon_transactions_user_id', 'carbon_transactions', ['user_id'])
    op.create_index('ix_carbon_transactions_type', 'carbon_transactions', ['type'])
    op.create_index('ix_carbon_transactions_created_at', 'carbon_transactions', ['created_at'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade() -> None:
    """Drop carbon ledger tables."""

    # Drop indexes first
    op.drop_index('ix_notifications_user_id', 'notifications')

    op.drop_index('ix_carbon_transactions_created_at', 'carbon_transactions')
    op.drop_index('ix_carbon_transactions_type', 'carbon_transactions')
    op.drop_index('ix_carbon_transactions_user_id', 'carbon_transactions')
    op.drop_index('ix_carbon_transactions_credit_account_id', 'carbon_transactions')

    op.drop_index('ix_carbon_credit_accounts_balance', 'carbon_credit_accounts')
    op.drop_index('ix_carbon_credit_accounts_user_id', 'carbon_credit_accounts')

    op.drop_index('ix_users_role', 'users')
    op.drop_index('ix_users_email', 'users')

    # Drop tables
    op.drop_table('notifications')
    op.drop_table('carbon_transactions')
    op.drop_table('carbon_credit_accounts')
    op.drop_table('users')
