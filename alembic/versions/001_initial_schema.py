"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

# Enum types are created explicitly once and shared by several columns
account_kind = postgresql.ENUM('MINA', 'COMPRADOR', 'VOLQUETERO', 'RODMAR', 'TERCERO', name='accountkind', create_type=False)
transaction_status = postgresql.ENUM('PENDING', 'COMPLETED', name='transactionstatus', create_type=False)


def upgrade() -> None:
    account_kind.create(op.get_bind(), checkfirst=True)
    transaction_status.create(op.get_bind(), checkfirst=True)

    # Create accounts table
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', account_kind, nullable=False),
        sa.Column('code', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('balance', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('balance_stale', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_recalculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('kind', 'code', name='uq_account_kind_code')
    )
    op.create_index(op.f('ix_accounts_id'), 'accounts', ['id'], unique=False)
    op.create_index('idx_account_stale', 'accounts', ['balance_stale'], unique=False)

    # Create transactions table
    # Accounts are referenced by (kind, code), so there are no foreign keys
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('origin_kind', account_kind, nullable=True),
        sa.Column('origin_code', sa.String(length=100), nullable=True),
        sa.Column('destination_kind', account_kind, nullable=False),
        sa.Column('destination_code', sa.String(length=100), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('status', transaction_status, nullable=False),
        sa.Column('concept', sa.String(length=500), nullable=False),
        sa.Column('payment_method', sa.String(length=100), nullable=True),
        sa.Column('voucher', sa.String(length=1000), nullable=True),
        sa.Column('comment', sa.String(length=1000), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_transaction_amount_positive')
    )
    op.create_index(op.f('ix_transactions_id'), 'transactions', ['id'], unique=False)
    op.create_index('idx_transaction_status', 'transactions', ['status'], unique=False)
    op.create_index('idx_transaction_origin', 'transactions', ['origin_kind', 'origin_code'], unique=False)
    op.create_index('idx_transaction_destination', 'transactions', ['destination_kind', 'destination_code'], unique=False)
    op.create_index('idx_transaction_occurred', 'transactions', ['occurred_at'], unique=False)

    # Create investments table
    op.create_table(
        'investments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('origin_kind', account_kind, nullable=False),
        sa.Column('origin_code', sa.String(length=100), nullable=False),
        sa.Column('destination_kind', account_kind, nullable=False),
        sa.Column('destination_code', sa.String(length=100), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('concept', sa.String(length=500), nullable=False),
        sa.Column('notes', sa.String(length=1000), nullable=True),
        sa.Column('voucher', sa.String(length=1000), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_investment_amount_positive')
    )
    op.create_index(op.f('ix_investments_id'), 'investments', ['id'], unique=False)
    op.create_index('idx_investment_origin', 'investments', ['origin_kind', 'origin_code'], unique=False)
    op.create_index('idx_investment_destination', 'investments', ['destination_kind', 'destination_code'], unique=False)


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_index('idx_investment_destination', table_name='investments')
    op.drop_index('idx_investment_origin', table_name='investments')
    op.drop_index(op.f('ix_investments_id'), table_name='investments')
    op.drop_table('investments')

    op.drop_index('idx_transaction_occurred', table_name='transactions')
    op.drop_index('idx_transaction_destination', table_name='transactions')
    op.drop_index('idx_transaction_origin', table_name='transactions')
    op.drop_index('idx_transaction_status', table_name='transactions')
    op.drop_index(op.f('ix_transactions_id'), table_name='transactions')
    op.drop_table('transactions')

    op.drop_index('idx_account_stale', table_name='accounts')
    op.drop_index(op.f('ix_accounts_id'), table_name='accounts')
    op.drop_table('accounts')

    transaction_status.drop(op.get_bind(), checkfirst=True)
    account_kind.drop(op.get_bind(), checkfirst=True)
