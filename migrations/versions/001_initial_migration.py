# migrations/versions/001_initial_migration.py

"""Ledger tables: wallets, transactions, transfer requests, withdrawals

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

AMOUNT = sa.Numeric(20, 4)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'),
                  nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    # Wallets: one per user
    op.create_table('ledger_wallets',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('user_id', sa.String(), nullable=False),
                    sa.Column('wallet_address', sa.String(), nullable=False),
                    sa.Column('balance', AMOUNT, server_default='0', nullable=False),
                    sa.Column('staked_amount', AMOUNT, server_default='0', nullable=False),
                    *_timestamps(),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('wallet_address'),
                    sa.CheckConstraint('balance >= 0',
                                       name='ck_ledger_wallets_balance_non_negative'),
                    sa.CheckConstraint('staked_amount >= 0',
                                       name='ck_ledger_wallets_staked_non_negative'),
                    )
    op.create_index(op.f('ix_ledger_wallets_user_id'), 'ledger_wallets', ['user_id'],
                    unique=True)

    # Append-only transaction ledger
    op.create_table('ledger_transactions',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('sender_id', sa.String(), nullable=True),
                    sa.Column('recipient_id', sa.String(), nullable=False),
                    sa.Column('amount', AMOUNT, nullable=False),
                    sa.Column('type', sa.String(), nullable=False),
                    sa.Column('status', sa.String(), server_default='PENDING', nullable=False),
                    sa.Column('description', sa.Text(), nullable=True),
                    sa.Column('context_type', sa.String(), nullable=True),
                    sa.Column('context_id', sa.String(), nullable=True),
                    *_timestamps(),
                    sa.PrimaryKeyConstraint('id'),
                    sa.CheckConstraint('amount > 0',
                                       name='ck_ledger_transactions_amount_positive'),
                    )
    op.create_index(op.f('ix_ledger_transactions_sender_id'), 'ledger_transactions',
                    ['sender_id'])
    op.create_index(op.f('ix_ledger_transactions_recipient_id'), 'ledger_transactions',
                    ['recipient_id'])
    op.create_index(op.f('ix_ledger_transactions_type'), 'ledger_transactions', ['type'])

    # Two-phase transfer requests (escrow)
    op.create_table('ledger_transfer_requests',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('sender_id', sa.String(), nullable=False),
                    sa.Column('recipient_id', sa.String(), nullable=False),
                    sa.Column('amount', AMOUNT, nullable=False),
                    sa.Column('message', sa.Text(), nullable=True),
                    sa.Column('context_type', sa.String(), server_default='NONE', nullable=False),
                    sa.Column('context_id', sa.String(), server_default='', nullable=False),
                    sa.Column('status', sa.String(), server_default='PENDING', nullable=False),
                    sa.Column('expires_at', sa.DateTime(), nullable=False),
                    sa.Column('resolved_at', sa.DateTime(), nullable=True),
                    *_timestamps(),
                    sa.PrimaryKeyConstraint('id'),
                    sa.CheckConstraint('amount > 0',
                                       name='ck_ledger_transfer_requests_amount_positive'),
                    )
    op.create_index(op.f('ix_ledger_transfer_requests_sender_id'), 'ledger_transfer_requests',
                    ['sender_id'])
    op.create_index(op.f('ix_ledger_transfer_requests_recipient_id'),
                    'ledger_transfer_requests', ['recipient_id'])
    op.create_index('ix_ledger_transfer_requests_status_expires', 'ledger_transfer_requests',
                    ['status', 'expires_at'])
    op.create_index('uq_ledger_transfer_requests_pending_tuple', 'ledger_transfer_requests',
                    ['sender_id', 'recipient_id', 'context_type', 'context_id'],
                    unique=True,
                    postgresql_where=sa.text("status = 'PENDING'"),
                    sqlite_where=sa.text("status = 'PENDING'"))

    # Withdrawal requests
    op.create_table('ledger_withdrawal_requests',
                    sa.Column('id', sa.String(), nullable=False),
                    sa.Column('user_id', sa.String(), nullable=False),
                    sa.Column('amount', AMOUNT, nullable=False),
                    sa.Column('method', sa.String(), nullable=False),
                    sa.Column('destination', sa.String(), nullable=False),
                    sa.Column('details', sa.JSON(), nullable=True),
                    sa.Column('status', sa.String(), server_default='PENDING', nullable=False),
                    sa.Column('transaction_id', sa.String(), nullable=True),
                    *_timestamps(),
                    sa.PrimaryKeyConstraint('id'),
                    sa.CheckConstraint('amount > 0',
                                       name='ck_ledger_withdrawal_requests_amount_positive'),
                    )
    op.create_index(op.f('ix_ledger_withdrawal_requests_user_id'),
                    'ledger_withdrawal_requests', ['user_id'])


def downgrade() -> None:
    op.drop_index(op.f('ix_ledger_withdrawal_requests_user_id'),
                  table_name='ledger_withdrawal_requests')
    op.drop_table('ledger_withdrawal_requests')

    op.drop_index('uq_ledger_transfer_requests_pending_tuple',
                  table_name='ledger_transfer_requests')
    op.drop_index('ix_ledger_transfer_requests_status_expires',
                  table_name='ledger_transfer_requests')
    op.drop_index(op.f('ix_ledger_transfer_requests_recipient_id'),
                  table_name='ledger_transfer_requests')
    op.drop_index(op.f('ix_ledger_transfer_requests_sender_id'),
                  table_name='ledger_transfer_requests')
    op.drop_table('ledger_transfer_requests')

    op.drop_index(op.f('ix_ledger_transactions_type'), table_name='ledger_transactions')
    op.drop_index(op.f('ix_ledger_transactions_recipient_id'), table_name='ledger_transactions')
    op.drop_index(op.f('ix_ledger_transactions_sender_id'), table_name='ledger_transactions')
    op.drop_table('ledger_transactions')

    op.drop_index(op.f('ix_ledger_wallets_user_id'), table_name='ledger_wallets')
    op.drop_table('ledger_wallets')
