# masscoin/domains/ledger/models.py
"""
Database models for the MassCoin ledger
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from masscoin.domains.ledger.entities import (
    ContextType,
    RequestStatus,
    TransactionStatus,
    WithdrawalStatus,
)
from masscoin.shared.database.mixins import TimestampMixin
from masscoin.shared.models.base import Base

# Amounts carry at most 16 integer and 4 fractional digits
AMOUNT_PRECISION = 20
AMOUNT_SCALE = 4
Amount = Numeric(AMOUNT_PRECISION, AMOUNT_SCALE)


class Wallet(Base, TimestampMixin):
    __tablename__ = "ledger_wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_ledger_wallets_balance_non_negative"),
        CheckConstraint(
            "staked_amount >= 0", name="ck_ledger_wallets_staked_non_negative"
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    wallet_address: Mapped[str] = mapped_column(String, unique=True)

    # Spendable funds; staked funds live only in staked_amount
    balance: Mapped[Decimal] = mapped_column(Amount, default=Decimal("0"))
    staked_amount: Mapped[Decimal] = mapped_column(Amount, default=Decimal("0"))


class Transaction(Base, TimestampMixin):
    __tablename__ = "ledger_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_transactions_amount_positive"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    sender_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, index=True)
    recipient_id: Mapped[str] = mapped_column(String, index=True)

    amount: Mapped[Decimal] = mapped_column(Amount)
    type: Mapped[str] = mapped_column(String, index=True)
    status: Mapped[str] = mapped_column(String, default=TransactionStatus.PENDING.value)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Tip context (POST/REEL and the content id)
    context_type: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    context_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class TransferRequest(Base, TimestampMixin):
    __tablename__ = "ledger_transfer_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_transfer_requests_amount_positive"),
        # At most one PENDING request per (sender, recipient, context)
        Index(
            "uq_ledger_transfer_requests_pending_tuple",
            "sender_id",
            "recipient_id",
            "context_type",
            "context_id",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
        Index("ix_ledger_transfer_requests_status_expires", "status", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    sender_id: Mapped[str] = mapped_column(String, index=True)
    recipient_id: Mapped[str] = mapped_column(String, index=True)

    # Escrowed: already debited from the sender when the row is inserted
    amount: Mapped[Decimal] = mapped_column(Amount)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    context_type: Mapped[str] = mapped_column(String, default=ContextType.NONE.value)
    # Empty string instead of NULL keeps the pending-tuple index total
    context_id: Mapped[str] = mapped_column(String, default="")

    status: Mapped[str] = mapped_column(String, default=RequestStatus.PENDING.value)
    expires_at: Mapped[datetime] = mapped_column(DateTime)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class WithdrawalRequest(Base, TimestampMixin):
    __tablename__ = "ledger_withdrawal_requests"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_withdrawal_requests_amount_positive"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    amount: Mapped[Decimal] = mapped_column(Amount)
    method: Mapped[str] = mapped_column(String)
    destination: Mapped[str] = mapped_column(String)
    # Renamed from 'metadata' to avoid the SQLAlchemy reserved attribute
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String, default=WithdrawalStatus.PENDING.value)
    transaction_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
