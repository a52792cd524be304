"""
Withdrawal initiation. The amount leaves the wallet immediately and a PENDING
WITHDRAWAL transaction is recorded; settlement happens outside this service.
"""
import uuid
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from masscoin.domains.ledger import transactions, wallet_store
from masscoin.domains.ledger.entities import (
    TransactionStatus,
    TransactionType,
    WithdrawalStatus,
)
from masscoin.domains.ledger.exceptions import InvalidWithdrawal
from masscoin.domains.ledger.models import Transaction, WithdrawalRequest


def _require(value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise InvalidWithdrawal("Withdrawal method and destination are required")
    return str(value).strip()


async def request_withdrawal(
    db: AsyncSession,
    user_id: str,
    amount: Decimal,
    method: str,
    destination: str,
    details: Optional[Dict] = None,
) -> Tuple[WithdrawalRequest, Transaction]:
    amount = transactions.validate_amount(amount)
    method = _require(method)
    destination = _require(destination)

    await wallet_store.adjust(db, user_id, -amount)

    transaction = await transactions.record(
        db,
        sender_id=user_id,
        recipient_id=user_id,
        amount=amount,
        tx_type=TransactionType.WITHDRAWAL,
        status=TransactionStatus.PENDING,
        description=f"Withdrawal request via {method}",
    )

    withdrawal = WithdrawalRequest(
        id=str(uuid.uuid4()),
        user_id=user_id,
        amount=amount,
        method=method,
        destination=destination,
        details=details,
        status=WithdrawalStatus.PENDING.value,
        transaction_id=transaction.id,
    )
    db.add(withdrawal)
    await db.flush()
    return withdrawal, transaction


async def list_for_user(db: AsyncSession, user_id: str) -> List[WithdrawalRequest]:
    result = await db.execute(
        select(WithdrawalRequest)
        .filter(WithdrawalRequest.user_id == user_id)
        .order_by(desc(WithdrawalRequest.created_at))
    )
    return list(result.scalars().all())
