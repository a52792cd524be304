"""
Append-only transaction ledger. Rows are inserted once per value movement;
the only later change is a forward status transition out of PENDING.
"""
import uuid
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from masscoin.domains.ledger.entities import (
    ContextType,
    TransactionStatus,
    TransactionType,
)
from masscoin.domains.ledger.exceptions import (
    InvalidAmount,
    InvalidState,
    TransactionNotFound,
)
from masscoin.domains.ledger.models import AMOUNT_PRECISION, AMOUNT_SCALE, Transaction
from masscoin.shared.utils.clock import utcnow


QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)
MAX_AMOUNT = Decimal(10) ** (AMOUNT_PRECISION - AMOUNT_SCALE)


def validate_amount(amount) -> Decimal:
    """
    Coerce to Decimal and require a finite amount > 0 that the amount columns
    store exactly (no rounding, no overflow).
    """
    if amount is None:
        raise InvalidAmount("Amount is required")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    if value >= MAX_AMOUNT:
        raise InvalidAmount(f"Amount must be below {MAX_AMOUNT:f}, got {amount}")
    if value.quantize(QUANTUM) != value:
        raise InvalidAmount(
            f"Amount supports at most {AMOUNT_SCALE} decimal places, got {amount}"
        )
    return value


async def record(
    db: AsyncSession,
    sender_id: Optional[str],
    recipient_id: str,
    amount: Decimal,
    tx_type: TransactionType,
    status: TransactionStatus,
    description: Optional[str] = None,
    context_type: Optional[ContextType] = None,
    context_id: Optional[str] = None,
) -> Transaction:
    amount = validate_amount(amount)
    transaction = Transaction(
        id=str(uuid.uuid4()),
        sender_id=sender_id,
        recipient_id=recipient_id,
        amount=amount,
        type=TransactionType(tx_type).value,
        status=TransactionStatus(status).value,
        description=description,
        context_type=context_type.value if context_type else None,
        context_id=context_id,
    )
    db.add(transaction)
    await db.flush()
    return transaction


async def get(db: AsyncSession, transaction_id: str) -> Optional[Transaction]:
    result = await db.execute(
        select(Transaction)
        .filter(Transaction.id == transaction_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _transition(
    db: AsyncSession, transaction_id: str, target: TransactionStatus
) -> Transaction:
    result = await db.execute(
        update(Transaction)
        .where(
            Transaction.id == transaction_id,
            Transaction.status == TransactionStatus.PENDING.value,
        )
        .values(status=target.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    transaction = await get(db, transaction_id)
    if transaction is None:
        raise TransactionNotFound(transaction_id)
    if result.rowcount == 0:
        raise InvalidState(
            f"Transaction {transaction_id} is {transaction.status}, not PENDING"
        )
    return transaction


async def confirm(db: AsyncSession, transaction_id: str) -> Transaction:
    return await _transition(db, transaction_id, TransactionStatus.CONFIRMED)


async def fail(db: AsyncSession, transaction_id: str) -> Transaction:
    return await _transition(db, transaction_id, TransactionStatus.FAILED)


def _involving(user_id: str):
    return or_(Transaction.sender_id == user_id, Transaction.recipient_id == user_id)


async def list_for_user(
    db: AsyncSession, user_id: str, page: int = 0, size: int = 20
) -> Tuple[List[Transaction], int]:
    """Transactions sent or received by the user, newest first"""
    total = await db.scalar(
        select(func.count(Transaction.id)).filter(_involving(user_id))
    )
    result = await db.execute(
        select(Transaction)
        .filter(_involving(user_id))
        .order_by(desc(Transaction.created_at), desc(Transaction.id))
        .offset(page * size)
        .limit(size)
    )
    return list(result.scalars().all()), total or 0


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


async def user_stats(db: AsyncSession, user_id: str) -> Dict:
    tip = TransactionType.CONTENT_TIP.value

    totals = (
        await db.execute(
            select(
                func.count(Transaction.id),
                func.sum(Transaction.amount),
                func.avg(Transaction.amount),
            ).filter(_involving(user_id))
        )
    ).one()
    received = (
        await db.execute(
            select(func.count(Transaction.id), func.sum(Transaction.amount)).filter(
                and_(Transaction.recipient_id == user_id, Transaction.type == tip)
            )
        )
    ).one()
    sent = (
        await db.execute(
            select(func.count(Transaction.id), func.sum(Transaction.amount)).filter(
                and_(Transaction.sender_id == user_id, Transaction.type == tip)
            )
        )
    ).one()

    return {
        "total_transactions": totals[0] or 0,
        "total_volume": _decimal(totals[1]),
        "average_transaction_amount": _decimal(totals[2]),
        "total_tips_received": received[0] or 0,
        "total_tips_amount": _decimal(received[1]),
        "total_tips_sent": sent[0] or 0,
        "total_tips_sent_amount": _decimal(sent[1]),
    }
