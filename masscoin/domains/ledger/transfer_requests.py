"""
Two-phase transfer requests (escrow).

PENDING -> APPROVED | REJECTED | EXPIRED, all terminal. Every transition is a
conditional UPDATE on status = 'PENDING'; only the caller whose UPDATE hits
the row moves the escrowed amount, so approve, reject and expiry resolve a
request exactly once no matter how they race.
"""
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from masscoin.domains.ledger import transactions, wallet_store
from masscoin.domains.ledger.entities import (
    ContextType,
    RequestStatus,
    TransactionStatus,
    TransactionType,
)
from masscoin.domains.ledger.exceptions import (
    DuplicateRequest,
    Expired,
    InvalidState,
    TransferRequestNotFound,
    Unauthorized,
)
from masscoin.domains.ledger.models import Transaction, TransferRequest
from masscoin.shared.utils.logger import get_logger

logger = get_logger(__name__)

PENDING = RequestStatus.PENDING.value
PENDING_TUPLE_INDEX = "uq_ledger_transfer_requests_pending_tuple"


def _violates_pending_tuple(error: IntegrityError) -> bool:
    # PostgreSQL names the index, SQLite lists its columns
    message = str(error.orig)
    return PENDING_TUPLE_INDEX in message or (
        "UNIQUE" in message and "ledger_transfer_requests.sender_id" in message
    )


async def get(
    db: AsyncSession, request_id: str, for_update: bool = False
) -> Optional[TransferRequest]:
    query = select(TransferRequest).filter(TransferRequest.id == request_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def create(
    db: AsyncSession,
    sender_id: str,
    recipient_id: str,
    amount: Decimal,
    message: Optional[str],
    context_type: ContextType,
    context_id: Optional[str],
    now: datetime,
    ttl: timedelta,
) -> TransferRequest:
    """Escrow ``amount`` from the sender and open a PENDING request"""
    amount = transactions.validate_amount(amount)
    context_type = ContextType(context_type or ContextType.NONE)

    await wallet_store.adjust(db, sender_id, -amount)

    request = TransferRequest(
        id=str(uuid.uuid4()),
        sender_id=sender_id,
        recipient_id=recipient_id,
        amount=amount,
        message=message,
        context_type=context_type.value,
        context_id=context_id or "",
        status=PENDING,
        created_at=now,
        expires_at=now + ttl,
    )
    db.add(request)
    try:
        await db.flush()
    except IntegrityError as e:
        if not _violates_pending_tuple(e):
            raise
        # The caller's rollback also undoes the escrow debit above
        raise DuplicateRequest("Transfer request already exists") from e
    return request


async def expire(
    db: AsyncSession, request_id: str, now: datetime
) -> Optional[TransferRequest]:
    """PENDING -> EXPIRED and refund the sender, or None if someone else won"""
    result = await db.execute(
        update(TransferRequest)
        .where(
            TransferRequest.id == request_id,
            TransferRequest.status == PENDING,
            TransferRequest.expires_at <= now,
        )
        .values(status=RequestStatus.EXPIRED.value, resolved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None

    request = await get(db, request_id)
    await wallet_store.adjust(db, request.sender_id, request.amount)
    logger.info(
        f"Transfer request {request_id} expired, refunded {request.amount:f} "
        f"to {request.sender_id}"
    )
    return request


async def _resolve(
    db: AsyncSession,
    actor_id: str,
    request_id: str,
    target: RequestStatus,
    now: datetime,
) -> TransferRequest:
    request = await get(db, request_id, for_update=True)
    if request is None:
        raise TransferRequestNotFound(request_id)
    if request.recipient_id != actor_id:
        raise Unauthorized(f"Unauthorized to {target.value.lower()} this request")
    if request.status != PENDING:
        raise InvalidState("Request is not pending")

    if now >= request.expires_at:
        expired = await expire(db, request_id, now)
        if expired is None:
            raise InvalidState("Request is not pending")
        raise Expired("Request has expired", request=expired)

    result = await db.execute(
        update(TransferRequest)
        .where(
            TransferRequest.id == request_id,
            TransferRequest.status == PENDING,
            TransferRequest.expires_at > now,
        )
        .values(status=target.value, resolved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InvalidState("Request is not pending")
    return await get(db, request_id)


async def approve(
    db: AsyncSession,
    recipient_id: str,
    request_id: str,
    now: datetime,
    signup_grant: Decimal = wallet_store.DEFAULT_SIGNUP_GRANT,
) -> Tuple[TransferRequest, Transaction]:
    request = await _resolve(db, recipient_id, request_id, RequestStatus.APPROVED, now)

    await wallet_store.get_or_create(db, recipient_id, signup_grant)
    await wallet_store.adjust(db, recipient_id, request.amount)

    transaction = await transactions.record(
        db,
        sender_id=request.sender_id,
        recipient_id=request.recipient_id,
        amount=request.amount,
        tx_type=TransactionType.P2P_TRANSFER,
        status=TransactionStatus.CONFIRMED,
        description=request.message,
    )
    return request, transaction


async def reject(
    db: AsyncSession, recipient_id: str, request_id: str, now: datetime
) -> TransferRequest:
    request = await _resolve(db, recipient_id, request_id, RequestStatus.REJECTED, now)
    await wallet_store.adjust(db, request.sender_id, request.amount)
    return request


async def list_pending_for_recipient(
    db: AsyncSession, recipient_id: str
) -> List[TransferRequest]:
    result = await db.execute(
        select(TransferRequest)
        .filter(
            and_(
                TransferRequest.recipient_id == recipient_id,
                TransferRequest.status == PENDING,
            )
        )
        .order_by(desc(TransferRequest.created_at))
    )
    return list(result.scalars().all())


async def count_pending_for_recipient(db: AsyncSession, recipient_id: str) -> int:
    count = await db.scalar(
        select(func.count(TransferRequest.id)).filter(
            and_(
                TransferRequest.recipient_id == recipient_id,
                TransferRequest.status == PENDING,
            )
        )
    )
    return count or 0


async def find_stale(db: AsyncSession, now: datetime, limit: int = 500) -> List[str]:
    """Ids of PENDING requests whose expiry has passed, oldest first"""
    result = await db.execute(
        select(TransferRequest.id)
        .filter(
            and_(
                TransferRequest.status == PENDING,
                TransferRequest.expires_at <= now,
            )
        )
        .order_by(TransferRequest.expires_at)
        .limit(limit)
    )
    return list(result.scalars().all())
