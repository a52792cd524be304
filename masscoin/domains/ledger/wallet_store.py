"""
Wallet store: one balance/staked record per user.

Every function runs inside the caller's session and never commits. Balance
changes are single conditional UPDATE statements, so the check and the write
happen atomically in the database.
"""
import uuid
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from masscoin.domains.ledger import transactions
from masscoin.domains.ledger.entities import TransactionStatus, TransactionType
from masscoin.domains.ledger.exceptions import (
    InsufficientFunds,
    InsufficientStake,
    InvalidState,
    WalletNotFound,
)
from masscoin.domains.ledger.models import Wallet
from masscoin.shared.utils.clock import utcnow
from masscoin.shared.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SIGNUP_GRANT = Decimal("1000")


def generate_wallet_address() -> str:
    return "MC" + uuid.uuid4().hex[:32].upper()


async def get(db: AsyncSession, user_id: str, for_update: bool = False) -> Optional[Wallet]:
    query = select(Wallet).filter(Wallet.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def lock(db: AsyncSession, user_ids: Iterable[str]) -> List[Wallet]:
    """Row-lock several wallets in a stable order (sorted user ids)"""
    ordered = sorted(set(user_ids))
    result = await db.execute(
        select(Wallet)
        .filter(Wallet.user_id.in_(ordered))
        .order_by(Wallet.user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_or_create(
    db: AsyncSession,
    user_id: str,
    signup_grant: Decimal = DEFAULT_SIGNUP_GRANT,
) -> Tuple[Wallet, bool]:
    """Return (wallet, created). Creation grants the signup airdrop."""
    wallet = await get(db, user_id)
    if wallet is not None:
        return wallet, False

    # Upsert: a concurrent first access for the same user loses on the
    # unique user_id and re-reads the winner's row.
    try:
        async with db.begin_nested():
            wallet = Wallet(
                id=str(uuid.uuid4()),
                user_id=user_id,
                wallet_address=generate_wallet_address(),
                balance=signup_grant,
                staked_amount=Decimal("0"),
            )
            db.add(wallet)
    except IntegrityError:
        logger.info(f"Wallet for user {user_id} created concurrently, reusing it")
        wallet = await get(db, user_id)
        if wallet is None:
            raise
        return wallet, False

    await transactions.record(
        db,
        sender_id=None,
        recipient_id=user_id,
        amount=signup_grant,
        tx_type=TransactionType.AIRDROP,
        status=TransactionStatus.CONFIRMED,
        description=f"Welcome bonus - {signup_grant:f} Mass Coins",
    )
    logger.info(f"Created wallet {wallet.wallet_address} for user {user_id}")
    return wallet, True


async def adjust(db: AsyncSession, user_id: str, delta: Decimal) -> Wallet:
    """Apply a signed delta to the balance; never lets it go below zero"""
    result = await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.balance + delta >= 0)
        .values(balance=Wallet.balance + delta, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        wallet = await get(db, user_id)
        if wallet is None:
            raise WalletNotFound(user_id)
        raise InsufficientFunds(
            f"Insufficient balance: {wallet.balance:f} available, {-delta:f} required"
        )
    return await get(db, user_id)


async def stake(db: AsyncSession, user_id: str, amount: Decimal) -> Wallet:
    result = await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.balance >= amount)
        .values(
            balance=Wallet.balance - amount,
            staked_amount=Wallet.staked_amount + amount,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        wallet = await get(db, user_id)
        if wallet is None:
            raise WalletNotFound(user_id)
        raise InsufficientFunds("Insufficient balance for staking")
    return await get(db, user_id)


async def unstake(db: AsyncSession, user_id: str, amount: Decimal) -> Wallet:
    result = await db.execute(
        update(Wallet)
        .where(Wallet.user_id == user_id, Wallet.staked_amount >= amount)
        .values(
            balance=Wallet.balance + amount,
            staked_amount=Wallet.staked_amount - amount,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        wallet = await get(db, user_id)
        if wallet is None:
            raise WalletNotFound(user_id)
        raise InsufficientStake("Insufficient staked amount")
    return await get(db, user_id)


async def update_address(db: AsyncSession, user_id: str, new_address: str) -> Wallet:
    wallet = await get(db, user_id, for_update=True)
    if wallet is None:
        raise WalletNotFound(user_id)
    wallet.wallet_address = new_address
    try:
        await db.flush()
    except IntegrityError as e:
        raise InvalidState(f"Wallet address {new_address} is already in use") from e
    return wallet
