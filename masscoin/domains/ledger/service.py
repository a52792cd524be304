# masscoin/domains/ledger/service.py
"""
Ledger facade: the single entry point for every MassCoin balance mutation.

Each public operation runs in exactly one database transaction (commit or
rollback on every exit path) and only after the commit hands side effects to
the event bus, so a notification or chat outage never changes an outcome.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from masscoin.core.config import settings
from masscoin.core.database import get_db
from masscoin.core.event_bus import EventBus, event_bus
from masscoin.domains.ledger import (
    transactions,
    transfer_requests,
    wallet_store,
    withdrawals,
)
from masscoin.domains.ledger.collaborators import (
    ContentStore,
    IdentityStore,
    build_http_collaborators,
)
from masscoin.domains.ledger.entities import (
    ContextType,
    TransactionStatus,
    TransactionType,
    UserProfile,
)
from masscoin.domains.ledger.events import register_event_handlers
from masscoin.domains.ledger.exceptions import (
    ContentNotFound,
    Expired,
    SelfTipNotAllowed,
)
from masscoin.domains.ledger.models import (
    Transaction,
    TransferRequest,
    Wallet,
    WithdrawalRequest,
)
from masscoin.shared.schemas.events import (
    Party,
    RewardGranted,
    TransferApproved,
    TransferCompleted,
    TransferRejected,
    TransferRequested,
    TransferRequestExpired,
    WithdrawalRequested,
)
from masscoin.shared.utils.clock import utcnow
from masscoin.shared.utils.logger import get_logger

logger = get_logger(__name__)


class LedgerService:
    """Wallets, transfers, tips, rewards, staking and withdrawals"""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        identity: Optional[IdentityStore] = None,
        content: Optional[ContentStore] = None,
        bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
        signup_grant: Optional[Decimal] = None,
        transfer_ttl: Optional[timedelta] = None,
        sweep_batch_size: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.identity = identity
        self.content = content
        self.bus = bus or event_bus
        self.clock = clock
        self.signup_grant = signup_grant or settings.SIGNUP_GRANT
        self.transfer_ttl = transfer_ttl or timedelta(
            seconds=settings.TRANSFER_REQUEST_TTL_SECONDS
        )
        self.sweep_batch_size = sweep_batch_size or settings.EXPIRY_SWEEP_BATCH_SIZE

        self._owned_clients: List = []
        self._initialized = False

    async def initialize(self, notifications=None, chat=None):
        """Wire HTTP collaborators from settings and subscribe side effects"""
        if self._initialized:
            return
        clients = build_http_collaborators()
        if self.identity is None:
            self.identity = clients["identity"]
            self._owned_clients.append(self.identity)
        if self.content is None:
            self.content = clients["content"]
            self._owned_clients.append(self.content)
        if notifications is None:
            notifications = clients["notifications"]
            self._owned_clients.append(notifications)
        if chat is None:
            chat = clients["chat"]
            self._owned_clients.append(chat)
        for client in clients.values():
            if client not in self._owned_clients:
                await client.aclose()

        register_event_handlers(self.bus, notifications, chat)
        self._initialized = True
        logger.info("Ledger service initialized")

    async def shutdown(self):
        await self.bus.drain()
        for client in self._owned_clients:
            if client is self.identity:
                self.identity = None
            if client is self.content:
                self.content = None
            await client.aclose()
        self._owned_clients = []
        if self._initialized:
            self.bus.clear()
        self._initialized = False

    def _db(self):
        return get_db(self.session_factory)

    # Identity and side effects

    async def _profile(self, user_id: str) -> Party:
        """Resolve display data; raises UserNotFound for unknown users"""
        if self.identity is None:
            return Party(user_id=user_id, full_name=user_id)
        profile: UserProfile = await self.identity.find_user(user_id)
        return Party(
            user_id=profile.user_id, full_name=profile.full_name, avatar=profile.avatar
        )

    async def _party(self, user_id: str) -> Party:
        """Best-effort display data for post-commit notifications"""
        try:
            return await self._profile(user_id)
        except Exception as e:
            logger.warning(f"Could not resolve profile of {user_id}: {e}")
            return Party(user_id=user_id, full_name=user_id)

    def _publish(self, event):
        try:
            self.bus.publish_nowait(event.event, event)
        except Exception as e:
            logger.error(f"Failed to dispatch {event.event}: {e}")

    async def _publish_expired(self, request: TransferRequest):
        self._publish(
            TransferRequestExpired(
                request_id=request.id,
                sender=await self._party(request.sender_id),
                recipient=await self._party(request.recipient_id),
                amount=request.amount,
            )
        )

    # Wallets

    async def get_or_create_wallet(self, user_id: str) -> Wallet:
        await self._profile(user_id)
        async with self._db() as db:
            wallet, _ = await wallet_store.get_or_create(db, user_id, self.signup_grant)
        return wallet

    async def update_wallet_address(self, user_id: str, new_address: str) -> Wallet:
        async with self._db() as db:
            wallet = await wallet_store.update_address(db, user_id, new_address)
        logger.info(f"Wallet address of user {user_id} updated")
        return wallet

    async def stake(self, user_id: str, amount) -> Wallet:
        amount = transactions.validate_amount(amount)
        async with self._db() as db:
            await wallet_store.get_or_create(db, user_id, self.signup_grant)
            wallet = await wallet_store.stake(db, user_id, amount)
        logger.info(f"User {user_id} staked {amount:f}")
        return wallet

    async def unstake(self, user_id: str, amount) -> Wallet:
        amount = transactions.validate_amount(amount)
        async with self._db() as db:
            await wallet_store.get_or_create(db, user_id, self.signup_grant)
            wallet = await wallet_store.unstake(db, user_id, amount)
        logger.info(f"User {user_id} unstaked {amount:f}")
        return wallet

    # Two-phase transfers

    async def create_transfer_request(
        self,
        sender_id: str,
        recipient_id: str,
        amount,
        message: Optional[str] = None,
        context_type: ContextType = ContextType.NONE,
        context_id: Optional[str] = None,
    ) -> TransferRequest:
        amount = transactions.validate_amount(amount)
        sender = await self._profile(sender_id)
        recipient = await self._profile(recipient_id)

        async with self._db() as db:
            await wallet_store.get_or_create(db, sender_id, self.signup_grant)
            request = await transfer_requests.create(
                db,
                sender_id=sender_id,
                recipient_id=recipient_id,
                amount=amount,
                message=message,
                context_type=context_type,
                context_id=context_id,
                now=self.clock(),
                ttl=self.transfer_ttl,
            )

        logger.info(
            f"Transfer request {request.id}: {sender_id} -> {recipient_id} "
            f"{amount:f} escrowed"
        )
        self._publish(
            TransferRequested(
                request_id=request.id, sender=sender, recipient=recipient, amount=amount
            )
        )
        return request

    async def approve_transfer_request(
        self, recipient_id: str, request_id: str
    ) -> Transaction:
        now = self.clock()
        expired = None
        async with self._db() as db:
            try:
                request, transaction = await transfer_requests.approve(
                    db, recipient_id, request_id, now, self.signup_grant
                )
            except Expired as e:
                if e.request is None:
                    raise
                # Commit the lazy expiry and its refund, then report it
                expired = e

        if expired is not None:
            await self._publish_expired(expired.request)
            raise expired

        logger.info(f"Transfer request {request_id} approved by {recipient_id}")
        self._publish(
            TransferApproved(
                request_id=request.id,
                transaction_id=transaction.id,
                sender=await self._party(request.sender_id),
                recipient=await self._party(request.recipient_id),
                amount=request.amount,
            )
        )
        return transaction

    async def reject_transfer_request(
        self, recipient_id: str, request_id: str
    ) -> TransferRequest:
        now = self.clock()
        expired = None
        async with self._db() as db:
            try:
                request = await transfer_requests.reject(db, recipient_id, request_id, now)
            except Expired as e:
                if e.request is None:
                    raise
                expired = e

        if expired is not None:
            await self._publish_expired(expired.request)
            raise expired

        logger.info(f"Transfer request {request_id} rejected by {recipient_id}")
        self._publish(
            TransferRejected(
                request_id=request.id,
                sender=await self._party(request.sender_id),
                recipient=await self._party(request.recipient_id),
                amount=request.amount,
            )
        )
        return request

    async def list_pending_transfer_requests(self, user_id: str) -> List[TransferRequest]:
        async with self._db() as db:
            return await transfer_requests.list_pending_for_recipient(db, user_id)

    async def count_pending_transfer_requests(self, user_id: str) -> int:
        async with self._db() as db:
            return await transfer_requests.count_pending_for_recipient(db, user_id)

    async def expire_stale_requests(self, now: Optional[datetime] = None) -> int:
        """Expire and refund every stale PENDING request; returns how many"""
        now = now or self.clock()
        async with self._db() as db:
            stale_ids = await transfer_requests.find_stale(db, now, self.sweep_batch_size)

        expired_count = 0
        for request_id in stale_ids:
            try:
                async with self._db() as db:
                    request = await transfer_requests.expire(db, request_id, now)
            except Exception as e:
                logger.error(f"Failed to expire transfer request {request_id}: {e}")
                continue
            if request is None:
                # Approved, rejected or expired by someone else meanwhile
                continue
            expired_count += 1
            await self._publish_expired(request)

        if stale_ids:
            logger.info(f"Expiry sweep: {expired_count}/{len(stale_ids)} requests expired")
        return expired_count

    # Direct transfers

    async def transfer_direct(
        self,
        sender_id: str,
        recipient_id: str,
        amount,
        message: Optional[str] = None,
        tx_type: TransactionType = TransactionType.P2P_TRANSFER,
        context_type: Optional[ContextType] = None,
        context_id: Optional[str] = None,
    ) -> Transaction:
        amount = transactions.validate_amount(amount)
        sender = await self._profile(sender_id)
        recipient = await self._profile(recipient_id)

        async with self._db() as db:
            for user_id in sorted({sender_id, recipient_id}):
                await wallet_store.get_or_create(db, user_id, self.signup_grant)
            await wallet_store.lock(db, [sender_id, recipient_id])

            await wallet_store.adjust(db, sender_id, -amount)
            await wallet_store.adjust(db, recipient_id, amount)
            transaction = await transactions.record(
                db,
                sender_id=sender_id,
                recipient_id=recipient_id,
                amount=amount,
                tx_type=tx_type or TransactionType.P2P_TRANSFER,
                status=TransactionStatus.CONFIRMED,
                description=message,
                context_type=context_type,
                context_id=context_id,
            )

        logger.info(
            f"Transfer {transaction.id}: {sender_id} -> {recipient_id} "
            f"{amount:f} ({transaction.type})"
        )
        self._publish(
            TransferCompleted(
                transaction_id=transaction.id,
                transaction_type=transaction.type,
                sender=sender,
                recipient=recipient,
                amount=amount,
                message=message,
            )
        )
        return transaction

    async def _resolve_content_owner(self, content_id: str) -> Tuple[str, ContextType]:
        owner = await self.content.find_post_owner(content_id)
        if owner is not None:
            return owner, ContextType.POST
        owner = await self.content.find_reel_owner(content_id)
        if owner is not None:
            return owner, ContextType.REEL
        raise ContentNotFound(content_id)

    async def tip_content(
        self, sender_id: str, content_id: str, amount, description: Optional[str] = None
    ) -> Transaction:
        # Repeated identical tips are separate transfers; no idempotency key
        recipient_id, context_type = await self._resolve_content_owner(content_id)
        if recipient_id == sender_id:
            raise SelfTipNotAllowed()
        return await self.transfer_direct(
            sender_id,
            recipient_id,
            amount,
            description,
            tx_type=TransactionType.CONTENT_TIP,
            context_type=context_type,
            context_id=content_id,
        )

    async def reward_user(self, user_id: str, amount, reason: Optional[str] = None) -> Transaction:
        amount = transactions.validate_amount(amount)
        user = await self._profile(user_id)

        async with self._db() as db:
            await wallet_store.get_or_create(db, user_id, self.signup_grant)
            await wallet_store.adjust(db, user_id, amount)
            transaction = await transactions.record(
                db,
                sender_id=None,
                recipient_id=user_id,
                amount=amount,
                tx_type=TransactionType.REWARD_DISTRIBUTION,
                status=TransactionStatus.CONFIRMED,
                description=reason,
            )

        logger.info(f"Rewarded {user_id} with {amount:f}: {reason}")
        self._publish(
            RewardGranted(
                transaction_id=transaction.id, user=user, amount=amount, reason=reason
            )
        )
        return transaction

    # Withdrawals

    async def request_withdrawal(
        self,
        user_id: str,
        amount,
        method: str,
        destination: str,
        details: Optional[Dict] = None,
    ) -> WithdrawalRequest:
        amount = transactions.validate_amount(amount)
        await self._profile(user_id)

        async with self._db() as db:
            await wallet_store.get_or_create(db, user_id, self.signup_grant)
            withdrawal, _ = await withdrawals.request_withdrawal(
                db, user_id, amount, method, destination, details
            )

        logger.info(f"Withdrawal {withdrawal.id} of {amount:f} requested by {user_id}")
        self._publish(
            WithdrawalRequested(
                withdrawal_id=withdrawal.id,
                user_id=user_id,
                amount=amount,
                method=withdrawal.method,
            )
        )
        return withdrawal

    async def list_withdrawals(self, user_id: str) -> List[WithdrawalRequest]:
        async with self._db() as db:
            return await withdrawals.list_for_user(db, user_id)

    # Ledger reads and settlement hooks

    async def get_transactions(
        self, user_id: str, page: int = 0, size: int = 20
    ) -> Tuple[List[Transaction], int]:
        async with self._db() as db:
            return await transactions.list_for_user(db, user_id, page, size)

    async def get_user_stats(self, user_id: str) -> Dict:
        async with self._db() as db:
            return await transactions.user_stats(db, user_id)

    async def confirm_transaction(self, transaction_id: str) -> Transaction:
        async with self._db() as db:
            return await transactions.confirm(db, transaction_id)

    async def fail_transaction(self, transaction_id: str) -> Transaction:
        async with self._db() as db:
            return await transactions.fail(db, transaction_id)


# Global instance
ledger_service = LedgerService()
