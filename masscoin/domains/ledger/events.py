"""
Post-commit side effects of ledger operations: notifications and the chat
record of direct transfers. Every handler runs isolated on the event bus.
"""
from typing import Optional

from masscoin.core.event_bus import EventBus
from masscoin.domains.ledger.collaborators import (
    ChatCollaborator,
    NotificationSink,
    format_amount,
)
from masscoin.domains.ledger.entities import NotificationType, UserProfile
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

TRANSFER = "MASS_COIN_TRANSFER"
TRANSACTION = "MASS_COIN_TRANSACTION"
WITHDRAWAL = "MASS_COIN_WITHDRAWAL"


class LedgerNotifier:
    def __init__(self, sink: NotificationSink, chat: Optional[ChatCollaborator] = None):
        self.sink = sink
        self.chat = chat

    async def _notify(
        self,
        to: str,
        title: str,
        body: str,
        type: NotificationType,
        related_id: str,
        related_type: str,
        actor: Optional[Party],
    ):
        await self.sink.notify(
            user_id=to,
            title=title,
            body=body,
            type=type.value,
            related_id=related_id,
            related_type=related_type,
            actor_id=actor.user_id if actor else None,
            actor_name=actor.full_name if actor else "System",
            actor_avatar=actor.avatar if actor else None,
        )

    async def transfer_requested(self, event: TransferRequested):
        await self._notify(
            event.recipient.user_id,
            "Mass Coin Transfer Request",
            f"{event.sender.full_name} wants to send you "
            f"{format_amount(event.amount)} Mass Coins",
            NotificationType.MASS_COIN_TRANSFER_REQUEST,
            event.request_id,
            TRANSFER,
            event.sender,
        )

    async def transfer_approved_recipient(self, event: TransferApproved):
        await self._notify(
            event.recipient.user_id,
            "Mass Coin Received",
            f"You received {format_amount(event.amount)} Mass Coins "
            f"from {event.sender.full_name}",
            NotificationType.MASS_COIN_RECEIVED,
            event.transaction_id,
            TRANSACTION,
            event.sender,
        )

    async def transfer_approved_sender(self, event: TransferApproved):
        await self._notify(
            event.sender.user_id,
            "Transfer Approved",
            f"{event.recipient.full_name} approved your transfer of "
            f"{format_amount(event.amount)} Mass Coins",
            NotificationType.MASS_COIN_TRANSFER_APPROVED,
            event.transaction_id,
            TRANSACTION,
            event.recipient,
        )

    async def transfer_rejected(self, event: TransferRejected):
        await self._notify(
            event.sender.user_id,
            "Transfer Rejected",
            f"{event.recipient.full_name} rejected your transfer of "
            f"{format_amount(event.amount)} Mass Coins. Amount has been refunded.",
            NotificationType.MASS_COIN_TRANSFER_REJECTED,
            event.request_id,
            TRANSFER,
            event.recipient,
        )

    async def transfer_expired(self, event: TransferRequestExpired):
        await self._notify(
            event.sender.user_id,
            "Transfer Expired",
            f"Your transfer request to {event.recipient.full_name} has expired. "
            "Amount has been refunded.",
            NotificationType.MASS_COIN_TRANSFER_REJECTED,
            event.request_id,
            TRANSFER,
            event.recipient,
        )

    async def transfer_completed_recipient(self, event: TransferCompleted):
        await self._notify(
            event.recipient.user_id,
            "Mass Coin Received",
            f"You received {format_amount(event.amount)} Mass Coins "
            f"from {event.sender.full_name}",
            NotificationType.MASS_COIN_RECEIVED,
            event.transaction_id,
            TRANSACTION,
            event.sender,
        )

    async def transfer_completed_sender(self, event: TransferCompleted):
        await self._notify(
            event.sender.user_id,
            "Mass Coin Sent",
            f"You sent {format_amount(event.amount)} Mass Coins "
            f"to {event.recipient.full_name}",
            NotificationType.MASS_COIN_SENT,
            event.transaction_id,
            TRANSACTION,
            event.recipient,
        )

    async def transfer_completed_chat(self, event: TransferCompleted):
        if self.chat is None:
            return
        await self.chat.post_transfer_message(
            sender=UserProfile(**event.sender.model_dump()),
            recipient=UserProfile(**event.recipient.model_dump()),
            amount=event.amount,
            message=event.message,
            transaction_id=event.transaction_id,
        )

    async def reward_granted(self, event: RewardGranted):
        body = f"You received {format_amount(event.amount)} Mass Coins as a reward"
        if event.reason:
            body += f": {event.reason}"
        await self._notify(
            event.user.user_id,
            "Mass Coin Reward",
            body,
            NotificationType.MASS_COIN_RECEIVED,
            event.transaction_id,
            TRANSACTION,
            None,
        )

    async def withdrawal_requested(self, event: WithdrawalRequested):
        await self._notify(
            event.user_id,
            "Withdrawal Requested",
            f"Your withdrawal of {format_amount(event.amount)} MASS is pending.",
            NotificationType.MASS_COIN_SENT,
            event.withdrawal_id,
            WITHDRAWAL,
            None,
        )


def event_name(model) -> str:
    return model.model_fields["event"].default


def register_event_handlers(
    bus: EventBus,
    notifications: NotificationSink,
    chat: Optional[ChatCollaborator] = None,
) -> LedgerNotifier:
    notifier = LedgerNotifier(notifications, chat)
    handlers = [
        (TransferRequested, notifier.transfer_requested),
        (TransferApproved, notifier.transfer_approved_recipient),
        (TransferApproved, notifier.transfer_approved_sender),
        (TransferRejected, notifier.transfer_rejected),
        (TransferRequestExpired, notifier.transfer_expired),
        (TransferCompleted, notifier.transfer_completed_recipient),
        (TransferCompleted, notifier.transfer_completed_sender),
        (TransferCompleted, notifier.transfer_completed_chat),
        (RewardGranted, notifier.reward_granted),
        (WithdrawalRequested, notifier.withdrawal_requested),
    ]
    for model, handler in handlers:
        bus.subscribe(event_name(model), handler)
    return notifier
