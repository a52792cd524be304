from dataclasses import dataclass
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    AIRDROP = "AIRDROP"
    P2P_TRANSFER = "P2P_TRANSFER"
    CONTENT_TIP = "CONTENT_TIP"
    REWARD_DISTRIBUTION = "REWARD_DISTRIBUTION"
    WITHDRAWAL = "WITHDRAWAL"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class ContextType(str, Enum):
    NONE = "NONE"
    POST = "POST"
    REEL = "REEL"


class WithdrawalStatus(str, Enum):
    PENDING = "PENDING"


class NotificationType(str, Enum):
    MASS_COIN_TRANSFER_REQUEST = "MASS_COIN_TRANSFER_REQUEST"
    MASS_COIN_RECEIVED = "MASS_COIN_RECEIVED"
    MASS_COIN_SENT = "MASS_COIN_SENT"
    MASS_COIN_TRANSFER_APPROVED = "MASS_COIN_TRANSFER_APPROVED"
    MASS_COIN_TRANSFER_REJECTED = "MASS_COIN_TRANSFER_REJECTED"


@dataclass(frozen=True)
class UserProfile:
    """Display data for a user, as returned by the identity store"""

    user_id: str
    full_name: str
    avatar: Optional[str] = None


SYSTEM_ACTOR = UserProfile(user_id="", full_name="System")
