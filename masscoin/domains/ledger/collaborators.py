"""
External collaborators of the ledger: identity, content, notifications, chat.

The ledger depends only on the Protocols below. The Http* classes talk to the
main platform's internal API.
"""
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import httpx

from masscoin.core.config import settings
from masscoin.domains.ledger.entities import UserProfile
from masscoin.domains.ledger.exceptions import UserNotFound
from masscoin.shared.utils.logger import get_logger

logger = get_logger(__name__)


class IdentityStore(Protocol):
    async def find_user(self, user_id: str) -> UserProfile:
        """Raises UserNotFound when the user does not exist"""


class ContentStore(Protocol):
    async def find_post_owner(self, content_id: str) -> Optional[str]:
        ...

    async def find_reel_owner(self, content_id: str) -> Optional[str]:
        ...


class NotificationSink(Protocol):
    async def notify(
        self,
        user_id: str,
        title: str,
        body: str,
        type: str,
        related_id: Optional[str],
        related_type: Optional[str],
        actor_id: Optional[str],
        actor_name: Optional[str],
        actor_avatar: Optional[str],
    ) -> None:
        ...


class ChatCollaborator(Protocol):
    async def post_transfer_message(
        self,
        sender: UserProfile,
        recipient: UserProfile,
        amount: Decimal,
        message: Optional[str],
        transaction_id: str,
    ) -> None:
        ...


def format_amount(amount: Decimal) -> str:
    """Plain decimal without trailing zeros: 300.0000 -> 300, 0.5000 -> 0.5"""
    amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return f"{amount.normalize():f}"


def format_transfer_message(
    sender_name: str,
    recipient_name: str,
    amount: Decimal,
    message: Optional[str],
    transaction_id: str,
) -> str:
    content = (
        f"MASS TIP: {sender_name} sent {format_amount(amount)} MASS to {recipient_name}"
    )
    if message and message.strip():
        content += f' — "{message.strip()}"'
    return content + f" (Tx #{transaction_id})"


class InternalApiClient:
    """Shared httpx client for one internal service"""

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout or settings.COLLABORATOR_TIMEOUT,
            headers=headers,
            transport=transport,
        )

    async def _get_json(self, path: str) -> Optional[Dict[str, Any]]:
        response = await self.client.get(path)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> None:
        response = await self.client.post(path, json=payload)
        response.raise_for_status()

    async def aclose(self):
        await self.client.aclose()


class HttpIdentityStore(InternalApiClient):
    async def find_user(self, user_id: str) -> UserProfile:
        data = await self._get_json(f"/{user_id}")
        if data is None:
            raise UserNotFound(user_id)
        return UserProfile(
            user_id=str(data.get("id", user_id)),
            full_name=data.get("full_name") or data.get("username") or str(user_id),
            avatar=data.get("avatar"),
        )


class HttpContentStore(InternalApiClient):
    async def _owner(self, kind: str, content_id: str) -> Optional[str]:
        data = await self._get_json(f"/{kind}/{content_id}")
        if not data or data.get("owner_id") is None:
            return None
        return str(data["owner_id"])

    async def find_post_owner(self, content_id: str) -> Optional[str]:
        return await self._owner("posts", content_id)

    async def find_reel_owner(self, content_id: str) -> Optional[str]:
        return await self._owner("reels", content_id)


class HttpNotificationSink(InternalApiClient):
    async def notify(
        self,
        user_id: str,
        title: str,
        body: str,
        type: str,
        related_id: Optional[str],
        related_type: Optional[str],
        actor_id: Optional[str],
        actor_name: Optional[str],
        actor_avatar: Optional[str],
    ) -> None:
        await self._post_json(
            "",
            {
                "user_id": user_id,
                "title": title,
                "message": body,
                "type": type,
                "related_id": related_id,
                "related_type": related_type,
                "sender_id": actor_id,
                "sender_name": actor_name,
                "sender_avatar": actor_avatar,
            },
        )


class HttpChatCollaborator(InternalApiClient):
    async def post_transfer_message(
        self,
        sender: UserProfile,
        recipient: UserProfile,
        amount: Decimal,
        message: Optional[str],
        transaction_id: str,
    ) -> None:
        await self._post_json(
            "/messages",
            {
                "sender_id": sender.user_id,
                "recipient_id": recipient.user_id,
                "content": format_transfer_message(
                    sender.full_name, recipient.full_name, amount, message, transaction_id
                ),
                "broadcast": True,
            },
        )


def build_http_collaborators(transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict:
    token = settings.INTERNAL_API_TOKEN
    options = {"token": token, "transport": transport}
    return {
        "identity": HttpIdentityStore(settings.IDENTITY_SERVICE_URL, **options),
        "content": HttpContentStore(settings.CONTENT_SERVICE_URL, **options),
        "notifications": HttpNotificationSink(settings.NOTIFICATION_SERVICE_URL, **options),
        "chat": HttpChatCollaborator(settings.CHAT_SERVICE_URL, **options),
    }
