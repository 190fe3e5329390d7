"""Realtime notifications pushed to connected cabinet sessions.

Notifications are sent only after the unit of work that produced them has
committed. Delivery is at most once: offline users simply miss the push and
see the new state on their next request.
"""

import logging
from enum import Enum
from typing import Any

from meetcute.database.models import UserGift, WithdrawalRequest
from meetcute.services.transaction_service import VerificationResult


logger = logging.getLogger(__name__)


class NotificationType(Enum):
    GIFT_RECEIVED = 'gift.received'
    TRANSACTION_VERIFIED = 'transaction.verified'
    WITHDRAWAL_UPDATED = 'withdrawal.updated'


class NotificationService:
    def __init__(self) -> None:
        self._ws_manager = None

    @property
    def ws_manager(self):
        """Lazy load WebSocket manager."""
        if self._ws_manager is None:
            from meetcute.cabinet.routes.websocket import cabinet_ws_manager

            self._ws_manager = cabinet_ws_manager
        return self._ws_manager

    async def send(self, user_id: int, notification_type: NotificationType, context: dict[str, Any]) -> bool:
        message = {'type': notification_type.value, **context}
        try:
            delivered = await self.ws_manager.send_to_user(user_id, message)
        except Exception as error:
            logger.warning('Notification %s for user #%s not sent: %s', notification_type.value, user_id, error)
            return False
        return delivered > 0

    async def notify_gift_received(self, gift: UserGift, gift_name: str | None = None) -> bool:
        return await self.send(
            gift.recipient_id,
            NotificationType.GIFT_RECEIVED,
            {
                'gift_id': gift.id,
                'gift_item_id': gift.gift_item_id,
                'gift_name': gift_name,
                'sender_id': None if gift.is_anonymous else gift.sender_id,
                'message': gift.message,
            },
        )

    async def notify_transaction_verified(self, result: VerificationResult) -> bool:
        transaction = result.transaction
        sent = await self.send(
            transaction.user_id,
            NotificationType.TRANSACTION_VERIFIED,
            {
                'transaction_id': transaction.id,
                'status': transaction.status,
                'item_category': transaction.item_category,
                'fulfillment': result.fulfillment,
            },
        )
        if result.gift is not None:
            await self.notify_gift_received(result.gift, result.gift_name)
        return sent

    async def notify_withdrawal_updated(self, request: WithdrawalRequest) -> bool:
        return await self.send(
            request.user_id,
            NotificationType.WITHDRAWAL_UPDATED,
            {
                'withdrawal_id': request.id,
                'status': request.status,
                'amount_cents': request.amount_cents,
            },
        )


notification_service = NotificationService()
