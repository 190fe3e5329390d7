from fastapi import WebSocketDisconnect

from meetcute.cabinet.routes.websocket import CabinetConnectionManager
from meetcute.database.models import Transaction, UserGift, WithdrawalRequest
from meetcute.services.notification_service import NotificationService
from meetcute.services.transaction_service import VerificationResult


class FakeSocket:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send_json(self, message):
        if self.fail:
            raise WebSocketDisconnect()
        self.sent.append(message)


def _service(manager: CabinetConnectionManager) -> NotificationService:
    service = NotificationService()
    service._ws_manager = manager
    return service


async def test_offline_user_is_skipped():
    service = _service(CabinetConnectionManager())
    request = WithdrawalRequest(id=3, user_id=7, amount_cents=500, status='approved')

    assert await service.notify_withdrawal_updated(request) is False


async def test_gift_push_hides_anonymous_sender():
    manager = CabinetConnectionManager()
    socket = FakeSocket()
    await manager.connect(2, socket)
    gift = UserGift(id=5, sender_id=1, recipient_id=2, gift_item_id=9, message='Hi', is_anonymous=True)

    assert await _service(manager).notify_gift_received(gift, 'Rose') is True

    assert socket.sent == [
        {'type': 'gift.received', 'gift_id': 5, 'gift_item_id': 9, 'gift_name': 'Rose', 'sender_id': None, 'message': 'Hi'}
    ]


async def test_verification_push_reaches_every_tab_and_drops_dead_ones():
    manager = CabinetConnectionManager()
    alive, dead = FakeSocket(), FakeSocket(fail=True)
    await manager.connect(4, alive)
    await manager.connect(4, dead)
    transaction = Transaction(id=11, user_id=4, status='completed', item_category='balance_topup')

    delivered = await _service(manager).notify_transaction_verified(
        VerificationResult(transaction=transaction, fulfillment='balance_credited')
    )

    assert delivered is True
    assert alive.sent[0]['type'] == 'transaction.verified'
    assert alive.sent[0]['fulfillment'] == 'balance_credited'
    assert manager.is_online(4) is True
    assert await manager.send_to_user(4, {'type': 'ping'}) == 1


async def test_verified_gift_purchase_notifies_recipient_with_item_name():
    manager = CabinetConnectionManager()
    buyer, recipient = FakeSocket(), FakeSocket()
    await manager.connect(1, buyer)
    await manager.connect(2, recipient)
    transaction = Transaction(id=12, user_id=1, status='completed', item_category='gift')
    gift = UserGift(id=6, sender_id=1, recipient_id=2, gift_item_id=9, message=None, is_anonymous=False)

    await _service(manager).notify_transaction_verified(
        VerificationResult(transaction=transaction, fulfillment='gift_delivered', gift=gift, gift_name='Rose')
    )

    assert buyer.sent[0]['fulfillment'] == 'gift_delivered'
    assert recipient.sent == [
        {'type': 'gift.received', 'gift_id': 6, 'gift_item_id': 9, 'gift_name': 'Rose', 'sender_id': 1, 'message': None}
    ]
