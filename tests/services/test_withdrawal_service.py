import pytest
from sqlalchemy import func, select

from meetcute.database.models import WithdrawalRequest
from meetcute.services import balance_service, withdrawal_service
from meetcute.services.errors import InsufficientBalanceError, InvalidStateTransitionError, NotFoundError, ValidationError


async def _withdrawal_count(db) -> int:
    result = await db.execute(select(func.count(WithdrawalRequest.id)))
    return result.scalar()


async def test_request_above_balance_is_refused_without_a_row(db, alice_id, fund):
    await fund(alice_id, 500)

    with pytest.raises(InsufficientBalanceError):
        await withdrawal_service.create_request(db, alice_id, 1000, 'IBAN DE00 1234')

    assert await _withdrawal_count(db) == 0
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 500


async def test_request_holds_amount_on_balance(db, alice_id, fund):
    await fund(alice_id, 2000)

    result = await withdrawal_service.create_request(db, alice_id, 1500, '  IBAN DE00 1234  ')

    assert result.balance_cents == 500
    assert result.request.status == 'pending'
    assert result.request.amount_cents == 1500
    assert result.request.user_payment_details == 'IBAN DE00 1234'
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 500


async def test_request_below_minimum(db, alice_id, fund):
    await fund(alice_id, 2000)

    with pytest.raises(ValidationError) as exc_info:
        await withdrawal_service.create_request(db, alice_id, 50, 'IBAN')

    assert exc_info.value.code == 'amount_below_minimum'
    assert exc_info.value.message == 'Minimum withdrawal amount is $1.00'


async def test_request_requires_payment_details(db, alice_id, fund):
    await fund(alice_id, 2000)

    with pytest.raises(ValidationError):
        await withdrawal_service.create_request(db, alice_id, 1000, '   ')


async def test_decline_refunds_exactly_once(db, alice_id, admin_id, fund):
    await fund(alice_id, 2000)
    created = await withdrawal_service.create_request(db, alice_id, 1500, 'IBAN')
    request_id = created.request.id

    declined = await withdrawal_service.update_status(db, request_id, 'declined', admin_id, 'Wrong IBAN')

    assert declined.status == 'declined'
    assert declined.processed_by == admin_id
    assert declined.admin_notes == 'Wrong IBAN'
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 2000

    with pytest.raises(InvalidStateTransitionError):
        await withdrawal_service.update_status(db, request_id, 'declined', admin_id)

    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 2000


async def test_approve_then_process(db, alice_id, admin_id, fund):
    await fund(alice_id, 2000)
    created = await withdrawal_service.create_request(db, alice_id, 1000, 'IBAN')
    request_id = created.request.id

    approved = await withdrawal_service.update_status(db, request_id, 'approved', admin_id)
    assert approved.status == 'approved'

    processed = await withdrawal_service.update_status(db, request_id, 'processed', admin_id, 'Paid out')
    assert processed.status == 'processed'
    assert processed.processed_at is not None
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 1000


async def test_processed_request_cannot_be_declined(db, alice_id, admin_id, fund):
    await fund(alice_id, 2000)
    created = await withdrawal_service.create_request(db, alice_id, 1000, 'IBAN')
    request_id = created.request.id
    await withdrawal_service.update_status(db, request_id, 'approved', admin_id)
    await withdrawal_service.update_status(db, request_id, 'processed', admin_id)

    with pytest.raises(InvalidStateTransitionError) as exc_info:
        await withdrawal_service.update_status(db, request_id, 'declined', admin_id)

    assert 'manual reconciliation' in str(exc_info.value)
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 1000


async def test_pending_request_cannot_skip_to_processed(db, alice_id, admin_id, fund):
    await fund(alice_id, 2000)
    created = await withdrawal_service.create_request(db, alice_id, 1000, 'IBAN')

    with pytest.raises(InvalidStateTransitionError):
        await withdrawal_service.update_status(db, created.request.id, 'processed', admin_id)


async def test_unknown_status_and_request(db, alice_id, admin_id, fund):
    await fund(alice_id, 2000)
    created = await withdrawal_service.create_request(db, alice_id, 1000, 'IBAN')
    request_id = created.request.id

    with pytest.raises(ValidationError):
        await withdrawal_service.update_status(db, request_id, 'paid', admin_id)
    with pytest.raises(ValidationError):
        await withdrawal_service.update_status(db, request_id, 'pending', admin_id)
    with pytest.raises(NotFoundError):
        await withdrawal_service.update_status(db, 9999, 'approved', admin_id)


async def test_list_requests_filters_by_status(db, alice_id, bob_id, admin_id, fund):
    await fund(alice_id, 2000)
    await fund(bob_id, 2000)
    first = await withdrawal_service.create_request(db, alice_id, 1000, 'IBAN A')
    await withdrawal_service.create_request(db, bob_id, 1000, 'IBAN B')
    await withdrawal_service.update_status(db, first.request.id, 'approved', admin_id)

    pending, pending_total = await withdrawal_service.list_requests(db, 'pending')
    everything, total = await withdrawal_service.list_requests(db)

    assert pending_total == 1
    assert [item.user_id for item in pending] == [bob_id]
    assert total == 2
    assert len(everything) == 2
    assert len(await withdrawal_service.list_user_requests(db, alice_id)) == 1
