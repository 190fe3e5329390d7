import pytest

from meetcute.database.models import BalanceAccount
from meetcute.services import balance_service
from meetcute.services.errors import ConcurrencyConflictError, InsufficientBalanceError, ValidationError
from meetcute.services.unit_of_work import unit_of_work


async def test_get_balance_opens_empty_account(db, alice_id):
    account = await balance_service.get_balance(db, alice_id)

    assert account.user_id == alice_id
    assert account.balance_cents == 0
    assert account.currency == 'USD'


async def test_credit_then_debit(db, alice_id):
    async with unit_of_work(db, 'test credit'):
        await balance_service.credit_balance(db, alice_id, 1500, 'test')
    async with unit_of_work(db, 'test debit'):
        account = await balance_service.debit_balance(db, alice_id, 400, 'test')

    assert account.balance_cents == 1100
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 1100


async def test_debit_refused_when_balance_is_short(db, alice_id, fund):
    await fund(alice_id, 500)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        async with unit_of_work(db, 'test debit'):
            await balance_service.debit_balance(db, alice_id, 1000, 'test')

    assert exc_info.value.required_cents == 1000
    assert exc_info.value.available_cents == 500
    assert exc_info.value.to_detail()['code'] == 'insufficient_balance'
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 500


async def test_debit_of_exact_balance_leaves_zero(db, alice_id, fund):
    await fund(alice_id, 700)

    async with unit_of_work(db, 'test debit'):
        account = await balance_service.debit_balance(db, alice_id, 700, 'test')

    assert account.balance_cents == 0


@pytest.mark.parametrize('amount', [0, -100, 10.5, True])
async def test_amounts_must_be_positive_integers(db, alice_id, amount):
    with pytest.raises(ValidationError):
        await balance_service.credit_balance(db, alice_id, amount, 'test')
    with pytest.raises(ValidationError):
        await balance_service.debit_balance(db, alice_id, amount, 'test')


async def test_storage_conflict_rolls_back_the_whole_unit(db, alice_id, bob_id, fund):
    await fund(alice_id, 1000)

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        async with unit_of_work(db, 'test duplicate account'):
            await balance_service.credit_balance(db, bob_id, 700, 'test')
            db.add(BalanceAccount(user_id=alice_id, balance_cents=5))

    assert exc_info.value.status_code == 409
    assert exc_info.value.to_detail()['code'] == 'concurrency_conflict'
    assert (await balance_service.get_balance(db, bob_id)).balance_cents == 0
    assert (await balance_service.get_balance(db, alice_id)).balance_cents == 1000
