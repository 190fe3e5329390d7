import httpx
import pytest_asyncio
from fastapi import Depends, FastAPI

from meetcute.cabinet.auth import create_access_token
from meetcute.cabinet.dependencies import get_cabinet_db, require_active_subscription, require_feature
from meetcute.database.models import User
from meetcute.services import subscription_service


@pytest_asyncio.fixture
async def gated_client(session_factory):
    app = FastAPI()

    @app.get('/members')
    async def members_only(user: User = Depends(require_active_subscription)):
        return {'user_id': user.id}

    @app.get('/likes')
    async def see_who_liked(user: User = Depends(require_feature('see_who_liked'))):
        return {'user_id': user.id}

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_cabinet_db] = override_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url='http://test') as client:
        yield client


def _auth(user_id: int) -> dict:
    return {'Authorization': f'Bearer {create_access_token(user_id)}'}


async def test_subscription_required(gated_client, alice_id):
    response = await gated_client.get('/members', headers=_auth(alice_id))

    assert response.status_code == 403
    assert response.json()['detail']['code'] == 'subscription_required'


async def test_feature_gate_follows_tier(gated_client, db, alice_id, catalog, fund):
    await fund(alice_id, 2500)
    await subscription_service.purchase_with_balance(db, alice_id, catalog.premium_package_id)

    assert (await gated_client.get('/members', headers=_auth(alice_id))).status_code == 200

    response = await gated_client.get('/likes', headers=_auth(alice_id))
    assert response.status_code == 403
    assert response.json()['detail']['code'] == 'feature_not_available'


async def test_expired_token_is_rejected(gated_client, alice_id):
    token = create_access_token(alice_id, expires_minutes=-1)

    response = await gated_client.get('/members', headers={'Authorization': f'Bearer {token}'})

    assert response.status_code == 401
