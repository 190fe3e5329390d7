"""JWT helpers for cabinet access tokens."""

import logging
from datetime import UTC, datetime, timedelta

import jwt

from meetcute.config import settings


logger = logging.getLogger(__name__)


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or settings.get_cabinet_access_token_expire_minutes()
    now = datetime.now(UTC)
    payload = {
        'sub': str(user_id),
        'type': 'access',
        'iat': now,
        'exp': now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, settings.CABINET_JWT_SECRET, algorithm=settings.CABINET_JWT_ALGORITHM)


def get_token_payload(token: str, expected_type: str = 'access') -> dict | None:
    """Decoded payload, or None for an expired, forged or wrong-type token."""
    try:
        payload = jwt.decode(token, settings.CABINET_JWT_SECRET, algorithms=[settings.CABINET_JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.debug('Cabinet token expired')
        return None
    except jwt.InvalidTokenError as error:
        logger.debug('Invalid cabinet token: %s', error)
        return None

    if payload.get('type') != expected_type:
        return None
    return payload


def get_user_id_from_token(token: str) -> int | None:
    payload = get_token_payload(token)
    if not payload:
        return None
    try:
        return int(payload['sub'])
    except (KeyError, TypeError, ValueError):
        return None
