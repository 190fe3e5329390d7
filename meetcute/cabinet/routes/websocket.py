"""WebSocket channel for realtime cabinet notifications."""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from meetcute.database.crud.user import get_user_by_id
from meetcute.database.database import AsyncSessionLocal

from ..auth import get_user_id_from_token


logger = logging.getLogger(__name__)

router = APIRouter(tags=['Cabinet WebSocket'])


class CabinetConnectionManager:
    """Open sockets per user. Pushes are best effort and delivered at most once."""

    def __init__(self) -> None:
        self._connections: dict[int, set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.setdefault(user_id, set()).add(websocket)
        logger.info('🔌 WebSocket connected for user #%s (%s open)', user_id, len(self._connections[user_id]))

    async def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(user_id)
            if not sockets:
                return
            sockets.discard(websocket)
            if not sockets:
                self._connections.pop(user_id, None)
        logger.info('🔌 WebSocket disconnected for user #%s', user_id)

    def is_online(self, user_id: int) -> bool:
        return bool(self._connections.get(user_id))

    async def send_to_user(self, user_id: int, message: dict[str, Any]) -> int:
        """Send ``message`` to every open socket of the user; returns how many received it."""
        sockets = list(self._connections.get(user_id, ()))
        if not sockets:
            return 0

        delivered = 0
        for websocket in sockets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError) as error:
                logger.debug('WebSocket push to user #%s failed: %s', user_id, error)
                await self.disconnect(user_id, websocket)
        return delivered


cabinet_ws_manager = CabinetConnectionManager()


@router.websocket('/ws')
async def cabinet_websocket(websocket: WebSocket, token: str = Query(...)):
    user_id = get_user_id_from_token(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    async with AsyncSessionLocal() as db:
        user = await get_user_by_id(db, user_id)
    if user is None or not user.is_active or user.is_suspended:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await cabinet_ws_manager.connect(user_id, websocket)
    try:
        while True:
            data = await websocket.receive_text()
            if data == 'ping':
                await websocket.send_text('pong')
    except WebSocketDisconnect:
        pass
    finally:
        await cabinet_ws_manager.disconnect(user_id, websocket)
