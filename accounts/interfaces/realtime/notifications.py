"""Realtime notifications over a WebSocket, one room per authenticated user."""

from typing import Any, Callable, Iterable, Optional

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from accounts.application.services.auth_guard import extract_bearer_token
from accounts.application.services.security import TokenIssuer
from accounts.core.exceptions import AppError
from accounts.domain.models.user import User
from accounts.interfaces.deps import get_auth_guard, get_session_factory, get_token_issuer, get_user_repository

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Realtime"])

USER_PROFILE_VIEWED = "user_profile_viewed"
TEST_EVENT = "test_event"


class ConnectionManager:
    def __init__(self):
        # Sockets by user id
        self.active_connections: dict[int, list[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)
        logger.info("Socket connected", user_id=user_id)

    def disconnect(self, websocket: WebSocket, user_id: int):
        connections = self.active_connections.get(user_id)
        if not connections:
            return
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            del self.active_connections[user_id]
        logger.info("Socket disconnected", user_id=user_id)

    async def emit_to_users(self, user_ids: Iterable[int], event: str, data: Any) -> int:
        """Send ``{event, data}`` to every socket of the given users; returns deliveries."""
        message = {"event": event, "data": data}
        delivered = 0
        for user_id in user_ids:
            stale = []
            for connection in list(self.active_connections.get(user_id, [])):
                try:
                    await connection.send_json(message)
                    delivered += 1
                except Exception:
                    logger.exception("Socket send failed", user_id=user_id, event=event)
                    stale.append(connection)
            for connection in stale:
                self.disconnect(connection, user_id)
        return delivered


manager = ConnectionManager()


def authenticate_socket(token: Optional[str], session_factory: Callable[[], Session], tokens: TokenIssuer) -> User:
    """Run the Auth Guard on its own session, closed before returning."""
    db = session_factory()
    try:
        return get_auth_guard(get_user_repository(db), tokens).authenticate(token)
    finally:
        db.close()


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(default=None),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    token = extract_bearer_token(websocket.headers.get("authorization")) or token
    try:
        user = await run_in_threadpool(authenticate_socket, token, session_factory, tokens)
    except AppError as e:
        logger.info("Socket rejected", reason=e.key)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    user_id = user.id
    await manager.connect(websocket, user_id)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue
            if isinstance(message, dict) and message.get("event") == TEST_EVENT:
                await websocket.send_json(
                    {"event": TEST_EVENT, "data": {"message": "Test event received", "data": message.get("data")}}
                )
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket, user_id)
