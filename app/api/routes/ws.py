import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.security import user_from_token
from app.db.base import SessionLocal
from app.services.notifications import notifications_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: str = ""):
    db = SessionLocal()
    try:
        user = user_from_token(db, token)
    finally:
        db.close()
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await notifications_manager.connect(user.id, websocket)
    try:
        while True:
            # Clients only listen; anything they send is a keepalive.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("User %s disconnected from notifications", user.id)
    finally:
        notifications_manager.disconnect(user.id, websocket)
