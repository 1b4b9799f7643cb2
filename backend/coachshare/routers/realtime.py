"""WebSocket route for real-time notification delivery."""

import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from coachshare.core.auth import resolve_session_user
from coachshare.dependencies import session_factory
from coachshare.services.realtime import get_hub

logger = logging.getLogger("coachshare.realtime")

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: str | None = None):
    """Push notifications to the authenticated user until the client goes away.

    Clients may send ``ping`` and get ``{"event": "pong"}`` back; anything
    else they send is ignored.
    """
    async with session_factory() as db:
        try:
            user = await resolve_session_user(db, token)
        except HTTPException:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    user_id = str(user.id)
    hub = get_hub()
    await websocket.accept()
    hub.connect(user_id, websocket)
    logger.info("websocket connected for user %s", user_id)
    try:
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        logger.info("websocket disconnected for user %s", user_id)
    finally:
        hub.disconnect(user_id, websocket)
