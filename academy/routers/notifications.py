# academy/routers/notifications.py
import asyncio
import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from academy.core.auth import decode_user_id
from academy.core.notifications import broker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["notifications"])


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket, token: str):
    """Push rank, points, claim and message events for the token's user."""
    user_id = decode_user_id(token)
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    async def forward(queue: asyncio.Queue):
        while True:
            await websocket.send_json(await queue.get())

    # Subscribe before accepting so nothing published after the handshake is missed
    queue = broker.subscribe(user_id)
    sender = None
    try:
        await websocket.accept()
        sender = asyncio.create_task(forward(queue))
        while True:
            # Incoming frames are ignored; this only notices the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("User %s disconnected from notifications", user_id)
    finally:
        if sender is not None:
            sender.cancel()
        broker.unsubscribe(user_id, queue)
