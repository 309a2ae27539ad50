"""
Voice WebSocket endpoint for Talk With Doc.

This module provides the ``/ws/voice`` endpoint. Every connection gets its
own ``ConnectionSession``; frames are handed to it one at a time.
"""

import logging
import time
from functools import partial

from fastapi import WebSocket
from fastapi import WebSocketDisconnect
from starlette.websockets import WebSocketState

from talk_with_doc.app.core.dependencies import get_connection_manager
from talk_with_doc.app.core.dependencies import get_orchestrator
from talk_with_doc.app.core.dependencies import get_transcriber
from talk_with_doc.app.core.websockets import ws_send_json_safe
from talk_with_doc.app.schemas.websocket import error_event
from talk_with_doc.services import ERROR_CODES
from talk_with_doc.voice.session import ConnectionSession

logger = logging.getLogger(__name__)


async def voice_websocket(websocket: WebSocket, app):
    """WebSocket endpoint for the spoken critic/creative dialogue."""
    connection_manager = get_connection_manager(app)
    settings = app.state.settings
    session = ConnectionSession(
        send=partial(ws_send_json_safe, websocket),
        orchestrator=get_orchestrator(app),
        transcriber=get_transcriber(app),
        store=getattr(app.state, "store", None),
        max_history_messages=settings.max_history_messages,
    )
    connection_start_time = time.time()

    await connection_manager.connect(websocket, session.visitor_id)
    try:
        while not session.closed:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            text = message.get("text")
            if text is None:
                await ws_send_json_safe(
                    websocket,
                    error_event("Binary frames are not supported.", ERROR_CODES["VALIDATION_ERROR"]),
                )
                continue

            await session.handle_message(text)
    except WebSocketDisconnect:
        logger.info(f"Voice WebSocket disconnected: {session.visitor_id}")
    finally:
        await session.close()
        connection_manager.disconnect(session.visitor_id)
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            await websocket.close()
        logger.info(
            f"Voice connection {session.visitor_id} lasted "
            f"{time.time() - connection_start_time:.1f}s"
        )
