"""
WebSocket utilities for Talk With Doc.

This module provides helper functions and classes for WebSocket connections,
including a connection manager and safe send functions.
"""

import logging
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)


async def ws_send_json_safe(ws: WebSocket, data: dict[str, Any]) -> bool:
    """
    Safely send JSON data over a WebSocket connection.

    Args:
        ws: WebSocket connection
        data: Data to send

    Returns:
        True if successful, False otherwise
    """
    try:
        if ws.application_state == WebSocketState.CONNECTED:
            await ws.send_json(data)
            return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"WebSocket gone while sending {data.get('type')}: {e}")
    except Exception as e:
        logger.error(f"Failed to send JSON over WebSocket: {str(e)}")
    return False


class ConnectionManager:
    """Track live voice connections by visitor id."""

    def __init__(self):
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, visitor_id: str):
        """
        Accept a WebSocket connection and store it.

        Args:
            websocket: WebSocket connection
            visitor_id: Server generated visitor identifier
        """
        await websocket.accept()
        self.active_connections[visitor_id] = websocket
        logger.info(f"WebSocket connected for visitor {visitor_id}")

    def disconnect(self, visitor_id: str):
        """
        Remove a WebSocket connection.

        Args:
            visitor_id: Visitor identifier
        """
        if self.active_connections.pop(visitor_id, None) is not None:
            logger.info(f"WebSocket disconnected for visitor {visitor_id}")

    def __len__(self) -> int:
        return len(self.active_connections)
