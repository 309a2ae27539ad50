"""Core functionality for the Talk With Doc server."""

from talk_with_doc.app.core.logging import setup_logging
from talk_with_doc.app.core.websockets import ConnectionManager
from talk_with_doc.app.core.websockets import ws_send_json_safe

__all__ = [
    "setup_logging",
    "ConnectionManager",
    "ws_send_json_safe",
]
