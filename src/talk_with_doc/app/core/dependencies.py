"""
FastAPI dependency injection for core services.

This module provides dependency functions for the services the application
factory stores on ``app.state``:
• Conversation store
• Dialogue orchestrator
• Transcriber
• Connection manager
"""

from fastapi import Request

from talk_with_doc.app.core.websockets import ConnectionManager
from talk_with_doc.dialogue.orchestrator import DialogueOrchestrator
from talk_with_doc.services.storage import ConversationStore
from talk_with_doc.voice.transcription import Transcriber


def _state_attr(app, name: str):
    value = getattr(app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized")
    return value


def get_store(request: Request) -> ConversationStore:
    """Get the conversation store instance."""
    return _state_attr(request.app, "store")


def get_orchestrator(app) -> DialogueOrchestrator:
    """Get the dialogue orchestrator instance."""
    return _state_attr(app, "orchestrator")


def get_transcriber(app) -> Transcriber:
    """Get the transcriber instance."""
    return _state_attr(app, "transcriber")


def get_connection_manager(app) -> ConnectionManager:
    """Get the connection manager instance."""
    return _state_attr(app, "connection_manager")
