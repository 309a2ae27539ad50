"""
FastAPI application factory for Talk With Doc.

This module creates the application with the REST endpoints, the voice
WebSocket endpoint and the shared services.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi import WebSocket
from fastapi.middleware.cors import CORSMiddleware

from talk_with_doc import __version__
from talk_with_doc.app.api import api_router
from talk_with_doc.app.core import setup_logging
from talk_with_doc.app.services.init import build_services
from talk_with_doc.app.services.init import init_app
from talk_with_doc.app.ws.voice import voice_websocket
from talk_with_doc.core.settings import Settings
from talk_with_doc.core.settings import get_settings
from talk_with_doc.dialogue.router import RoutingJudge
from talk_with_doc.services.provider_pool import ProviderPool
from talk_with_doc.services.storage import ConversationStore
from talk_with_doc.voice.generation import SpeechGenerator
from talk_with_doc.voice.transcription import Transcriber

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the provider pool on startup and close it on shutdown."""
    provider_pool = app.state.provider_pool
    await provider_pool.initialize()
    logger.info("Talk With Doc started")
    try:
        yield
    finally:
        await provider_pool.shutdown()
        logger.info("Talk With Doc stopped")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ConversationStore] = None,
    provider_pool: Optional[ProviderPool] = None,
    transcriber: Optional[Transcriber] = None,
    generator: Optional[SpeechGenerator] = None,
    judge: Optional[RoutingJudge] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Talk With Doc",
        description="Spoken critic/creative dialogue about an open document",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    init_app(
        app,
        build_services(
            settings,
            store=store,
            provider_pool=provider_pool,
            transcriber=transcriber,
            generator=generator,
            judge=judge,
        ),
    )

    app.include_router(api_router)

    @app.websocket("/ws/voice")
    async def websocket_voice(websocket: WebSocket):
        """WebSocket endpoint for the spoken dialogue."""
        await voice_websocket(websocket, app)

    logger.info("FastAPI application created successfully")
    return app
