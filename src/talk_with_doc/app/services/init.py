"""
Service initialization for Talk With Doc.

This module builds the collaborators shared by every connection and stores
them on ``app.state``. Each collaborator can be injected, so tests and the
CLI substitute fakes or reuse pieces without a running provider.
"""

import logging
from typing import Any
from typing import Dict
from typing import Optional

from fastapi import FastAPI

from talk_with_doc.app.core.websockets import ConnectionManager
from talk_with_doc.core.settings import Settings
from talk_with_doc.dialogue.orchestrator import DialogueOrchestrator
from talk_with_doc.dialogue.personas import build_responders
from talk_with_doc.dialogue.personas import default_profiles
from talk_with_doc.dialogue.router import ModelRoutingJudge
from talk_with_doc.dialogue.router import RoutingJudge
from talk_with_doc.dialogue.router import TurnRouter
from talk_with_doc.services import DEFAULTS
from talk_with_doc.services.provider_pool import ProviderPool
from talk_with_doc.services.storage import ConversationStore
from talk_with_doc.services.storage import InMemoryConversationStore
from talk_with_doc.voice.generation import OpenAIAudioGenerator
from talk_with_doc.voice.generation import SpeechGenerator
from talk_with_doc.voice.transcription import Transcriber
from talk_with_doc.voice.transcription import WhisperTranscriber

logger = logging.getLogger(__name__)


def create_provider_pool(settings: Settings) -> ProviderPool:
    """Create the pooled provider client from settings."""
    config = {
        "connection_pool": {
            "max_connections": DEFAULTS["max_connections"],
            "timeout": {"read": settings.request_timeout},
        }
    }
    return ProviderPool(settings.api_base_url, settings.openai_api_key, config=config)


def build_orchestrator(
    settings: Settings,
    generator: SpeechGenerator,
    judge: Optional[RoutingJudge] = None,
) -> DialogueOrchestrator:
    """Build the router, the persona dispatch table and the orchestrator."""
    router = TurnRouter(judge=judge, max_persona_turns=settings.max_persona_turns)
    responders = build_responders(
        generator, default_profiles(settings.critic_voice, settings.creative_voice)
    )
    return DialogueOrchestrator(
        router,
        responders,
        max_history_messages=settings.max_history_messages,
        resume_user_window=settings.resume_user_window,
        document_context_chars=settings.document_context_chars,
    )


def build_services(
    settings: Settings,
    store: Optional[ConversationStore] = None,
    provider_pool: Optional[ProviderPool] = None,
    transcriber: Optional[Transcriber] = None,
    generator: Optional[SpeechGenerator] = None,
    judge: Optional[RoutingJudge] = None,
) -> Dict[str, Any]:
    """
    Build every shared service, filling in defaults for those not injected.

    Returns:
        Dict[str, Any]: Services keyed by their ``app.state`` name
    """
    provider_pool = provider_pool or create_provider_pool(settings)
    transcriber = transcriber or WhisperTranscriber(
        provider_pool, settings.transcription_model, settings.transcription_language
    )
    generator = generator or OpenAIAudioGenerator(
        provider_pool,
        model=settings.persona_model,
        text_model=settings.text_fallback_model,
        audio_format=settings.persona_audio_format,
    )
    judge = judge or ModelRoutingJudge(provider_pool, settings.router_model)

    return {
        "settings": settings,
        "store": store or InMemoryConversationStore(),
        "provider_pool": provider_pool,
        "transcriber": transcriber,
        "orchestrator": build_orchestrator(settings, generator, judge),
        "connection_manager": ConnectionManager(),
    }


def init_app(app: FastAPI, services: Dict[str, Any]) -> None:
    """Store the services on ``app.state``."""
    for name, service in services.items():
        setattr(app.state, name, service)
    logger.info(f"Services initialized: {', '.join(services)}")
