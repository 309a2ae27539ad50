"""
Persona speech generation.

This module provides the generation collaborator used by the persona
responders: one call that returns both the reply text and its audio
rendering, and a text-only call used as a degraded fallback.
"""

import logging
from dataclasses import dataclass
from typing import Any
from typing import Optional
from typing import Protocol

from talk_with_doc.services.error_handler import GenerationError
from talk_with_doc.services.error_handler import ProviderError
from talk_with_doc.services.provider_pool import ProviderPool


@dataclass
class GeneratedSpeech:
    """Reply text plus optional base64 encoded compressed audio."""

    text: str
    audio: Optional[str] = None


class SpeechGenerator(Protocol):
    """Generation collaborator for persona replies."""

    async def generate_speech(
        self, system_prompt: str, messages: list[dict[str, str]], voice: str
    ) -> GeneratedSpeech: ...

    async def generate_text(self, system_prompt: str, messages: list[dict[str, str]]) -> str: ...


class OpenAIAudioGenerator:
    """
    SpeechGenerator backed by an audio-capable chat completion model.

    ``generate_speech`` asks for text and audio in one request; the
    transcript of the audio is used as the reply text.
    """

    def __init__(
        self,
        provider_pool: ProviderPool,
        model: str = "gpt-4o-audio-preview",
        text_model: str = "gpt-4o-mini",
        audio_format: str = "mp3",
    ):
        self.provider_pool = provider_pool
        self.model = model
        self.text_model = text_model
        self.audio_format = audio_format
        self.logger = logging.getLogger(__name__)

    async def generate_speech(
        self, system_prompt: str, messages: list[dict[str, str]], voice: str
    ) -> GeneratedSpeech:
        """
        Generate a reply with an audio rendering.

        Args:
            system_prompt: Persona prompt including document context
            messages: Chat history in provider format
            voice: Provider voice name

        Returns:
            GeneratedSpeech: Reply text and base64 audio

        Raises:
            GenerationError: If the provider fails or returns no text
        """
        payload = {
            "model": self.model,
            "modalities": ["text", "audio"],
            "audio": {"voice": voice, "format": self.audio_format},
            "messages": [{"role": "system", "content": system_prompt}, *messages],
        }
        result = await self._complete(payload)
        message = result["choices"][0]["message"]
        audio = message.get("audio") or {}
        text = (audio.get("transcript") or message.get("content") or "").strip()
        if not text:
            raise GenerationError(f"Empty generation from {self.model}")

        return GeneratedSpeech(text=text, audio=audio.get("data") or None)

    async def generate_text(self, system_prompt: str, messages: list[dict[str, str]]) -> str:
        """Generate a text-only reply."""
        payload = {
            "model": self.text_model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
        }
        result = await self._complete(payload)
        text = (result["choices"][0]["message"].get("content") or "").strip()
        if not text:
            raise GenerationError(f"Empty generation from {self.text_model}")
        return text

    async def _complete(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            result = await self.provider_pool.chat_completion(payload)
        except ProviderError as e:
            raise GenerationError(f"Completion from {payload['model']} failed: {e}") from e

        choices = result.get("choices") if isinstance(result, dict) else None
        if not choices or not isinstance(choices[0].get("message"), dict):
            raise GenerationError(f"Malformed completion from {payload['model']}")
        return result
