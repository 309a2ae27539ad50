"""
Speech-to-text collaborator for assembled utterances.
"""

import logging
from typing import Protocol
from typing import Sequence

from talk_with_doc.services.error_handler import ProviderError
from talk_with_doc.services.error_handler import TranscriptionError
from talk_with_doc.services.provider_pool import ProviderPool
from talk_with_doc.voice.audio import AudioChunk
from talk_with_doc.voice.audio import assemble_utterance
from talk_with_doc.voice.audio import pcm16_to_wav


class Transcriber(Protocol):
    """Batch transcription of one utterance."""

    async def transcribe(self, chunks: Sequence[AudioChunk]) -> str: ...


class WhisperTranscriber:
    """Transcriber backed by an OpenAI-compatible transcription endpoint."""

    def __init__(self, provider_pool: ProviderPool, model: str = "whisper-1", language: str = "en"):
        self.provider_pool = provider_pool
        self.model = model
        self.language = language
        self.logger = logging.getLogger(__name__)

    async def transcribe(self, chunks: Sequence[AudioChunk]) -> str:
        """
        Transcribe the utterance held in ``chunks``.

        A provider failure is logged and reported as an empty transcript, which
        callers treat as a no-op turn.

        Args:
            chunks: Audio chunks in any order

        Returns:
            str: Transcribed text, possibly empty

        Raises:
            TranscriptionError: If the chunks cannot form one WAV utterance
        """
        sample_rates = {chunk.sample_rate for chunk in chunks}
        if len(sample_rates) > 1:
            raise TranscriptionError(f"Utterance mixes sample rates {sorted(sample_rates)}")

        pcm, sample_rate = assemble_utterance(chunks)
        if len(pcm) % 2:
            raise TranscriptionError(f"Utterance has a partial PCM16 frame ({len(pcm)} bytes)")
        if not pcm:
            return ""

        wav = pcm16_to_wav(pcm, sample_rate)
        self.logger.info(f"Transcribing {len(pcm)} bytes of audio at {sample_rate} Hz")
        try:
            text = await self.provider_pool.transcribe(wav, self.model, self.language)
        except ProviderError as e:
            self.logger.error(f"Transcription failed: {e}")
            return ""
        return text.strip()
