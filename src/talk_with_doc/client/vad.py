"""
Volume/VAD Monitor for the voice client.

Classifies the live microphone signal into speech start, speech end and
barge-in events from RMS amplitude alone. The monitor knows nothing about
transcription or the dialogue; it only reports boundaries.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable
from typing import Callable
from typing import Optional

from talk_with_doc.core.settings import VADConfig
from talk_with_doc.voice.audio import normalized_volume
from talk_with_doc.voice.audio import rms

logger = logging.getLogger(__name__)


class VADEventType(Enum):
    """Boundaries reported by the monitor."""

    SPEECH_START = "speech_start"
    BARGE_IN = "barge_in"
    SPEECH_END = "speech_end"
    SPEECH_DISCARDED = "speech_discarded"  # shorter than the minimum duration


@dataclass(frozen=True)
class VADEvent:
    type: VADEventType
    timestamp: float
    volume: float = 0.0
    duration_ms: Optional[float] = None


class VoiceActivityMonitor:
    """
    Speech/silence state machine driven by one volume sample per tick.

    While listening, volume above ``speech_threshold`` starts speech and
    restarts the silence timer. Once the timer reaches
    ``silence_duration_ms`` the utterance ends; if its voiced span is shorter
    than ``min_speech_duration_ms`` it is discarded instead.

    While paused (agent audio playing) only ``barge_in_threshold`` counts;
    crossing it reports a barge-in, leaves paused mode and starts speech.
    """

    def __init__(self, config: Optional[VADConfig] = None):
        self.config = config or VADConfig()
        self.is_speaking = False
        self.is_paused = False
        self.volume = 0.0
        self.speech_started_at: Optional[float] = None
        self.last_voice_at: Optional[float] = None
        self._running = False

    @property
    def active_threshold(self) -> float:
        if self.is_paused:
            return self.config.barge_in_threshold
        return self.config.speech_threshold

    def pause(self) -> None:
        """Enter playback mode; any speech in progress is dropped."""
        if self.is_paused:
            return
        self.is_paused = True
        self._reset_speech()
        logger.debug("Monitor paused for playback")

    def resume(self) -> None:
        if not self.is_paused:
            return
        self.is_paused = False
        logger.debug("Monitor resumed")

    def tick(self, samples, now: Optional[float] = None) -> list[VADEvent]:
        """
        Evaluate one analysis window.

        Args:
            samples: Latest float samples from the microphone
            now: Monotonic time in seconds; defaults to ``time.monotonic()``

        Returns:
            list[VADEvent]: Events produced by this tick, possibly empty
        """
        now = time.monotonic() if now is None else now
        level = rms(samples)
        volume = normalized_volume(samples)
        self.volume = volume

        if self.is_paused:
            if level > self.config.barge_in_threshold:
                self.is_paused = False
                self._start_speech(now)
                logger.info(f"Barge-in detected at RMS {level:.3f}")
                return [VADEvent(VADEventType.BARGE_IN, now, volume)]
            return []

        if level > self.config.speech_threshold:
            self.last_voice_at = now
            if not self.is_speaking:
                self._start_speech(now)
                return [VADEvent(VADEventType.SPEECH_START, now, volume)]
            return []

        if not self.is_speaking:
            return []

        silence_ms = (now - self.last_voice_at) * 1000
        if silence_ms < self.config.silence_duration_ms:
            return []

        voiced_ms = (self.last_voice_at - self.speech_started_at) * 1000
        elapsed_ms = (now - self.speech_started_at) * 1000
        self._reset_speech()
        if voiced_ms < self.config.min_speech_duration_ms:
            logger.debug(f"Discarding {voiced_ms:.0f}ms utterance as noise")
            return [VADEvent(VADEventType.SPEECH_DISCARDED, now, volume, voiced_ms)]
        return [VADEvent(VADEventType.SPEECH_END, now, volume, elapsed_ms)]

    async def run(
        self,
        read_samples: Callable[[], object],
        on_event: Callable[[VADEvent], Awaitable[None]],
    ) -> None:
        """Evaluate a tick every ``tick_interval_s`` until ``stop`` is called."""
        self._running = True
        while self._running:
            for event in self.tick(read_samples()):
                await on_event(event)
            await asyncio.sleep(self.config.tick_interval_s)

    def stop(self) -> None:
        self._running = False

    def _start_speech(self, now: float) -> None:
        self.is_speaking = True
        self.speech_started_at = now
        self.last_voice_at = now

    def _reset_speech(self) -> None:
        self.is_speaking = False
        self.speech_started_at = None
        self.last_voice_at = None
