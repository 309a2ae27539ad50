"""
Voice client runtime.

Wires the microphone, the VAD monitor, the streaming client and playback
together. The monitor loop and the chunk pump run as two independent tasks
that share state only through the client's flags.
"""

import asyncio
import logging
from typing import Optional

from talk_with_doc.client.microphone import MicrophoneCapture
from talk_with_doc.client.streaming import AudioStreamingClient
from talk_with_doc.client.vad import VADEvent
from talk_with_doc.client.vad import VADEventType
from talk_with_doc.client.vad import VoiceActivityMonitor

logger = logging.getLogger(__name__)


class VoiceCapture:
    """Runs one live voice conversation until stopped."""

    def __init__(
        self,
        client: AudioStreamingClient,
        microphone: MicrophoneCapture,
        monitor: Optional[VoiceActivityMonitor] = None,
    ):
        self.client = client
        self.microphone = microphone
        self.monitor = monitor or VoiceActivityMonitor()
        self._tasks: list[asyncio.Task] = []

        # Playback pauses the monitor into barge-in mode and back
        client.add_pause_listener(self._on_pause_changed)

    def _on_pause_changed(self, paused: bool) -> None:
        if paused:
            self.monitor.pause()
        else:
            self.monitor.resume()

    async def handle_vad_event(self, event: VADEvent) -> None:
        """Translate monitor boundaries into protocol messages."""
        if event.type is VADEventType.BARGE_IN:
            await self.client.stop_all_audio()
            await self.client.start_speech(is_barge_in=True)
        elif event.type is VADEventType.SPEECH_START:
            await self.client.start_speech()
        elif event.type is VADEventType.SPEECH_END:
            await self.client.end_speech(event.duration_ms)
        elif event.type is VADEventType.SPEECH_DISCARDED:
            self.client.cancel_speech()

    async def _pump_frames(self) -> None:
        async for block in self.microphone.frames():
            await self.client.send_audio(block)

    async def run(self) -> None:
        """Open the microphone and stream until ``stop`` is called."""
        self.microphone.open()
        self.client.sample_rate = self.microphone.sample_rate
        self._tasks = [
            asyncio.create_task(self._pump_frames()),
            asyncio.create_task(
                self.monitor.run(self.microphone.latest_samples, self.handle_vad_event)
            ),
        ]
        logger.info("Listening")
        try:
            await asyncio.gather(*self._tasks)
        finally:
            self.stop()

    def stop(self) -> None:
        self.monitor.stop()
        self.microphone.close()
        for task in self._tasks:
            task.cancel()
