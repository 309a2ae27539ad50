"""
Audio Streaming Client.

Speaks the voice WebSocket protocol: sends speech boundaries and PCM16
chunks as they are produced, and plays persona audio returned by the server
through a FIFO playback queue.
"""

import asyncio
import contextlib
import json
import logging
import time
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Optional

import websockets
from websockets.exceptions import ConnectionClosed

from talk_with_doc.client.playback import AudioPlayer
from talk_with_doc.client.playback import PlaybackQueue
from talk_with_doc.services.constants import get_timeout
from talk_with_doc.voice.audio import encode_audio
from talk_with_doc.voice.audio import float_to_pcm16

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


def now_ms() -> int:
    return int(time.time() * 1000)


class AudioStreamingClient:
    """
    Client side of the voice protocol.

    Recording pause state is written only by the playback side (``pause`` /
    ``resume``); the capture side only reads it. Both operations are
    idempotent. Agent replies that arrive between our ``speech_start`` and the
    server's ``interrupt`` belong to the abandoned turn and are dropped.
    """

    def __init__(
        self,
        url: str,
        user_id: str,
        session_id: str,
        document_id: str,
        player: AudioPlayer,
        sample_rate: int = 16000,
        connector: Callable[..., Awaitable[Any]] = websockets.connect,
    ):
        self.url = url
        self.user_id = user_id
        self.session_id = session_id
        self.document_id = document_id
        self.sample_rate = sample_rate
        self.connector = connector

        self.playback = PlaybackQueue(player, on_start=self.pause, on_idle=self.resume)
        self.ws = None
        self.visitor_id: Optional[str] = None
        self.sequence = 0
        self.is_streaming = False
        self.is_recording_paused = False
        self.awaiting_interrupt = False

        self.on_transcript: Optional[EventCallback] = None
        self.on_agent_response: Optional[EventCallback] = None
        self.on_error: Optional[EventCallback] = None
        self.on_interrupt: Optional[EventCallback] = None

        self._pause_listeners: list[Callable[[bool], None]] = []
        self._ack = asyncio.Event()
        self._receiver: Optional[asyncio.Task] = None
        self._handlers = {
            "connection_ack": self._on_connection_ack,
            "interrupt": self._on_interrupt,
            "transcript": self._on_transcript,
            "agent_response": self._on_agent_response,
            "error": self._on_error,
        }

    def add_pause_listener(self, listener: Callable[[bool], None]) -> None:
        """Call ``listener(paused)`` whenever the recording pause state changes."""
        self._pause_listeners.append(listener)

    async def connect(self) -> str:
        """
        Open the connection and complete the ``connection_init`` handshake.

        Returns:
            str: Visitor id assigned by the server
        """
        self.ws = await self.connector(self.url)
        self._receiver = asyncio.create_task(self._receive_loop())
        await self._send(
            {
                "type": "connection_init",
                "userId": self.user_id,
                "sessionId": self.session_id,
                "documentId": self.document_id,
            }
        )
        await asyncio.wait_for(self._ack.wait(), timeout=get_timeout("ws_ack_timeout"))
        logger.info(f"Connected to {self.url} as visitor {self.visitor_id}")
        return self.visitor_id

    async def start_speech(self, is_barge_in: bool = False) -> None:
        """Announce a new utterance; sent before any of its chunks."""
        self.sequence = 0
        self.is_streaming = True
        self.awaiting_interrupt = True
        await self._send(
            {
                "type": "speech_start",
                "userId": self.user_id,
                "sessionId": self.session_id,
                "documentId": self.document_id,
                "timestamp": now_ms(),
                "isBargeIn": is_barge_in,
            }
        )

    async def send_audio(self, samples) -> bool:
        """
        Encode and send one block of float samples.

        Returns:
            bool: False when no utterance is open or recording is paused
        """
        if not self.is_streaming or self.is_recording_paused:
            return False
        await self._send(
            {
                "type": "audio_chunk",
                "data": encode_audio(float_to_pcm16(samples)),
                "sequence": self.sequence,
                "sampleRate": self.sample_rate,
                "timestamp": now_ms(),
            }
        )
        self.sequence += 1
        return True

    async def end_speech(self, duration_ms: float) -> None:
        """Close the utterance; triggers transcription on the server."""
        self.is_streaming = False
        await self._send({"type": "speech_end", "duration": duration_ms})

    def cancel_speech(self) -> None:
        """Stop streaming an utterance that was dropped as noise."""
        self.is_streaming = False

    def pause(self) -> None:
        if self.is_recording_paused:
            return
        self.is_recording_paused = True
        self._notify_pause(True)

    def resume(self) -> None:
        if not self.is_recording_paused:
            return
        self.is_recording_paused = False
        self._notify_pause(False)

    async def stop_all_audio(self) -> None:
        """Clear queued audio, halt the current segment and resume capture."""
        await self.playback.stop_all()
        self.resume()

    async def disconnect(self) -> None:
        """Say goodbye and release the connection."""
        await self.playback.stop_all()
        if self.ws is not None:
            with contextlib.suppress(ConnectionClosed):
                await self._send({"type": "disconnect", "userId": self.user_id})
            await self.ws.close()
        if self._receiver is not None:
            self._receiver.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receiver
        self.ws = None
        self._receiver = None
        logger.info("Disconnected")

    async def _send(self, payload: dict[str, Any]) -> None:
        if self.ws is None:
            raise RuntimeError("Not connected")
        await self.ws.send(json.dumps(payload))

    async def _receive_loop(self) -> None:
        try:
            async for raw in self.ws:
                try:
                    event = json.loads(raw)
                except ValueError as e:
                    logger.warning(f"Dropping malformed server message: {e}")
                    continue
                await self.dispatch(event)
        except ConnectionClosed as e:
            logger.info(f"Connection closed by server: {e}")

    async def dispatch(self, event: dict[str, Any]) -> None:
        """Route one server event to its handler."""
        handler = self._handlers.get(event.get("type"))
        if handler is None:
            logger.debug(f"Ignoring server event {event.get('type')}")
            return
        await handler(event)

    async def _on_connection_ack(self, event: dict[str, Any]) -> None:
        self.visitor_id = event.get("visitorId")
        self._ack.set()

    async def _on_interrupt(self, event: dict[str, Any]) -> None:
        self.awaiting_interrupt = False
        await self.stop_all_audio()
        if self.on_interrupt is not None:
            await self.on_interrupt(event)

    async def _on_transcript(self, event: dict[str, Any]) -> None:
        if self.on_transcript is not None:
            await self.on_transcript(event)

    async def _on_agent_response(self, event: dict[str, Any]) -> None:
        if self.awaiting_interrupt:
            logger.debug(f"Dropping stale {event.get('agentId')} reply")
            return
        if event.get("audio"):
            self.playback.enqueue(event["audio"], event.get("agentId", ""))
        if self.on_agent_response is not None:
            await self.on_agent_response(event)

    async def _on_error(self, event: dict[str, Any]) -> None:
        logger.warning(f"Server error [{event.get('code')}]: {event.get('message')}")
        if self.on_error is not None:
            await self.on_error(event)

    def _notify_pause(self, paused: bool) -> None:
        for listener in self._pause_listeners:
            listener(paused)
