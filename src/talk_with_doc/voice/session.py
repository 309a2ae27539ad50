"""
Connection Session Manager for the voice WebSocket.

One ``ConnectionSession`` exists per live connection. It translates wire
messages into transcription and orchestration calls and owns the pending
audio buffer and the interrupt token shared with the in-flight turn.

States: ``uninitialized -> active`` on ``connection_init``; ``active`` while
speech messages flow; ``closed`` on ``disconnect`` or connection close.
"""

import asyncio
import contextlib
import logging
import uuid
from enum import Enum
from functools import partial
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Optional

from pydantic import ValidationError

from talk_with_doc.app.schemas.websocket import AudioChunkMessage
from talk_with_doc.app.schemas.websocket import ConnectionInitMessage
from talk_with_doc.app.schemas.websocket import DisconnectMessage
from talk_with_doc.app.schemas.websocket import SpeechEndMessage
from talk_with_doc.app.schemas.websocket import SpeechStartMessage
from talk_with_doc.app.schemas.websocket import agent_response_event
from talk_with_doc.app.schemas.websocket import connection_ack_event
from talk_with_doc.app.schemas.websocket import error_event
from talk_with_doc.app.schemas.websocket import interrupt_event
from talk_with_doc.app.schemas.websocket import parse_inbound
from talk_with_doc.app.schemas.websocket import transcript_event
from talk_with_doc.dialogue.orchestrator import DialogueOrchestrator
from talk_with_doc.dialogue.policy import trim_history
from talk_with_doc.dialogue.state import DialogueMessage
from talk_with_doc.dialogue.state import InterruptToken
from talk_with_doc.services.constants import DEFAULTS
from talk_with_doc.services.constants import ERROR_CODES
from talk_with_doc.services.error_handler import error_handler
from talk_with_doc.services.storage import ConversationStore
from talk_with_doc.voice.audio import AudioChunk
from talk_with_doc.voice.audio import decode_audio
from talk_with_doc.voice.transcription import Transcriber

logger = logging.getLogger(__name__)

SendEvent = Callable[[dict[str, Any]], Awaitable[Any]]


class SessionState(Enum):
    """Lifecycle of a connection session."""

    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


class ConnectionSession:
    """
    Per-connection protocol state machine.

    Invariants:
        * The audio buffer is only mutated by this connection's own messages
          and is cleared after every ``speech_end``, even on error.
        * Each utterance gets a fresh interrupt token; a ``speech_start``
          interrupts the token of any turn still in flight.
        * Turns run one at a time: a new pipeline waits for the previous
          one to return before it starts orchestrating.
        * No inbound message closes the connection except ``disconnect``.
    """

    def __init__(
        self,
        send: SendEvent,
        orchestrator: DialogueOrchestrator,
        transcriber: Transcriber,
        store: Optional[ConversationStore] = None,
        max_history_messages: int = DEFAULTS["max_history_messages"],
        max_audio_chunks: int = DEFAULTS["max_audio_chunks"],
    ):
        self.send = send
        self.orchestrator = orchestrator
        self.transcriber = transcriber
        self.store = store
        self.max_history_messages = max_history_messages
        self.max_audio_chunks = max_audio_chunks

        self.visitor_id = str(uuid.uuid4())
        self.state = SessionState.UNINITIALIZED
        self.user_id: Optional[str] = None
        self.session_id: Optional[str] = None
        self.document_id: Optional[str] = None
        self.doc_text = ""

        self.audio_buffer: list[AudioChunk] = []
        self.token = InterruptToken()
        self.history: list[DialogueMessage] = []
        self.resume_pending = False
        self.turn_task: Optional[asyncio.Task] = None

        self._handlers = {
            "connection_init": self._on_connection_init,
            "speech_start": self._on_speech_start,
            "audio_chunk": self._on_audio_chunk,
            "speech_end": self._on_speech_end,
            "disconnect": self._on_disconnect,
        }

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def turn_in_flight(self) -> bool:
        return self.turn_task is not None and not self.turn_task.done()

    async def handle_message(self, raw: Any) -> None:
        """
        Process one inbound frame.

        Malformed frames and handler failures are reported to the client as
        ``error`` events; the connection stays open.
        """
        if self.closed:
            logger.debug(f"[{self.visitor_id}] Ignoring message on closed session")
            return

        try:
            message = parse_inbound(raw)
        except ValidationError as e:
            await self._send_error(e, {"visitor_id": self.visitor_id}, logging.WARNING)
            return

        if self.state is SessionState.UNINITIALIZED and message.type not in (
            "connection_init",
            "disconnect",
        ):
            logger.warning(f"[{self.visitor_id}] {message.type} before connection_init")
            await self.send(
                error_event(
                    "Send connection_init before streaming audio.",
                    ERROR_CODES["NOT_INITIALIZED"],
                )
            )
            return

        try:
            await self._handlers[message.type](message)
        except Exception as e:
            await self._send_error(e, {"visitor_id": self.visitor_id, "type": message.type})

    async def _on_connection_init(self, message: ConnectionInitMessage) -> None:
        self.user_id = message.user_id
        self.session_id = message.session_id
        self.document_id = message.document_id
        self.doc_text = await self._load_document(message.document_id)
        self.state = SessionState.ACTIVE
        logger.info(
            f"[{self.visitor_id}] Session active: user={self.user_id} "
            f"session={self.session_id} document={self.document_id} "
            f"({len(self.doc_text)} chars)"
        )
        await self.send(connection_ack_event(self.visitor_id))

    async def _on_speech_start(self, message: SpeechStartMessage) -> None:
        if self.turn_in_flight:
            self.token.interrupt()
            self.resume_pending = True
            logger.info(
                f"[{self.visitor_id}] Interrupting turn in flight "
                f"(barge-in={message.is_barge_in})"
            )

        self.audio_buffer = []
        self.token = InterruptToken()
        await self.send(interrupt_event())

    async def _on_audio_chunk(self, message: AudioChunkMessage) -> None:
        if len(self.audio_buffer) >= self.max_audio_chunks:
            logger.warning(f"[{self.visitor_id}] Audio buffer full, dropping chunk {message.sequence}")
            return
        self.audio_buffer.append(
            AudioChunk(
                data=decode_audio(message.data),
                sequence=message.sequence,
                sample_rate=message.sample_rate,
                timestamp=message.timestamp or 0,
            )
        )

    async def _on_speech_end(self, message: SpeechEndMessage) -> None:
        chunks, self.audio_buffer = self.audio_buffer, []
        if not chunks:
            logger.debug(f"[{self.visitor_id}] speech_end with empty buffer")
            return

        logger.info(
            f"[{self.visitor_id}] speech_end: {len(chunks)} chunks, duration={message.duration}"
        )
        self.turn_task = asyncio.create_task(
            self._run_pipeline(chunks, self.token, self.turn_task)
        )

    async def _on_disconnect(self, message: DisconnectMessage) -> None:
        logger.info(f"[{self.visitor_id}] Client disconnect (user={message.user_id})")
        await self.close()

    async def _run_pipeline(
        self,
        chunks: list[AudioChunk],
        token: InterruptToken,
        previous: Optional[asyncio.Task],
    ) -> None:
        """Transcribe one utterance and run the dialogue turn for it."""
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        try:
            text = await self.transcriber.transcribe(chunks)
            await self.send(transcript_event(text))
            if not text:
                logger.info(f"[{self.visitor_id}] Empty transcript, no turn started")
                return
            if token.is_set:
                logger.info(f"[{self.visitor_id}] User spoke again during transcription")
                return

            await self._persist("user", text)

            run = self.orchestrator.run_turn
            if self.resume_pending:
                run = self.orchestrator.resume_with_interruption
            self.resume_pending = False

            result = await run(
                text,
                document_context=self.doc_text,
                prior_history=self.history,
                token=token,
                on_output=partial(self._deliver, token),
            )
            self.history = trim_history(result.history, self.max_history_messages)
            if result.interrupted:
                self.resume_pending = True
        except Exception as e:
            await self._send_error(e, {"visitor_id": self.visitor_id, "stage": "turn"})

    async def _deliver(self, token: InterruptToken, message: DialogueMessage) -> None:
        if token.is_set:
            return
        await self._persist(message.speaker, message.text)
        if token.is_set:
            logger.info(f"[{self.visitor_id}] Dropping interrupted {message.speaker} reply")
            return
        await self.send(agent_response_event(message.speaker, message.text, message.audio))

    async def _load_document(self, document_id: str) -> str:
        if self.store is None:
            return ""
        try:
            document = await self.store.get_document(document_id)
        except Exception as e:
            error_handler.log_error(e, {"document_id": document_id})
            return ""
        if document is None:
            logger.warning(f"[{self.visitor_id}] Document {document_id} not found")
            return ""
        return document.doc_text

    async def _persist(self, sender: str, text: str) -> None:
        if self.store is None or self.document_id is None:
            return
        try:
            await self.store.save_message(self.document_id, sender, text)
        except Exception as e:
            error_handler.log_error(e, {"document_id": self.document_id, "sender": sender})

    async def _send_error(
        self, error: Exception, context: dict[str, Any], level: int = logging.ERROR
    ) -> None:
        payload = error_handler.handle_error(error, context, level)
        await self.send(error_event(payload["message"], payload["code"]))

    async def wait_for_turn(self) -> None:
        """Wait until the current turn, if any, has returned."""
        if self.turn_task is not None:
            await asyncio.wait([self.turn_task])

    async def close(self) -> None:
        """Release all per-connection state; idempotent."""
        if self.closed:
            return
        self.state = SessionState.CLOSED
        self.token.interrupt()
        self.audio_buffer = []
        task, self.turn_task = self.turn_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info(f"[{self.visitor_id}] Session closed")
