"""
Tests for the Audio Streaming Client.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import numpy as np
import pytest
from conftest import wait_until

from talk_with_doc.client.streaming import AudioStreamingClient
from talk_with_doc.voice.audio import decode_audio
from talk_with_doc.voice.audio import encode_audio


class FakeConnection:
    """Stands in for a websockets client connection."""

    def __init__(self):
        self.sent = []
        self.incoming = asyncio.Queue()
        self.closed = False

    async def send(self, data):
        message = json.loads(data)
        self.sent.append(message)
        if message["type"] == "connection_init":
            await self.push({"type": "connection_ack", "visitorId": "visitor-1", "timestamp": 1})

    async def push(self, event):
        await self.incoming.put(json.dumps(event))

    def __aiter__(self):
        return self

    async def __anext__(self):
        raw = await self.incoming.get()
        if raw is None:
            raise StopAsyncIteration
        return raw

    async def close(self):
        self.closed = True
        await self.incoming.put(None)

    def types(self):
        return [message["type"] for message in self.sent]


class GatedPlayer:
    def __init__(self):
        self.gate = asyncio.Event()
        self.played = []

    async def play(self, audio):
        self.played.append(audio)
        await self.gate.wait()

    async def stop(self):
        self.gate.set()


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def player():
    return GatedPlayer()


@pytest.fixture
def streaming_client(connection, player):
    return AudioStreamingClient(
        "ws://test/ws/voice",
        user_id="user-1",
        session_id="session-1",
        document_id="doc-1",
        player=player,
        connector=AsyncMock(return_value=connection),
    )


@pytest.mark.unit
class TestAudioStreamingClient:
    @pytest.mark.asyncio
    async def test_connect_handshake(self, streaming_client, connection):
        visitor_id = await streaming_client.connect()

        assert visitor_id == "visitor-1"
        assert connection.sent[0] == {
            "type": "connection_init",
            "userId": "user-1",
            "sessionId": "session-1",
            "documentId": "doc-1",
        }
        await streaming_client.disconnect()
        assert connection.types()[-1] == "disconnect"
        assert connection.closed

    @pytest.mark.asyncio
    async def test_utterance_framing(self, streaming_client, connection):
        await streaming_client.connect()

        assert not await streaming_client.send_audio(np.zeros(160))
        await streaming_client.start_speech()
        for _ in range(3):
            assert await streaming_client.send_audio(np.full(160, 0.5))
        await streaming_client.end_speech(1234.0)

        assert connection.types()[1:] == [
            "speech_start",
            "audio_chunk",
            "audio_chunk",
            "audio_chunk",
            "speech_end",
        ]
        chunks = [message for message in connection.sent if message["type"] == "audio_chunk"]
        assert [chunk["sequence"] for chunk in chunks] == [0, 1, 2]
        assert all(chunk["sampleRate"] == 16000 for chunk in chunks)
        assert len(decode_audio(chunks[0]["data"])) == 320
        assert connection.sent[-1]["duration"] == 1234.0
        assert connection.sent[1]["isBargeIn"] is False

    @pytest.mark.asyncio
    async def test_sequence_restarts_per_utterance(self, streaming_client, connection):
        await streaming_client.connect()

        await streaming_client.start_speech()
        await streaming_client.send_audio(np.zeros(16))
        await streaming_client.end_speech(400)
        await streaming_client.start_speech(is_barge_in=True)
        await streaming_client.send_audio(np.zeros(16))

        chunks = [message for message in connection.sent if message["type"] == "audio_chunk"]
        assert [chunk["sequence"] for chunk in chunks] == [0, 0]
        assert connection.sent[-2]["isBargeIn"] is True

    @pytest.mark.asyncio
    async def test_pause_and_resume_are_idempotent(self, streaming_client, connection):
        changes = []
        streaming_client.add_pause_listener(changes.append)
        await streaming_client.connect()
        await streaming_client.start_speech()

        streaming_client.pause()
        streaming_client.pause()
        assert not await streaming_client.send_audio(np.zeros(16))

        streaming_client.resume()
        streaming_client.resume()
        assert await streaming_client.send_audio(np.zeros(16))

        assert changes == [True, False]

    @pytest.mark.asyncio
    async def test_agent_audio_pauses_recording_until_interrupt(
        self, streaming_client, connection, player
    ):
        replies = []

        async def on_reply(event):
            replies.append(event)

        streaming_client.on_agent_response = on_reply
        await streaming_client.connect()

        await connection.push(
            {"type": "agent_response", "agentId": "critic", "text": "Hm.", "audio": encode_audio(b"a")}
        )
        await wait_until(lambda: player.played == [b"a"])
        assert streaming_client.is_recording_paused

        await connection.push({"type": "interrupt", "timestamp": 2})
        await wait_until(lambda: not streaming_client.is_recording_paused)

        assert len(streaming_client.playback) == 0
        assert [reply["agentId"] for reply in replies] == ["critic"]

    @pytest.mark.asyncio
    async def test_replies_before_interrupt_ack_are_dropped(
        self, streaming_client, connection, player
    ):
        replies = []

        async def on_reply(event):
            replies.append(event)

        streaming_client.on_agent_response = on_reply
        await streaming_client.connect()
        await streaming_client.start_speech(is_barge_in=True)

        await connection.push(
            {"type": "agent_response", "agentId": "creative", "text": "old", "audio": encode_audio(b"x")}
        )
        await connection.push({"type": "interrupt", "timestamp": 3})
        await connection.push({"type": "agent_response", "agentId": "critic", "text": "new"})
        await wait_until(lambda: len(replies) == 1)

        assert replies[0]["text"] == "new"
        assert player.played == []

    @pytest.mark.asyncio
    async def test_stop_all_audio_when_idle(self, streaming_client):
        await streaming_client.stop_all_audio()
        await streaming_client.stop_all_audio()

        assert not streaming_client.is_recording_paused

    @pytest.mark.asyncio
    async def test_transcript_and_error_callbacks(self, streaming_client, connection):
        seen = []

        async def record(event):
            seen.append(event["type"])

        streaming_client.on_transcript = record
        streaming_client.on_error = record
        await streaming_client.connect()

        await connection.push({"type": "transcript", "text": "hello", "timestamp": 1})
        await connection.push(
            {"type": "error", "message": "nope", "code": "VALIDATION_ERROR", "timestamp": 1}
        )
        await connection.incoming.put("not json")
        await connection.push({"type": "mystery"})
        await wait_until(lambda: len(seen) == 2)

        assert seen == ["transcript", "error"]
