"""
Tests for the client playback queue.
"""

import asyncio

import pytest
from conftest import wait_until

from talk_with_doc.client.playback import PlaybackQueue
from talk_with_doc.voice.audio import encode_audio


class RecordingPlayer:
    """AudioPlayer fake; segments listed in ``fail`` raise, ``gate`` blocks playback."""

    def __init__(self, fail=(), gate=None):
        self.fail = set(fail)
        self.gate = gate
        self.started = []
        self.finished = []
        self.stops = 0

    async def play(self, audio):
        self.started.append(audio)
        if audio in self.fail:
            raise RuntimeError(f"cannot play {audio!r}")
        if self.gate is not None:
            await self.gate.wait()
        self.finished.append(audio)

    async def stop(self):
        self.stops += 1


def segment(name):
    return encode_audio(name.encode())


@pytest.mark.unit
class TestPlaybackQueue:
    @pytest.mark.asyncio
    async def test_segments_play_in_fifo_order(self):
        player = RecordingPlayer()
        queue = PlaybackQueue(player)

        for name in ("one", "two", "three"):
            queue.enqueue(segment(name))
        await queue.join()

        assert player.finished == [b"one", b"two", b"three"]
        assert not queue.is_playing

    @pytest.mark.asyncio
    async def test_failed_segment_is_skipped(self):
        player = RecordingPlayer(fail={b"two"})
        queue = PlaybackQueue(player)

        for name in ("one", "two", "three"):
            queue.enqueue(segment(name))
        queue.enqueue("%%% not base64 %%%")
        queue.enqueue(segment("four"))
        await queue.join()

        assert player.finished == [b"one", b"three", b"four"]

    @pytest.mark.asyncio
    async def test_hooks_fire_on_start_and_idle(self):
        events = []
        queue = PlaybackQueue(
            RecordingPlayer(),
            on_start=lambda: events.append("start"),
            on_idle=lambda: events.append("idle"),
        )

        queue.enqueue(segment("one"))
        queue.enqueue(segment("two"))
        await queue.join()

        assert events == ["start", "idle"]

    @pytest.mark.asyncio
    async def test_stop_all_halts_current_and_clears_queue(self):
        gate = asyncio.Event()
        player = RecordingPlayer(gate=gate)
        events = []
        queue = PlaybackQueue(player, on_idle=lambda: events.append("idle"))

        for name in ("one", "two", "three"):
            queue.enqueue(segment(name))
        await wait_until(lambda: player.started == [b"one"])

        await queue.stop_all()
        gate.set()
        await asyncio.sleep(0.01)

        assert player.finished == []
        assert player.stops == 1
        assert len(queue) == 0
        assert not queue.is_playing
        assert events == ["idle"]

    @pytest.mark.asyncio
    async def test_stop_all_when_idle_is_safe(self):
        queue = PlaybackQueue(RecordingPlayer())

        await queue.stop_all()
        await queue.stop_all()

        assert not queue.is_playing

    @pytest.mark.asyncio
    async def test_queue_restarts_after_stop(self):
        player = RecordingPlayer()
        queue = PlaybackQueue(player)
        await queue.stop_all()

        queue.enqueue(segment("again"))
        await queue.join()

        assert player.finished == [b"again"]
