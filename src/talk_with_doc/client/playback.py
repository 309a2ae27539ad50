"""
Playback of persona audio on the client.

``PlaybackQueue`` plays segments strictly in arrival order. A segment that
fails to decode or play is skipped; ``stop_all`` empties the queue and halts
the current segment at any time.
"""

import asyncio
import contextlib
import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable
from typing import Optional
from typing import Protocol

from talk_with_doc.voice.audio import decode_audio

logger = logging.getLogger(__name__)


class AudioPlayer(Protocol):
    """Plays one compressed audio segment to completion."""

    async def play(self, audio: bytes) -> None: ...

    async def stop(self) -> None: ...


@dataclass
class Segment:
    audio: str
    label: str = ""


class PlaybackQueue:
    """
    FIFO queue of base64 audio segments served by one worker task.

    ``on_start`` fires when playback begins after being idle and ``on_idle``
    when the queue drains or is stopped.
    """

    def __init__(
        self,
        player: AudioPlayer,
        on_start: Optional[Callable[[], None]] = None,
        on_idle: Optional[Callable[[], None]] = None,
    ):
        self.player = player
        self.on_start = on_start
        self.on_idle = on_idle
        self.is_playing = False
        self._items: deque[Segment] = deque()
        self._worker: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, audio: str, label: str = "") -> None:
        """Queue a segment; starts the worker if it is not running."""
        self._items.append(Segment(audio, label))
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())

    async def stop_all(self) -> None:
        """Clear the queue and halt the current segment. Safe when idle."""
        self._items.clear()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        await self.player.stop()
        self._set_idle()

    async def join(self) -> None:
        """Wait until the queue has drained."""
        while self._worker is not None and not self._worker.done():
            await asyncio.wait([self._worker])

    async def _drain(self) -> None:
        while self._items:
            segment = self._items.popleft()
            self._set_playing()
            try:
                await self.player.play(decode_audio(segment.audio))
            except Exception as e:
                logger.warning(f"Skipping {segment.label or 'audio'} segment: {e}")
        self._set_idle()

    def _set_playing(self) -> None:
        if self.is_playing:
            return
        self.is_playing = True
        if self.on_start is not None:
            self.on_start()

    def _set_idle(self) -> None:
        if not self.is_playing:
            return
        self.is_playing = False
        if self.on_idle is not None:
            self.on_idle()


class FfplayPlayer:
    """AudioPlayer piping each segment into an ``ffplay`` subprocess."""

    def __init__(self, binary: str = "ffplay"):
        self.binary = binary
        self._process: Optional[asyncio.subprocess.Process] = None

    async def play(self, audio: bytes) -> None:
        process = await asyncio.create_subprocess_exec(
            self.binary,
            "-nodisp",
            "-autoexit",
            "-loglevel",
            "quiet",
            "-",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        self._process = process
        try:
            await process.communicate(audio)
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()
            self._process = None

        if process.returncode != 0:
            raise RuntimeError(f"{self.binary} exited with code {process.returncode}")

    async def stop(self) -> None:
        process = self._process
        if process is not None and process.returncode is None:
            process.kill()
