"""
Microphone acquisition for the voice client.

Opens a mono ``sounddevice`` input stream and hands blocks to the event loop.
Acquisition failures are classified into user-actionable kinds; unsupported
constraints are retried once with the device defaults.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import AsyncIterator
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class MicrophoneErrorKind(Enum):
    """Why the microphone could not be opened."""

    PERMISSION_DENIED = "permission_denied"
    NO_DEVICE = "no_device"
    DEVICE_BUSY = "device_busy"
    CONSTRAINTS_UNSUPPORTED = "constraints_unsupported"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    MicrophoneErrorKind.PERMISSION_DENIED: (
        "Microphone access was denied. Allow microphone access for this terminal and try again."
    ),
    MicrophoneErrorKind.NO_DEVICE: "No microphone was found. Connect a microphone and try again.",
    MicrophoneErrorKind.DEVICE_BUSY: (
        "The microphone is in use by another application. Close it and try again."
    ),
    MicrophoneErrorKind.CONSTRAINTS_UNSUPPORTED: (
        "The microphone does not support the requested audio format."
    ),
    MicrophoneErrorKind.UNKNOWN: "The microphone could not be started. Please try again.",
}

ERROR_PATTERNS = {
    MicrophoneErrorKind.PERMISSION_DENIED: [
        r"permission",
        r"access.*denied",
        r"not.*permitted",
        r"not.*authori[sz]ed",
    ],
    MicrophoneErrorKind.DEVICE_BUSY: [
        r"busy",
        r"in use",
        r"device unavailable",
        r"-9985",
    ],
    MicrophoneErrorKind.NO_DEVICE: [
        r"no.*(input|default).*device",
        r"error querying device",
        r"invalid device",
        r"portaudio library not found",
        r"-9996",
    ],
    MicrophoneErrorKind.CONSTRAINTS_UNSUPPORTED: [
        r"invalid sample ?rate",
        r"invalid number of channels",
        r"sample format",
        r"blocksize",
        r"-999[78]",
    ],
}


class MicrophoneError(Exception):
    """Microphone acquisition failure with a user-facing message."""

    def __init__(self, kind: MicrophoneErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.kind]


def classify_device_error(error: Exception) -> MicrophoneErrorKind:
    """Map a sounddevice/PortAudio failure to a MicrophoneErrorKind."""
    if isinstance(error, PermissionError):
        return MicrophoneErrorKind.PERMISSION_DENIED

    error_str = str(error).lower()
    for kind, patterns in ERROR_PATTERNS.items():
        for pattern in patterns:
            if re.search(pattern, error_str):
                return kind
    return MicrophoneErrorKind.UNKNOWN


class MicrophoneCapture:
    """Mono float32 capture feeding an asyncio queue."""

    def __init__(
        self,
        sample_rate: int = 16000,
        block_size: int = 4096,
        analysis_window: int = 512,
        device: Optional[int | str] = None,
    ):
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.analysis_window = analysis_window
        self.device = device
        self.relaxed = False
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: asyncio.Queue = asyncio.Queue()
        self._latest = np.zeros(analysis_window, dtype=np.float32)

    def open(self) -> None:
        """
        Open and start the input stream on the running loop.

        Raises:
            MicrophoneError: If the device cannot be opened
        """
        self._loop = asyncio.get_running_loop()
        try:
            self._stream = self._open_stream(relaxed=False)
        except MicrophoneError as e:
            if e.kind is not MicrophoneErrorKind.CONSTRAINTS_UNSUPPORTED:
                raise
            logger.warning(f"Microphone rejected {self.sample_rate} Hz, retrying with defaults: {e}")
            self._stream = self._open_stream(relaxed=True)
            self.relaxed = True

        self._stream.start()
        logger.info(f"Microphone open at {self.sample_rate} Hz")

    def _open_stream(self, relaxed: bool):
        try:
            import sounddevice as sd
        except OSError as e:
            raise MicrophoneError(classify_device_error(e), str(e)) from e

        kwargs = {"channels": 1, "dtype": "float32", "callback": self._callback}
        if self.device is not None:
            kwargs["device"] = self.device
        if not relaxed:
            kwargs.update(samplerate=self.sample_rate, blocksize=self.block_size)

        try:
            stream = sd.InputStream(**kwargs)
        except (sd.PortAudioError, ValueError, OSError) as e:
            raise MicrophoneError(classify_device_error(e), str(e)) from e

        self.sample_rate = int(stream.samplerate)
        return stream

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Microphone status: {status}")
        block = indata[:, 0].copy()
        self._latest = block[-self.analysis_window :]
        self._loop.call_soon_threadsafe(self._queue.put_nowait, block)

    def latest_samples(self) -> np.ndarray:
        """Most recent analysis window, for volume sampling."""
        return self._latest

    async def frames(self) -> AsyncIterator[np.ndarray]:
        """Yield captured blocks until ``close`` is called."""
        while True:
            block = await self._queue.get()
            if block is None:
                return
            yield block

    def close(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
