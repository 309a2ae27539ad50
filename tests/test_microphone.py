"""
Tests for microphone acquisition and error classification.
"""

import sys
import types
from unittest.mock import MagicMock
from unittest.mock import patch

import numpy as np
import pytest

from talk_with_doc.client.microphone import MicrophoneCapture
from talk_with_doc.client.microphone import MicrophoneError
from talk_with_doc.client.microphone import MicrophoneErrorKind
from talk_with_doc.client.microphone import classify_device_error


class FakePortAudioError(Exception):
    pass


def fake_sounddevice(*failures):
    """
    Build a stand-in ``sounddevice`` module whose InputStream raises the given
    errors in order before succeeding.
    """
    remaining = list(failures)
    calls = []

    def input_stream(**kwargs):
        calls.append(kwargs)
        if remaining:
            raise remaining.pop(0)
        stream = MagicMock()
        stream.samplerate = kwargs.get("samplerate", 48000)
        return stream

    module = types.SimpleNamespace(PortAudioError=FakePortAudioError, InputStream=input_stream)
    return module, calls


@pytest.mark.unit
class TestClassifyDeviceError:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (PermissionError("nope"), MicrophoneErrorKind.PERMISSION_DENIED),
            (OSError("Access is denied"), MicrophoneErrorKind.PERMISSION_DENIED),
            (FakePortAudioError("Device unavailable [PaErrorCode -9985]"), MicrophoneErrorKind.DEVICE_BUSY),
            (ValueError("No input device matching 'usb'"), MicrophoneErrorKind.NO_DEVICE),
            (OSError("PortAudio library not found"), MicrophoneErrorKind.NO_DEVICE),
            (FakePortAudioError("Invalid sample rate [PaErrorCode -9997]"), MicrophoneErrorKind.CONSTRAINTS_UNSUPPORTED),
            (FakePortAudioError("Something odd"), MicrophoneErrorKind.UNKNOWN),
        ],
    )
    def test_classification(self, error, expected):
        assert classify_device_error(error) is expected

    def test_user_messages_are_actionable(self):
        for kind in MicrophoneErrorKind:
            assert MicrophoneError(kind).user_message


@pytest.mark.unit
class TestMicrophoneCapture:
    @pytest.mark.asyncio
    async def test_open_with_requested_format(self):
        module, calls = fake_sounddevice()
        microphone = MicrophoneCapture(sample_rate=16000, block_size=1024)

        with patch.dict(sys.modules, {"sounddevice": module}):
            microphone.open()

        assert calls[0]["samplerate"] == 16000
        assert calls[0]["blocksize"] == 1024
        assert calls[0]["channels"] == 1
        assert not microphone.relaxed
        microphone.close()

    @pytest.mark.asyncio
    async def test_unsupported_constraints_retry_with_defaults(self):
        module, calls = fake_sounddevice(FakePortAudioError("Invalid sample rate [PaErrorCode -9997]"))
        microphone = MicrophoneCapture(sample_rate=16000)

        with patch.dict(sys.modules, {"sounddevice": module}):
            microphone.open()

        assert len(calls) == 2
        assert "samplerate" not in calls[1]
        assert microphone.relaxed
        assert microphone.sample_rate == 48000
        microphone.close()

    @pytest.mark.asyncio
    async def test_permission_failure_is_not_retried(self):
        module, calls = fake_sounddevice(FakePortAudioError("Permission denied"))
        microphone = MicrophoneCapture()

        with patch.dict(sys.modules, {"sounddevice": module}):
            with pytest.raises(MicrophoneError) as exc_info:
                microphone.open()

        assert exc_info.value.kind is MicrophoneErrorKind.PERMISSION_DENIED
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_callback_feeds_frames(self):
        module, _ = fake_sounddevice()
        microphone = MicrophoneCapture(analysis_window=4)

        with patch.dict(sys.modules, {"sounddevice": module}):
            microphone.open()

        indata = np.arange(8, dtype=np.float32).reshape(-1, 1)
        microphone._callback(indata, 8, None, None)
        microphone.close()

        blocks = [block async for block in microphone.frames()]
        assert len(blocks) == 1
        assert blocks[0].tolist() == list(range(8))
        assert microphone.latest_samples().tolist() == [4, 5, 6, 7]
