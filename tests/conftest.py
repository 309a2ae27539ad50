"""
Pytest configuration and fixtures for the Talk With Doc tests.
"""

import asyncio
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to Python path for imports
src_root = Path(__file__).parent.parent / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from talk_with_doc.core.settings import Settings  # noqa: E402
from talk_with_doc.services.error_handler import GenerationError  # noqa: E402
from talk_with_doc.voice.audio import encode_audio  # noqa: E402
from talk_with_doc.voice.audio import float_to_pcm16  # noqa: E402
from talk_with_doc.voice.generation import GeneratedSpeech  # noqa: E402

FINISH_JSON = '{"next": "FINISH", "reasoning": "resolved"}'


class FakeTranscriber:
    """Returns queued transcripts, repeating the last one."""

    def __init__(self, *texts):
        self.texts = list(texts) or ["What does this document say about pricing?"]
        self.calls = []

    async def transcribe(self, chunks):
        self.calls.append(list(chunks))
        if len(self.texts) > 1:
            return self.texts.pop(0)
        return self.texts[0]


class FakeGenerator:
    """
    SpeechGenerator fake keyed by voice.

    ``fail_voices`` make ``generate_speech`` raise; ``gates`` make it wait
    for an event before returning; ``on_speech`` runs before returning.
    """

    def __init__(self, fail_voices=(), fail_text=False, gates=None, on_speech=None):
        self.fail_voices = set(fail_voices)
        self.fail_text = fail_text
        self.gates = gates or {}
        self.on_speech = on_speech
        self.speech_calls = []
        self.text_calls = []

    async def generate_speech(self, system_prompt, messages, voice):
        self.speech_calls.append({"system": system_prompt, "messages": messages, "voice": voice})
        if voice in self.gates:
            await self.gates[voice].wait()
        if voice in self.fail_voices:
            raise GenerationError(f"audio generation failed for {voice}")
        if self.on_speech is not None:
            self.on_speech(voice)
        return GeneratedSpeech(
            text=f"{voice} reply {len(self.speech_calls)}", audio=encode_audio(voice.encode())
        )

    async def generate_text(self, system_prompt, messages):
        self.text_calls.append({"system": system_prompt, "messages": messages})
        if self.fail_text:
            raise GenerationError("text generation failed")
        return f"text-only reply {len(self.text_calls)}"


class ScriptedJudge:
    """RoutingJudge returning canned raw outputs in order, then FINISH."""

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.calls = []

    async def judge(self, state, expected):
        self.calls.append(expected)
        if self.outputs:
            return self.outputs.pop(0)
        return FINISH_JSON


class RecordingSend:
    """Async send collecting outbound events."""

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)
        return True

    def types(self):
        return [event["type"] for event in self.events]

    def of_type(self, event_type):
        return [event for event in self.events if event["type"] == event_type]


async def wait_until(predicate, timeout=2.0):
    """Yield to the loop until ``predicate()`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


def pcm_chunk_b64(value=0.25, samples=160):
    return encode_audio(float_to_pcm16(np.full(samples, value)))


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the developer's environment."""
    return Settings(log_dir=tmp_path / "logs", openai_api_key="test-key")


@pytest.fixture
def fake_transcriber():
    return FakeTranscriber()


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def recording_send():
    return RecordingSend()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
