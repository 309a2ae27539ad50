"""
Voice client: VAD monitor, streaming transport, playback and microphone.
"""

from talk_with_doc.client.playback import FfplayPlayer
from talk_with_doc.client.playback import PlaybackQueue
from talk_with_doc.client.streaming import AudioStreamingClient
from talk_with_doc.client.vad import VADEvent
from talk_with_doc.client.vad import VADEventType
from talk_with_doc.client.vad import VoiceActivityMonitor

__all__ = [
    "AudioStreamingClient",
    "FfplayPlayer",
    "PlaybackQueue",
    "VADEvent",
    "VADEventType",
    "VoiceActivityMonitor",
]
