"""
Voice Interface Layer
--------------------
This layer turns assistant replies into sound: remote speech synthesis,
PCM decoding, scheduled playback and an on-device fallback voice.
"""

from .pcm_codec import decode_to_samples, encode_from_samples, SAMPLE_RATE
from .playback_scheduler import AudioPlaybackScheduler, PlaybackHandle
from .speech_synthesis import (
    SpeechSynthesisClient,
    GeminiSpeechBackend,
    RemoteSpeech,
    FallbackSpeech,
)
from .local_fallback import LocalSpeechFallback
from .speech_player import SpeechPlayer

__all__ = [
    'decode_to_samples',
    'encode_from_samples',
    'SAMPLE_RATE',
    'AudioPlaybackScheduler',
    'PlaybackHandle',
    'SpeechSynthesisClient',
    'GeminiSpeechBackend',
    'RemoteSpeech',
    'FallbackSpeech',
    'LocalSpeechFallback',
    'SpeechPlayer',
]
