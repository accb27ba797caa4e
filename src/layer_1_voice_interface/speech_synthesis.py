"""
Remote speech synthesis.

SpeechSynthesisClient asks the speech model for audio of a text, strips the
base64 transport encoding and hands back raw PCM bytes. resolve() wraps that
into a SpeechResult so the player can branch between remote audio and the
local fallback without catching exceptions itself.
"""

import base64
import binascii
from dataclasses import dataclass, field
from typing import Optional, Protocol, Union

import numpy as np
from google.genai import types

from src.utils.config import config
from src.utils.exceptions import (
    MalformedAudioPayload,
    NoAudioData,
    RemoteTransportFailure,
)
from .pcm_codec import decode_to_samples

AudioPayload = Union[str, bytes]


@dataclass(frozen=True, eq=False)
class RemoteSpeech:
    """High-quality speech from the remote model, already decoded."""
    pcm: bytes
    samples: np.ndarray = field(repr=False)


@dataclass(frozen=True)
class FallbackSpeech:
    """No usable remote audio; speak text with the on-device engine instead."""
    text: str
    locale: str
    reason: str = ""


SpeechResult = Union[RemoteSpeech, FallbackSpeech]


class SpeechBackend(Protocol):
    async def generate_speech(self, text: str, voice: str) -> Optional[AudioPayload]:
        """Return the audio payload for text, or None when the response has none."""
        ...


class GeminiSpeechBackend:
    """Speech backend for Gemini TTS models via google-genai."""

    def __init__(self, client, model: Optional[str] = None):
        self.client = client
        self.model = model or config['tts_model']

    async def generate_speech(self, text: str, voice: str) -> Optional[AudioPayload]:
        if self.client is None:
            raise RuntimeError("Gemini client not configured (GOOGLE_API_KEY not set)")
        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=text,
            config=types.GenerateContentConfig(
                response_modalities=["AUDIO"],
                speech_config=types.SpeechConfig(
                    voice_config=types.VoiceConfig(
                        prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
                    )
                ),
            ),
        )
        return extract_audio_payload(response)


def extract_audio_payload(response) -> Optional[AudioPayload]:
    """Pull candidates[0].content.parts[0].inline_data.data out of a response, if present."""
    candidates = getattr(response, 'candidates', None)
    if not candidates:
        return None
    content = getattr(candidates[0], 'content', None)
    parts = getattr(content, 'parts', None)
    if not parts:
        return None
    inline_data = getattr(parts[0], 'inline_data', None)
    if inline_data is None:
        return None
    return getattr(inline_data, 'data', None)


def decode_transport_payload(payload: AudioPayload) -> bytes:
    """
    Strip the base64 transport encoding. Payloads that arrive as bytes have
    already been decoded by the SDK and are returned unchanged.
    """
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedAudioPayload(f"Audio payload is not valid base64: {e}") from e


class SpeechSynthesisClient:
    """
    Requests speech audio for a text using one fixed voice.
    Performs no playback.
    """

    def __init__(
        self,
        backend: SpeechBackend,
        voice: Optional[str] = None,
        fallback_locale: Optional[str] = None
    ):
        self.backend = backend
        self.voice = voice or config['tts_voice']
        self.fallback_locale = fallback_locale or config['fallback_locale']

    async def synthesize(self, text: str) -> bytes:
        """
        Fetch raw PCM bytes for text.

        Raises:
            NoAudioData: the response did not include an audio payload
            MalformedAudioPayload: the payload could not be decoded
            RemoteTransportFailure: the request itself failed
        """
        try:
            payload = await self.backend.generate_speech(text, self.voice)
        except Exception as e:
            raise RemoteTransportFailure(f"Speech request failed: {e}") from e

        if not payload:
            raise NoAudioData("No audio data returned from model")
        return decode_transport_payload(payload)

    async def resolve(self, text: str) -> SpeechResult:
        """Synthesize and decode text, degrading to FallbackSpeech on any speech failure."""
        try:
            pcm = await self.synthesize(text)
            samples = decode_to_samples(pcm)
        except NoAudioData as e:
            print(f"⚠️ {e} - using local speech")
            return FallbackSpeech(text, self.fallback_locale, reason="no_audio_data")
        except MalformedAudioPayload as e:
            print(f"⚠️ Malformed audio payload ({e}) - using local speech")
            return FallbackSpeech(text, self.fallback_locale, reason="malformed_payload")
        except RemoteTransportFailure as e:
            print(f"⚠️ {e} - using local speech")
            return FallbackSpeech(text, self.fallback_locale, reason="transport_failure")

        return RemoteSpeech(pcm=pcm, samples=samples)
