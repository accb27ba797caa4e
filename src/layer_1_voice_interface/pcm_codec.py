"""
Conversion between raw PCM16LE byte buffers and normalized float samples.

The speech service always emits headerless 16-bit signed little-endian mono
audio at 24 kHz, so the format is fixed here rather than negotiated.
"""

import numpy as np

from src.utils.exceptions import MalformedAudioPayload

SAMPLE_RATE = 24000
CHANNELS = 1
SAMPLE_WIDTH = 2  # bytes per int16 sample

_PCM_DTYPE = np.dtype('<i2')
_INT16_SCALE = 32768.0


def decode_to_samples(data: bytes) -> np.ndarray:
    """
    Decode PCM16LE bytes into float32 samples in [-1.0, 1.0].

    Raises:
        MalformedAudioPayload: if the buffer length is not a whole number of samples
    """
    if len(data) % SAMPLE_WIDTH != 0:
        raise MalformedAudioPayload(
            f"PCM buffer has odd length {len(data)}; expected {SAMPLE_WIDTH} bytes per sample"
        )
    if not data:
        return np.array([], dtype=np.float32)

    samples = np.frombuffer(data, dtype=_PCM_DTYPE)
    return (samples.astype(np.float32) / _INT16_SCALE).astype(np.float32)


def encode_from_samples(samples: np.ndarray) -> bytes:
    """Encode float samples back to PCM16LE, clipping anything outside [-1.0, 1.0]."""
    audio = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    ints = np.clip(np.round(audio * _INT16_SCALE), -32768, 32767).astype(_PCM_DTYPE)
    return ints.tobytes()


def frame_count(byte_length: int) -> int:
    return byte_length // SAMPLE_WIDTH


def duration_seconds(byte_length: int) -> float:
    return frame_count(byte_length) / SAMPLE_RATE
