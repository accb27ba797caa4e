import asyncio
from typing import Any, Callable, Optional

import numpy as np

from src.utils.config import config
from .pcm_codec import SAMPLE_RATE, CHANNELS


class PlaybackHandle:
    """
    One in-flight playback started by AudioPlaybackScheduler.start().
    The underlying task runs once, so completion is observed exactly once
    no matter how many callers await wait().
    """

    def __init__(self, task: "asyncio.Task[bool]", duration: float):
        self._task = task
        self.duration = duration

    @property
    def done(self) -> bool:
        return self._task.done()

    def add_done_callback(self, callback: Callable[[], None]) -> None:
        self._task.add_done_callback(lambda _task: callback())

    async def wait(self) -> bool:
        """
        Wait for playback to end. True if it played to completion.
        Cancelling a waiter does not stop the device; playback runs to its end.
        """
        return await asyncio.shield(self._task)


class AudioPlaybackScheduler:
    """
    Schedules decoded speech samples on the output device.

    Every call opens its own output stream (24 kHz, mono) and closes it when
    playback ends, so calls never share device state. Whether a call should
    happen at all is decided by the caller (see SpeechPlayer).
    """

    DEFAULT_SAMPLE_RATE = SAMPLE_RATE
    DEFAULT_CHANNELS = CHANNELS

    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        channels: int = DEFAULT_CHANNELS,
        device: Optional[object] = None,
        stream_factory: Optional[Callable[..., Any]] = None
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device if device is not None else config.get('output_device')
        # Defaults to sounddevice.OutputStream, resolved when playback starts.
        self.stream_factory = stream_factory

    def start(self, samples: np.ndarray) -> PlaybackHandle:
        """Start playback immediately and return a handle to its completion."""
        audio = np.asarray(samples, dtype=np.float32)
        task = asyncio.get_running_loop().create_task(self._play_to_end(audio))
        return PlaybackHandle(task, duration=len(audio) / self.sample_rate)

    async def play(self, samples: np.ndarray) -> bool:
        """
        Play samples and wait until the device has drained them.

        Returns:
            True if completed normally, False if the output device failed
        """
        return await self.start(samples).wait()

    async def _play_to_end(self, audio: np.ndarray) -> bool:
        if len(audio) == 0:
            return True

        print(f"🔊 Playing speech - {len(audio) / self.sample_rate:.2f}s at {self.sample_rate} Hz")
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_blocking, audio)
        except Exception as e:
            print(f"⚠️ Error in speech playback: {e}")
            return False

        print("✅ Speech playback completed")
        return True

    def _open_stream(self):
        factory = self.stream_factory
        if factory is None:
            import sounddevice as sd
            factory = sd.OutputStream
        return factory(
            device=self.device,
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype='float32'
        )

    def _write_blocking(self, audio: np.ndarray) -> None:
        # Leaving the context stops the stream after pending buffers have
        # played, then closes it, including when write() raises.
        stream = self._open_stream()
        with stream:
            stream.write(audio.reshape(-1, self.channels))
