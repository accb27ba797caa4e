import asyncio

import numpy as np
import pytest

from fakes import OutputStreamRecorder
from src.layer_1_voice_interface.playback_scheduler import AudioPlaybackScheduler


def make_scheduler(recorder):
    return AudioPlaybackScheduler(device=None, stream_factory=recorder)


def test_play_opens_one_stream_per_call_at_24khz():
    recorder = OutputStreamRecorder()
    scheduler = make_scheduler(recorder)
    samples = np.array([0.5, -0.5, 0.25], dtype=np.float32)

    async def scenario():
        return await scheduler.play(samples), await scheduler.play(samples)

    assert asyncio.run(scenario()) == (True, True)
    assert len(recorder.streams) == 2
    stream = recorder.streams[0]
    assert stream.kwargs["samplerate"] == 24000
    assert stream.kwargs["channels"] == 1
    assert stream.kwargs["dtype"] == "float32"
    assert stream.written[0].ravel().tolist() == [0.5, -0.5, 0.25]
    assert all(s.closed for s in recorder.streams)


def test_stream_is_closed_when_device_fails():
    recorder = OutputStreamRecorder(fail_write=True)
    scheduler = make_scheduler(recorder)

    assert asyncio.run(scheduler.play(np.zeros(10, dtype=np.float32))) is False
    assert recorder.streams[0].closed


def test_handle_reports_completion_once():
    recorder = OutputStreamRecorder()
    scheduler = make_scheduler(recorder)

    async def scenario():
        handle = scheduler.start(np.zeros(2400, dtype=np.float32))
        assert handle.duration == pytest.approx(0.1)
        first = await handle.wait()
        second = await handle.wait()
        return handle, first, second

    handle, first, second = asyncio.run(scenario())
    assert handle.done and first is True and second is True
    assert len(recorder.streams) == 1


def test_empty_samples_complete_without_opening_device():
    recorder = OutputStreamRecorder()
    scheduler = make_scheduler(recorder)
    assert asyncio.run(scheduler.play(np.array([], dtype=np.float32))) is True
    assert recorder.streams == []
