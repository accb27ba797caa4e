import asyncio

from fakes import FakeFallback, FakeScheduler, FakeSpeechBackend
from src.layer_1_voice_interface.speech_player import SpeechPlayer
from src.layer_1_voice_interface.speech_synthesis import SpeechSynthesisClient

PCM = bytes([0x00, 0x40, 0x00, 0x40])


def make_player(payload=PCM, error=None):
    backend = FakeSpeechBackend(payload=payload, error=error)
    client = SpeechSynthesisClient(backend, voice="Kore", fallback_locale="am-ET")
    scheduler = FakeScheduler()
    fallback = FakeFallback()
    return SpeechPlayer(client, scheduler=scheduler, fallback=fallback), backend, scheduler, fallback


def test_remote_audio_is_played_through_scheduler():
    player, _, scheduler, fallback = make_player()

    assert asyncio.run(player.speak("m1", "hello")) is True

    assert len(scheduler.played) == 1
    assert scheduler.played[0].tolist() == [0.5, 0.5]
    assert fallback.calls == []
    assert not player.is_active()


def test_missing_audio_uses_local_fallback_once():
    player, _, scheduler, fallback = make_player(payload=None)

    assert asyncio.run(player.speak("m1", "ሰላም")) is True

    assert fallback.calls == [("ሰላም", "am-ET")]
    assert scheduler.played == []


def test_transport_error_uses_local_fallback():
    player, _, scheduler, fallback = make_player(error=ConnectionError("offline"))

    asyncio.run(player.speak("m1", "hello"))

    assert fallback.calls == [("hello", "am-ET")]
    assert scheduler.played == []


def test_repeat_and_overlapping_requests_are_rejected():
    player, backend, scheduler, _ = make_player()

    async def scenario():
        scheduler.gate = asyncio.Event()
        first = asyncio.ensure_future(player.speak("m1", "hello"))
        await asyncio.sleep(0.01)
        assert player.is_active("m1")
        same = await player.speak("m1", "hello")
        other = await player.speak("m2", "world")
        scheduler.gate.set()
        return await first, same, other

    first, same, other = asyncio.run(scenario())
    assert (first, same, other) == (True, False, False)
    assert len(backend.requests) == 1
    assert len(scheduler.played) == 1


def test_slot_is_released_after_playback():
    player, backend, scheduler, _ = make_player()

    async def scenario():
        await player.speak("m1", "hello")
        await player.speak("m1", "hello")

    asyncio.run(scenario())
    assert len(scheduler.played) == 2


def test_empty_text_is_not_spoken():
    player, backend, _, fallback = make_player()
    assert asyncio.run(player.speak("m1", "  ")) is False
    assert backend.requests == []
    assert fallback.calls == []


def test_cancelled_speak_keeps_slot_until_playback_ends():
    player, _, scheduler, _ = make_player()

    async def scenario():
        scheduler.gate = asyncio.Event()
        task = asyncio.ensure_future(player.speak("m1", "hello"))
        await asyncio.sleep(0.01)
        task.cancel()
        await asyncio.sleep(0.01)
        assert task.cancelled()

        assert player.is_active("m1")
        assert await player.speak("m2", "world") is False

        scheduler.gate.set()
        await asyncio.sleep(0.01)
        return player.is_active()

    assert asyncio.run(scenario()) is False
    assert len(scheduler.played) == 1
