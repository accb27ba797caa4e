from typing import Optional

from .local_fallback import LocalSpeechFallback
from .playback_scheduler import AudioPlaybackScheduler
from .speech_synthesis import FallbackSpeech, RemoteSpeech, SpeechSynthesisClient


class SpeechPlayer:
    """
    Speaks assistant messages through one exclusive output slot.

    While a speak request is loading or playing, any further request is
    rejected, whether it is for the same message or a different one.
    Requests are never queued and a playing message is never replaced.
    """

    def __init__(
        self,
        synthesis_client: SpeechSynthesisClient,
        scheduler: Optional[AudioPlaybackScheduler] = None,
        fallback: Optional[LocalSpeechFallback] = None
    ):
        self.synthesis_client = synthesis_client
        self.scheduler = scheduler or AudioPlaybackScheduler()
        self.fallback = fallback or LocalSpeechFallback()

        self._active_message_id: Optional[str] = None
        self._loading = False

    def is_active(self, message_id: Optional[str] = None) -> bool:
        """True while the slot is taken (by message_id, if given)."""
        if message_id is None:
            return self._active_message_id is not None
        return self._active_message_id == message_id

    def is_loading(self, message_id: Optional[str] = None) -> bool:
        return self._loading and self.is_active(message_id)

    async def speak(self, message_id: str, text: str) -> bool:
        """
        Speak text for message_id.

        Returns:
            False if rejected because the slot is busy, or if remote playback
            failed. True once remote playback ends or the local fallback
            has been started.
        """
        if self._active_message_id is not None:
            if self._active_message_id == message_id:
                print(f"⚠️ Message {message_id} is already being spoken")
            else:
                print(f"⚠️ Speaker busy with message {self._active_message_id}, ignoring {message_id}")
            return False
        if not text or not text.strip():
            return False

        self._active_message_id = message_id
        self._loading = True
        handle = None
        try:
            result = await self.synthesis_client.resolve(text)
            self._loading = False

            if isinstance(result, RemoteSpeech):
                handle = self.scheduler.start(result.samples)
                return await handle.wait()
            if isinstance(result, FallbackSpeech):
                self.fallback.speak(result.text, result.locale)
                return True
            raise TypeError(f"Unexpected speech result: {result!r}")
        finally:
            self._loading = False
            if handle is not None and not handle.done:
                # Cancelled while the device is still playing: keep the slot
                # until playback ends.
                handle.add_done_callback(self._release)
            else:
                self._release()

    def _release(self) -> None:
        self._active_message_id = None
