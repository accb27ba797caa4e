"""
Streaming assistant replies for a session.

A producer task reads chunks from the remote chat handle and pushes them
onto a bounded asyncio.Queue; stream() drains that queue and yields each
fragment in arrival order. The producer always runs the remote call to its
end, even if the consumer stops reading, so the chat handle's context
settles before the next turn.
"""

import asyncio
from typing import AsyncIterator, Optional, Sequence, Set

from src.utils.config import config
from src.utils.exceptions import RemoteTransportFailure, TurnInProgress
from .chat_backend import ChatBackend, ChatHandle
from .models import Message
from .session_store import SessionStore


class _StreamEnd:
    pass


class _StreamFailure:
    def __init__(self, error: BaseException):
        self.error = error


_END = _StreamEnd()


class _TurnState:
    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self.detached = False


class StreamingResponseGenerator:
    """
    Turns (session id, history, system prompt) into a live reply stream,
    creating and reusing one chat handle per session.
    """

    def __init__(
        self,
        backend: ChatBackend,
        store: Optional[SessionStore] = None,
        queue_size: Optional[int] = None,
        max_history_turns: Optional[int] = None
    ):
        self.backend = backend
        self.store = store if store is not None else SessionStore()
        self.queue_size = queue_size if queue_size is not None else config['stream_queue_size']
        self.max_history_turns = (
            max_history_turns if max_history_turns is not None else config['max_history_turns']
        )

        self._in_flight: Set[str] = set()
        self._producers: Set[asyncio.Task] = set()

    def is_streaming(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def stream(
        self,
        session_id: str,
        full_history: Sequence[Message],
        system_prompt: str
    ) -> AsyncIterator[str]:
        """
        Yield the assistant reply to the last message of full_history.

        Raises:
            TurnInProgress: a previous stream for session_id has not finished
            RemoteTransportFailure: the remote call failed; fragments already
                yielded stay valid and the chat handle is kept for a retry
        """
        if session_id in self._in_flight:
            raise TurnInProgress(session_id)

        handle = self._ensure_handle(session_id, full_history, system_prompt)

        last_message = full_history[-1] if full_history else None
        if last_message is None or not last_message.content:
            return

        turn = _TurnState(asyncio.Queue(maxsize=self.queue_size))
        self._in_flight.add(session_id)
        producer = asyncio.create_task(
            self._produce(session_id, handle, last_message.content, turn)
        )
        self._producers.add(producer)
        producer.add_done_callback(self._producers.discard)

        try:
            while True:
                item = await turn.queue.get()
                if item is _END:
                    return
                if isinstance(item, _StreamFailure):
                    raise RemoteTransportFailure(
                        f"Reply stream for session {session_id} failed: {item.error}"
                    ) from item.error
                yield item
        finally:
            if not producer.done():
                # Consumer stopped early: let the remote call finish unread.
                turn.detached = True
                self._drain(turn.queue)

    def delete_conversation(self, session_id: str) -> None:
        """Forget the chat handle; the next turn re-seeds from caller history."""
        self.store.remove(session_id)
        print(f"🗑️ Deleted chat handle for session {session_id}")

    async def wait_idle(self) -> None:
        """Wait for producers still settling detached turns."""
        if self._producers:
            await asyncio.gather(*list(self._producers), return_exceptions=True)

    def _ensure_handle(
        self,
        session_id: str,
        full_history: Sequence[Message],
        system_prompt: str
    ) -> ChatHandle:
        handle = self.store.get(session_id)
        if handle is not None:
            return handle

        prior_turns = list(full_history[:-1])
        if self.max_history_turns and len(prior_turns) > self.max_history_turns:
            prior_turns = prior_turns[-self.max_history_turns:]
        try:
            handle = self.backend.create_chat(prior_turns, system_prompt)
        except Exception as e:
            raise RemoteTransportFailure(f"Could not open chat for session {session_id}: {e}") from e

        self.store.put(session_id, handle)
        print(f"🆕 Opened chat for session {session_id} with {len(prior_turns)} prior turns")
        return handle

    async def _produce(self, session_id: str, handle: ChatHandle, text: str, turn: _TurnState):
        try:
            async for chunk in handle.send_message_stream(text):
                if not chunk or turn.detached:
                    continue
                await turn.queue.put(chunk)
            await self._put(turn, _END)
        except Exception as e:
            print(f"⚠️ Error in reply stream for session {session_id}: {e}")
            await self._put(turn, _StreamFailure(e))
        finally:
            self._in_flight.discard(session_id)

    @staticmethod
    async def _put(turn: _TurnState, item) -> None:
        if not turn.detached:
            await turn.queue.put(item)

    @staticmethod
    def _drain(queue: asyncio.Queue) -> None:
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                return
