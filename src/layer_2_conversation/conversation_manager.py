from typing import AsyncIterator, Dict, List, Optional, Set

from src.utils.config import config
from src.utils.exceptions import TurnInProgress, UnknownSession
from .models import Message, Session
from .response_stream import StreamingResponseGenerator


class ConversationManager:
    """
    Manages the user's conversations: creating and deleting sessions,
    appending turns, and streaming replies one turn at a time per session.
    """

    def __init__(
        self,
        generator: StreamingResponseGenerator,
        system_prompt: Optional[str] = None,
        max_history_messages: Optional[int] = None
    ):
        self.generator = generator
        self.system_prompt = system_prompt if system_prompt is not None else config['system_prompt']
        self.max_history_messages = (
            max_history_messages if max_history_messages is not None else config['max_history_messages']
        )
        self._sessions: Dict[str, Session] = {}
        self._busy: Set[str] = set()

    def new_session(self, title: Optional[str] = None) -> Session:
        session = Session(title=title) if title else Session()
        self._sessions[session.id] = session
        print(f"🆕 Started new conversation session: {session.id}")
        return session

    def sessions(self) -> List[Session]:
        """All sessions, newest first."""
        return list(reversed(list(self._sessions.values())))

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSession(session_id)
        return session

    def delete_session(self, session_id: str) -> None:
        """Remove a session's history and its chat handle. Unknown ids are ignored."""
        self._sessions.pop(session_id, None)
        self.generator.delete_conversation(session_id)

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._busy or self.generator.is_streaming(session_id)

    async def send(self, session_id: str, text: str) -> AsyncIterator[str]:
        """
        Append a user turn and stream the assistant's reply.
        The full reply is appended to history when the stream ends.
        """
        session = self.get_session(session_id)
        # A reply closed early may still be settling on the chat handle.
        if self.is_busy(session_id):
            raise TurnInProgress(session_id)
        if not text or not text.strip():
            return

        self._busy.add(session_id)
        reply_parts: List[str] = []
        stream = None
        try:
            self._append(session, Message(role="user", content=text.strip()))
            stream = self.generator.stream(session_id, list(session.history), self.system_prompt)
            async for fragment in stream:
                reply_parts.append(fragment)
                yield fragment
        finally:
            if stream is not None:
                await stream.aclose()
            if reply_parts:
                self._append(session, Message(role="assistant", content="".join(reply_parts)))
            self._busy.discard(session_id)

    def _append(self, session: Session, message: Message) -> None:
        session.append(message)
        if self.max_history_messages and len(session.history) > self.max_history_messages:
            session.history = session.history[-self.max_history_messages:]
