from collections import OrderedDict
from typing import Generic, Optional, TypeVar

from src.utils.config import config

H = TypeVar("H")


class SessionStore(Generic[H]):
    """
    Maps session ids to remote chat handles.

    Owned by the response generator for the lifetime of the application.
    All access happens on one event loop, so there is no lock. When the store
    is full the least recently used handle is dropped; its session is simply
    re-seeded from history on the next turn.
    """

    def __init__(self, max_sessions: Optional[int] = None):
        self.max_sessions = max_sessions if max_sessions is not None else config['max_sessions']
        self._handles: "OrderedDict[str, H]" = OrderedDict()

    def get(self, session_id: str) -> Optional[H]:
        handle = self._handles.get(session_id)
        if handle is not None:
            self._handles.move_to_end(session_id)
        return handle

    def put(self, session_id: str, handle: H) -> None:
        self._handles[session_id] = handle
        self._handles.move_to_end(session_id)
        while self.max_sessions and len(self._handles) > self.max_sessions:
            evicted, _ = self._handles.popitem(last=False)
            print(f"⚠️ Session store full ({self.max_sessions}), evicted chat handle for {evicted}")

    def remove(self, session_id: str) -> None:
        """Drop the handle for session_id. Removing an unknown id is a no-op."""
        self._handles.pop(session_id, None)

    def clear(self) -> None:
        self._handles.clear()

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._handles

    def __len__(self) -> int:
        return len(self._handles)
