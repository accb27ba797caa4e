import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal

Role = Literal["user", "assistant"]

DEFAULT_TITLE = "New chat"
TITLE_MAX_LENGTH = 40


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Message:
    """A single chat message. Immutable once appended to a session."""
    role: Role
    content: str
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> Dict:
        return {"id": self.id, "role": self.role, "content": self.content}


@dataclass
class Session:
    """One conversation thread. The remote chat handle is not part of it."""
    id: str = field(default_factory=_new_id)
    title: str = DEFAULT_TITLE
    history: List[Message] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def append(self, message: Message) -> None:
        self.history.append(message)
        if self.title == DEFAULT_TITLE and message.role == "user" and message.content.strip():
            self.title = make_title(message.content)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at,
            "history": [msg.to_dict() for msg in self.history],
        }


def make_title(text: str) -> str:
    title = " ".join(text.split())
    if len(title) > TITLE_MAX_LENGTH:
        title = title[:TITLE_MAX_LENGTH].rstrip() + "…"
    return title
