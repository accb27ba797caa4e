"""
Conversation Layer
------------------
Per-session chat state with the remote text model and live reply streaming.
"""

from .models import Message, Session
from .session_store import SessionStore
from .chat_backend import GeminiChatBackend, create_client
from .response_stream import StreamingResponseGenerator
from .conversation_manager import ConversationManager

__all__ = [
    'Message',
    'Session',
    'SessionStore',
    'GeminiChatBackend',
    'create_client',
    'StreamingResponseGenerator',
    'ConversationManager',
]
