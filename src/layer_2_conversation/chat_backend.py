"""
Boundary between the conversation layer and the remote text model.

The generator only sees ChatBackend.create_chat() and
ChatHandle.send_message_stream(). GeminiChatBackend implements them with
google-genai's async chat sessions, which keep multi-turn context on the
handle so only the newest message is sent per turn.
"""

from typing import AsyncIterator, List, Optional, Protocol, Sequence

from google import genai
from google.genai import types

from src.utils.config import config
from .models import Message

SAFETY_CATEGORIES = [
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
]


class ChatHandle(Protocol):
    def send_message_stream(self, text: str) -> AsyncIterator[str]:
        """Send one user turn and yield reply text chunks as they arrive."""
        ...


class ChatBackend(Protocol):
    def create_chat(self, prior_turns: Sequence[Message], system_prompt: str) -> ChatHandle:
        """Open a remote chat seeded with prior_turns."""
        ...


def create_client(api_key: Optional[str]) -> Optional[genai.Client]:
    """Build the google-genai client, or None when no key is configured."""
    if not api_key:
        return None
    return genai.Client(api_key=api_key)


def to_gemini_history(messages: Sequence[Message]) -> List[types.Content]:
    return [
        types.Content(
            role='model' if m.role == 'assistant' else 'user',
            parts=[types.Part(text=m.content)]
        )
        for m in messages
    ]


class GeminiChatHandle:
    """Adapts a google-genai AsyncChat to ChatHandle."""

    def __init__(self, chat):
        self._chat = chat

    async def send_message_stream(self, text: str) -> AsyncIterator[str]:
        response = await self._chat.send_message_stream(text)
        async for chunk in response:
            yield chunk.text


class GeminiChatBackend:
    """Creates Gemini chat sessions with the configured model settings."""

    def __init__(self, client: Optional[genai.Client], model: Optional[str] = None):
        self.client = client
        self.model = model or config['chat_model']

    def build_config(self, system_prompt: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=config['temperature'],
            top_k=config['top_k'],
            top_p=config['top_p'],
            max_output_tokens=config['max_output_tokens'],
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
                )
                for category in SAFETY_CATEGORIES
            ],
        )

    def create_chat(self, prior_turns: Sequence[Message], system_prompt: str) -> GeminiChatHandle:
        if self.client is None:
            raise RuntimeError("Gemini client not configured (GOOGLE_API_KEY not set)")
        chat = self.client.aio.chats.create(
            model=self.model,
            config=self.build_config(system_prompt),
            history=to_gemini_history(prior_turns),
        )
        return GeminiChatHandle(chat)
