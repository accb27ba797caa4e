import asyncio
from enum import Enum
from typing import Optional, Set

from src.utils.config import config, resolve_api_key
from src.utils.exceptions import RemoteTransportFailure, TurnInProgress
from src.layer_2_conversation import (
    ConversationManager,
    GeminiChatBackend,
    SessionStore,
    StreamingResponseGenerator,
    create_client,
)
from src.layer_1_voice_interface import (
    AudioPlaybackScheduler,
    GeminiSpeechBackend,
    LocalSpeechFallback,
    SpeechPlayer,
    SpeechSynthesisClient,
)

HELP_TEXT = """Commands:
  /new            start a new conversation
  /list           list conversations
  /switch <n>     switch to conversation n from /list
  /delete         delete the current conversation
  /speak          speak the last assistant reply
  /voice on|off   speak every reply automatically
  /quit           exit"""


class SystemState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"


class ZemenaiSystem:
    """Terminal front end wiring the conversation and voice layers together."""

    def __init__(self):
        self.current_state = SystemState.IDLE
        self.auto_speak = bool(config.get('auto_speak', False))

        client = create_client(resolve_api_key())

        self.store = SessionStore(max_sessions=config['max_sessions'])
        self.generator = StreamingResponseGenerator(GeminiChatBackend(client), store=self.store)
        self.conversations = ConversationManager(self.generator)

        self.speech = SpeechPlayer(
            SpeechSynthesisClient(GeminiSpeechBackend(client)),
            scheduler=AudioPlaybackScheduler(),
            fallback=LocalSpeechFallback(),
        )

        self.active_session_id: Optional[str] = None
        self._speech_tasks: Set[asyncio.Task] = set()

    async def _read_line(self, prompt: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, input, prompt)

    def _ensure_session(self) -> str:
        if self.active_session_id is None:
            self.active_session_id = self.conversations.new_session().id
        return self.active_session_id

    def _last_assistant_message(self):
        if self.active_session_id is None:
            return None
        history = self.conversations.get_session(self.active_session_id).history
        for message in reversed(history):
            if message.role == "assistant":
                return message
        return None

    def speak_last_reply(self) -> None:
        message = self._last_assistant_message()
        if message is None:
            print("⚠️ Nothing to speak yet")
            return
        if self.speech.is_active(message.id):
            print("⚠️ Already speaking this reply")
            return
        task = asyncio.create_task(self.speech.speak(message.id, message.content))
        self._speech_tasks.add(task)
        task.add_done_callback(self._speech_tasks.discard)

    async def process_user_input(self, user_text: str) -> None:
        session_id = self._ensure_session()
        self.current_state = SystemState.STREAMING
        print("🤖 ", end="", flush=True)
        try:
            async for fragment in self.conversations.send(session_id, user_text):
                print(fragment, end="", flush=True)
            print()
        except TurnInProgress as e:
            print(f"\n⚠️ {e}")
            return
        except RemoteTransportFailure as e:
            print(f"\n❌ {e}")
            return
        finally:
            self.current_state = SystemState.IDLE

        if self.auto_speak:
            self.speak_last_reply()

    def list_sessions(self) -> None:
        sessions = self.conversations.sessions()
        if not sessions:
            print("📭 No conversations yet")
            return
        for index, session in enumerate(sessions, start=1):
            marker = "*" if session.id == self.active_session_id else " "
            print(f" {marker} {index}. {session.title} ({len(session.history)} messages)")

    def switch_session(self, arg: str) -> None:
        sessions = self.conversations.sessions()
        try:
            session = sessions[int(arg) - 1]
        except (ValueError, IndexError):
            print(f"⚠️ No conversation {arg!r}")
            return
        self.active_session_id = session.id
        print(f"🔄 Switched to '{session.title}'")

    def delete_active_session(self) -> None:
        if self.active_session_id is None:
            print("⚠️ No active conversation")
            return
        self.conversations.delete_session(self.active_session_id)
        self.active_session_id = None

    async def handle_command(self, line: str) -> bool:
        """Run a slash command. Returns False when the user asked to quit."""
        command, _, arg = line.partition(" ")
        if command == "/quit":
            return False
        if command == "/new":
            self.active_session_id = self.conversations.new_session().id
        elif command == "/list":
            self.list_sessions()
        elif command == "/switch":
            self.switch_session(arg.strip())
        elif command == "/delete":
            self.delete_active_session()
        elif command == "/speak":
            self.speak_last_reply()
        elif command == "/voice":
            self.auto_speak = arg.strip().lower() == "on"
            print(f"🔊 Auto speak {'on' if self.auto_speak else 'off'}")
        else:
            print(HELP_TEXT)
        return True

    async def cleanup_resources(self) -> None:
        """Let pending speech and detached reply streams settle."""
        if self._speech_tasks:
            await asyncio.gather(*list(self._speech_tasks), return_exceptions=True)
        await self.generator.wait_idle()
        self.store.clear()

    async def start(self) -> None:
        print("🚀 Starting Zemenai chat... (type /help for commands)")
        try:
            while True:
                line = (await self._read_line("🧑 ")).strip()
                if not line:
                    continue
                if line.startswith("/"):
                    if not await self.handle_command(line):
                        break
                    continue
                await self.process_user_input(line)
        except (KeyboardInterrupt, EOFError):
            print("\n🛑 Shutting down...")
        finally:
            await self.cleanup_resources()
            print("👋 Goodbye!")


async def main():
    """Main entry point"""
    system = ZemenaiSystem()
    await system.start()


if __name__ == "__main__":
    asyncio.run(main())
