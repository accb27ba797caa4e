import asyncio

import pytest

from fakes import FakeChatBackend
from src.layer_2_conversation.conversation_manager import ConversationManager
from src.layer_2_conversation.models import DEFAULT_TITLE
from src.layer_2_conversation.response_stream import StreamingResponseGenerator
from src.layer_2_conversation.session_store import SessionStore
from src.utils.exceptions import RemoteTransportFailure, TurnInProgress, UnknownSession


def make_manager(backend, **kwargs):
    generator = StreamingResponseGenerator(backend, store=SessionStore(max_sessions=10))
    return ConversationManager(generator, system_prompt="Be brief.", **kwargs)


async def collect(agen):
    return [fragment async for fragment in agen]


def test_send_appends_user_and_assistant_turns():
    backend = FakeChatBackend({"Hello": ["Se", "la", "m"]})
    manager = make_manager(backend)
    session = manager.new_session()

    fragments = asyncio.run(collect(manager.send(session.id, "  Hello ")))

    assert fragments == ["Se", "la", "m"]
    assert [(m.role, m.content) for m in session.history] == [("user", "Hello"), ("assistant", "Selam")]
    assert session.title == "Hello"
    assert not manager.is_busy(session.id)


def test_blank_input_is_ignored():
    backend = FakeChatBackend()
    manager = make_manager(backend)
    session = manager.new_session()

    assert asyncio.run(collect(manager.send(session.id, "   "))) == []
    assert session.history == []
    assert session.title == DEFAULT_TITLE
    assert backend.handles == []


def test_second_send_while_streaming_is_rejected():
    backend = FakeChatBackend({"Hi": ["a", "b"]})
    manager = make_manager(backend)
    session = manager.new_session()

    async def scenario():
        backend.gate = asyncio.Event()
        first = manager.send(session.id, "Hi")
        pending = asyncio.ensure_future(collect(first))
        await asyncio.sleep(0)
        assert manager.is_busy(session.id)
        with pytest.raises(TurnInProgress):
            await collect(manager.send(session.id, "Hi again"))
        backend.gate.set()
        return await pending

    assert asyncio.run(scenario()) == ["a", "b"]
    assert backend.handles[0].sent == ["Hi"]
    assert [m.content for m in session.history] == ["Hi", "ab"]


def test_failed_turn_keeps_partial_reply():
    backend = FakeChatBackend({"Hi": ["par", RuntimeError("boom")]})
    manager = make_manager(backend)
    session = manager.new_session()

    with pytest.raises(RemoteTransportFailure):
        asyncio.run(collect(manager.send(session.id, "Hi")))

    assert [(m.role, m.content) for m in session.history] == [("user", "Hi"), ("assistant", "par")]
    assert not manager.is_busy(session.id)


def test_delete_session_drops_history_and_chat_handle():
    backend = FakeChatBackend()
    manager = make_manager(backend)
    session = manager.new_session()
    asyncio.run(collect(manager.send(session.id, "Hi")))
    assert session.id in manager.generator.store

    manager.delete_session(session.id)
    manager.delete_session(session.id)

    assert session.id not in manager.generator.store
    with pytest.raises(UnknownSession):
        manager.get_session(session.id)


def test_sessions_are_listed_newest_first():
    manager = make_manager(FakeChatBackend())
    first = manager.new_session()
    second = manager.new_session(title="Second")
    assert [s.id for s in manager.sessions()] == [second.id, first.id]
    assert second.title == "Second"


def test_history_is_capped():
    manager = make_manager(FakeChatBackend(), max_history_messages=4)
    session = manager.new_session()

    async def scenario():
        for text in ["1", "2", "3"]:
            await collect(manager.send(session.id, text))

    asyncio.run(scenario())
    assert [m.content for m in session.history] == ["2", "ok", "3", "ok"]


def test_send_after_early_close_waits_for_reply_to_settle():
    backend = FakeChatBackend({"A": ["a1", "a2", "a3", "a4"]})
    manager = make_manager(backend)
    session = manager.new_session()

    async def scenario():
        reply = manager.send(session.id, "A")
        first = await reply.__anext__()
        await reply.aclose()

        assert manager.is_busy(session.id)
        with pytest.raises(TurnInProgress):
            await collect(manager.send(session.id, "B"))

        await manager.generator.wait_idle()
        assert not manager.is_busy(session.id)
        return first, await collect(manager.send(session.id, "C"))

    first, second = asyncio.run(scenario())

    handle = backend.handles[0]
    assert first == "a1"
    assert second == ["ok"]
    assert handle.sent == ["A", "C"]
    assert handle.delivered == ["a1", "a2", "a3", "a4", "ok"]
    assert [m.content for m in session.history if m.role == "user"] == handle.sent
