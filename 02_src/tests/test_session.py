"""Tests for Conversation and SessionManager."""

import json

import pytest

from agentnet.errors import ValidationError
from agentnet.models import AgentIdentity, EntryType
from agentnet.session import Conversation, Session, SessionManager, merge_state, public_state


def build_conversation(*types: EntryType) -> Conversation:
    conversation = Conversation()
    for i, entry_type in enumerate(types):
        conversation.add({"n": i}, entry_type)
    return conversation


U, M, C, R = (
    EntryType.USER_INPUT,
    EntryType.MODEL_RESPONSE,
    EntryType.FUNCTION_CALL,
    EntryType.FUNCTION_RESULT,
)


class TestConversationTrim:
    """Tests for Conversation.trim()."""

    def test_keeps_last_entries(self):
        conversation = build_conversation(U, M, U, M)
        conversation.trim(2)
        assert [e.content["n"] for e in conversation] == [2, 3]

    def test_drops_leading_non_user_entries(self):
        conversation = build_conversation(U, C, R, M, U, C, R, M)
        conversation.trim(6)

        # Last six start at a function result, so the log restarts at entry 4
        assert [e.type for e in conversation] == [U, C, R, M]
        assert conversation.entries[0].content["n"] == 4

    def test_can_drop_everything(self):
        conversation = build_conversation(U, C, R, C, R)
        conversation.trim(3)
        assert len(conversation) == 0

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_empties(self, limit):
        conversation = build_conversation(U, M)
        conversation.trim(limit)
        assert len(conversation) == 0

    def test_shorter_log_untouched(self):
        conversation = build_conversation(U, M)
        conversation.trim(10)
        assert len(conversation) == 2

    @pytest.mark.parametrize(
        "types,limit",
        [((U, C, R, M), 3), ((U, M, U, C, R, C, R, M), 5), ((M, U, M), 3), ((U,), 1)],
    )
    def test_trimmed_log_starts_with_user_input(self, types, limit):
        conversation = build_conversation(*types)
        conversation.trim(limit)
        assert len(conversation) <= limit
        if len(conversation):
            assert conversation.entries[0].type == U


class TestConversation:
    """Tests for Conversation helpers."""

    def test_typed_adders_and_messages(self):
        conversation = Conversation()
        conversation.add_user_input("hi")
        conversation.add_function_call("call")
        conversation.add_function_result("result")
        conversation.add_model_response("bye")

        assert conversation.messages() == ["hi", "call", "result", "bye"]
        assert conversation.last.type == M

    def test_list_round_trip_keeps_types(self):
        conversation = build_conversation(U, C, R, M)
        restored = Conversation.from_list(json.loads(json.dumps(conversation.to_list())))
        assert [e.type for e in restored] == [U, C, R, M]


class TestState:
    """Tests for public_state() and merge_state()."""

    def test_private_keys_stripped(self):
        assert public_state({"a": 1, "_secret": 2}) == {"a": 1}

    def test_merge_skips_id_and_last_write_wins(self):
        state = {"a": 1, "b": 1}
        merge_state(state, {"id": "other", "b": 2, "c": 3})
        assert state == {"a": 1, "b": 2, "c": 3}

    def test_envelope_session(self):
        session = Session(id="s1", state={"a": 1, "_x": 2})
        assert session.to_envelope_session() == {"a": 1, "id": "s1"}


class TestSessionManager:
    """Tests for SessionManager load/dump/clear."""

    @pytest.fixture
    def manager(self, memory_storage):
        return SessionManager(memory_storage, AgentIdentity("sales", "frontDesk"), max_history=4)

    @pytest.mark.asyncio
    async def test_load_absent_session_is_empty(self, manager):
        session = await manager.load("s1")
        assert session.id == "s1"
        assert session.state == {}
        assert len(session.conversation) == 0

    @pytest.mark.asyncio
    async def test_key_format(self, manager):
        assert manager.key("s1") == "sales.frontDesk.s1"

    @pytest.mark.asyncio
    async def test_dump_and_load(self, manager, memory_storage):
        session = await manager.load("s1")
        session.state.update({"customer": "acme", "_scratch": "x"})
        session.conversation.add_user_input({"role": "user", "content": "hi"})
        await manager.dump(session)

        record = json.loads(await memory_storage.get("sales.frontDesk.s1"))
        assert record["state"] == {"customer": "acme", "_scratch": "x"}
        assert record["conversation"][0]["metadata"]["type"] == "user_input"

        loaded = await manager.load("s1")
        assert loaded.state == {"customer": "acme", "_scratch": "x"}
        assert loaded.conversation.messages() == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_caller_context_wins(self, manager):
        session = await manager.load("s1")
        session.state.update({"tier": "gold", "region": "eu"})
        await manager.dump(session)

        loaded = await manager.load("s1", {"id": "s1", "tier": "silver"})
        assert loaded.state == {"tier": "silver", "region": "eu"}

    @pytest.mark.asyncio
    async def test_dump_trims_to_max_history(self, manager):
        session = await manager.load("s1")
        for _ in range(3):
            session.conversation.add_user_input("q")
            session.conversation.add_model_response("a")
        await manager.dump(session)

        loaded = await manager.load("s1")
        assert len(loaded.conversation) == 4

    @pytest.mark.asyncio
    async def test_unreadable_record_treated_as_empty(self, manager, memory_storage):
        await memory_storage.set("sales.frontDesk.s1", "{not json")
        session = await manager.load("s1")
        assert session.state == {}

    @pytest.mark.asyncio
    async def test_clear(self, manager, memory_storage):
        session = await manager.load("s1")
        session.state["a"] = 1
        await manager.dump(session)
        await manager.clear("s1")

        assert await memory_storage.get("sales.frontDesk.s1") is None

    @pytest.mark.asyncio
    async def test_session_id_required(self, manager):
        with pytest.raises(ValidationError):
            await manager.load("")
