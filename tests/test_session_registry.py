import pytest

from dal.conversation_dal import ConversationDAL
from models.stamp_record import StampRecord
from services.chat.session_registry import InMemoryConversationStore, SessionRegistry, StampContextStore
from utils.database_init import AsyncDatabaseInitializer
from tests.fakes import PENNY_BLACK


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_unknown_session_signals_new_conversation():
    registry = SessionRegistry(InMemoryConversationStore())
    assert await registry.get_or_create("s1") is None
    assert await registry.get("s1") == (False, None)


@pytest.mark.asyncio
async def test_update_makes_next_turn_continue_the_conversation():
    registry = SessionRegistry(InMemoryConversationStore())
    await registry.update("s1", "thread_1")
    assert await registry.get_or_create("s1") == "thread_1"
    await registry.update("s1", "thread_2")
    assert await registry.get_or_create("s1") == "thread_2"
    assert await registry.get("s1") == (True, "thread_2")
    assert await registry.count() == 1


@pytest.mark.asyncio
async def test_empty_session_id_is_never_stored():
    registry = SessionRegistry(InMemoryConversationStore())
    await registry.update("", "thread_1")
    await registry.update(None, "thread_1")
    assert await registry.get_or_create("") is None
    assert await registry.count() == 0


@pytest.mark.asyncio
async def test_sqlite_store_keeps_namespaces_apart(tmp_path):
    db = AsyncDatabaseInitializer(tmp_path / "db")
    threads = SessionRegistry(ConversationDAL(db, "threads"))
    knowledge = SessionRegistry(ConversationDAL(db, "knowledge"))

    await threads.update("s1", "thread_9")
    await knowledge.update("s1", "resp_3")

    assert await threads.get_or_create("s1") == "thread_9"
    assert await knowledge.get_or_create("s1") == "resp_3"
    assert await threads.session_ids() == ["s1"]
    assert await threads.store.delete("s1") is True
    assert await threads.count() == 0
    assert await knowledge.count() == 1


def test_stamp_context_expires_after_ttl():
    clock = FakeClock()
    contexts = StampContextStore(ttl_seconds=600, max_items=5, clock=clock)
    contexts.remember("s1", [StampRecord.from_args(PENNY_BLACK)])
    assert [item.name for item in contexts.recent("s1")] == ["Penny Black"]

    clock.now += 601
    assert contexts.recent("s1") == []
    assert len(contexts) == 0


def test_stamp_context_keeps_newest_and_skips_duplicates():
    contexts = StampContextStore(ttl_seconds=600, max_items=2, clock=FakeClock())
    stamps = [
        StampRecord.from_args({"Id": "a", "Name": "First", "Country": "NZ"}),
        StampRecord.from_args({"Id": "b", "Name": "Second", "Country": "NZ"}),
        StampRecord.from_args({"Id": "c", "Name": "Third", "Country": "NZ"}),
        StampRecord.from_args({"Id": "only-an-id"}),
    ]
    contexts.remember("s1", stamps)
    contexts.remember("s1", [stamps[1]])

    remembered = contexts.recent("s1")
    assert [item.id for item in remembered] == ["c", "b"]
    assert "from NZ" in remembered[0].describe()
