import json

import pytest

from chatweb.client.history import HISTORY_STORAGE_KEY, LocalStore, SessionHistory
from chatweb.client.state import Message, make_title


def conversation(first="Hello", reply="Hi there"):
    return [
        Message(role="user", content=first),
        Message(role="assistant", content=reply),
    ]


@pytest.fixture
def storage_path(tmp_path):
    return str(tmp_path / "nested" / "local_storage.json")


@pytest.mark.asyncio
async def test_save_creates_titled_entry_and_persists(storage_path):
    history = SessionHistory(LocalStore(storage_path))
    await history.load()
    messages = conversation()

    session = await history.save(messages)

    assert history.sessions == [session]
    assert session.title == "Hello..."
    assert session.messages == messages

    with open(storage_path, encoding="utf-8") as f:
        stored = json.loads(json.load(f)[HISTORY_STORAGE_KEY])
    assert stored[0]["id"] == session.id
    assert stored[0]["title"] == "Hello..."
    assert "lastUpdated" in stored[0]


@pytest.mark.asyncio
async def test_saved_sessions_survive_a_reload(storage_path):
    history = SessionHistory(LocalStore(storage_path))
    first = await history.save(conversation("First question"))
    second = await history.save(conversation("Second question"))

    reloaded = SessionHistory(LocalStore(storage_path))
    sessions = await reloaded.load()

    assert [s.id for s in sessions] == [second.id, first.id]
    assert sessions[1].messages[0].content == "First question"


@pytest.mark.asyncio
async def test_saved_snapshot_is_independent_of_live_messages(storage_path):
    history = SessionHistory(LocalStore(storage_path))
    messages = conversation()
    session = await history.save(messages)

    messages[1].content = "changed later"

    assert session.messages[1].content == "Hi there"


@pytest.mark.asyncio
async def test_title_is_a_bounded_prefix(storage_path):
    history = SessionHistory(LocalStore(storage_path), title_max_chars=10)
    session = await history.save(conversation("A fairly long opening question"))

    assert session.title == "A fairly l..."
    assert make_title("Hi", 10) == "Hi..."


@pytest.mark.asyncio
async def test_continued_conversation_replaces_its_entry(storage_path):
    history = SessionHistory(LocalStore(storage_path))
    older = await history.save(conversation("Older"))
    current = await history.save(conversation("Current"))
    await history.save(conversation("Newest"))

    longer = conversation("Current") + conversation("Follow up", "Sure")
    updated = await history.save(longer, current.id)

    assert updated.id == current.id
    assert len(history.sessions) == 3
    assert history.sessions[0].id == current.id
    assert len(history.sessions[0].messages) == 4
    assert history.sessions[-1].id == older.id


@pytest.mark.asyncio
async def test_delete_removes_exactly_one_and_keeps_order(storage_path):
    history = SessionHistory(LocalStore(storage_path))
    ids = [(await history.save(conversation(f"Q{i}"))).id for i in range(4)]
    # most recent first
    ids.reverse()

    assert await history.delete(ids[1]) is True

    assert [s.id for s in history.sessions] == [ids[0], ids[2], ids[3]]
    reloaded = await SessionHistory(LocalStore(storage_path)).load()
    assert [s.id for s in reloaded] == [ids[0], ids[2], ids[3]]


@pytest.mark.asyncio
async def test_delete_unknown_id_changes_nothing(storage_path):
    history = SessionHistory(LocalStore(storage_path))
    session = await history.save(conversation())

    assert await history.delete("missing") is False
    assert [s.id for s in history.sessions] == [session.id]


@pytest.mark.asyncio
async def test_save_rejects_empty_conversation(storage_path):
    with pytest.raises(ValueError):
        await SessionHistory(LocalStore(storage_path)).save([])


@pytest.mark.parametrize(
    "raw_file",
    [
        b"{not json",
        b"\xff\xfe{garbage",
        json.dumps({HISTORY_STORAGE_KEY: "[{\"bogus\": true}]"}).encode("utf-8"),
        json.dumps({HISTORY_STORAGE_KEY: "not json either"}).encode("utf-8"),
    ],
)
@pytest.mark.asyncio
async def test_unreadable_storage_starts_empty(tmp_path, raw_file):
    path = tmp_path / "local_storage.json"
    path.write_bytes(raw_file)

    sessions = await SessionHistory(LocalStore(str(path))).load()

    assert sessions == []


@pytest.mark.asyncio
async def test_local_store_items(storage_path):
    store = LocalStore(storage_path)
    assert await store.get_item("theme") is None

    await store.set_item("theme", "dark")
    assert await LocalStore(storage_path).get_item("theme") == "dark"

    await store.remove_item("theme")
    assert await LocalStore(storage_path).get_item("theme") is None
