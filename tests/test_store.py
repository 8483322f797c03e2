from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from exceptions import DuplicateIdError, InvalidArgumentError, NotFoundError, StorageError
from models import MessageRole


def test_create_and_get_thread(store):
    created = store.create_thread("t1", "Test")
    fetched = store.get_thread("t1")

    assert fetched.id == created.id == "t1"
    assert fetched.title == "Test"
    assert fetched.created_at == fetched.updated_at


def test_create_thread_duplicate_id(store):
    store.create_thread("t1", "Test")
    with pytest.raises(DuplicateIdError):
        store.create_thread("t1", "Other")
    assert store.get_thread("t1").title == "Test"


def test_get_missing_thread(store):
    with pytest.raises(NotFoundError):
        store.get_thread("missing")


def test_scenario_user_then_model_message(store):
    store.create_thread("T1", "Test")
    store.append_message("T1", "user", "Hello")
    store.append_message("T1", MessageRole.MODEL, "Hi there")

    messages = store.list_messages("T1")
    assert [(m.role, m.content) for m in messages] == [
        (MessageRole.USER, "Hello"),
        (MessageRole.MODEL, "Hi there"),
    ]


def test_messages_keep_append_order_with_increasing_ids(store):
    store.create_thread("t1", "Test")
    contents = [f"message {i}" for i in range(12)]
    for i, content in enumerate(contents):
        store.append_message("t1", "user" if i % 2 == 0 else "model", content)

    messages = store.list_messages("t1")
    assert [m.content for m in messages] == contents
    ids = [m.id for m in messages]
    assert all(a < b for a, b in zip(ids, ids[1:]))


def test_list_messages_empty_thread(store):
    store.create_thread("t1", "Test")
    assert store.list_messages("t1") == []
    assert store.count_messages("t1") == 0


def test_list_messages_missing_thread(store):
    with pytest.raises(NotFoundError):
        store.list_messages("missing")


def test_append_to_missing_thread_persists_nothing(store, engine):
    with pytest.raises(NotFoundError):
        store.append_message("missing", "user", "Hello")

    with engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM messages")).scalar() == 0


def test_append_rejects_unknown_role(store):
    store.create_thread("t1", "Test")
    with pytest.raises(InvalidArgumentError):
        store.append_message("t1", "assistant", "Hello")
    assert store.list_messages("t1") == []


def test_updated_at_covers_latest_message(store):
    store.create_thread("t1", "Test")
    for i in range(5):
        message = store.append_message("t1", "user", f"m{i}")
        thread = store.get_thread("t1")
        assert thread.updated_at >= message.created_at
    store.rename_thread("t1", "Renamed")
    assert store.get_thread("t1").updated_at >= message.created_at


def test_rename_is_idempotent_and_keeps_recency(store):
    store.create_thread("t1", "Test")
    before = store.get_thread("t1").updated_at

    store.rename_thread("t1", "Renamed")
    store.rename_thread("t1", "Renamed")

    thread = store.get_thread("t1")
    assert thread.title == "Renamed"
    assert thread.updated_at == before


def test_rename_missing_thread(store):
    with pytest.raises(NotFoundError):
        store.rename_thread("missing", "Title")


def test_list_threads_most_recent_first(store):
    store.create_thread("a", "A")
    store.create_thread("b", "B")
    store.create_thread("c", "C")
    store.append_message("a", "user", "bump a")

    assert [t.id for t in store.list_threads()][0] == "a"
    assert {t.id for t in store.list_threads()} == {"a", "b", "c"}


def test_delete_thread_cascades(store, engine):
    store.create_thread("T3", "Doomed")
    store.create_thread("keep", "Keep")
    for i in range(5):
        store.append_message("T3", "user" if i % 2 == 0 else "model", f"m{i}")
    store.append_message("keep", "user", "stay")

    store.delete_thread("T3")

    assert "T3" not in [t.id for t in store.list_threads()]
    with pytest.raises(NotFoundError):
        store.list_messages("T3")
    with engine.connect() as conn:
        orphans = conn.execute(text("SELECT COUNT(*) FROM messages WHERE thread_id = 'T3'")).scalar()
    assert orphans == 0
    assert [m.content for m in store.list_messages("keep")] == ["stay"]


def test_delete_missing_thread(store):
    with pytest.raises(NotFoundError):
        store.delete_thread("missing")


def test_message_ids_not_reused_after_delete(store):
    store.create_thread("t1", "One")
    last = store.append_message("t1", "user", "hello")
    store.delete_thread("t1")
    store.create_thread("t2", "Two")
    assert store.append_message("t2", "user", "hello").id > last.id


def test_foreign_key_enforced_by_database(engine):
    with engine.connect() as conn:
        with pytest.raises(IntegrityError):
            conn.execute(text(
                "INSERT INTO messages (thread_id, role, content, created_at) "
                "VALUES ('ghost', 'user', 'x', '2024-01-01 00:00:00')"
            ))


def test_concurrent_appends_to_one_thread(store):
    store.create_thread("t1", "Busy")

    def worker(n):
        for i in range(5):
            store.append_message("t1", "user", f"w{n}-{i}")

    with ThreadPoolExecutor(max_workers=4) as pool:
        list(pool.map(worker, range(4)))

    messages = store.list_messages("t1")
    assert len(messages) == 20
    for n in range(4):
        own = [m.content for m in messages if m.content.startswith(f"w{n}-")]
        assert own == [f"w{n}-{i}" for i in range(5)]
    assert store.get_thread("t1").updated_at >= messages[-1].created_at


def test_storage_failure_is_wrapped(store, engine):
    store.create_thread("t1", "Test")
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE messages"))

    with pytest.raises(StorageError):
        store.list_messages("t1")


def test_ping(store):
    store.ping()


def test_recreated_thread_id_shares_write_lock(store):
    store.create_thread("t1", "First")
    lock = store._thread_lock("t1")
    store.delete_thread("t1")
    store.create_thread("t1", "Second")

    assert store._thread_lock("t1") is lock
    store.append_message("t1", "user", "hello")
    assert [m.content for m in store.list_messages("t1")] == ["hello"]
