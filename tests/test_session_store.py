"""SessionStore: round trips, listing, resolution and retention."""

import os
from unittest.mock import patch

from gptcli.models import Message, Session
from gptcli.session_manager import SessionStore


def make_session(session_id: str, updated_at: float, n_messages: int = 1) -> Session:
    return Session(
        id=session_id,
        title=f"Session {session_id}",
        created_at=updated_at - 10,
        updated_at=updated_at,
        messages=[Message("user", f"message {i}") for i in range(n_messages)],
        model="gpt-4o-mini",
    )


def test_save_then_load_round_trip(store):
    session = Session(
        id="1700000000000-abc123def",
        title="Python questions",
        created_at=1700000000.0,
        updated_at=1700000100.5,
        messages=[
            Message("user", "hello"),
            Message("assistant", "Hi!", model="gpt-4o"),
            Message("assistant", "✅ Model switched to gpt-4o", is_notice=True),
        ],
        model="gpt-4o",
    )
    store.save(session)

    assert store.load(session.id) == session


def test_round_trip_keeps_an_empty_title(store):
    session = Session(
        id="1700000000000-untitled1",
        title="",
        created_at=1700000000.0,
        updated_at=1700000000.0,
        messages=[Message("user", "hi")],
        model="gpt-4o-mini",
    )
    store.save(session)

    loaded = store.load(session.id)

    assert loaded == session
    assert loaded.title == ""


def test_load_missing_returns_none(store):
    assert store.load("does-not-exist") is None


def test_list_orders_newest_first_and_limits(store):
    for i in range(12):
        store.save(make_session(f"s{i:02d}", updated_at=1000 + i))

    listed = store.list()

    assert len(listed) == 10
    assert [s.id for s in listed[:3]] == ["s11", "s10", "s09"]
    assert len(store.list(limit=None)) == 12


def test_list_skips_unparsable_files(store):
    store.save(make_session("good", updated_at=1000))
    with open(os.path.join(store.directory, "broken.json"), "w", encoding="utf-8") as f:
        f.write("{ not json")
    with open(os.path.join(store.directory, "partial.json"), "w", encoding="utf-8") as f:
        f.write('{"title": "no id"}')

    assert [s.id for s in store.list()] == ["good"]


def test_list_on_missing_directory(tmp_path):
    assert SessionStore(str(tmp_path / "nowhere")).list() == []


def test_resolve_by_prefix_then_exact(store):
    store.save(make_session("1700000000000-aaaaaaaaa", updated_at=1000))
    store.save(make_session("1700000999999-bbbbbbbbb", updated_at=2000))

    assert store.resolve("1700000999").id == "1700000999999-bbbbbbbbb"
    assert store.resolve("1700000000000-aaaaaaaaa").id == "1700000000000-aaaaaaaaa"
    assert store.resolve("zzz") is None
    assert store.resolve("   ") is None


def test_resolve_falls_back_to_exact_load_beyond_recent_ten(store):
    store.save(make_session("old-one", updated_at=1))
    for i in range(10):
        store.save(make_session(f"new-{i}", updated_at=100 + i))

    assert store.resolve("old-one").id == "old-one"
    # Prefix search only covers the recent list
    assert store.resolve("old-") is None


def test_save_is_an_idempotent_upsert(store):
    session = make_session("same", updated_at=1000)
    store.save(session)
    session.title = "Renamed"
    store.save(session)

    assert len(store.list()) == 1
    assert store.load("same").title == "Renamed"


def test_save_failure_is_swallowed(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store = SessionStore(str(blocker / "sessions"))

    store.save(make_session("x", updated_at=1))

    assert store.load("x") is None


def test_cleanup_keeps_the_newest(store):
    for i in range(8):
        store.save(make_session(f"s{i}", updated_at=1000 + i))

    removed = store.cleanup(max_retained=5)

    remaining = store.list(limit=None)
    assert removed == 3
    assert len(remaining) == 5
    assert min(s.updated_at for s in remaining) > 1002
    assert {s.id for s in remaining} == {"s3", "s4", "s5", "s6", "s7"}


def test_cleanup_below_cap_is_a_noop(store):
    for i in range(3):
        store.save(make_session(f"s{i}", updated_at=1000 + i))

    assert store.cleanup(max_retained=50) == 0
    assert len(store.list(limit=None)) == 3


def test_cleanup_continues_past_delete_failures(store):
    for i in range(6):
        store.save(make_session(f"s{i}", updated_at=1000 + i))

    real_remove = os.remove

    def flaky_remove(path):
        if path.endswith("s0.json"):
            raise PermissionError("locked")
        real_remove(path)

    with patch("gptcli.session_manager.os.remove", side_effect=flaky_remove):
        removed = store.cleanup(max_retained=3)

    remaining = {s.id for s in store.list(limit=None)}
    assert removed == 2
    assert remaining == {"s0", "s3", "s4", "s5"}


def test_delete(store):
    store.save(make_session("gone", updated_at=1))

    assert store.delete("gone") is True
    assert store.delete("gone") is False
    assert store.load("gone") is None
