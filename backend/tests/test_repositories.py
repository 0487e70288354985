"""Tests for casegraph.db.repositories: data access repositories.

Each repo takes a SQLiteDB via dependency injection.
"""

import sqlite3
from pathlib import Path

import pytest

from casegraph.db.repositories import (
    InvestigationStore,
    MessageRepo,
    SignalRepo,
    SignalStore,
    ThreadRepo,
)
from casegraph.db.sqlite import SQLiteDB
from casegraph.models import InvestigationMessage, InvestigationSignal, InvestigationThread


@pytest.fixture
def sqlite_db(tmp_path: Path) -> SQLiteDB:
    """Create a fresh SQLiteDB instance."""
    return SQLiteDB(str(tmp_path / "test.db"))


@pytest.fixture
def thread_repo(sqlite_db: SQLiteDB) -> ThreadRepo:
    return ThreadRepo(sqlite_db)


@pytest.fixture
def signal_repo(sqlite_db: SQLiteDB) -> SignalRepo:
    return SignalRepo(sqlite_db)


@pytest.fixture
def message_repo(sqlite_db: SQLiteDB) -> MessageRepo:
    return MessageRepo(sqlite_db)


@pytest.fixture
def thread(thread_repo: ThreadRepo) -> dict:
    """A persisted thread."""
    return thread_repo.create(
        title="Hormuz shipping",
        initial_hypothesis="Tanker traffic is restricted",
        investigative_axes=["insurance"],
    )


def make_signal(signal_id: str, **extra) -> InvestigationSignal:
    fields = {
        "id": signal_id,
        "type": "article",
        "source": "Wire",
        "summary": f"Event {signal_id}.",
        "impact_on_hypothesis": "supports",
        "date": "2024-01-01",
    }
    fields.update(extra)
    return InvestigationSignal(**fields)


class TestThreadRepo:
    """Threads: create, get, list, update."""

    def test_create_returns_dict_with_id(self, thread):
        assert thread["id"]
        assert thread["title"] == "Hormuz shipping"
        assert thread["status"] == "active"
        assert thread["investigative_axes"] == ["insurance"]
        assert thread["blind_spots"] == []
        assert thread["created_at"] == thread["updated_at"]

    def test_get_missing_returns_none(self, thread_repo):
        assert thread_repo.get("nonexistent") is None

    def test_list_all_most_recent_first(self, thread_repo, thread):
        second = thread_repo.create(title="Second", initial_hypothesis="H2")
        thread_repo.update_status(thread["id"], "dormant")
        assert [t["id"] for t in thread_repo.list_all()] == [thread["id"], second["id"]]

    def test_update_assessment_normalizes_percentage(self, thread_repo, thread):
        """Confidence given on the 0-100 scale is stored as a fraction."""
        updated = thread_repo.update_assessment(
            thread["id"], current_assessment="unclear", confidence_score=72, blind_spots=["AIS gaps"],
        )
        assert updated["confidence_score"] == pytest.approx(0.72)
        assert updated["current_assessment"] == "unclear"
        assert updated["blind_spots"] == ["AIS gaps"]

    def test_update_assessment_keeps_unset_fields(self, thread_repo, thread):
        thread_repo.update_assessment(thread["id"], current_assessment="supported", confidence_score=0.4)
        updated = thread_repo.update_assessment(thread["id"], blind_spots=["x"])
        assert updated["current_assessment"] == "supported"
        assert updated["confidence_score"] == pytest.approx(0.4)

    def test_update_assessment_none_clears(self, thread_repo, thread):
        thread_repo.update_assessment(thread["id"], current_assessment="supported")
        updated = thread_repo.update_assessment(thread["id"], current_assessment=None)
        assert updated["current_assessment"] is None

    def test_update_missing_thread(self, thread_repo):
        assert thread_repo.update_assessment("nonexistent", confidence_score=50) is None

    def test_update_status(self, thread_repo, thread):
        assert thread_repo.update_status(thread["id"], "closed")["status"] == "closed"


class TestSignalRepo:
    """Signals are append-only and listed in insertion order."""

    def test_append_returns_row(self, signal_repo, thread):
        row = signal_repo.append(thread["id"], make_signal("s1", credibility_score="B"))
        assert row["id"] == "s1"
        assert row["thread_id"] == thread["id"]
        assert row["credibility_score"] == "B"
        assert row["created_at"]

    def test_list_in_insertion_order(self, signal_repo, thread):
        signal_repo.append_many(thread["id"], [make_signal("b"), make_signal("a"), make_signal("c")])
        assert [r["id"] for r in signal_repo.list_by_thread(thread["id"])] == ["b", "a", "c"]

    def test_duplicate_id_rejected(self, signal_repo, thread):
        signal_repo.append(thread["id"], make_signal("s1"))
        with pytest.raises(sqlite3.IntegrityError):
            signal_repo.append(thread["id"], make_signal("s1"))

    def test_batch_with_duplicate_is_all_or_nothing(self, signal_repo, thread):
        signal_repo.append(thread["id"], make_signal("dup"))
        with pytest.raises(sqlite3.IntegrityError):
            signal_repo.append_many(thread["id"], [make_signal("fresh"), make_signal("dup")])
        assert [r["id"] for r in signal_repo.list_by_thread(thread["id"])] == ["dup"]
        signal_repo.append(thread["id"], make_signal("fresh"))
        assert [r["id"] for r in signal_repo.list_by_thread(thread["id"])] == ["dup", "fresh"]

    def test_empty_batch(self, signal_repo, thread):
        assert signal_repo.append_many(thread["id"], []) == []

    def test_signals_scoped_to_thread(self, signal_repo, thread_repo, thread):
        other = thread_repo.create(title="Other", initial_hypothesis="H")
        signal_repo.append(thread["id"], make_signal("s1"))
        signal_repo.append(other["id"], make_signal("s2"))
        assert [r["id"] for r in signal_repo.list_by_thread(other["id"])] == ["s2"]

    def test_new_id_is_unique(self):
        assert SignalRepo.new_id() != SignalRepo.new_id()


class TestMessageRepo:
    def test_append_and_history(self, message_repo, thread):
        message_repo.append(thread["id"], role="user", content="What changed?")
        message_repo.append(thread["id"], role="assistant", content="Two new seizures.", citations=["s1"])
        history = message_repo.get_history(thread["id"])
        assert [m["role"] for m in history] == ["user", "assistant"]
        assert history[0]["citations"] == []
        assert history[1]["citations"] == ["s1"]


class TestInvestigationStore:
    """The store hands typed models to the graph layer."""

    @pytest.fixture
    def store(self, sqlite_db) -> InvestigationStore:
        return InvestigationStore(sqlite_db)

    def test_satisfies_signal_store_protocol(self, store):
        assert isinstance(store, SignalStore)

    def test_get_thread_model(self, store, thread):
        model = store.get_thread(thread["id"])
        assert isinstance(model, InvestigationThread)
        assert model.initial_hypothesis == "Tanker traffic is restricted"
        assert store.get_thread("nonexistent") is None

    def test_list_signals_models(self, store, thread):
        store.signals.append(thread["id"], make_signal("s1", confidence=0.8, url="https://r.example/a"))
        signals = store.list_signals(thread["id"])
        assert signals == [
            make_signal(
                "s1", confidence=0.8, url="https://r.example/a",
                thread_id=thread["id"], created_at=signals[0].created_at,
            )
        ]

    def test_list_messages_models(self, store, thread):
        store.messages.append(thread["id"], role="user", content="Hi")
        messages = store.list_messages(thread["id"])
        assert len(messages) == 1
        assert isinstance(messages[0], InvestigationMessage)
