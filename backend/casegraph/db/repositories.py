"""Data access repositories for threads, signals and messages.

Each repo takes a SQLiteDB via dependency injection and returns plain dicts
with JSON list columns decoded. ``InvestigationStore`` bundles the three and
hands typed models to the graph layer through the ``SignalStore`` protocol.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from casegraph.db.sqlite import SQLiteDB
from casegraph.models import InvestigationMessage, InvestigationSignal, InvestigationThread


def _now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# Marks an argument the caller left out, so that None can mean "clear".
UNSET: Any = object()

_INSERT_SIGNAL_SQL = (
    "INSERT INTO investigation_signals "
    "(id, thread_id, type, source, url, date, summary, credibility_score, "
    "confidence, impact_on_hypothesis, created_at) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)


def _decode_lists(row: dict[str, Any] | None, *columns: str) -> dict[str, Any] | None:
    if row is None:
        return None
    for column in columns:
        row[column] = json.loads(row[column]) if row.get(column) else []
    return row


@runtime_checkable
class SignalStore(Protocol):
    """What the workspace needs from persistence: a thread and its evidence."""

    def get_thread(self, thread_id: str) -> InvestigationThread | None:
        ...

    def list_signals(self, thread_id: str) -> list[InvestigationSignal]:
        ...

    def list_messages(self, thread_id: str) -> list[InvestigationMessage]:
        ...


class ThreadRepo:
    """Repository for investigation threads."""

    def __init__(self, db: SQLiteDB) -> None:
        self._db = db

    def create(
        self,
        title: str,
        initial_hypothesis: str,
        scope: str | None = None,
        investigative_axes: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a thread and return it as a dict."""
        thread_id = _new_id()
        now = _now_iso()
        self._db.execute(
            "INSERT INTO investigation_threads "
            "(id, title, initial_hypothesis, scope, investigative_axes, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (thread_id, title, initial_hypothesis, scope, json.dumps(investigative_axes or []), now, now),
        )
        return self.get(thread_id)  # type: ignore[return-value]

    def get(self, thread_id: str) -> dict[str, Any] | None:
        row = self._db.fetchone("SELECT * FROM investigation_threads WHERE id = ?", (thread_id,))
        return _decode_lists(row, "investigative_axes", "blind_spots")

    def list_all(self) -> list[dict[str, Any]]:
        """List all threads, most recently updated first."""
        rows = self._db.fetchall("SELECT * FROM investigation_threads ORDER BY updated_at DESC")
        return [_decode_lists(row, "investigative_axes", "blind_spots") for row in rows]  # type: ignore[misc]

    def update_assessment(
        self,
        thread_id: str,
        current_assessment: str | None = UNSET,
        confidence_score: float | None = None,
        blind_spots: list[str] | None = None,
    ) -> dict[str, Any] | None:
        """Store the derived fields a chat turn produces.

        ``confidence_score`` may come as 0-100 or 0-1; it is stored as 0-1.
        Passing ``current_assessment=None`` clears the assessment; leaving it
        out keeps the stored one.
        """
        current = self.get(thread_id)
        if current is None:
            return None
        merged = InvestigationThread.model_validate({
            **current,
            "current_assessment": (
                current_assessment if current_assessment is not UNSET else current["current_assessment"]
            ),
            "confidence_score": (
                confidence_score if confidence_score is not None else current["confidence_score"]
            ),
            "blind_spots": blind_spots if blind_spots is not None else current["blind_spots"],
        })
        self._db.execute(
            "UPDATE investigation_threads SET current_assessment = ?, confidence_score = ?, "
            "blind_spots = ?, updated_at = ? WHERE id = ?",
            (
                merged.current_assessment, merged.confidence_score,
                json.dumps(merged.blind_spots), _now_iso(), thread_id,
            ),
        )
        return self.get(thread_id)

    def update_status(self, thread_id: str, status: str) -> dict[str, Any] | None:
        self._db.execute(
            "UPDATE investigation_threads SET status = ?, updated_at = ? WHERE id = ?",
            (status, _now_iso(), thread_id),
        )
        return self.get(thread_id)


class SignalRepo:
    """Repository for signals. Append-only: no update or delete."""

    def __init__(self, db: SQLiteDB) -> None:
        self._db = db

    def append(self, thread_id: str, signal: InvestigationSignal) -> dict[str, Any]:
        """Persist one validated signal under a thread."""
        return self.append_many(thread_id, [signal])[0]

    def append_many(self, thread_id: str, signals: list[InvestigationSignal]) -> list[dict[str, Any]]:
        """Persist a batch of signals in one transaction.

        A duplicate id anywhere in the batch raises ``sqlite3.IntegrityError``
        and nothing from the batch is stored.
        """
        now = _now_iso()
        self._db.executemany(
            _INSERT_SIGNAL_SQL,
            [
                (
                    s.id, thread_id, s.type, s.source, s.url, s.date, s.summary,
                    s.credibility_score, s.confidence, s.impact_on_hypothesis, s.created_at or now,
                )
                for s in signals
            ],
        )
        return [
            self._db.fetchone("SELECT * FROM investigation_signals WHERE id = ?", (s.id,))  # type: ignore[misc]
            for s in signals
        ]

    def list_by_thread(self, thread_id: str) -> list[dict[str, Any]]:
        """Signals of a thread in insertion order."""
        return self._db.fetchall(
            "SELECT * FROM investigation_signals WHERE thread_id = ? ORDER BY created_at, rowid",
            (thread_id,),
        )

    @staticmethod
    def new_id() -> str:
        return _new_id()


class MessageRepo:
    """Repository for chat messages."""

    def __init__(self, db: SQLiteDB) -> None:
        self._db = db

    def append(
        self, thread_id: str, role: str, content: str, citations: list[str] | None = None,
    ) -> dict[str, Any]:
        """Append a message to the conversation history."""
        msg_id = _new_id()
        self._db.execute(
            "INSERT INTO investigation_messages (id, thread_id, role, content, citations, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (msg_id, thread_id, role, content, json.dumps(citations or []), _now_iso()),
        )
        row = self._db.fetchone("SELECT * FROM investigation_messages WHERE id = ?", (msg_id,))
        return _decode_lists(row, "citations")  # type: ignore[return-value]

    def get_history(self, thread_id: str) -> list[dict[str, Any]]:
        """Messages of a thread in chronological order."""
        rows = self._db.fetchall(
            "SELECT * FROM investigation_messages WHERE thread_id = ? ORDER BY created_at, rowid",
            (thread_id,),
        )
        return [_decode_lists(row, "citations") for row in rows]  # type: ignore[misc]


class InvestigationStore:
    """SQLite-backed ``SignalStore``."""

    def __init__(self, db: SQLiteDB) -> None:
        self.threads = ThreadRepo(db)
        self.signals = SignalRepo(db)
        self.messages = MessageRepo(db)

    def get_thread(self, thread_id: str) -> InvestigationThread | None:
        row = self.threads.get(thread_id)
        return InvestigationThread.model_validate(row) if row is not None else None

    def list_signals(self, thread_id: str) -> list[InvestigationSignal]:
        return [InvestigationSignal.model_validate(row) for row in self.signals.list_by_thread(thread_id)]

    def list_messages(self, thread_id: str) -> list[InvestigationMessage]:
        return [InvestigationMessage.model_validate(row) for row in self.messages.get_history(thread_id)]
