"""Signal store: SQLite persistence for threads, signals and messages."""

from casegraph.db.repositories import (
    InvestigationStore,
    MessageRepo,
    SignalRepo,
    SignalStore,
    ThreadRepo,
)
from casegraph.db.sqlite import SQLiteDB

__all__ = [
    "SQLiteDB",
    "SignalStore",
    "InvestigationStore",
    "ThreadRepo",
    "SignalRepo",
    "MessageRepo",
]
