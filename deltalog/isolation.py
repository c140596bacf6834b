"""Transaction isolation levels."""

from __future__ import annotations

from enum import Enum


class IsolationLevel(Enum):
    """Isolation level of a transaction."""

    SERIALIZABLE = "Serializable"
    SNAPSHOT = "SnapshotIsolation"

    def __str__(self) -> str:
        return self.value