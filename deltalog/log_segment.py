"""The files that make up one version of a table's log."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class FileMeta:
    """A file in a store: its path, size and modification time."""

    path: str
    size: int = 0
    time_modified: datetime = _ZERO_TIME


def _unix_seconds(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(seconds=1)


@dataclass(eq=False)
class LogSegment:
    """Delta and checkpoint files needed to rebuild one version of a table."""

    log_path: str
    version: int
    deltas: list[FileMeta] = field(default_factory=list)
    checkpoints: list[FileMeta] = field(default_factory=list)
    checkpoint_version: int | None = None
    last_commit_timestamp: datetime = _ZERO_TIME

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LogSegment):
            return False
        return (
            self.log_path == other.log_path
            and self.version == other.version
            and _unix_seconds(self.last_commit_timestamp)
            == _unix_seconds(other.last_commit_timestamp)
            and (self.checkpoint_version or 0) == (other.checkpoint_version or 0)
            and list(self.deltas) == list(other.deltas)
            and list(self.checkpoints) == list(other.checkpoints)
        )

    __hash__ = None  # type: ignore[assignment]


def empty_log_segment(log_path: str) -> LogSegment:
    """Return the segment of a table that has no commits yet."""
    return LogSegment(
        log_path=log_path,
        version=-1,
        deltas=[],
        checkpoints=[],
        checkpoint_version=None,
        last_commit_timestamp=_ZERO_TIME,
    )