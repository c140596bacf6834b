"""Commit history of a table: commit information and time travel lookups."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager, suppress
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import TypeVar

from deltalog.actions import CommitInfo, from_json
from deltalog.checkpoint import LogStore
from deltalog.errors import (
    no_history_found,
    no_reproducible_history_found,
    timestamp_earlier_than_table_first_commit,
    timestamp_later_than_table_last_commit,
    version_not_exist,
)
from deltalog.filenames import (
    checkpoint_version,
    delta_file,
    delta_version,
    is_checkpoint_file,
    is_delta_file,
    num_checkpoint_parts,
)

_MAX_INT64 = (1 << 63) - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

S = TypeVar("S")


@contextmanager
def _opened(source: S) -> Iterator[S]:
    try:
        yield source
    finally:
        close = getattr(source, "close", None)
        if callable(close):
            with suppress(Exception):
                close()


def _unix_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class Commit:
    """A committed version and the time it was written, in milliseconds."""

    version: int
    timestamp: int

    def with_timestamp(self, timestamp: int) -> Commit:
        return replace(self, timestamp=timestamp)


class HistoryManager:
    """Answers questions about the commits recorded in a log store."""

    def __init__(self, log_store: LogStore) -> None:
        self.log_store = log_store

    def commit_info(self, version: int) -> CommitInfo:
        """Return the commit information of ``version``, stamped with that version."""
        path = delta_file(self.log_store.root(), version)
        found: CommitInfo | None = None
        with _opened(self.log_store.read(path)) as lines:
            for line in lines:
                if isinstance(action := from_json(line), CommitInfo):
                    found = action
                    break
        if found is None:
            return CommitInfo(version=version)
        return found.copy(version)

    def check_version_exists(self, version: int, latest_version: int) -> None:
        """Raise unless ``version`` lies between the earliest reproducible and the latest."""
        earliest = self.earliest_reproducible_commit_version()
        if version < earliest or version > latest_version:
            raise version_not_exist(version, earliest, latest_version)

    def active_commit_at_time(
        self,
        timestamp: int,
        latest_version: int,
        can_return_last_commit: bool,
        must_be_recreatable: bool,
        can_return_earliest_commit: bool,
    ) -> Commit:
        """Return the commit that was current at ``timestamp`` milliseconds."""
        if must_be_recreatable:
            earliest = self.earliest_reproducible_commit_version()
        else:
            earliest = self.earliest_delta_file()

        commits = self.commits(earliest, latest_version + 1)
        if not commits:
            raise no_history_found(self.log_store.root())

        commit = self.last_commit_before_timestamp(commits, timestamp) or commits[0]

        if commit.timestamp > timestamp and not can_return_earliest_commit:
            raise timestamp_earlier_than_table_first_commit(timestamp, commit.timestamp)
        if (
            commit.timestamp < timestamp
            and commit.version == latest_version
            and not can_return_last_commit
        ):
            raise timestamp_later_than_table_last_commit(timestamp, commit.timestamp)
        return commit

    def earliest_delta_file(self) -> int:
        """Return the version of the first delta file in the log."""
        root = self.log_store.root()
        with _opened(self.log_store.list_from(delta_file(root, 0))) as files:
            for meta in files:
                if is_delta_file(meta.path):
                    return delta_version(meta.path)
        raise no_history_found(root)

    def earliest_reproducible_commit_version(self) -> int:
        """Return the earliest version the table can be rebuilt at."""
        root = self.log_store.root()
        with _opened(self.log_store.list_from(delta_file(root, 0))) as listing:
            files = [
                meta.path
                for meta in listing
                if is_checkpoint_file(meta.path) or is_delta_file(meta.path)
            ]

        parts_seen: dict[tuple[int, int], int] = {}
        smallest_delta = _MAX_INT64
        last_complete: int | None = None

        for path in files:
            if is_delta_file(path):
                version = delta_version(path)
                if version == 0:
                    return version
                smallest_delta = min(version, smallest_delta)
                if last_complete is not None and last_complete >= smallest_delta:
                    return last_complete
            elif is_checkpoint_file(path):
                version = checkpoint_version(path)
                parts = num_checkpoint_parts(path)
                if parts is None:
                    last_complete = version
                else:
                    key = (version, parts)
                    seen = parts_seen.get(key, 0)
                    if parts == seen + 1:
                        last_complete = version
                    parts_seen[key] = seen + 1

        if last_complete is not None and last_complete >= smallest_delta:
            return last_complete
        if smallest_delta < _MAX_INT64:
            raise no_reproducible_history_found(root)
        raise no_history_found(root)

    def last_commit_before_timestamp(
        self, commits: Sequence[Commit], time_in_millis: int
    ) -> Commit | None:
        """Return the last commit made at or before ``time_in_millis``, or None."""
        return next((c for c in reversed(commits) if c.timestamp <= time_in_millis), None)

    def commits(self, start: int, end: int) -> list[Commit]:
        """Return the commits with versions from ``start`` up to, not including, ``end``."""
        result: list[Commit] = []
        root = self.log_store.root()
        with _opened(self.log_store.list_from(delta_file(root, start))) as files:
            for meta in files:
                if not is_delta_file(meta.path):
                    continue
                commit = Commit(
                    version=delta_version(meta.path),
                    timestamp=_unix_millis(meta.time_modified),
                )
                if commit.version >= end:
                    break
                result.append(commit)
        return result