"""Replaying log actions into table state, and reading log files newest first."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from typing import TypeVar

from deltalog.actions import (
    Action,
    AddFile,
    Metadata,
    Protocol,
    RemoveFile,
    SetTransaction,
    from_json,
)
from deltalog.checkpoint import LogStore
from deltalog.errors import IllegalStateError, UnexpectedFileTypeError
from deltalog.paths import canonicalize

S = TypeVar("S")


@contextmanager
def _closing(source: S) -> Iterator[S]:
    """Yield ``source`` and close it afterwards if it can be closed."""
    try:
        yield source
    finally:
        close = getattr(source, "close", None)
        if callable(close):
            with suppress(Exception):
                close()


class InMemoryLogReplay:
    """Folds the actions of successive versions into the state of a table."""

    def __init__(self, min_file_retention_timestamp: int, storage_type: str) -> None:
        self.min_file_retention_timestamp = min_file_retention_timestamp
        self.storage_type = storage_type
        self.current_version = -1
        self.current_protocol: Protocol | None = None
        self.current_metadata: Metadata | None = None
        self.size_in_bytes = 0
        self.num_metadata = 0
        self.num_protocol = 0
        self._transactions: dict[str, SetTransaction] = {}
        self._active_files: dict[str, AddFile] = {}
        self._tombstones: dict[str, RemoveFile] = {}

    def set_transactions(self) -> list[SetTransaction]:
        """Return the latest transaction of every application."""
        return list(self._transactions.values())

    def active_files(self) -> list[AddFile]:
        """Return the files currently in the table."""
        return list(self._active_files.values())

    def tombstones(self) -> list[RemoveFile]:
        """Return the removed files deleted after the retention timestamp."""
        return [
            remove
            for remove in self._tombstones.values()
            if remove.del_timestamp() > self.min_file_retention_timestamp
        ]

    def append(self, version: int, actions: Iterable[Action | None]) -> None:
        """Apply the actions of ``version``, which must follow the current version."""
        if not (self.current_version == -1 or version == self.current_version + 1):
            raise IllegalStateError(
                f"attempted to replay version {version}, but state is at {self.current_version}"
            )
        self.current_version = version

        with _closing(actions) as source:
            for action in source:
                self._apply(action)

    def _apply(self, action: Action | None) -> None:
        if isinstance(action, SetTransaction):
            self._transactions[action.app_id] = action
        elif isinstance(action, Metadata):
            self.current_metadata = action
            self.num_metadata += 1
        elif isinstance(action, Protocol):
            self.current_protocol = action
            self.num_protocol += 1
        elif isinstance(action, AddFile):
            path = canonicalize(action.path, self.storage_type)
            added = action.copy(False, path)
            self._active_files[path] = added
            self._tombstones.pop(path, None)
            self.size_in_bytes += added.size
        elif isinstance(action, RemoveFile):
            path = canonicalize(action.path, self.storage_type)
            removed = action.copy(False, path)
            previous = self._active_files.pop(path, None)
            if previous is not None:
                self.size_in_bytes -= previous.size
            self._tombstones[path] = removed


@dataclass(frozen=True)
class ReplayTuple:
    """An action read from the log, and whether it came from a checkpoint."""

    action: Action | None
    from_checkpoint: bool


class CheckpointReader(ABC):
    """Reads the actions stored in a checkpoint file."""

    @abstractmethod
    def read(self, path: str) -> Iterable[Action]:
        """Return the actions of the checkpoint file at ``path``."""


@dataclass
class MemoryOptimizedLogReplay:
    """Streams the actions of a set of log files, newest file first."""

    files: list[str]
    log_store: LogStore
    checkpoint_reader: CheckpointReader
    _order: list[str] = field(init=False, repr=False, default_factory=list)

    def reverse_iterator(self) -> Iterator[ReplayTuple]:
        """Yield the actions of every file, taking files in descending path order."""
        self.files.sort(reverse=True)
        return self._replay(list(self.files))

    def _replay(self, files: list[str]) -> Iterator[ReplayTuple]:
        for path in files:
            yield from self._read_file(path)

    def _read_file(self, path: str) -> Iterator[ReplayTuple]:
        if path.endswith(".json"):
            with _closing(self.log_store.read(path)) as lines:
                for line in lines:
                    yield ReplayTuple(action=from_json(line), from_checkpoint=False)
        elif path.endswith(".parquet"):
            with _closing(self.checkpoint_reader.read(path)) as actions:
                for action in actions:
                    yield ReplayTuple(action=action, from_checkpoint=True)
        else:
            raise UnexpectedFileTypeError(f"unexpected log file path: {path}")