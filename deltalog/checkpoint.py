"""Locating the latest complete checkpoint of a table's log."""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable, Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, TypeVar

from deltalog.errors import DeltaFileNotFoundError, JsonUnmarshalError
from deltalog.filenames import (
    checkpoint_file_singular,
    checkpoint_file_with_parts,
    checkpoint_prefix,
    checkpoint_version,
    is_checkpoint_file,
    num_checkpoint_parts,
)
from deltalog.log_segment import FileMeta

LAST_CHECKPOINT_PATH = "_last_checkpoint"

_READ_ATTEMPTS = 3
_RETRY_DELAY_SECONDS = 1.0
_LISTING_WINDOW = 1000

_log = logging.getLogger(__name__)

S = TypeVar("S")


class LogStore(ABC):
    """Reads and lists the files of a table's log directory."""

    @abstractmethod
    def root(self) -> str:
        """The log directory every listed path starts with."""

    @abstractmethod
    def read(self, path: str) -> Iterable[str]:
        """Return the lines of the file at ``path``.

        Raises DeltaFileNotFoundError when the file does not exist.
        """

    @abstractmethod
    def list_from(self, path: str) -> Iterable[FileMeta]:
        """Return, in path order, every file whose path is not before ``path``."""


@contextmanager
def _opened(source: S) -> Iterator[S]:
    """Yield ``source`` and close it afterwards, ignoring errors on close."""
    try:
        yield source
    finally:
        close = getattr(source, "close", None)
        if callable(close):
            with suppress(Exception):
                close()


def _json_int(data: dict[str, Any], key: str, default: int | None) -> int | None:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool):
        raise JsonUnmarshalError(
            f"cannot unmarshal {type(value).__name__} into field {key} of type int"
        )
    return value


@dataclass
class CheckpointMetadata:
    """Content of the ``_last_checkpoint`` file."""

    version: int = 0
    size: int = 0
    parts: int | None = None

    def to_json(self) -> str:
        """Return the single-line JSON form, leaving out empty fields."""
        out: dict[str, int] = {}
        if self.version:
            out["version"] = self.version
        if self.size:
            out["size"] = self.size
        if self.parts is not None:
            out["parts"] = self.parts
        return json.dumps(out, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str | bytes) -> CheckpointMetadata:
        """Decode the JSON form; raise JsonUnmarshalError if it is malformed."""
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise JsonUnmarshalError(str(exc)) from exc
        if not isinstance(data, dict):
            raise JsonUnmarshalError(
                f"cannot unmarshal {type(data).__name__} into checkpoint metadata"
            )
        return cls(
            version=_json_int(data, "version", 0) or 0,
            size=_json_int(data, "size", 0) or 0,
            parts=_json_int(data, "parts", None),
        )


@dataclass(frozen=True)
class CheckpointInstance:
    """A checkpoint version, with its number of parts if it has several files."""

    version: int
    num_parts: int | None = None

    def _parts(self) -> int:
        return 1 if self.num_parts is None else self.num_parts

    def compare(self, other: CheckpointInstance) -> int:
        """Negative, zero or positive as this checkpoint orders before, with or after ``other``."""
        if self.version == other.version:
            return self._parts() - other._parts()
        return -1 if self.version < other.version else 1

    def is_earlier_than(self, other: CheckpointInstance) -> bool:
        if other.compare(MAX_INSTANCE) == 0:
            return True
        if self.num_parts is None:
            return self.version <= other.version
        return self.version < other.version or (
            self.version == other.version and self.num_parts < other._parts()
        )

    def is_not_later_than(self, other: CheckpointInstance) -> bool:
        if other.compare(MAX_INSTANCE) == 0:
            return True
        return self.version <= other.version

    def corresponding_files(self, directory: str) -> list[str]:
        """Return the paths of every file of this checkpoint under ``directory``."""
        if self.num_parts is None:
            return [checkpoint_file_singular(directory, self.version)]
        return checkpoint_file_with_parts(directory, self.version, self.num_parts)

    @classmethod
    def from_path(cls, path: str) -> CheckpointInstance:
        return cls(version=checkpoint_version(path), num_parts=num_checkpoint_parts(path))

    @classmethod
    def from_metadata(cls, metadata: CheckpointMetadata) -> CheckpointInstance:
        return cls(version=metadata.version, num_parts=metadata.parts)


MAX_INSTANCE = CheckpointInstance(version=-1, num_parts=None)


def last_checkpoint(store: LogStore) -> CheckpointMetadata | None:
    """Return the metadata of the table's last checkpoint, or None if there is none."""
    return load_metadata_from_file(store)


def _read_last_checkpoint(store: LogStore) -> CheckpointMetadata | None:
    """One attempt at reading ``_last_checkpoint``; None means try again."""
    with _opened(store.read(LAST_CHECKPOINT_PATH)) as lines:
        line = next(iter(lines), None)
    if line is None:
        _log.warning("failed to read last checkpoint, end of iterator, try again")
        return None
    try:
        return CheckpointMetadata.from_json(line)
    except JsonUnmarshalError:
        _log.warning("failed to unmarshal json line when reading last checkpoint, try again")
        return None


def load_metadata_from_file(store: LogStore) -> CheckpointMetadata | None:
    """Read ``_last_checkpoint``, falling back to a listing if it stays unreadable."""
    for attempt in range(_READ_ATTEMPTS):
        if attempt:
            time.sleep(_RETRY_DELAY_SECONDS)
        try:
            metadata = _read_last_checkpoint(store)
        except DeltaFileNotFoundError:
            return None
        except Exception:
            _log.warning("failed to read last checkpoint, try again", exc_info=True)
            continue
        if metadata is not None:
            return metadata

    # The file may be partially written (overwrites are not atomic on every
    # store), so recover the latest checkpoint from the directory listing.
    found = find_last_complete_checkpoint(store, MAX_INSTANCE)
    if found is None:
        return None
    return CheckpointMetadata(version=found.version, size=-1, parts=found.num_parts)


def find_last_complete_checkpoint(
    store: LogStore, cv: CheckpointInstance
) -> CheckpointInstance | None:
    """Return the latest complete checkpoint not later than ``cv``, or None."""
    cur = max(cv.version, 0)
    while cur >= 0:
        checkpoints: list[CheckpointInstance] = []
        start = checkpoint_prefix(store.root(), max(0, cur - _LISTING_WINDOW))
        with _opened(store.list_from(start)) as files:
            for meta in files:
                if not is_checkpoint_file(meta.path):
                    continue
                candidate = CheckpointInstance.from_path(meta.path)
                if cur == 0 or candidate.version <= cur or candidate.is_earlier_than(cv):
                    checkpoints.append(candidate)
                else:
                    break

        latest = latest_complete_checkpoint_from_list(checkpoints, cv)
        if latest is not None:
            return latest
        cur -= _LISTING_WINDOW
    return None


def latest_complete_checkpoint_from_list(
    instances: Iterable[CheckpointInstance], not_later_than: CheckpointInstance
) -> CheckpointInstance | None:
    """Return the latest checkpoint in ``instances`` whose every part is present."""
    counts: Counter[tuple[int, int, bool]] = Counter()
    for instance in instances:
        if not instance.is_not_later_than(not_later_than):
            continue
        counts[(instance.version, instance._parts(), instance.num_parts is not None)] += 1

    complete = [
        CheckpointInstance(version=version, num_parts=parts if has_parts else None)
        for (version, parts, has_parts), count in counts.items()
        if count == parts
    ]
    if not complete:
        return None
    complete.sort(key=cmp_to_key(lambda a, b: a.compare(b)))
    return complete[-1]