from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from deltalog.checkpoint import (
    LAST_CHECKPOINT_PATH,
    MAX_INSTANCE,
    CheckpointInstance,
    CheckpointMetadata,
    LogStore,
    find_last_complete_checkpoint,
    last_checkpoint,
    latest_complete_checkpoint_from_list,
    load_metadata_from_file,
)
from deltalog.errors import DeltaFileNotFoundError, JsonUnmarshalError
from deltalog.log_segment import FileMeta


class MemoryStore(LogStore):
    def __init__(self, root=""):
        self._root = root
        self.files = {}

    def add(self, path, lines=()):
        self.files[path] = list(lines)

    def root(self):
        return self._root

    def read(self, path):
        if path not in self.files:
            raise DeltaFileNotFoundError(path)
        return iter(self.files[path])

    def list_from(self, path):
        epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
        return iter([FileMeta(p, 0, epoch) for p in sorted(self.files) if p >= path])


class FailingListStore(LogStore):
    def __init__(self, fail_at, error):
        self.fail_at = fail_at
        self.error = error

    def root(self):
        return ""

    def read(self, path):
        raise RuntimeError("not implemented")

    def list_from(self, path):
        def generate():
            n = 0
            while True:
                n += 1
                if n == self.fail_at:
                    raise self.error
                yield FileMeta("")

        return generate()


class EndingListStore(FailingListStore):
    def list_from(self, path):
        def generate():
            yield FileMeta("")

        return generate()


def test_find_fails_when_first_listing_call_fails():
    error = ConnectionError("RequestError: send request failed")
    store = FailingListStore(1, error)
    with pytest.raises(ConnectionError, match="RequestError: send request failed"):
        find_last_complete_checkpoint(store, MAX_INSTANCE)


def test_find_fails_when_any_listing_call_fails():
    error = ConnectionError("RequestError: send request failed")
    store = FailingListStore(3, error)
    with pytest.raises(ConnectionError, match="RequestError: send request failed"):
        find_last_complete_checkpoint(store, MAX_INSTANCE)


def test_find_returns_none_at_end_of_listing():
    assert find_last_complete_checkpoint(EndingListStore(0, None), MAX_INSTANCE) is None


def test_compare_orders_by_version_then_parts():
    assert CheckpointInstance(5).compare(CheckpointInstance(6)) < 0
    assert CheckpointInstance(7).compare(CheckpointInstance(6)) > 0
    assert CheckpointInstance(5).compare(CheckpointInstance(5, 2)) == -1
    assert CheckpointInstance(5, 1).compare(CheckpointInstance(5)) == 0


def test_is_earlier_than():
    assert CheckpointInstance(100, 3).is_earlier_than(MAX_INSTANCE)
    assert CheckpointInstance(5).is_earlier_than(CheckpointInstance(5))
    assert not CheckpointInstance(5, 2).is_earlier_than(CheckpointInstance(5, 2))
    assert CheckpointInstance(5, 1).is_earlier_than(CheckpointInstance(5, 2))
    assert not CheckpointInstance(6).is_earlier_than(CheckpointInstance(5))


def test_is_not_later_than():
    assert CheckpointInstance(100).is_not_later_than(MAX_INSTANCE)
    assert CheckpointInstance(5, 3).is_not_later_than(CheckpointInstance(5))
    assert not CheckpointInstance(6).is_not_later_than(CheckpointInstance(5))


def test_corresponding_files():
    assert CheckpointInstance(10).corresponding_files("log/") == [
        "log/00000000000000000010.checkpoint.parquet"
    ]
    assert CheckpointInstance(10, 2).corresponding_files("log/") == [
        "log/00000000000000000010.checkpoint.0000000001.0000000002.parquet",
        "log/00000000000000000010.checkpoint.0000000002.0000000002.parquet",
    ]


def test_from_path_round_trips_corresponding_files():
    for instance in (CheckpointInstance(10), CheckpointInstance(12, 3)):
        for path in instance.corresponding_files("dir/"):
            assert CheckpointInstance.from_path(path) == instance


def test_from_metadata():
    assert CheckpointInstance.from_metadata(CheckpointMetadata(10, 5, None)) == CheckpointInstance(10)
    assert CheckpointInstance.from_metadata(CheckpointMetadata(10, 5, 3)) == CheckpointInstance(10, 3)


def test_metadata_json_round_trip():
    metadata = CheckpointMetadata(version=10, size=12, parts=2)
    assert metadata.to_json() == '{"version":10,"size":12,"parts":2}'
    assert CheckpointMetadata.from_json(metadata.to_json()) == metadata
    assert CheckpointMetadata(version=3).to_json() == '{"version":3}'


def test_metadata_from_bad_json():
    with pytest.raises(JsonUnmarshalError):
        CheckpointMetadata.from_json("{bad")
    with pytest.raises(JsonUnmarshalError):
        CheckpointMetadata.from_json('{"version":"x"}')


def test_latest_complete_skips_incomplete_multipart():
    instances = [CheckpointInstance(10, 3), CheckpointInstance(10, 3), CheckpointInstance(8)]
    assert latest_complete_checkpoint_from_list(instances, MAX_INSTANCE) == CheckpointInstance(8)


def test_latest_complete_accepts_complete_multipart():
    instances = [CheckpointInstance(8)] + [CheckpointInstance(10, 3)] * 3
    assert latest_complete_checkpoint_from_list(instances, MAX_INSTANCE) == CheckpointInstance(10, 3)


def test_latest_complete_respects_upper_bound():
    instances = [CheckpointInstance(8), CheckpointInstance(10)]
    assert latest_complete_checkpoint_from_list(instances, CheckpointInstance(9)) == CheckpointInstance(8)
    assert latest_complete_checkpoint_from_list([], MAX_INSTANCE) is None


def test_find_last_complete_checkpoint_from_listing():
    store = MemoryStore()
    for version in range(12):
        store.add(f"{version:020d}.json", ["{}"])
    store.add(f"{5:020d}.checkpoint.parquet")
    store.add(f"{10:020d}.checkpoint.0000000001.0000000002.parquet")
    assert find_last_complete_checkpoint(store, MAX_INSTANCE) == CheckpointInstance(5)
    store.add(f"{10:020d}.checkpoint.0000000002.0000000002.parquet")
    assert find_last_complete_checkpoint(store, MAX_INSTANCE) == CheckpointInstance(10, 2)


def test_missing_last_checkpoint_file():
    assert load_metadata_from_file(MemoryStore()) is None


def test_reads_last_checkpoint_file():
    store = MemoryStore()
    store.add(LAST_CHECKPOINT_PATH, ['{"version":10,"size":12}'])
    assert last_checkpoint(store) == CheckpointMetadata(version=10, size=12, parts=None)


def test_corrupted_last_checkpoint_falls_back_to_listing():
    store = MemoryStore()
    store.add(f"{10:020d}.checkpoint.parquet")
    store.add(LAST_CHECKPOINT_PATH, ['{"version":10,"size":12}'])
    original = last_checkpoint(store)

    store.add(LAST_CHECKPOINT_PATH, [])
    with patch("deltalog.checkpoint.time.sleep") as sleep:
        recovered = last_checkpoint(store)
    assert sleep.call_count == 2
    assert recovered == CheckpointMetadata(version=10, size=-1, parts=None)
    assert CheckpointInstance.from_metadata(recovered) == CheckpointInstance.from_metadata(original)


def test_unparsable_last_checkpoint_without_checkpoints():
    store = MemoryStore()
    store.add(LAST_CHECKPOINT_PATH, ["{bad"])
    with patch("deltalog.checkpoint.time.sleep"):
        assert load_metadata_from_file(store) is None


def test_read_errors_are_retried_then_listing_used():
    class BrokenReadStore(MemoryStore):
        def __init__(self):
            super().__init__()
            self.reads = 0

        def read(self, path):
            self.reads += 1
            raise OSError("transient")

    store = BrokenReadStore()
    store.add(f"{3:020d}.checkpoint.0000000001.0000000001.parquet")
    with patch("deltalog.checkpoint.time.sleep"):
        result = load_metadata_from_file(store)
    assert store.reads == 3
    assert result == CheckpointMetadata(version=3, size=-1, parts=1)