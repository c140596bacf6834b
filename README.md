# deltalog

Building blocks for reading and reasoning about the transaction log of a
Delta table (the `_delta_log/` directory): the action model, log file naming,
checkpoint discovery, commit history lookups and log replay. The package has
no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `deltalog.actions`: the log actions `AddFile`, `RemoveFile`, `AddCDCFile`,
  `Metadata`, `Protocol`, `SetTransaction` and `CommitInfo` (with `JobInfo`,
  `NotebookInfo` and `Format`). `from_json` turns one log line into an action,
  `action_from_dict` does the same for an already decoded object, and
  `Action.to_json` / `Action.wrap` write it back out. `collect` and
  `collect_first` pick actions of one kind out of a list, `to_json_lines`
  encodes a list. `default_metadata` and `default_protocol` give starting
  values; `check_metadata_protocol_properties` rejects table properties that
  carry protocol versions.
- `deltalog.filenames`: names of delta and checkpoint files (`delta_file`,
  `checkpoint_prefix`, `checkpoint_file_singular`,
  `checkpoint_file_with_parts`), tests on names (`is_delta_file`,
  `is_checkpoint_file`) and versions parsed out of names (`delta_version`,
  `checkpoint_version`, `num_checkpoint_parts`, `get_file_version`).
- `deltalog.checkpoint`: the `LogStore` interface, `CheckpointMetadata` (the
  content of `_last_checkpoint`), `CheckpointInstance`, `last_checkpoint` /
  `load_metadata_from_file` (read `_last_checkpoint`, retrying, and fall back
  to a directory listing), `find_last_complete_checkpoint` and
  `latest_complete_checkpoint_from_list`.
- `deltalog.history`: `HistoryManager` gives a version's `CommitInfo`, the
  earliest delta file and earliest reproducible version, the list of `Commit`
  entries in a version range, and the commit active at a timestamp
  (`active_commit_at_time`), raising the time-travel errors of
  `deltalog.errors` when a version or timestamp is out of range.
- `deltalog.replay`: `InMemoryLogReplay` folds the actions of successive
  versions into active files, tombstones, transactions, metadata and protocol;
  `MemoryOptimizedLogReplay.reverse_iterator` yields `ReplayTuple` entries from
  a set of log files in descending path order, reading `.json` files through a
  `LogStore` and `.parquet` files through a `CheckpointReader`.
- `deltalog.log_segment`: `FileMeta` (path, size, modification time),
  `LogSegment` and `empty_log_segment`.
- `deltalog.paths`: `convert_to_blob_url`, `qualified`, `relative` and
  `canonicalize` for `file://`, `azblob://`, `gs://` and `s3://` locations.
- `deltalog.config`: `Config`, `TableConfig`, `parse_duration`
  (`interval <number> <unit>`), `merge_global_table_configurations` and the
  table properties `DELTA_CONFIG_LOG_RETENTION`,
  `DELTA_CONFIG_TOMBSTONE_RETENTION`, `DELTA_CONFIG_CHECKPOINT_INTERVAL`,
  `DELTA_CONFIG_ENABLE_EXPIRED_LOG_CLEANUP` and `DELTA_CONFIG_IS_APPEND_ONLY`.
- `deltalog.operations`: `OperationName`, `Operation` and
  `parse_operation_name`.
- `deltalog.isolation`: `IsolationLevel` (`SERIALIZABLE`, `SNAPSHOT`).
- `deltalog.iterators`: `LineReader` (lines of a stream), `as_reader` /
  `IteratorReader` (a binary stream made of strings) and `map_all`.
- `deltalog.clock`: the `Clock` interface and `SystemClock`.
- `deltalog.lazy`: `Lazy`, a value computed once on first `get()`.
- `deltalog.errors`: the exception hierarchy; everything raises a subclass of
  `DeltaError`, and the helper functions build the messages.

## Example

```python
from deltalog.actions import AddFile, from_json
from deltalog.filenames import delta_file, delta_version

line = AddFile(path="part-0.parquet", size=10, data_change=True).to_json()
action = from_json(line)
assert isinstance(action, AddFile)

name = delta_file("_delta_log/", 3)   # "_delta_log/00000000000000000003.json"
assert delta_version(name) == 3
```

## Plugging in storage

A storage backend implements `deltalog.checkpoint.LogStore`: `root()` returns
the log directory, `read(path)` returns the file's lines (raising
`deltalog.errors.DeltaFileNotFoundError` when it is missing), and
`list_from(path)` returns `deltalog.log_segment.FileMeta` entries in path order
from `path` on. Checkpoint contents are read through an implementation of
`deltalog.replay.CheckpointReader`.

## What this package does not do

- It ships no `LogStore` or `CheckpointReader` implementation: it does not
  talk to a local directory, Azure Blob, Google Cloud Storage or S3 by itself.
  `convert_to_blob_url` only builds a URL string.
- It does not read or write Parquet, so it neither loads nor writes
  checkpoint files.
- It has no table, snapshot or transaction object: it does not commit new
  versions, check commits for conflicts or clean up old log files.
- It has no command-line interface.