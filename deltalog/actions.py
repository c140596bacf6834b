"""Actions recorded in the transaction log, and their JSON form."""

from __future__ import annotations

import json
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, TypeVar
from urllib.parse import ParseResult, urlparse

from deltalog.errors import AssertionFailedError, JsonUnmarshalError

READER_VERSION = 1
WRITER_VERSION = 2
MIN_READER_VERSION_PROP = "delta.minReaderVersion"
MIN_WRITER_VERSION_PROP = "delta.minWriterVersion"

A = TypeVar("A", bound="Action")


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


# --- decoding helpers -------------------------------------------------------


def _field(data: Mapping[str, Any], key: str, kind: type, kind_name: str) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise JsonUnmarshalError(
            f"cannot unmarshal {type(value).__name__} into field {key} of type {kind_name}"
        )
    return value


def _str(data: Mapping[str, Any], key: str) -> str:
    value = _field(data, key, str, "string")
    return "" if value is None else value


def _opt_str(data: Mapping[str, Any], key: str) -> str | None:
    return _field(data, key, str, "string")


def _int(data: Mapping[str, Any], key: str) -> int:
    value = _field(data, key, int, "int64")
    return 0 if value is None else value


def _opt_int(data: Mapping[str, Any], key: str) -> int | None:
    return _field(data, key, int, "int64")


def _bool(data: Mapping[str, Any], key: str) -> bool:
    value = _field(data, key, bool, "bool")
    return False if value is None else value


def _opt_bool(data: Mapping[str, Any], key: str) -> bool | None:
    return _field(data, key, bool, "bool")


def _object(data: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    return _field(data, key, dict, "object")


def _str_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = _field(data, key, dict, "map[string]string")
    if value is None:
        return {}
    result: dict[str, str] = {}
    for k, v in value.items():
        if v is None:
            v = ""
        elif not isinstance(v, str):
            raise JsonUnmarshalError(
                f"cannot unmarshal {type(v).__name__} into map value of field {key}"
            )
        result[k] = v
    return result


def _str_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = _field(data, key, list, "[]string")
    if value is None:
        return []
    result: list[str] = []
    for item in value:
        if item is None:
            item = ""
        elif not isinstance(item, str):
            raise JsonUnmarshalError(
                f"cannot unmarshal {type(item).__name__} into element of field {key}"
            )
        result.append(item)
    return result


# --- encoding helpers -------------------------------------------------------


def _put_nonempty(out: dict[str, Any], key: str, value: Any) -> None:
    if value:
        out[key] = dict(sorted(value.items())) if isinstance(value, dict) else value


def _put_optional(out: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        out[key] = value


# --- actions ----------------------------------------------------------------


class Action(ABC):
    """An entry of the transaction log."""

    key: ClassVar[str] = ""

    @abstractmethod
    def _to_dict(self) -> dict[str, Any]:
        """Return the JSON object of this action, without the wrapping key."""

    @classmethod
    @abstractmethod
    def _from_dict(cls: type[A], data: Mapping[str, Any]) -> A:
        """Build the action from its JSON object."""

    def wrap(self) -> dict[str, dict[str, Any]]:
        """Return the action wrapped under its key, as it is stored in the log."""
        return {self.key: self._to_dict()}

    def to_json(self) -> str:
        """Return the single-line JSON form of the wrapped action."""
        return json.dumps(self.wrap(), separators=(",", ":"), ensure_ascii=False)


class FileAction(Action):
    """An action that refers to a data file."""

    path: str
    data_change: bool

    def path_as_uri(self) -> ParseResult:
        """Return the file's path parsed as a URI."""
        return urlparse(self.path)


@dataclass
class AddFile(FileAction):
    """Adds a data file to the table."""

    key: ClassVar[str] = "add"

    path: str = ""
    data_change: bool = False
    partition_values: dict[str, str] = field(default_factory=dict)
    size: int = 0
    modification_time: int = 0
    stats: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "path", self.path)
        _put_nonempty(out, "dataChange", self.data_change)
        _put_nonempty(out, "partitionValues", self.partition_values)
        _put_nonempty(out, "size", self.size)
        _put_nonempty(out, "modificationTime", self.modification_time)
        _put_nonempty(out, "stats", self.stats)
        _put_nonempty(out, "tags", self.tags)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> AddFile:
        return cls(
            path=_str(data, "path"),
            data_change=_bool(data, "dataChange"),
            partition_values=_str_map(data, "partitionValues"),
            size=_int(data, "size"),
            modification_time=_int(data, "modificationTime"),
            stats=_str(data, "stats"),
            tags=_str_map(data, "tags"),
        )

    def remove(self, timestamp: int | None = None, data_change: bool = True) -> RemoveFile:
        """Return the action that removes this file, stamped now unless told otherwise."""
        if timestamp is None:
            timestamp = _now_millis()
        return RemoveFile(path=self.path, deletion_timestamp=timestamp, data_change=data_change)

    def copy(self, data_change: bool, path: str) -> AddFile:
        """Return a deep copy with the given data-change flag and path."""
        return replace(deepcopy(self), path=path, data_change=data_change)


@dataclass
class RemoveFile(FileAction):
    """Removes a data file from the table."""

    key: ClassVar[str] = "remove"

    path: str = ""
    data_change: bool = False
    deletion_timestamp: int | None = None
    extended_file_metadata: bool = False
    partition_values: dict[str, str] = field(default_factory=dict)
    size: int | None = None
    tags: dict[str, str] = field(default_factory=dict)

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "path", self.path)
        _put_nonempty(out, "dataChange", self.data_change)
        _put_optional(out, "deletionTimestamp", self.deletion_timestamp)
        _put_nonempty(out, "extendedFileMetadata", self.extended_file_metadata)
        _put_nonempty(out, "partitionValues", self.partition_values)
        _put_optional(out, "size", self.size)
        _put_nonempty(out, "tags", self.tags)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> RemoveFile:
        return cls(
            path=_str(data, "path"),
            data_change=_bool(data, "dataChange"),
            deletion_timestamp=_opt_int(data, "deletionTimestamp"),
            extended_file_metadata=_bool(data, "extendedFileMetadata"),
            partition_values=_str_map(data, "partitionValues"),
            size=_opt_int(data, "size"),
            tags=_str_map(data, "tags"),
        )

    def del_timestamp(self) -> int:
        """Return the deletion timestamp, or 0 when it is not set."""
        return 0 if self.deletion_timestamp is None else self.deletion_timestamp

    def copy(self, data_change: bool, path: str) -> RemoveFile:
        """Return a deep copy with the given data-change flag and path."""
        return replace(deepcopy(self), path=path, data_change=data_change)


@dataclass
class AddCDCFile(FileAction):
    """Adds a change-data file."""

    key: ClassVar[str] = "cdc"

    path: str = ""
    data_change: bool = False
    partition_values: dict[str, str] = field(default_factory=dict)
    size: int = 0
    tags: dict[str, str] = field(default_factory=dict)

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "path", self.path)
        _put_nonempty(out, "dataChange", self.data_change)
        _put_nonempty(out, "partitionValues", self.partition_values)
        _put_nonempty(out, "size", self.size)
        _put_nonempty(out, "tags", self.tags)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> AddCDCFile:
        return cls(
            path=_str(data, "path"),
            data_change=_bool(data, "dataChange"),
            partition_values=_str_map(data, "partitionValues"),
            size=_int(data, "size"),
            tags=_str_map(data, "tags"),
        )


@dataclass
class JobInfo:
    """The job that produced a commit."""

    job_id: str = ""
    job_name: str = ""
    run_id: str = ""
    job_owner_id: str = ""
    trigger_type: str = ""

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "jobId", self.job_id)
        _put_nonempty(out, "jobName", self.job_name)
        _put_nonempty(out, "runId", self.run_id)
        _put_nonempty(out, "jobOwnerId", self.job_owner_id)
        _put_nonempty(out, "triggerType", self.trigger_type)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> JobInfo:
        return cls(
            job_id=_str(data, "jobId"),
            job_name=_str(data, "jobName"),
            run_id=_str(data, "runId"),
            job_owner_id=_str(data, "jobOwnerId"),
            trigger_type=_str(data, "triggerType"),
        )


def job_info_from_context(context: Mapping[str, str]) -> JobInfo | None:
    """Build job information from an engine context, if it names a job."""
    if "jobId" not in context:
        return None
    return JobInfo(
        job_id=context["jobId"],
        job_name=context.get("jobName", ""),
        run_id=context.get("runId", ""),
        job_owner_id=context.get("jobOwnerId", ""),
        trigger_type=context.get("jobTriggerType", ""),
    )


@dataclass
class NotebookInfo:
    """The notebook that produced a commit."""

    notebook_id: str = ""

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "notebookId", self.notebook_id)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> NotebookInfo:
        return cls(notebook_id=_str(data, "notebookId"))


def notebook_info_from_context(context: Mapping[str, str]) -> NotebookInfo | None:
    """Build notebook information from an engine context, if it names a notebook."""
    if "notebookId" not in context:
        return None
    return NotebookInfo(notebook_id=context["notebookId"])


@dataclass
class CommitInfo(Action):
    """Provenance information about a commit."""

    key: ClassVar[str] = "commitInfo"

    version: int | None = None
    timestamp: int = 0
    user_id: str | None = None
    user_name: str | None = None
    operation: str = ""
    operation_parameters: dict[str, str] = field(default_factory=dict)
    job: JobInfo | None = None
    notebook: NotebookInfo | None = None
    cluster_id: str | None = None
    read_version: int | None = None
    isolation_level: str | None = None
    is_blind_append: bool | None = None
    operation_metrics: dict[str, str] = field(default_factory=dict)
    user_metadata: str | None = None
    engine_info: str | None = None

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_optional(out, "version", self.version)
        _put_nonempty(out, "timestamp", self.timestamp)
        _put_optional(out, "userId", self.user_id)
        _put_optional(out, "userName", self.user_name)
        _put_nonempty(out, "operation", self.operation)
        _put_nonempty(out, "operationParameters", self.operation_parameters)
        if self.job is not None:
            out["job"] = self.job._to_dict()
        if self.notebook is not None:
            out["notebook"] = self.notebook._to_dict()
        _put_optional(out, "clusterId", self.cluster_id)
        _put_optional(out, "readVersion", self.read_version)
        _put_optional(out, "isolationLevel", self.isolation_level)
        _put_optional(out, "isBlindAppend", self.is_blind_append)
        _put_nonempty(out, "operationMetrics", self.operation_metrics)
        _put_optional(out, "userMetadata", self.user_metadata)
        _put_optional(out, "engineInfo", self.engine_info)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> CommitInfo:
        job = _object(data, "job")
        notebook = _object(data, "notebook")
        return cls(
            version=_opt_int(data, "version"),
            timestamp=_int(data, "timestamp"),
            user_id=_opt_str(data, "userId"),
            user_name=_opt_str(data, "userName"),
            operation=_str(data, "operation"),
            operation_parameters=_str_map(data, "operationParameters"),
            job=None if job is None else JobInfo._from_dict(job),
            notebook=None if notebook is None else NotebookInfo._from_dict(notebook),
            cluster_id=_opt_str(data, "clusterId"),
            read_version=_opt_int(data, "readVersion"),
            isolation_level=_opt_str(data, "isolationLevel"),
            is_blind_append=_opt_bool(data, "isBlindAppend"),
            operation_metrics=_str_map(data, "operationMetrics"),
            user_metadata=_opt_str(data, "userMetadata"),
            engine_info=_opt_str(data, "engineInfo"),
        )

    def with_timestamp(self, timestamp: int) -> CommitInfo:
        """Return a deep copy carrying the given timestamp."""
        return replace(deepcopy(self), timestamp=timestamp)

    def copy(self, version: int) -> CommitInfo:
        """Return a deep copy carrying the given version."""
        return replace(deepcopy(self), version=version)


@dataclass
class Format:
    """Storage format of the table's data files."""

    provider: str = ""
    options: dict[str, str] = field(default_factory=dict)

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "provider", self.provider)
        _put_nonempty(out, "options", self.options)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> Format:
        return cls(provider=_str(data, "provider"), options=_str_map(data, "options"))


@dataclass
class Metadata(Action):
    """Table metadata: identity, schema, partitioning and configuration."""

    key: ClassVar[str] = "metaData"

    id: str = ""
    name: str = ""
    description: str = ""
    format: Format = field(default_factory=Format)
    schema_string: str = ""
    partition_columns: list[str] = field(default_factory=list)
    configuration: dict[str, str] = field(default_factory=dict)
    created_time: int | None = None

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "id", self.id)
        _put_nonempty(out, "name", self.name)
        _put_nonempty(out, "description", self.description)
        out["format"] = self.format._to_dict()
        _put_nonempty(out, "schemaString", self.schema_string)
        _put_nonempty(out, "partitionColumns", list(self.partition_columns))
        _put_nonempty(out, "configuration", self.configuration)
        _put_optional(out, "createdTime", self.created_time)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> Metadata:
        fmt = _object(data, "format")
        return cls(
            id=_str(data, "id"),
            name=_str(data, "name"),
            description=_str(data, "description"),
            format=Format() if fmt is None else Format._from_dict(fmt),
            schema_string=_str(data, "schemaString"),
            partition_columns=_str_list(data, "partitionColumns"),
            configuration=_str_map(data, "configuration"),
            created_time=_opt_int(data, "createdTime"),
        )


def default_metadata() -> Metadata:
    """Return fresh metadata with a new id, the parquet format and the current time."""
    return Metadata(
        id=str(uuid.uuid4()),
        format=Format(provider="parquet", options={}),
        configuration={},
        created_time=_now_millis(),
    )


@dataclass
class Protocol(Action):
    """Minimum reader and writer versions required by the table."""

    key: ClassVar[str] = "protocol"

    min_reader_version: int = 0
    min_writer_version: int = 0

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "minReaderVersion", self.min_reader_version)
        _put_nonempty(out, "minWriterVersion", self.min_writer_version)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> Protocol:
        return cls(
            min_reader_version=_int(data, "minReaderVersion"),
            min_writer_version=_int(data, "minWriterVersion"),
        )


def default_protocol() -> Protocol:
    """Return the protocol written by this client."""
    return Protocol(min_reader_version=READER_VERSION, min_writer_version=WRITER_VERSION)


@dataclass
class SetTransaction(Action):
    """Records the latest version committed by an application."""

    key: ClassVar[str] = "txn"

    app_id: str = ""
    version: int = 0
    last_updated: int | None = None

    def _to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        _put_nonempty(out, "appId", self.app_id)
        _put_nonempty(out, "version", self.version)
        _put_optional(out, "lastUpdated", self.last_updated)
        return out

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> SetTransaction:
        return cls(
            app_id=_str(data, "appId"),
            version=_int(data, "version"),
            last_updated=_opt_int(data, "lastUpdated"),
        )


# Order in which a wrapped action is unwrapped when several keys are present.
_UNWRAP_ORDER: tuple[tuple[str, type[Action]], ...] = (
    ("add", AddFile),
    ("remove", RemoveFile),
    ("metaData", Metadata),
    ("txn", SetTransaction),
    ("protocol", Protocol),
    ("cdc", AddCDCFile),
    ("commitInfo", CommitInfo),
)


def action_from_dict(data: Any) -> Action | None:
    """Unwrap a decoded log entry into its action; None if it holds no known action."""
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise JsonUnmarshalError(
            f"cannot unmarshal {type(data).__name__} into a log action"
        )
    decoded: dict[str, Action] = {}
    for key, kind in _UNWRAP_ORDER:
        body = _object(data, key)
        if body is not None:
            decoded[key] = kind._from_dict(body)
    for key, _ in _UNWRAP_ORDER:
        if key in decoded:
            return decoded[key]
    return None


def from_json(s: str | bytes) -> Action | None:
    """Decode one line of the log into its action."""
    try:
        data = json.loads(s)
    except ValueError as exc:
        raise JsonUnmarshalError(str(exc)) from exc
    return action_from_dict(data)


def check_metadata_protocol_properties(metadata: Metadata, protocol: Protocol | None) -> None:
    """Raise if the table properties carry protocol versions."""
    if MIN_READER_VERSION_PROP in metadata.configuration:
        raise AssertionFailedError(
            "should not have the protocol version MinReaderVersion as part of the table properties"
        )
    if MIN_WRITER_VERSION_PROP in metadata.configuration:
        raise AssertionFailedError(
            "should not have the protocol version MinWriterVersion as part of the table properties"
        )


def collect(actions: Iterable[Action], kind: type[A]) -> list[A]:
    """Return the actions that are instances of ``kind``, in order."""
    return [a for a in actions if isinstance(a, kind)]


def collect_first(actions: Iterable[Action], kind: type[A]) -> A | None:
    """Return the first action that is an instance of ``kind``, or None."""
    return next((a for a in actions if isinstance(a, kind)), None)


def to_json_lines(actions: Iterable[Action]) -> list[str]:
    """Return the JSON line of every action, in order."""
    return [a.to_json() for a in actions]