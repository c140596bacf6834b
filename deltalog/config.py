"""Client configuration and per-table configuration keys."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Generic, TypeVar

from deltalog.errors import IllegalArgumentError

if TYPE_CHECKING:
    from deltalog.actions import Metadata

T = TypeVar("T")


@dataclass
class Config:
    """Settings of a log client."""

    store_type: str = ""


@dataclass(frozen=True)
class TableConfig(Generic[T]):
    """A table property with its default and its parser."""

    key: str
    default_value: str
    from_string: Callable[[str], T]

    def from_metadata(self, metadata: Metadata) -> T:
        """Return the property's value in ``metadata``, or its default."""
        return self.from_string(metadata.configuration.get(self.key, self.default_value))


_UNIT_MICROSECONDS = {
    "nanosecond": 0.001,
    "microsecond": 1,
    "millisecond": 1_000,
    "second": 1_000_000,
    "hour": 3_600_000_000,
    "day": 86_400_000_000,
    "week": 604_800_000_000,
}

_NUMBER = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)")


def _unit_microseconds(unit: str) -> float:
    if unit in _UNIT_MICROSECONDS:
        return _UNIT_MICROSECONDS[unit]
    if unit.endswith("s") and unit[:-1] in _UNIT_MICROSECONDS:
        return _UNIT_MICROSECONDS[unit[:-1]]
    raise IllegalArgumentError(f"unknown unit {unit!r} in duration")


def parse_duration(s: str) -> timedelta:
    """Parse ``interval <number> <unit>``.

    The unit is week, day, hour, second, millisecond, microsecond or nanosecond.
    """
    fields = s.lower().split()
    if len(fields) != 3:
        raise IllegalArgumentError("can't parse duration from string " + s)
    keyword, number, unit = fields
    if keyword != "interval":
        raise IllegalArgumentError("this is not a valid duration starting with " + keyword)
    if not _NUMBER.fullmatch(number):
        raise IllegalArgumentError(f"invalid duration {number!r}")
    return timedelta(microseconds=float(number) * _unit_microseconds(unit))


def _parse_int(s: str) -> int:
    return int(s) if re.fullmatch(r"[+-]?\d+", s) else 0


def _parse_bool(s: str) -> bool:
    return s.lower() == "true"


DELTA_CONFIG_LOG_RETENTION: TableConfig[timedelta] = TableConfig(
    key="logRetentionDuration",
    default_value="interval 30 days",
    from_string=parse_duration,
)

DELTA_CONFIG_TOMBSTONE_RETENTION: TableConfig[timedelta] = TableConfig(
    key="deletedFileRetentionDuration",
    default_value="interval 1 week",
    from_string=parse_duration,
)

DELTA_CONFIG_CHECKPOINT_INTERVAL: TableConfig[int] = TableConfig(
    key="checkpointInterval",
    default_value="10",
    from_string=_parse_int,
)

DELTA_CONFIG_ENABLE_EXPIRED_LOG_CLEANUP: TableConfig[bool] = TableConfig(
    key="enableExpiredLogCleanup",
    default_value="true",
    from_string=_parse_bool,
)

DELTA_CONFIG_IS_APPEND_ONLY: TableConfig[bool] = TableConfig(
    key="appendOnly",
    default_value="false",
    from_string=_parse_bool,
)


def merge_global_table_configurations(
    confs: Iterable[tuple[str, str]], table_conf: Mapping[str, str]
) -> dict[str, str]:
    """Return the table's configuration, with global entries filling in missing keys."""
    merged = dict(table_conf)
    for key, value in confs:
        merged.setdefault(key, value)
    return merged