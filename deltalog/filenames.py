"""Names of delta and checkpoint files in the log directory."""

from __future__ import annotations

import re

from deltalog.errors import UnexpectedFileTypeError

_CHECKPOINT_FILE_PATTERN = re.compile(r"\d+\.checkpoint(\.\d+\.\d+)?\.parquet")
_DELTA_FILE_PATTERN = re.compile(r"\d+\.json")
_INTEGER = re.compile(r"[+-]?\d+")


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _parse_int(text: str, bits: int) -> int:
    """Parse a decimal integer, 0 if malformed, clamped to a signed ``bits`` range."""
    if not _INTEGER.fullmatch(text):
        return 0
    value = int(text)
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return max(low, min(high, value))


def delta_file(path: str, version: int) -> str:
    """Return the delta file of ``version`` under the directory prefix ``path``."""
    return f"{path}{version:020d}.json"


def checkpoint_version(path: str) -> int:
    """Return the version of a checkpoint file."""
    return _parse_int(_base(path).split(".")[0], 64)


def is_checkpoint_file(path: str) -> bool:
    """Whether ``path`` names a checkpoint file."""
    return _CHECKPOINT_FILE_PATTERN.search(_base(path)) is not None


def delta_version(path: str) -> int:
    """Return the version of a delta file."""
    name = _base(path)
    if name.endswith(".json"):
        name = name[: -len(".json")]
    return _parse_int(name, 64)


def is_delta_file(path: str) -> bool:
    """Whether ``path`` names a delta file."""
    return _DELTA_FILE_PATTERN.search(_base(path)) is not None


def get_file_version(path: str) -> int:
    """Return the version of a checkpoint or delta file; raise for any other file."""
    if is_checkpoint_file(path):
        return checkpoint_version(path)
    if is_delta_file(path):
        return delta_version(path)
    raise UnexpectedFileTypeError(path)


def num_checkpoint_parts(path: str) -> int | None:
    """Return the number of parts of a multi-part checkpoint, None for a single file."""
    segments = _base(path).split(".")
    if len(segments) != 5:
        return None
    return _parse_int(segments[3], 32)


def checkpoint_prefix(path: str, version: int) -> str:
    """Return the common prefix of every checkpoint file of ``version``."""
    return f"{path}{version:020d}.checkpoint"


def checkpoint_file_singular(directory: str, version: int) -> str:
    """Return the single-file checkpoint of ``version``."""
    return f"{directory}{version:020d}.checkpoint.parquet"


def checkpoint_file_with_parts(directory: str, version: int, num_parts: int) -> list[str]:
    """Return every part file of a ``num_parts``-part checkpoint of ``version``."""
    return [
        f"{directory}{version:020d}.checkpoint.{part:010d}.{num_parts:010d}.parquet"
        for part in range(1, num_parts + 1)
    ]