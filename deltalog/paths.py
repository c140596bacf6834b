"""Conversion and resolution of table and file locations."""

from __future__ import annotations

import os
import posixpath
from urllib.parse import SplitResult, parse_qsl, unquote_plus, urlencode, urlsplit

from deltalog.errors import IllegalArgumentError, unsupported_file_system

_PREFIXED_SCHEMES = ("azblob", "gs", "s3")
_S3_ENVIRONMENT = (
    ("AWS_ENDPOINT_URL", "endpoint"),
    ("AWS_DISABLE_SSL", "disableSSL"),
    ("AWS_S3_FORCE_PATH_STYLE", "s3ForcePathStyle"),
)


def _split(urlstr: str) -> SplitResult:
    try:
        return urlsplit(urlstr)
    except ValueError as exc:
        raise IllegalArgumentError(f"{urlstr}: {exc}") from exc


def _encode(params: dict[str, str]) -> str:
    return urlencode(sorted(params.items()))


def _build(parts: SplitResult, path: str, query: str) -> str:
    url = f"{parts.scheme}://{parts.netloc}{path}"
    if query:
        url += "?" + query
    if parts.fragment:
        url += "#" + parts.fragment
    return url


def convert_to_blob_url(urlstr: str) -> str:
    """Turn a table location into a bucket URL.

    ``file:///path/to/`` keeps its path and gains the local bucket options;
    ``azblob://``, ``gs://`` and ``s3://`` locations move their path into a
    ``prefix`` parameter. S3 locations also pick up endpoint settings from the
    environment.
    """
    parts = _split(urlstr)
    scheme = parts.scheme

    if parse_qsl(parts.query, keep_blank_values=True) and scheme != "s3":
        raise IllegalArgumentError("path url cannot have query parameters!")

    if scheme == "file":
        params = {"metadata": "skip", "create_dir": "true"}
        return _build(parts, parts.path, _encode(params))

    if scheme in _PREFIXED_SCHEMES:
        params: dict[str, str] = {}
        bucket, found, prefix = parts.path.partition("/")
        if found:
            params["prefix"] = prefix
        if scheme == "s3":
            for variable, name in _S3_ENVIRONMENT:
                value = os.environ.get(variable)
                if value is not None:
                    params[name] = value
        return _build(parts, bucket, unquote_plus(_encode(params)))

    raise IllegalArgumentError("not supported scheme" + scheme)


def qualified(base: str, path: str) -> str:
    """Return ``path`` made fully qualified against the table location ``base``."""
    scheme = _split(base).scheme
    if scheme == "file":
        return _unix_qualified(base, path)
    raise IllegalArgumentError(f"unsupported scheme {scheme}")


def relative(base: str, path: str) -> str:
    """Return ``path`` relative to the table location ``base`` where that applies."""
    scheme = _split(base).scheme
    if scheme == "file" or (not scheme and base.startswith("/")):
        return _unix_relative(base, path)
    if scheme in _PREFIXED_SCHEMES:
        # Paths of data files in object stores are left for the caller to interpret.
        return path
    raise IllegalArgumentError(f"unsupported scheme {scheme}")


def _unix_qualified(base: str, path: str) -> str:
    if posixpath.isabs(path):
        return path
    joined = posixpath.normpath(posixpath.join(base, path))
    return joined.replace("file:", "file://", 1)


def _unix_relative(base: str, path: str) -> str:
    base = base.removeprefix("file://")
    path = path.removeprefix("file://")

    if not posixpath.isabs(path):
        return path
    if not posixpath.isabs(base):
        raise IllegalArgumentError(f"Rel: can't make {path} relative to {base}")

    rel = posixpath.relpath(path, base)
    if rel.startswith("../"):
        # Outside the table directory: keep the absolute path, fully qualified.
        return "file://" + path
    return rel


def canonicalize(path: str, schema: str) -> str:
    """Return the canonical spelling of ``path`` for a store of the given scheme."""
    if schema == "file":
        return _unix_canonicalize(path)
    if schema in _PREFIXED_SCHEMES:
        return path
    raise unsupported_file_system(f"unsupported schema to canonicalize: {schema}")


def _unix_canonicalize(path: str) -> str:
    if path.startswith("file:///"):
        return path
    if path.startswith("file:/"):
        return "file:///" + path.removeprefix("file:/")
    if posixpath.isabs(path):
        return "file://" + path
    return path