import pytest

from deltalog.errors import IllegalArgumentError
from deltalog.paths import canonicalize, convert_to_blob_url, qualified, relative


@pytest.mark.parametrize(
    "urlstr, expected",
    [
        ("file:///path/to/", "file:///path/to/?create_dir=true&metadata=skip"),
        ("azblob://bucket/path/to/", "azblob://bucket?prefix=path/to/"),
        ("gs://bucket/path/to/", "gs://bucket?prefix=path/to/"),
    ],
)
def test_convert_to_blob_url(urlstr, expected):
    assert convert_to_blob_url(urlstr) == expected


def test_convert_to_blob_url_bucket_without_prefix():
    assert convert_to_blob_url("azblob://golden") == "azblob://golden"


def test_convert_to_blob_url_s3_reads_environment(monkeypatch):
    monkeypatch.setenv("AWS_ENDPOINT_URL", "http://localhost:4566")
    monkeypatch.delenv("AWS_DISABLE_SSL", raising=False)
    monkeypatch.delenv("AWS_S3_FORCE_PATH_STYLE", raising=False)
    assert (
        convert_to_blob_url("s3://bucket/path/to/")
        == "s3://bucket?endpoint=http://localhost:4566&prefix=path/to/"
    )


def test_convert_to_blob_url_rejects_query_parameters():
    with pytest.raises(IllegalArgumentError):
        convert_to_blob_url("file:///path/to/?a=b")


def test_convert_to_blob_url_rejects_unknown_scheme():
    with pytest.raises(IllegalArgumentError):
        convert_to_blob_url("ftp://host/path")


@pytest.mark.parametrize(
    "base, path, expected",
    [
        ("file:///a", "b.json", "file:///a/b.json"),
        ("file:///a", "b/c.json", "file:///a/b/c.json"),
    ],
)
def test_qualified(base, path, expected):
    assert qualified(base, path) == expected


def test_qualified_keeps_absolute_path():
    assert qualified("file:///a", "/b/c.json") == "/b/c.json"


def test_qualified_rejects_other_schemes():
    with pytest.raises(IllegalArgumentError):
        qualified("gs://bucket/a", "b.json")


@pytest.mark.parametrize(
    "base, path, expected",
    [
        ("file:///a", "a/b/c", "a/b/c"),
        ("file:///a", "file:///a/b/c", "b/c"),
        ("file:///a", "file:///b/c", "file:///b/c"),
    ],
)
def test_relative(base, path, expected):
    assert relative(base, path) == expected


@pytest.mark.parametrize("base", ["azblob://bucket/a", "gs://bucket/a", "s3://bucket/a"])
def test_relative_object_stores_leave_path_unchanged(base):
    assert relative(base, "file:///x/y") == "file:///x/y"


def test_relative_rejects_unknown_scheme():
    with pytest.raises(IllegalArgumentError):
        relative("ftp://host/a", "b")


@pytest.mark.parametrize(
    "path, schema, expected",
    [
        ("file:///a/b/c", "file", "file:///a/b/c"),
        ("/a/b/c", "file", "file:///a/b/c"),
        ("file:/a/b/c", "file", "file:///a/b/c"),
        ("./a/b/c", "file", "./a/b/c"),
    ],
)
def test_canonicalize(path, schema, expected):
    assert canonicalize(path, schema) == expected


def test_canonicalize_object_store_unchanged():
    assert canonicalize("/a/b/c", "gs") == "/a/b/c"


def test_canonicalize_rejects_unknown_schema():
    with pytest.raises(IllegalArgumentError):
        canonicalize("/a/b/c", "hdfs")