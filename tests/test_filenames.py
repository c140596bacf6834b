import pytest

from deltalog.errors import UnexpectedFileTypeError
from deltalog.filenames import (
    checkpoint_file_singular,
    checkpoint_file_with_parts,
    checkpoint_prefix,
    checkpoint_version,
    delta_file,
    delta_version,
    get_file_version,
    is_checkpoint_file,
    is_delta_file,
    num_checkpoint_parts,
)


def test_delta_file_names_match_log_layout():
    assert delta_file("", 0) == "00000000000000000000.json"
    assert delta_file("/t/_delta_log/", 1) == "/t/_delta_log/00000000000000000001.json"


@pytest.mark.parametrize("version", [0, 1, 7, 1234567890])
def test_delta_file_round_trip(version):
    name = delta_file("file:///tmp/t/_delta_log/", version)
    assert is_delta_file(name)
    assert not is_checkpoint_file(name)
    assert delta_version(name) == version
    assert get_file_version(name) == version


@pytest.mark.parametrize("version", [0, 10, 30])
def test_singular_checkpoint_round_trip(version):
    name = checkpoint_file_singular("/log/", version)
    assert is_checkpoint_file(name)
    assert not is_delta_file(name)
    assert checkpoint_version(name) == version
    assert get_file_version(name) == version
    assert num_checkpoint_parts(name) is None
    assert name.startswith(checkpoint_prefix("/log/", version))


@pytest.mark.parametrize("num_parts", [1, 2, 5])
def test_multi_part_checkpoint_round_trip(num_parts):
    names = checkpoint_file_with_parts("/log/", 10, num_parts)
    assert len(names) == num_parts
    assert len(set(names)) == num_parts
    for name in names:
        assert is_checkpoint_file(name)
        assert checkpoint_version(name) == 10
        assert num_checkpoint_parts(name) == num_parts
        assert name.startswith(checkpoint_prefix("/log/", 10))


def test_multi_part_checkpoint_parts_are_ordered():
    names = checkpoint_file_with_parts("", 3, 4)
    assert names == sorted(names)


def test_zero_parts_gives_no_files():
    assert checkpoint_file_with_parts("/log/", 3, 0) == []


@pytest.mark.parametrize("path", ["/log/_last_checkpoint", "/log/readme.txt", ""])
def test_other_files_are_rejected(path):
    assert not is_delta_file(path)
    assert not is_checkpoint_file(path)
    with pytest.raises(UnexpectedFileTypeError):
        get_file_version(path)


def test_malformed_version_parses_as_zero():
    assert delta_version("/log/abc.json") == 0
    assert checkpoint_version("/log/x.checkpoint.parquet") == 0


def test_directory_in_name_is_ignored():
    name = delta_file("/00000000000000000009.checkpoint.parquet/", 2)
    assert is_delta_file(name)
    assert not is_checkpoint_file(name)
    assert delta_version(name) == 2