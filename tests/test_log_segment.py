from datetime import datetime, timedelta, timezone

from deltalog.log_segment import FileMeta, LogSegment, empty_log_segment

T0 = datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _segment(**overrides):
    values = dict(
        log_path="/table/_delta_log/",
        version=3,
        deltas=[FileMeta("a.json", 1, T0), FileMeta("b.json", 2, T0)],
        checkpoints=[FileMeta("c.parquet", 3, T0)],
        checkpoint_version=2,
        last_commit_timestamp=T0,
    )
    values.update(overrides)
    return LogSegment(**values)


def test_empty_log_segment():
    segment = empty_log_segment("/table/_delta_log/")
    assert segment.log_path == "/table/_delta_log/"
    assert segment.version == -1
    assert segment.deltas == []
    assert segment.checkpoints == []
    assert segment.checkpoint_version is None


def test_empty_segments_are_equal():
    assert empty_log_segment("p") == empty_log_segment("p")
    assert empty_log_segment("p") != empty_log_segment("q")


def test_equal_segments():
    first = _segment()
    second = _segment()
    assert first is not second
    assert (first == second) is True
    assert second.version == 3
    assert second.checkpoint_version == 2


def test_differs_in_version():
    assert _segment() != _segment(version=4)


def test_differs_in_deltas_and_their_order():
    segment = _segment()
    reversed_deltas = list(reversed(segment.deltas))
    assert segment != _segment(deltas=reversed_deltas)
    assert segment != _segment(deltas=segment.deltas[:1])


def test_differs_in_checkpoints():
    assert _segment() != _segment(checkpoints=[])


def test_timestamps_compared_to_the_second():
    assert _segment() == _segment(last_commit_timestamp=T0 + timedelta(milliseconds=300))
    assert _segment() != _segment(last_commit_timestamp=T0 + timedelta(seconds=2))


def test_absent_checkpoint_version_compares_as_zero():
    assert _segment(checkpoint_version=None) == _segment(checkpoint_version=0)
    assert _segment(checkpoint_version=None) != _segment(checkpoint_version=2)


def test_not_equal_to_none():
    assert (_segment() == None) is False  # noqa: E711