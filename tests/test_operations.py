import pytest

from deltalog.errors import IllegalArgumentError
from deltalog.operations import Operation, OperationName, parse_operation_name


def test_parse_round_trips_every_name():
    for name in OperationName:
        assert parse_operation_name(str(name)) is name


def test_parse_known_names():
    assert parse_operation_name("MANUAL_UPDATE") is OperationName.MANUAL_UPDATE
    assert parse_operation_name("CREATE_TABLE") is OperationName.CREATE_TABLE
    assert str(OperationName.STREAMING_UPDATE) == "STREAMING_UPDATE"


def test_parse_invalid_name_raises():
    with pytest.raises(IllegalArgumentError) as info:
        parse_operation_name("manual_update")
    assert str(info.value) == "manual_update is not a valid Name"


def test_operation_defaults():
    op = Operation(name=OperationName.WRITE)
    assert op.parameters == {}
    assert op.user_parameters is None
    assert op.user_metadata is None


def test_operation_parameters_are_not_shared():
    first = Operation(OperationName.WRITE)
    second = Operation(OperationName.WRITE)
    first.parameters["mode"] = "append"
    assert second.parameters == {}