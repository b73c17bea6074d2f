import pytest
from bson import ObjectId

from files_manager.services.file_service import NodeRef, parse_node_id, parse_page


@pytest.mark.parametrize("value", [None, "", "0", 0, " 0 "])
def test_root_sentinel(value):
    assert parse_node_id(value) is NodeRef.ROOT


def test_valid_object_id_is_normalized():
    oid = str(ObjectId())
    assert parse_node_id(oid) == oid
    assert parse_node_id(oid.upper()) == oid


@pytest.mark.parametrize("value", ["abc", "123", "zzzzzzzzzzzzzzzzzzzzzzzz", 5, True, ["0"], 1.5])
def test_invalid(value):
    assert parse_node_id(value) is NodeRef.INVALID


@pytest.mark.parametrize("value, expected", [(None, 0), ("", 0), ("abc", 0), ("-1", 0), ("3", 3), (2, 2)])
def test_parse_page(value, expected):
    assert parse_page(value) == expected
