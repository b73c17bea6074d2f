"""
Unit tests for the MongoDB adapter against a mocked client.
"""

from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError

from database import DuplicateDocumentError, MongoAdapter


@pytest.fixture
def mongo():
    client = MagicMock()
    adapter = MongoAdapter("mongodb://localhost:27017/files_test", client=client)
    return adapter, client["files_test"]


def test_database_name_comes_from_uri(mongo):
    adapter, _ = mongo
    adapter.client.__getitem__.assert_called_with("files_test")


def test_create_document_inserts_a_copy(mongo):
    adapter, db = mongo
    document = {"user_id": "u1", "email": "a@b.c", "password": "x"}

    assert adapter.create_document("users", document) == "u1"

    inserted = db["users"].insert_one.call_args[0][0]
    assert inserted == document
    assert inserted is not document


def test_duplicate_key_is_translated(mongo):
    adapter, db = mongo
    db["users"].insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(DuplicateDocumentError):
        adapter.create_document("users", {"user_id": "u1", "email": "a@b.c", "password": "x"})


def test_get_document_strips_object_id(mongo):
    adapter, db = mongo
    db["files"].find_one.return_value = {"_id": "oid", "file_id": "f1", "name": "a"}

    assert adapter.get_document("files", "f1") == {"file_id": "f1", "name": "a"}
    db["files"].find_one.assert_called_with({"file_id": "f1"})


def test_id_alias_maps_to_key_field(mongo):
    adapter, db = mongo
    db["sessions"].delete_many.return_value.deleted_count = 3

    assert adapter.delete_documents("sessions", {"_id": "session:x"}) == 3
    db["sessions"].delete_many.assert_called_with({"session_key": "session:x"})


def test_requires_connection_string(monkeypatch):
    monkeypatch.delenv("MONGODB_URI", raising=False)
    with pytest.raises(ValueError):
        MongoAdapter(None)
