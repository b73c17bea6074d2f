import base64
import os

import pytest
from bson import ObjectId

from files_manager.adapters.queue import QueueFullError
from files_manager.adapters.storage import BlobStoreError
from files_manager.errors import InternalError, NotFound, ValidationError
from files_manager.services.auth_service import User
from tests.fixtures.images import ONE_PIXEL_PNG_B64

OWNER = User(id=str(ObjectId()), email="owner@example.com")
OTHER = User(id=str(ObjectId()), email="other@example.com")
TEXT_B64 = base64.b64encode(b"Hello Webstack!\n").decode()


@pytest.mark.parametrize("kwargs, message", [
    ({}, "Missing name"),
    ({"name": "a"}, "Missing type"),
    ({"name": "a", "type": "video"}, "Missing type"),
    ({"name": "a", "type": "file"}, "Missing data"),
    ({"name": "a", "type": "image"}, "Missing data"),
    ({"name": "a", "type": "file", "data": TEXT_B64, "parent_id": "bogus"}, "Parent not found"),
    ({"name": "a", "type": "file", "data": TEXT_B64, "parent_id": str(ObjectId())}, "Parent not found"),
])
async def test_upload_validation(file_service, kwargs, message):
    with pytest.raises(ValidationError, match=message):
        await file_service.upload(OWNER, **kwargs)


async def test_upload_into_file_is_rejected(file_service):
    file = await file_service.upload(OWNER, name="a.txt", type="file", data=TEXT_B64)
    with pytest.raises(ValidationError, match="Parent is not a folder"):
        await file_service.upload(OWNER, name="b.txt", type="file", data=TEXT_B64, parent_id=file["id"])


async def test_upload_folder_has_no_blob(file_service, adapter, blob_store):
    folder = await file_service.upload(OWNER, name="docs", type="folder")

    assert folder == {
        "id": folder["id"], "userId": OWNER.id, "name": "docs",
        "type": "folder", "isPublic": False, "parentId": None,
    }
    assert adapter.get_document("files", folder["id"])["local_path"] is None
    assert not blob_store.storage_dir.exists()


async def test_upload_file_round_trips_bytes(file_service, adapter, blob_store, queue):
    folder = await file_service.upload(OWNER, name="docs", type="folder", parent_id="0")
    node = await file_service.upload(OWNER, name="hello.txt", type="file", data=TEXT_B64, parent_id=folder["id"])

    assert node["parentId"] == folder["id"]
    stored = adapter.get_document("files", node["id"])
    assert base64.b64encode(blob_store.read(stored["local_path"])).decode() == TEXT_B64
    assert queue.depth()["pending"] == 0


async def test_upload_image_creates_exactly_one_job(file_service, job_tracker, queue):
    node = await file_service.upload(OWNER, name="a.png", type="image", data=ONE_PIXEL_PNG_B64)

    jobs = job_tracker.jobs_for_file(node["id"])
    assert len(jobs) == 1
    assert jobs[0]["state"] == "enqueued"

    task = await queue.get_task()
    assert task.body["fileId"] == node["id"]
    assert task.body["userId"] == OWNER.id
    assert task.body["job_id"] == jobs[0]["job_id"]


async def test_upload_succeeds_when_queue_is_full(file_service, job_tracker, monkeypatch):
    async def full(task):
        raise QueueFullError("full")
    monkeypatch.setattr(file_service.queue, "add_task", full)

    node = await file_service.upload(OWNER, name="a.png", type="image", data=ONE_PIXEL_PNG_B64)

    job = job_tracker.jobs_for_file(node["id"])[0]
    assert job["state"] == "failed"
    assert job["error_message"] == "queue full"
    assert job["dead_letter"] is True


async def test_blob_failure_leaves_no_metadata(file_service, adapter, monkeypatch):
    def broken(data):
        raise BlobStoreError("disk full")
    monkeypatch.setattr(file_service.blob_store, "save", broken)

    with pytest.raises(InternalError):
        await file_service.upload(OWNER, name="a.txt", type="file", data=TEXT_B64)
    assert adapter.count_documents("files") == 0


@pytest.mark.parametrize("data", ["@@@@", "aGk", "aGk=!!", "not base64 at all"])
async def test_undecodable_data_is_rejected(file_service, adapter, blob_store, data):
    with pytest.raises(ValidationError, match="Invalid data"):
        await file_service.upload(OWNER, name="x.txt", type="file", data=data)
    assert adapter.count_documents("files") == 0
    assert not blob_store.storage_dir.exists()


async def test_long_name_is_stored(file_service):
    node = await file_service.upload(OWNER, name="n" * 300, type="file", data=TEXT_B64)

    assert file_service.get_by_id(OWNER, node["id"])["name"] == "n" * 300


async def test_metadata_failure_discards_blob(file_service, adapter, blob_store, monkeypatch):
    def broken(collection, document):
        raise ValueError("Document validation failed")
    monkeypatch.setattr(file_service.adapter, "create_document", broken)

    with pytest.raises(InternalError, match="Cannot store file"):
        await file_service.upload(OWNER, name="a.txt", type="file", data=TEXT_B64)
    assert os.listdir(blob_store.storage_dir) == []


async def test_get_by_id_read_rules(file_service):
    node = await file_service.upload(OWNER, name="a.txt", type="file", data=TEXT_B64)

    assert file_service.get_by_id(OWNER, node["id"])["name"] == "a.txt"
    with pytest.raises(NotFound):
        file_service.get_by_id(OTHER, node["id"])
    with pytest.raises(NotFound):
        file_service.get_by_id(OWNER, "not-an-id")
    with pytest.raises(NotFound):
        file_service.get_by_id(OWNER, str(ObjectId()))


async def test_publish_unpublish(file_service):
    node = await file_service.upload(OWNER, name="a.txt", type="file", data=TEXT_B64)

    assert file_service.publish(OWNER, node["id"])["isPublic"] is True
    assert file_service.get_by_id(OTHER, node["id"])["id"] == node["id"]
    with pytest.raises(NotFound):
        file_service.unpublish(OTHER, node["id"])

    assert file_service.unpublish(OWNER, node["id"])["isPublic"] is False
    with pytest.raises(NotFound):
        file_service.get_by_id(OTHER, node["id"])


async def test_list_pages_without_duplicates(file_service):
    for i in range(45):
        await file_service.upload(OWNER, name=f"f{i}", type="folder")
    await file_service.upload(OTHER, name="not mine", type="folder")

    pages = [file_service.list_files(OWNER, page=p) for p in range(4)]

    assert [len(p) for p in pages] == [20, 20, 5, 0]
    ids = [node["id"] for page in pages for node in page]
    assert len(ids) == len(set(ids)) == 45
    assert [node["name"] for node in pages[0][:3]] == ["f0", "f1", "f2"]


async def test_list_by_parent(file_service):
    folder = await file_service.upload(OWNER, name="docs", type="folder")
    child = await file_service.upload(OWNER, name="a.txt", type="file", data=TEXT_B64, parent_id=folder["id"])

    assert [n["id"] for n in file_service.list_files(OWNER, parent_id=folder["id"])] == [child["id"]]
    assert [n["id"] for n in file_service.list_files(OWNER, parent_id="0")] == [folder["id"]]
    assert len(file_service.list_files(OWNER)) == 2
    assert file_service.list_files(OWNER, parent_id="garbage") == []


async def test_get_content(file_service):
    node = await file_service.upload(OWNER, name="hello.txt", type="file", data=TEXT_B64)

    content, content_type = file_service.get_content(OWNER, node["id"])
    assert content == b"Hello Webstack!\n"
    assert content_type == "text/plain"


async def test_get_content_of_folder(file_service):
    folder = await file_service.upload(OWNER, name="docs", type="folder")
    with pytest.raises(ValidationError, match="A folder doesn't have content"):
        file_service.get_content(OWNER, folder["id"])


async def test_get_content_sizes(file_service, blob_store, adapter):
    node = await file_service.upload(OWNER, name="a.png", type="image", data=ONE_PIXEL_PNG_B64)
    local_path = adapter.get_document("files", node["id"])["local_path"]

    with pytest.raises(NotFound):
        file_service.get_content(OWNER, node["id"], size="100")

    blob_store.write(f"{local_path}_100", b"thumb")
    content, content_type = file_service.get_content(OWNER, node["id"], size="100")
    assert content == b"thumb"
    assert content_type == "image/png"

    for size in ("50", "abc"):
        with pytest.raises(ValidationError):
            file_service.get_content(OWNER, node["id"], size=size)


async def test_get_content_missing_blob_is_not_found(file_service, adapter):
    node = await file_service.upload(OWNER, name="a.bin", type="file", data=TEXT_B64)
    os.remove(adapter.get_document("files", node["id"])["local_path"])

    with pytest.raises(NotFound):
        file_service.get_content(OWNER, node["id"])
