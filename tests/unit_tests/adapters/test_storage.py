import os

import pytest

from files_manager.adapters.storage import (
    BlobNotFoundError,
    LocalBlobStore,
    S3BlobStore,
    get_blob_store,
)
from files_manager.settings import Settings


def test_local_save_creates_root_and_random_names(tmp_path):
    store = LocalBlobStore(str(tmp_path / "missing" / "root"))

    first = store.save(b"hello")
    second = store.save(b"hello")

    assert first != second
    assert os.path.dirname(first) == str(tmp_path / "missing" / "root")
    assert store.read(first) == b"hello"


def test_local_rendition_path_sits_next_to_original(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    path = store.save(b"original")
    store.write(f"{path}_100", b"small")

    assert store.read(f"{path}_100") == b"small"
    assert os.path.exists(f"{path}_100")


def test_local_missing_blob(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    with pytest.raises(BlobNotFoundError):
        store.read(str(tmp_path / "nothing"))


def test_local_delete(tmp_path):
    store = LocalBlobStore(str(tmp_path))
    path = store.save(b"orphan")

    store.delete(path)
    store.delete(path)

    assert not os.path.exists(path)
    with pytest.raises(BlobNotFoundError):
        store.read(path)


def test_s3_round_trip(mocked_aws):
    store = S3BlobStore(mocked_aws["bucket"], prefix="files", s3_client=mocked_aws["s3"])

    path = store.save(b"\x89PNG bytes")

    assert path.startswith("files/")
    assert store.read(path) == b"\x89PNG bytes"
    assert store.is_alive()

    store.delete(path)
    with pytest.raises(BlobNotFoundError):
        store.read(path)


def test_s3_missing_blob(mocked_aws):
    store = S3BlobStore(mocked_aws["bucket"], s3_client=mocked_aws["s3"])

    with pytest.raises(BlobNotFoundError):
        store.read("files/does-not-exist_100")


def test_s3_unknown_bucket_is_not_alive(mocked_aws):
    store = S3BlobStore("no-such-bucket", s3_client=mocked_aws["s3"])
    assert store.is_alive() is False


def test_get_blob_store_follows_deployment_mode(tmp_path, mocked_aws):
    local = get_blob_store(Settings(deployment_mode="local-dev", storage_dir=str(tmp_path)))
    assert isinstance(local, LocalBlobStore)

    remote = get_blob_store(Settings(deployment_mode="aws-mock", s3_bucket_name=mocked_aws["bucket"]),
                            s3_client=mocked_aws["s3"])
    assert isinstance(remote, S3BlobStore)
