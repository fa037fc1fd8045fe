import io
import pytest
from docubuddy.config import DOCUMENT_MIME_TYPES, DOCUMENT_SIZE_LIMIT
from docubuddy.errors import StorageError
from docubuddy.services.storage import BucketStorage, UploadBlob, ensure_documents_bucket


def blob(name="a.txt", data=b"hello", content_type="text/plain", size=None):
    return UploadBlob(filename=name, content=io.BytesIO(data),
                      size=len(data) if size is None else size, content_type=content_type)


def test_documents_bucket_is_created_once(tmp_path):
    storage = BucketStorage(root=str(tmp_path))
    bucket, created = ensure_documents_bucket(storage)
    assert created
    assert not bucket.public
    assert bucket.allowed_mime_types == DOCUMENT_MIME_TYPES
    assert bucket.file_size_limit == DOCUMENT_SIZE_LIMIT == 50 * 1024 * 1024

    again, created = ensure_documents_bucket(storage)
    assert not created and again == bucket
    with pytest.raises(StorageError):
        storage.create_bucket("documents")


def test_upload_writes_and_never_overwrites(storage):
    assert storage.upload("u1/1_a.txt", blob()) == {"path": "u1/1_a.txt"}
    with pytest.raises(StorageError) as exc:
        storage.upload("u1/1_a.txt", blob(data=b"other"))
    assert exc.value.message == "The resource already exists"


def test_upload_enforces_bucket_limits(storage):
    with pytest.raises(StorageError):
        storage.upload("u1/x.png", blob(content_type="image/png"))
    with pytest.raises(StorageError):
        storage.upload("u1/big.txt", blob(size=DOCUMENT_SIZE_LIMIT + 1))


def test_upload_without_bucket(tmp_path):
    with pytest.raises(StorageError):
        BucketStorage(root=str(tmp_path)).upload("k.txt", blob())


@pytest.mark.parametrize("key", ["../escape.txt", "", ".bucket.json"])
def test_rejects_keys_outside_bucket(storage, key):
    with pytest.raises(StorageError):
        storage.upload(key, blob())


def test_remove_skips_missing(storage):
    storage.upload("u1/a.txt", blob())
    assert storage.remove(["u1/a.txt", "u1/missing.txt"]) == ["u1/a.txt"]
    assert storage.remove(["u1/a.txt"]) == []
