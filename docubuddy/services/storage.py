import json
import logging
import os
import shutil
from dataclasses import dataclass, asdict
from typing import BinaryIO, Iterable, Optional
from ..config import STORAGE_ROOT, DOCUMENTS_BUCKET, DOCUMENT_MIME_TYPES, DOCUMENT_SIZE_LIMIT
from ..errors import StorageError


logger = logging.getLogger(__name__)

BUCKET_CONFIG = ".bucket.json"


@dataclass
class Bucket:
    name: str
    public: bool = False
    allowed_mime_types: Optional[list[str]] = None
    file_size_limit: Optional[int] = None


@dataclass
class UploadBlob:
    filename: str
    content: BinaryIO
    size: int
    content_type: Optional[str] = None


class BucketStorage:
    """Object storage on the local filesystem, one directory per bucket.

    Keys are relative paths inside the bucket and are never overwritten.
    """

    def __init__(self, root: str = STORAGE_ROOT, bucket: str = DOCUMENTS_BUCKET):
        self.root = str(root)
        self.bucket = bucket

    def _bucket_dir(self, name: str) -> str:
        return os.path.join(self.root, name)

    def _resolve(self, key: str) -> str:
        bucket_dir = os.path.abspath(self._bucket_dir(self.bucket))
        path = os.path.abspath(os.path.join(bucket_dir, key))
        if not key or os.path.commonpath([bucket_dir, path]) != bucket_dir or path == bucket_dir:
            raise StorageError(f"Invalid storage key: {key}")
        if os.path.basename(path) == BUCKET_CONFIG:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def get_bucket(self, name: str) -> Optional[Bucket]:
        config_path = os.path.join(self._bucket_dir(name), BUCKET_CONFIG)
        if not os.path.exists(config_path):
            return None
        try:
            with open(config_path, "r", encoding="utf-8") as fp:
                return Bucket(**json.load(fp))
        except (OSError, ValueError, TypeError) as e:
            raise StorageError(f"Failed to read bucket {name}: {e}")

    def list_buckets(self) -> list[Bucket]:
        if not os.path.isdir(self.root):
            return []
        buckets = []
        for name in sorted(os.listdir(self.root)):
            bucket = self.get_bucket(name)
            if bucket is not None:
                buckets.append(bucket)
        return buckets

    def create_bucket(self, name: str, public: bool = False,
                      allowed_mime_types: Optional[list[str]] = None,
                      file_size_limit: Optional[int] = None) -> Bucket:
        if self.get_bucket(name) is not None:
            raise StorageError(f"Bucket {name} already exists")
        bucket = Bucket(name=name, public=public,
                        allowed_mime_types=allowed_mime_types,
                        file_size_limit=file_size_limit)
        try:
            os.makedirs(self._bucket_dir(name), exist_ok=True)
            with open(os.path.join(self._bucket_dir(name), BUCKET_CONFIG), "w", encoding="utf-8") as fp:
                json.dump(asdict(bucket), fp)
        except OSError as e:
            raise StorageError(f"Failed to create bucket {name}: {e}")
        logger.info(f"Created storage bucket {name}")
        return bucket

    def upload(self, key: str, blob: UploadBlob) -> dict:
        bucket = self.get_bucket(self.bucket)
        if bucket is None:
            raise StorageError(f"Bucket not found: {self.bucket}")
        if bucket.allowed_mime_types and blob.content_type not in bucket.allowed_mime_types:
            raise StorageError(f"mime type {blob.content_type} is not supported")
        if bucket.file_size_limit is not None and blob.size > bucket.file_size_limit:
            raise StorageError("The object exceeded the maximum allowed size")

        path = self._resolve(key)
        if os.path.exists(path):
            raise StorageError("The resource already exists")
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as buffer:
                shutil.copyfileobj(blob.content, buffer)
        except OSError as e:
            raise StorageError(f"Failed to store {key}: {e}")
        return {"path": key}

    def remove(self, keys: Iterable[str]) -> list[str]:
        removed = []
        for key in keys:
            path = self._resolve(key)
            if not os.path.exists(path):
                continue
            try:
                os.remove(path)
            except OSError as e:
                raise StorageError(f"Failed to remove {key}: {e}")
            removed.append(key)
        return removed


def ensure_documents_bucket(storage: BucketStorage) -> tuple[Bucket, bool]:
    """Create the private documents bucket unless it exists. Returns (bucket, created)."""
    for bucket in storage.list_buckets():
        if bucket.name == storage.bucket:
            logger.info(f"Documents bucket {bucket.name} already exists")
            return bucket, False
    bucket = storage.create_bucket(storage.bucket,
                                   public=False,
                                   allowed_mime_types=DOCUMENT_MIME_TYPES,
                                   file_size_limit=DOCUMENT_SIZE_LIMIT)
    return bucket, True


bucket_storage = BucketStorage()


def get_bucket_storage() -> BucketStorage:
    return bucket_storage
