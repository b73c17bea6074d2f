"""
Blob storage adapters.

Raw bytes are placed under a random name, either on the local file system or
in an S3 bucket depending on the deployment mode. Derived renditions live next
to their original at ``<path>_<width>``.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from files_manager.settings import Settings

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised when bytes cannot be written or read for a reason other than absence"""
    pass


class BlobNotFoundError(BlobStoreError):
    """Raised when no blob exists at the requested path"""
    pass


class BaseBlobStore:
    """Base class for blob storage (to be extended by specific implementations)"""

    def save(self, data: bytes) -> str:
        """Store bytes under a fresh unguessable name and return their path"""
        path = self.new_path()
        self.write(path, data)
        return path

    def new_path(self) -> str:
        raise NotImplementedError

    def write(self, path: str, data: bytes) -> None:
        raise NotImplementedError

    def read(self, path: str) -> bytes:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError

    def is_alive(self) -> bool:
        raise NotImplementedError


class LocalBlobStore(BaseBlobStore):
    """Stores blobs as files under a root directory"""

    def __init__(self, storage_dir: str):
        self.storage_dir = Path(storage_dir)

    def _ensure_root(self) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def new_path(self) -> str:
        return str(self.storage_dir / str(uuid.uuid4()))

    def write(self, path: str, data: bytes) -> None:
        try:
            self._ensure_root()
            Path(path).write_bytes(data)
            logger.info(f"Stored {len(data)} bytes at {path}")
        except OSError as e:
            logger.error(f"Error writing blob {path}: {e}")
            raise BlobStoreError(str(e)) from e

    def read(self, path: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"File not found: {path}") from e
        except OSError as e:
            logger.error(f"Error reading blob {path}: {e}")
            raise BlobStoreError(str(e)) from e

    def delete(self, path: str) -> None:
        try:
            Path(path).unlink(missing_ok=True)
            logger.info(f"Deleted blob {path}")
        except OSError as e:
            logger.error(f"Error deleting blob {path}: {e}")
            raise BlobStoreError(str(e)) from e

    def is_alive(self) -> bool:
        try:
            self._ensure_root()
            return True
        except OSError:
            return False


class S3BlobStore(BaseBlobStore):
    """Stores blobs as objects in an S3 bucket"""

    def __init__(self, bucket_name: str, prefix: str = "files", s3_client=None):
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.s3 = s3_client or boto3.client("s3")
        logger.info(f"S3BlobStore using bucket: {self.bucket_name}")

    def new_path(self) -> str:
        name = str(uuid.uuid4())
        return f"{self.prefix}/{name}" if self.prefix else name

    def write(self, path: str, data: bytes) -> None:
        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=path,
                Body=data,
                ContentType="application/octet-stream",
            )
            logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket_name}/{path}")
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error uploading to S3: {str(e)}")
            raise BlobStoreError(str(e)) from e

    def read(self, path: str) -> bytes:
        try:
            response = self.s3.get_object(Bucket=self.bucket_name, Key=path)
            return response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise BlobNotFoundError(f"File not found: {path}") from e
            logger.error(f"Error downloading from S3: {str(e)}")
            raise BlobStoreError(str(e)) from e
        except BotoCoreError as e:
            logger.error(f"Error downloading from S3: {str(e)}")
            raise BlobStoreError(str(e)) from e

    def delete(self, path: str) -> None:
        try:
            self.s3.delete_object(Bucket=self.bucket_name, Key=path)
            logger.info(f"Deleted s3://{self.bucket_name}/{path}")
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Error deleting from S3: {str(e)}")
            raise BlobStoreError(str(e)) from e

    def is_alive(self) -> bool:
        try:
            self.s3.head_bucket(Bucket=self.bucket_name)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 bucket check failed: {e}")
            return False


def get_blob_store(settings: Settings, s3_client: Optional[object] = None) -> BaseBlobStore:
    """Pick the blob store matching the deployment mode"""
    if settings.uses_aws:
        if s3_client is None:
            s3_client = boto3.client(
                "s3",
                region_name=settings.aws_region,
                endpoint_url=settings.aws_endpoint_url,
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
            )
        return S3BlobStore(settings.s3_bucket_name, settings.s3_prefix, s3_client)
    return LocalBlobStore(settings.storage_dir)
