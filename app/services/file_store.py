# app/services/file_store.py
import logging
import os
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path, PurePosixPath
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.services.errors import StorageFailure

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


def _check_key(key: str) -> PurePosixPath:
    path = PurePosixPath(key)
    if not key or path.is_absolute() or ".." in path.parts:
        raise ValueError(f"Unsafe storage key: {key!r}")
    return path


class FileStore(ABC):
    """Byte storage addressed by relative keys like ``sources/<uuid>.pdf``.

    ``put_bytes`` replaces the object atomically: readers see either the
    previous object or the new one, never a partial write.
    ``get_bytes`` raises ``FileNotFoundError`` for a missing key and
    ``StorageFailure`` for any other I/O error.
    """

    @abstractmethod
    def put_bytes(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        ...

    @abstractmethod
    def get_bytes(self, key: str) -> bytes:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...


class LocalFileStore(FileStore):
    def __init__(self, root):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _abs(self, key: str) -> Path:
        return self.root.joinpath(*_check_key(key).parts)

    def put_bytes(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        dest = self._abs(key)
        # unique per writer, so racing writers never share a temp file
        tmp = dest.with_name(f"{dest.name}.tmp-{uuid4().hex}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as wf:
                wf.write(data)
                wf.flush()
                os.fsync(wf.fileno())
            os.replace(tmp, dest)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StorageFailure(f"Could not write {key}") from e

        logger.info(f"Stored {key} ({len(data)} bytes)")
        return key

    def get_bytes(self, key: str) -> bytes:
        path = self._abs(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageFailure(f"Could not read {key}") from e

    def exists(self, key: str) -> bool:
        return self._abs(key).is_file()


class R2FileStore(FileStore):
    """Cloudflare R2 (S3 API). A single ``put_object`` is atomic per key."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def put_bytes(self, data: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        _check_key(key)
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageFailure(f"Could not upload {key}") from e

        logger.info(f"Uploaded {key} to R2 ({len(data)} bytes)")
        return key

    def get_bytes(self, key: str) -> bytes:
        _check_key(key)
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                raise FileNotFoundError(key) from e
            raise StorageFailure(f"Could not download {key}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"Could not download {key}") from e

    def exists(self, key: str) -> bool:
        _check_key(key)
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_OBJECT_CODES:
                return False
            raise StorageFailure(f"Could not stat {key}") from e
        except BotoCoreError as e:
            raise StorageFailure(f"Could not stat {key}") from e


def make_r2_client():
    return boto3.client(
        "s3",
        endpoint_url=f"https://{settings.r2_account_id}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        region_name="auto",
    )


@lru_cache(maxsize=1)
def get_file_store() -> FileStore:
    if settings.storage_backend == "r2":
        if not all([settings.r2_account_id, settings.r2_access_key_id,
                    settings.r2_secret_access_key, settings.r2_bucket_name]):
            raise ValueError(
                "Missing R2 settings. Please set:\n"
                "R2_ACCOUNT_ID, R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, R2_BUCKET_NAME"
            )
        return R2FileStore(make_r2_client(), settings.r2_bucket_name)

    return LocalFileStore(settings.storage_root)
