"""Object storage for uploaded submission files.

Only the returned reference is persisted on the submission row; bytes live
in the provider. Transport failures are raised as ``DependencyError``.
"""

import logging
import os
from urllib.parse import quote, urlencode

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from ..errors import DependencyError, NotFound
from .security import create_file_token

logger = logging.getLogger(__name__)


class StorageProvider:
    def put(self, path: str, data: bytes, content_type: str = None) -> str:
        raise NotImplementedError

    def get(self, path: str) -> bytes:
        raise NotImplementedError

    def signed_url(self, path: str, ttl: int) -> str:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError


class LocalStorage(StorageProvider):
    """Stores objects under a directory on the local filesystem."""

    def __init__(self, root: str):
        self.root = root

    def _full_path(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root, path))
        if not full_path.startswith(os.path.abspath(self.root) + os.sep):
            raise NotFound("File not found")
        return full_path

    def put(self, path, data, content_type=None):
        full_path = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise DependencyError(f"Failed to save file: {e}") from e
        return path

    def get(self, path):
        full_path = self._full_path(path)
        if not os.path.exists(full_path):
            raise NotFound("File not found")
        try:
            with open(full_path, "rb") as f:
                return f.read()
        except OSError as e:
            raise DependencyError(f"Failed to read file: {e}") from e

    def signed_url(self, path, ttl):
        # Served by GET /files/{path} while the token is valid
        query = urlencode({"token": create_file_token(path, ttl)})
        return f"/files/{quote(path)}?{query}"

    def delete(self, path):
        full_path = self._full_path(path)
        if os.path.exists(full_path):
            os.remove(full_path)


class S3Storage(StorageProvider):
    def __init__(self, bucket: str, client=None, region: str = None):
        self.bucket = bucket
        self.client = client or boto3.client("s3", region_name=region)

    def put(self, path, data, content_type=None):
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=path, Body=data, **extra)
        except (BotoCoreError, ClientError) as e:
            logger.error("S3 upload of %s failed: %s", path, e)
            raise DependencyError("Failed to upload file to storage") from e
        return path

    def get(self, path):
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise NotFound("File not found") from e
            raise DependencyError("Failed to download file from storage") from e
        except BotoCoreError as e:
            raise DependencyError("Failed to download file from storage") from e
        return response["Body"].read()

    def signed_url(self, path, ttl):
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as e:
            raise DependencyError("Failed to sign download URL") from e

    def delete(self, path):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as e:
            raise DependencyError("Failed to delete file from storage") from e


def create_storage() -> StorageProvider:
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise DependencyError("S3 storage selected but S3_BUCKET is not set")
        return S3Storage(settings.s3_bucket, region=settings.s3_region)
    return LocalStorage(settings.upload_dir)
