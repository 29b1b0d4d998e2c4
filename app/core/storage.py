"""
Document storage supporting both the local filesystem and AWS S3.

Rendered tailored resumes are written through this layer; the returned path
(local path or s3:// URI) is what gets stored on the TailoredResume row.
"""

import logging
import os
from functools import lru_cache
from io import BytesIO
import boto3
from botocore.exceptions import ClientError
from app.core.config import settings

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "txt": "text/plain",
    "json": "application/json",
}


class StorageError(Exception):
    """Raised when a storage backend cannot complete an operation"""
    pass


def content_type_for(filename: str) -> str:
    extension = filename.lower().rsplit(".", 1)[-1]
    return CONTENT_TYPES.get(extension, "application/octet-stream")


class StorageBackend:
    """Abstract base class for storage backends"""

    def upload_bytes(self, data: bytes, key: str) -> str:
        """Store data under key and return its storage path/URI"""
        raise NotImplementedError

    def download_file(self, file_path: str) -> BytesIO:
        raise NotImplementedError

    def delete_file(self, file_path: str) -> bool:
        raise NotImplementedError

    def file_exists(self, file_path: str) -> bool:
        raise NotImplementedError


class LocalStorage(StorageBackend):
    """Local filesystem storage backend"""

    def __init__(self, base_dir: str = None):
        self.base_dir = base_dir or settings.LOCAL_STORAGE_DIR

    def upload_bytes(self, data: bytes, key: str) -> str:
        file_path = os.path.join(self.base_dir, key)
        try:
            os.makedirs(os.path.dirname(file_path), exist_ok=True)
            with open(file_path, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {file_path}: {e}") from e
        return file_path

    def download_file(self, file_path: str) -> BytesIO:
        with open(file_path, "rb") as f:
            return BytesIO(f.read())

    def delete_file(self, file_path: str) -> bool:
        if not os.path.exists(file_path):
            return False
        os.remove(file_path)
        return True

    def file_exists(self, file_path: str) -> bool:
        return os.path.exists(file_path)


class S3Storage(StorageBackend):
    """AWS S3 storage backend"""

    def __init__(self, client=None, bucket_name: str = None):
        self.bucket_name = bucket_name or settings.S3_BUCKET_NAME

        # Without explicit keys boto3 falls back to IAM roles / instance profile
        if client is not None:
            self.s3_client = client
        elif settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
            self.s3_client = boto3.client(
                "s3",
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION
            )
        else:
            self.s3_client = boto3.client("s3", region_name=settings.AWS_REGION)

    def upload_bytes(self, data: bytes, key: str) -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type_for(key),
                ServerSideEncryption="AES256",
            )
        except ClientError as e:
            logger.error(f"Error uploading {key} to S3: {e}")
            raise StorageError(f"Failed to upload file to S3: {e}") from e
        return f"s3://{self.bucket_name}/{key}"

    def download_file(self, file_path: str) -> BytesIO:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=self._parse_s3_uri(file_path))
        except ClientError as e:
            raise StorageError(f"Failed to download file from S3: {e}") from e
        return BytesIO(response["Body"].read())

    def delete_file(self, file_path: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=self._parse_s3_uri(file_path))
            return True
        except ClientError as e:
            logger.error(f"Error deleting {file_path} from S3: {e}")
            return False

    def file_exists(self, file_path: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=self._parse_s3_uri(file_path))
            return True
        except ClientError:
            return False

    def _parse_s3_uri(self, s3_uri: str) -> str:
        """Accept s3://bucket/key or a bare key in the default bucket."""
        if s3_uri.startswith("s3://"):
            parts = s3_uri[len("s3://"):].split("/", 1)
            if len(parts) == 2:
                return parts[1]
            raise ValueError(f"Invalid S3 URI format: {s3_uri}")
        return s3_uri


@lru_cache()
def get_storage() -> StorageBackend:
    """Get storage backend based on USE_S3 setting"""
    if settings.USE_S3:
        if not settings.S3_BUCKET_NAME:
            raise ValueError("S3_BUCKET_NAME must be set when USE_S3=True")
        return S3Storage()
    return LocalStorage()
