# File: app/services/object_storage_service.py

"""
Object storage for evidence photos.

ObjectStorage is the contract the rest of the service relies on: upload with
overwrite to a chosen path, time-limited signed read URLs, reading through
such a URL, and removal. LocalObjectStorage keeps objects on disk under
<base_path>/<bucket>/<path> and signs URLs with a JWT.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit, quote
import logging
import os
import tempfile

from app.core.exceptions import (
    FileStorageException,
    InvalidPathException,
    SignedUrlException,
)
from app.core.security import create_storage_token, verify_storage_token

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Bucket/path object store with signed read URLs."""

    @abstractmethod
    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        """Store an object and return its path. Without upsert an existing object is an error."""

    @abstractmethod
    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        """Issue a read URL valid for `expires_in` seconds."""

    @abstractmethod
    def download(self, url: str) -> bytes:
        """Read an object through a signed URL."""

    @abstractmethod
    def read(self, bucket: str, path: str) -> bytes:
        """Read an object directly."""

    @abstractmethod
    def exists(self, bucket: str, path: str) -> bool:
        pass

    @abstractmethod
    def remove(self, bucket: str, path: str) -> bool:
        """Delete an object. Returns False if it did not exist."""


class LocalObjectStorage(ObjectStorage):
    """
    Filesystem-backed object storage.

    Signed URLs look like {public_url}/{bucket}/{path}?token=<jwt>; the token
    names the bucket and path and expires after the requested lifetime.
    """

    def __init__(
        self,
        base_path: str,
        secret_key: str,
        public_url: str,
        algorithm: str = "HS256",
    ):
        """
        Initialize local object storage.

        Args:
            base_path: Directory holding one sub-directory per bucket
            secret_key: Key used to sign read URLs
            public_url: URL prefix the storage route is mounted on
            algorithm: JWT signing algorithm
        """
        self.base_path = Path(base_path).resolve()
        self.secret_key = secret_key
        self.public_url = public_url.rstrip("/")
        self.algorithm = algorithm
        os.makedirs(self.base_path, exist_ok=True)

    def _resolve(self, bucket: str, path: str) -> Path:
        """Map bucket/path to a file, refusing anything that escapes the bucket."""
        if not bucket or "/" in bucket or "\\" in bucket or bucket in (".", ".."):
            raise InvalidPathException(f"{bucket}/{path}")
        clean = path.strip().lstrip("/")
        if not clean or any(part in ("", ".", "..") for part in clean.split("/")):
            raise InvalidPathException(path)

        bucket_root = (self.base_path / bucket).resolve()
        target = (bucket_root / clean).resolve()
        if bucket_root not in target.parents:
            raise InvalidPathException(path)
        return target

    def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: Optional[str] = None,
        upsert: bool = False,
    ) -> str:
        target = self._resolve(bucket, path)
        if target.exists() and not upsert:
            raise FileStorageException(
                f"Object already exists: {bucket}/{path}",
                file_path=path,
                operation="upload",
            )

        temp_path = None
        try:
            os.makedirs(target.parent, exist_ok=True)
            # Write to a temp file first so readers never see a partial object
            fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(temp_path, target)
        except OSError as e:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)
            logger.error(f"Error storing object {bucket}/{path}: {str(e)}")
            raise FileStorageException(
                f"Failed to store object: {str(e)}", file_path=path, operation="upload"
            )

        logger.info(f"Stored object {bucket}/{path} ({len(data)} bytes, {content_type})")
        return path

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise FileStorageException(
                f"Object not found: {bucket}/{path}", file_path=path, operation="sign"
            )
        token = create_storage_token(
            bucket, path, self.secret_key, expires_in, algorithm=self.algorithm
        )
        return f"{self.public_url}/{quote(bucket)}/{quote(path)}?token={token}"

    def parse_signed_url(self, url: str) -> Tuple[str, str, str]:
        """Split a signed URL into (bucket, path, token)."""
        parts = urlsplit(url)
        prefix_path = urlsplit(self.public_url).path.rstrip("/")
        object_path = unquote(parts.path)
        if not object_path.startswith(prefix_path + "/"):
            raise SignedUrlException("URL does not belong to this storage")
        bucket, _, path = object_path[len(prefix_path) + 1:].partition("/")
        token = parse_qs(parts.query).get("token", [None])[0]
        if not bucket or not path or not token:
            raise SignedUrlException("Signed URL is missing the bucket, path or token")
        return bucket, path, token

    def download(self, url: str) -> bytes:
        bucket, path, token = self.parse_signed_url(url)
        verify_storage_token(
            token, self.secret_key, bucket=bucket, path=path, algorithm=self.algorithm
        )
        return self.read(bucket, path)

    def read(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        try:
            with open(target, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise FileStorageException(
                f"Object not found: {bucket}/{path}", file_path=path, operation="read"
            )
        except OSError as e:
            raise FileStorageException(
                f"Failed to read object: {str(e)}", file_path=path, operation="read"
            )

    def exists(self, bucket: str, path: str) -> bool:
        return self._resolve(bucket, path).is_file()

    def remove(self, bucket: str, path: str) -> bool:
        target = self._resolve(bucket, path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FileStorageException(
                f"Failed to remove object: {str(e)}", file_path=path, operation="remove"
            )
        logger.info(f"Removed object {bucket}/{path}")
        return True
