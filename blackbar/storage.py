"""Storage backend abstraction for image bytes.

Uploaded images are kept in a key-value blob store, keyed by a short hash
of the stored JPEG. In development the store writes files to the local
filesystem under a configurable base directory. In production it can be
switched to Redis by setting ``STORAGE_BACKEND=redis``, which lets several
app processes share one store.

Environment variables:
    STORAGE_BACKEND: 'local' (default) or 'redis'.
    IMAGE_STORE_DIR: Base directory for local storage (default
        './image_store').
    REDIS_HOST, REDIS_PORT, REDIS_DB: Connection details when
        STORAGE_BACKEND is 'redis'.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from typing import Optional

from redis import Redis
from redis.exceptions import RedisError

from blackbar.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[0-9a-f]{1,40}$")


def key_of(data: bytes) -> str:
    """Return the first 8 hex characters of the SHA-1 hash of the data."""
    return hashlib.sha1(data).hexdigest()[:8]


def _check_key(key: str) -> str:
    # Ids arrive straight from query strings; anything that is not a hash
    # prefix cannot have been stored.
    if not key or not _KEY_RE.match(key):
        raise NotFoundError(key)
    return key


class LocalBlobStore:
    """Blob store keeping one ``<key>.jpg`` file per image."""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def _path(self, key: str) -> str:
        return os.path.join(self.base_dir, f"{_check_key(key)}.jpg")

    def put(self, key: str, data: bytes) -> None:
        dest_path = self._path(key)
        try:
            os.makedirs(self.base_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
        except OSError as exc:
            raise StorageError(f"Failed to write image '{key}': {exc}") from exc
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, dest_path)
        except OSError as exc:
            os.unlink(tmp_path)
            raise StorageError(f"Failed to write image '{key}': {exc}") from exc

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFoundError(key)
        except OSError as exc:
            raise StorageError(f"Failed to read image '{key}': {exc}") from exc


class RedisBlobStore:
    """Blob store keeping image bytes as Redis string values."""

    def __init__(self, client: Redis, prefix: str = "image:"):
        self.client = client
        self.prefix = prefix

    def put(self, key: str, data: bytes) -> None:
        try:
            self.client.set(self.prefix + _check_key(key), data)
        except RedisError as exc:
            raise StorageError(f"Failed to write image '{key}': {exc}") from exc

    def get(self, key: str) -> bytes:
        try:
            data: Optional[bytes] = self.client.get(self.prefix + _check_key(key))
        except RedisError as exc:
            raise StorageError(f"Failed to read image '{key}': {exc}") from exc
        if data is None:
            raise NotFoundError(key)
        return data


def get_store():
    """Build the blob store selected by the environment.

    Returns:
        A ``LocalBlobStore`` or ``RedisBlobStore``.

    Raises:
        StorageError: If STORAGE_BACKEND names an unknown backend.
    """
    backend = os.getenv("STORAGE_BACKEND", "local").lower()
    if backend == "redis":
        redis_host = os.getenv("REDIS_HOST", "localhost")
        redis_port = int(os.getenv("REDIS_PORT", "6379"))
        redis_db = int(os.getenv("REDIS_DB", "0"))
        logger.info("Using redis image store at %s:%d/%d", redis_host, redis_port, redis_db)
        return RedisBlobStore(Redis(host=redis_host, port=redis_port, db=redis_db))
    if backend == "local":
        base_dir = os.getenv("IMAGE_STORE_DIR", "./image_store")
        logger.info("Using local image store in %s", base_dir)
        return LocalBlobStore(base_dir)
    raise StorageError(f"Unknown STORAGE_BACKEND '{backend}'")
