"""Local object store for uploaded files, organised in buckets under STORAGE_DIRECTORY."""
import logging
import re
import uuid
from pathlib import Path

from app.core.config import settings
from app.core.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

_SAFE_SEGMENT = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9._-]*")
_FILE_SUFFIX = re.compile(r"\.[A-Za-z0-9]{1,10}")


def _safe_segment(value: str) -> str:
    # Segments are used verbatim so two distinct keys never share a file.
    if not _SAFE_SEGMENT.fullmatch(value):
        raise InvalidInputError(f"Invalid object path segment: {value!r}")
    return value


def new_object_key(prefix: str, file_name: str) -> str:
    """A unique key under ``prefix`` that keeps the extension of ``file_name``."""
    suffix = Path(file_name).suffix
    suffix = suffix.lower() if _FILE_SUFFIX.fullmatch(suffix) else ""
    return f"{prefix}/{uuid.uuid4().hex}{suffix}"


class FileStorage:
    def __init__(self, root: str | Path | None = None):
        self.root = Path(root or settings.STORAGE_DIRECTORY).resolve()

    def _path(self, bucket: str, key: str) -> Path:
        parts = [_safe_segment(part) for part in key.split("/") if part]
        if not parts:
            raise InvalidInputError("Object key must not be empty")
        return self.root.joinpath(_safe_segment(bucket), *parts)

    def put_object(self, bucket: str, key: str, data: bytes) -> str:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored %s bytes at %s/%s", len(data), bucket, key)
        return self.object_url(bucket, key)

    def get_object(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        if not path.is_file():
            raise NotFoundError(f"File {key} not found")
        return path.read_bytes()

    def delete_object(self, bucket: str, key: str) -> bool:
        path = self._path(bucket, key)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def object_url(self, bucket: str, key: str) -> str:
        segments = [_safe_segment(part) for part in key.split("/") if part]
        return f"{_safe_segment(bucket)}/{'/'.join(segments)}"


_storage: FileStorage | None = None


def get_storage() -> FileStorage:
    global _storage
    if _storage is None:
        _storage = FileStorage()
    return _storage
