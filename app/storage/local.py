"""
Filesystem-backed object storage.

Paths handed out are relative (``downloads/1719650000_report.pdf``) and are
what the database stores; ``url`` turns one into its public address.
"""
import logging
import os
import time
from functools import lru_cache
from pathlib import Path

from fastapi import UploadFile

from app.config import settings
from app.content.slugs import slugify
from app.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


class StoredFile:
    def __init__(self, path: str, original_name: str, size: int, extension: str, mime_type: str):
        self.path = path
        self.original_name = original_name
        self.size = size
        self.extension = extension
        self.mime_type = mime_type


class LocalStorage:
    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def absolute(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if self.root.resolve() not in resolved.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return resolved

    def url(self, path: str) -> str:
        return f"{self.base_url}/storage/{path}"

    def exists(self, path: str | None) -> bool:
        if not path:
            return False
        try:
            return self.absolute(path).is_file()
        except StorageError:
            return False

    def store(self, folder: str, upload: UploadFile, field: str = "file", max_mb: int | None = None,
              images_only: bool = False) -> StoredFile:
        if not upload or not upload.filename:
            raise ValidationError.field(field, "A file is required")
        if images_only and not (upload.content_type or "").startswith("image/"):
            raise ValidationError.field(field, f"'{upload.filename}' is not an image")

        data = upload.file.read()
        if max_mb is not None and len(data) > max_mb * 1024 * 1024:
            raise ValidationError.field(field, f"{upload.filename} is larger than {max_mb}MB")

        stem, ext = os.path.splitext(os.path.basename(upload.filename))
        ext = ext.lstrip(".").lower()
        base = f"{int(time.time())}_{slugify(stem) or 'file'}"
        suffix = f".{ext}" if ext else ""
        rel = f"{folder}/{base}{suffix}"
        n = 1
        while self.exists(rel):
            rel = f"{folder}/{base}-{n}{suffix}"
            n += 1

        try:
            target = self.absolute(rel)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Could not store {upload.filename}: {e}")

        logger.info("Stored %s (%d bytes)", rel, len(data))
        return StoredFile(
            path=rel,
            original_name=upload.filename,
            size=len(data),
            extension=ext,
            mime_type=upload.content_type or "application/octet-stream",
        )

    def delete(self, path: str | None) -> bool:
        if not path:
            return False
        try:
            target = self.absolute(path)
            if not target.exists():
                return False
            target.unlink()
        except OSError as e:
            raise StorageError(f"Could not delete {path}: {e}")
        logger.info("Deleted %s", path)
        return True


@lru_cache
def get_storage() -> LocalStorage:
    return LocalStorage(settings.storage_root, settings.public_base_url)
