"""
File Storage
============

Buckets are directories under STORAGE_ROOT; object paths are relative
paths inside the bucket ("{user_id}/{timestamp}.png").

    bucket = backend.storage.from_("logos")
    bucket.upload(path, data, content_type="image/png")
    url = bucket.get_public_url(path)
"""

import os
import re
import logging
from pathlib import Path
from typing import List, Optional

from .errors import BackendError, STORAGE_DUPLICATE_CODE, STORAGE_NOT_FOUND_CODE

logger = logging.getLogger(__name__)

BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,62}$")


class StorageBucket:
    """Operations on one bucket"""

    def __init__(self, root: Path, name: str, public_url: str):
        self.root = root
        self.name = name
        self.public_url = public_url.rstrip("/")

    @property
    def directory(self) -> Path:
        return self.root / self.name

    def _resolve(self, path: str) -> Path:
        clean = (path or "").strip().lstrip("/")
        parts = clean.split("/")
        if not clean or any(part in ("", ".", "..") for part in parts):
            raise BackendError(f"Invalid object path: {path!r}", code="400")
        return self.directory.joinpath(*parts)

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None, upsert: bool = False) -> dict:
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise BackendError("The resource already exists", code=STORAGE_DUPLICATE_CODE)

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Stored {len(data)} bytes at {self.name}/{path} ({content_type or 'unknown type'})")
        return {"path": path, "full_path": f"{self.name}/{path}", "size": len(data)}

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise BackendError("Object not found", code=STORAGE_NOT_FOUND_CODE)
        return target.read_bytes()

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def remove(self, paths: List[str]) -> List[str]:
        """Remove objects; returns the paths that existed."""
        removed = []
        for path in paths:
            target = self._resolve(path)
            if target.is_file():
                target.unlink()
                removed.append(path)
        return removed

    def list(self, prefix: str = "") -> List[dict]:
        base = self._resolve(prefix) if prefix else self.directory
        if not base.is_dir():
            return []
        entries = []
        for item in sorted(base.rglob("*")):
            if item.is_file():
                entries.append({
                    "name": item.relative_to(self.directory).as_posix(),
                    "size": item.stat().st_size,
                })
        return entries

    def get_public_url(self, path: str) -> str:
        self._resolve(path)
        return f"{self.public_url}/storage/{self.name}/{path.lstrip('/')}"


class StorageClient:
    """Entry point for bucket operations"""

    def __init__(self, root: str, public_url: str):
        self.root = Path(root)
        self.public_url = public_url

    def from_(self, bucket: str) -> StorageBucket:
        if not BUCKET_NAME_PATTERN.match(bucket or ""):
            raise BackendError(f"Invalid bucket name: {bucket!r}", code="400")
        return StorageBucket(self.root, bucket, self.public_url)

    def usage_bytes(self, owner: Optional[str] = None) -> int:
        """Total bytes stored across all buckets, or only under "{owner}/" in each bucket."""
        if not self.root.is_dir():
            return 0
        if owner is None:
            directories = [self.root]
        else:
            directories = [bucket / owner for bucket in self.root.iterdir() if bucket.is_dir()]
        total = 0
        for directory in directories:
            for dirpath, _dirnames, filenames in os.walk(directory):
                for filename in filenames:
                    total += os.path.getsize(os.path.join(dirpath, filename))
        return total
