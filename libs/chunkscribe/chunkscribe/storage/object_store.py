"""Object store interface and local filesystem implementation."""

from __future__ import annotations

import asyncio
import builtins
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from chunkscribe.exceptions import ArtifactNotFoundError, ValidationError


@dataclass(frozen=True)
class ObjectInfo:
    bucket: str
    key: str
    size: int
    content_type: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class ObjectStore(ABC):
    """Bucket/key object storage.

    `get`, `head` and `download_file` raise `ArtifactNotFoundError` for a
    missing object. `delete` of a missing object is not an error.
    """

    @abstractmethod
    async def head(self, bucket: str, key: str) -> ObjectInfo:
        """Return size and metadata of an object."""

    @abstractmethod
    async def get(self, bucket: str, key: str) -> bytes:
        """Load object bytes."""

    @abstractmethod
    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
    ) -> str:
        """Store object bytes and return its URI."""

    @abstractmethod
    async def list(self, bucket: str, prefix: str = "") -> builtins.list[str]:
        """List keys under `prefix`."""

    @abstractmethod
    async def delete(self, bucket: str, key: str) -> None:
        """Delete one object."""

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            await self.head(bucket, key)
        except ArtifactNotFoundError:
            return False
        return True

    async def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> str:
        info = await self.head(src_bucket, src_key)
        data = await self.get(src_bucket, src_key)
        return await self.put(dst_bucket, dst_key, data, content_type=info.content_type)

    async def get_text(self, bucket: str, key: str) -> str:
        return (await self.get(bucket, key)).decode("utf-8")

    async def put_text(self, bucket: str, key: str, text: str, *, content_type: str | None = None) -> str:
        return await self.put(
            bucket, key, text.encode("utf-8"), content_type=content_type or "text/plain; charset=utf-8"
        )

    async def download_file(self, bucket: str, key: str, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        data = await self.get(bucket, key)
        await asyncio.to_thread(target.write_bytes, data)
        return target

    async def upload_file(
        self,
        path: str | Path,
        bucket: str,
        key: str,
        *,
        content_type: str | None = None,
    ) -> str:
        data = await asyncio.to_thread(Path(path).read_bytes)
        return await self.put(bucket, key, data, content_type=content_type)


class LocalObjectStore(ObjectStore):
    """Filesystem object store (`<base_dir>/<bucket>/<key>`) for development."""

    def __init__(self, base_dir: str) -> None:
        self.base_dir = Path(base_dir)

    def _path(self, bucket: str, key: str) -> Path:
        bucket = str(bucket or "").strip()
        key = str(key or "").lstrip("/")
        if not bucket or "/" in bucket or bucket in {".", ".."}:
            raise ValidationError(f"invalid bucket name: {bucket!r}")
        if not key or any(part == ".." for part in key.split("/")):
            raise ValidationError(f"invalid object key: {key!r}")
        return self.base_dir / bucket / key

    async def head(self, bucket: str, key: str) -> ObjectInfo:
        path = self._path(bucket, key)
        if not path.is_file():
            raise ArtifactNotFoundError(f"object not found: {bucket}/{key}")
        return ObjectInfo(bucket=bucket, key=key, size=path.stat().st_size)

    async def get(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        if not path.is_file():
            raise ArtifactNotFoundError(f"object not found: {bucket}/{key}")
        return await asyncio.to_thread(path.read_bytes)

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,  # noqa: ARG002
    ) -> str:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, bytes(data))
        return f"file://{path}"

    async def list(self, bucket: str, prefix: str = "") -> builtins.list[str]:
        root = self.base_dir / str(bucket)
        if not root.exists():
            return []
        keys = [p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()]
        return sorted(k for k in keys if k.startswith(prefix))

    async def delete(self, bucket: str, key: str) -> None:
        path = self._path(bucket, key)
        path.unlink(missing_ok=True)

    async def download_file(self, bucket: str, key: str, path: str | Path) -> Path:
        src = self._path(bucket, key)
        if not src.is_file():
            raise ArtifactNotFoundError(f"object not found: {bucket}/{key}")
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, src, target)
        return target
