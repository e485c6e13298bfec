"""S3 (or S3-compatible) object store."""

from __future__ import annotations

import asyncio
import builtins
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from botocore.config import Config
from botocore.exceptions import ClientError, ConnectionError as BotoConnectionError
from botocore.exceptions import EndpointConnectionError, ReadTimeoutError

from chunkscribe.exceptions import ArtifactNotFoundError, ChunkscribeError, TransientError
from chunkscribe.storage.object_store import ObjectInfo, ObjectStore
from chunkscribe.storage.s3_pagination import iter_keys

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}
_TRANSIENT_CODES = {
    "500",
    "502",
    "503",
    "504",
    "InternalError",
    "ServiceUnavailable",
    "SlowDown",
    "RequestTimeout",
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", "") or "")


def _translate(exc: Exception, what: str) -> ChunkscribeError:
    if isinstance(exc, ClientError):
        code = _error_code(exc)
        if code in _NOT_FOUND_CODES:
            return ArtifactNotFoundError(f"object not found: {what}")
        status = int(exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0)
        if code in _TRANSIENT_CODES or status >= 500:
            return TransientError(f"s3 {what}: {code or status}")
        return ChunkscribeError(f"s3 {what}: {exc}")
    return TransientError(f"s3 {what}: {exc}")


class S3ObjectStore(ObjectStore):
    """boto3-backed store; blocking calls run in a worker thread."""

    def __init__(
        self,
        *,
        endpoint: str | None = None,
        region: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/") if endpoint else None
        self.region = region
        self.access_key = access_key
        self.secret_key = secret_key
        self._client: Any | None = client

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client

        import boto3

        kwargs: dict[str, Any] = {"region_name": self.region}
        if self.endpoint:
            # MinIO and friends need path-style addressing.
            kwargs["endpoint_url"] = self.endpoint
            kwargs["config"] = Config(s3={"addressing_style": "path"})
        if self.access_key and self.secret_key:
            kwargs["aws_access_key_id"] = self.access_key
            kwargs["aws_secret_access_key"] = self.secret_key
        self._client = boto3.client("s3", **kwargs)
        return self._client

    async def _call(self, what: str, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except (ClientError, EndpointConnectionError, BotoConnectionError, ReadTimeoutError) as exc:
            raise _translate(exc, what) from exc

    async def head(self, bucket: str, key: str) -> ObjectInfo:
        client = self._ensure_client()

        def _head() -> dict[str, Any]:
            return dict(client.head_object(Bucket=bucket, Key=key))

        resp = await self._call(f"{bucket}/{key}", _head)
        return ObjectInfo(
            bucket=bucket,
            key=key,
            size=int(resp.get("ContentLength") or 0),
            content_type=resp.get("ContentType"),
            metadata={str(k): str(v) for k, v in dict(resp.get("Metadata") or {}).items()},
        )

    async def get(self, bucket: str, key: str) -> bytes:
        client = self._ensure_client()

        def _get() -> bytes:
            resp = client.get_object(Bucket=bucket, Key=key)
            return bytes(resp["Body"].read())

        return await self._call(f"{bucket}/{key}", _get)

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
    ) -> str:
        client = self._ensure_client()

        def _put() -> None:
            kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": bytes(data)}
            if content_type:
                kwargs["ContentType"] = content_type
            client.put_object(**kwargs)

        await self._call(f"{bucket}/{key}", _put)
        return f"s3://{bucket}/{key}"

    async def copy(self, src_bucket: str, src_key: str, dst_bucket: str, dst_key: str) -> str:
        client = self._ensure_client()

        def _copy() -> None:
            client.copy_object(
                Bucket=dst_bucket,
                Key=dst_key,
                CopySource={"Bucket": src_bucket, "Key": src_key},
            )

        await self._call(f"{src_bucket}/{src_key} -> {dst_bucket}/{dst_key}", _copy)
        return f"s3://{dst_bucket}/{dst_key}"

    async def list(self, bucket: str, prefix: str = "") -> builtins.list[str]:
        client = self._ensure_client()

        def _list() -> builtins.list[str]:
            return list(iter_keys(client, bucket=bucket, prefix=prefix))

        return await self._call(f"{bucket}/{prefix}*", _list)

    async def delete(self, bucket: str, key: str) -> None:
        client = self._ensure_client()

        def _delete() -> None:
            client.delete_object(Bucket=bucket, Key=key)

        await self._call(f"{bucket}/{key}", _delete)
        logger.debug("s3 object deleted (bucket=%s, key=%s)", bucket, key)

    async def download_file(self, bucket: str, key: str, path: str | Path) -> Path:
        client = self._ensure_client()
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        def _download() -> None:
            client.download_file(bucket, key, str(target))

        await self._call(f"{bucket}/{key}", _download)
        return target

    async def upload_file(
        self,
        path: str | Path,
        bucket: str,
        key: str,
        *,
        content_type: str | None = None,
    ) -> str:
        client = self._ensure_client()
        extra = {"ContentType": content_type} if content_type else None

        def _upload() -> None:
            client.upload_file(str(path), bucket, key, ExtraArgs=extra)

        await self._call(f"{bucket}/{key}", _upload)
        return f"s3://{bucket}/{key}"
