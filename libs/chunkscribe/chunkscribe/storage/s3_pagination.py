"""Shared S3 pagination helpers."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any


def iter_list_objects_v2(client: Any, *, bucket: str, **kwargs: Any) -> Iterator[dict[str, Any]]:
    """Iterate over `list_objects_v2` result pages, following continuation tokens."""

    token: str | None = None
    while True:
        call_kwargs: dict[str, Any] = {"Bucket": bucket, **kwargs}
        if token:
            call_kwargs["ContinuationToken"] = token

        resp: dict[str, Any] = dict(client.list_objects_v2(**call_kwargs))
        yield resp

        if not resp.get("IsTruncated"):
            break
        token = str(resp.get("NextContinuationToken") or "")
        if not token:
            break


def iter_keys(client: Any, *, bucket: str, prefix: str = "") -> Iterator[str]:
    for page in iter_list_objects_v2(client, bucket=bucket, Prefix=prefix):
        for obj in page.get("Contents") or []:
            key = str(obj.get("Key") or "")
            if key:
                yield key
