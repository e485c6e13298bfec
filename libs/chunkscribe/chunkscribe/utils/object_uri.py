"""Parse object-store URIs reported by the transcription service."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlparse

from chunkscribe.exceptions import ValidationError
from chunkscribe.models.workflow import SourceLocation

# https://s3.<region>.amazonaws.com/<bucket>/<key>  (path style)
_PATH_STYLE_HOST = re.compile(r"^s3([.-][a-z0-9-]+)?\.amazonaws\.com(\.cn)?$")
# https://<bucket>.s3.<region>.amazonaws.com/<key>  (virtual-hosted style)
_VHOST_STYLE_HOST = re.compile(r"^(?P<bucket>.+)\.s3([.-][a-z0-9-]+)?\.amazonaws\.com(\.cn)?$")


def parse_object_uri(uri: str) -> SourceLocation:
    raw = str(uri or "").strip()
    if not raw:
        raise ValidationError("object URI is empty")

    parsed = urlparse(raw)
    scheme = parsed.scheme.lower()
    host = (parsed.hostname or "").lower()

    if scheme == "s3":
        bucket = parsed.netloc
        key = parsed.path.lstrip("/")
    elif scheme in {"http", "https"}:
        path = unquote(parsed.path.lstrip("/"))
        vhost = _VHOST_STYLE_HOST.match(host)
        if vhost is not None:
            bucket, key = vhost.group("bucket"), path
        elif _PATH_STYLE_HOST.match(host):
            bucket, _, key = path.partition("/")
        else:
            raise ValidationError(f"unrecognized object URI host: {raw}")
    else:
        raise ValidationError(f"unsupported object URI scheme: {raw}")

    if not bucket or not key:
        raise ValidationError(f"object URI must name a bucket and a key: {raw}")
    return SourceLocation(bucket=bucket, key=key)


def caption_key_for(output_key: str, job_id: str, *, extension: str = ".srt") -> str:
    """Map a job's reported output key to the caption object next to it.

    `<dir>/<job>.json` becomes `<dir>/<job>.srt`; a key that already carries
    the caption extension is kept; anything else falls back to `<job><ext>`
    at the bucket root.
    """
    key = str(output_key or "")
    if key.endswith(extension):
        return key
    if key.endswith(".json"):
        return key[: -len(".json")] + extension
    return f"{job_id}{extension}"
