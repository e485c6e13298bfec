from __future__ import annotations

import pytest

from chunkscribe.exceptions import ValidationError
from chunkscribe.models.workflow import SourceLocation
from chunkscribe.utils.object_uri import caption_key_for, parse_object_uri


@pytest.mark.parametrize(
    ("uri", "expected"),
    [
        ("s3://captions/job_a.json", SourceLocation("captions", "job_a.json")),
        ("https://s3.us-east-1.amazonaws.com/captions/dir/job_a.srt", SourceLocation("captions", "dir/job_a.srt")),
        ("https://captions.s3.eu-west-2.amazonaws.com/job_a.srt", SourceLocation("captions", "job_a.srt")),
        ("https://captions.s3.amazonaws.com/my%20file.srt", SourceLocation("captions", "my file.srt")),
    ],
)
def test_parse_object_uri_forms(uri: str, expected: SourceLocation) -> None:
    assert parse_object_uri(uri) == expected


@pytest.mark.parametrize("uri", ["", "ftp://x/y", "https://example.com/a/b", "s3://bucket-only"])
def test_parse_object_uri_rejects_unknown(uri: str) -> None:
    with pytest.raises(ValidationError):
        parse_object_uri(uri)


def test_caption_key_for() -> None:
    assert caption_key_for("out/job_a.json", "job_a") == "out/job_a.srt"
    assert caption_key_for("job_a.srt", "job_a") == "job_a.srt"
    assert caption_key_for("weird.bin", "job_a") == "job_a.srt"
