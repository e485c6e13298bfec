"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chunkscribe.exceptions import ConfigurationError

_ENV_FILES = (".env", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class RetryPolicy(BaseModel):
    """Retry policy for one kind of workflow step."""

    max_retries: int = Field(default=3, ge=0)
    interval_s: float = Field(default=2.0, ge=0)
    backoff_rate: float = Field(default=2.0, ge=1.0)
    max_interval_s: float | None = Field(default=None, gt=0)

    @property
    def max_attempts(self) -> int:
        return int(self.max_retries) + 1


class StorageConfig(BaseSettings):
    """Object store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: str = "s3"  # "s3" | "local"
    endpoint: str | None = None
    region: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    output_bucket: str = "captions"
    chunk_prefix: str = "chunks"
    local_root: str = "./data/objects"

    @model_validator(mode="after")
    def _resolve_paths(self) -> "StorageConfig":
        self.local_root = _resolve_repo_path(self.local_root)
        return self


class TranscriptionConfig(BaseSettings):
    """Speech-to-text job service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSCRIBE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "aws"  # "aws" | "http"
    region: str | None = None
    base_url: str = "http://localhost:8080/v1"
    api_key: str = ""
    timeout: float = Field(default=30.0, gt=0)
    caption_formats: list[str] = Field(default_factory=lambda: ["srt"])
    # language name -> service language code
    languages: dict[str, str] = Field(default_factory=lambda: {"english": "en-US", "spanish": "es-ES"})

    @model_validator(mode="after")
    def _validate_languages(self) -> "TranscriptionConfig":
        if not self.languages:
            raise ConfigurationError("TRANSCRIBE_LANGUAGES must name at least one language")
        if "srt" not in [str(f).strip().lower() for f in self.caption_formats]:
            raise ConfigurationError("TRANSCRIBE_CAPTION_FORMATS must include 'srt'")
        return self


class WorkflowConfig(BaseSettings):
    """Orchestrator policy constants."""

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_file_size_mb: float = Field(default=100.0, gt=0)
    segment_duration_s: int = Field(default=300, ge=1)
    merge_gap_ms: int = Field(default=100, ge=0)
    poll_interval_s: float = Field(default=30.0, ge=0)
    fan_out_concurrency: int = Field(default=3, ge=1)
    step_timeout_s: float | None = Field(default=900.0, gt=0)
    max_polls: int | None = Field(default=None, ge=1)

    task_retry: RetryPolicy = RetryPolicy(max_retries=3, interval_s=2.0, backoff_rate=2.0)
    poll_retry: RetryPolicy = RetryPolicy(max_retries=2, interval_s=2.0, backoff_rate=2.0)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)


class SplitterConfig(BaseSettings):
    """Media splitter tool configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPLITTER_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "ffmpeg"
    ffmpeg_bin: str = "ffmpeg"
    scratch_dir: str | None = None
    timeout_s: float | None = Field(default=None, gt=0)


class RegistryConfig(BaseSettings):
    """Job registry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: str = "redis"  # "redis" | "memory"
    key_prefix: str = "chunkscribe"
    execution_ttl_days: int = Field(default=30, ge=1)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)
    quiet_loggers: list[str] = Field(
        default_factory=lambda: ["botocore", "boto3", "s3transfer", "urllib3", "httpx"]
    )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    data_dir: str = "./data"
    log_dir: str = "./logs"

    # Redis (job registry + upload queue)
    redis_url: str = "redis://localhost:6379"
    upload_queue: str = "chunkscribe:uploads:queue"

    storage: StorageConfig = StorageConfig()
    transcription: TranscriptionConfig = TranscriptionConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    splitter: SplitterConfig = SplitterConfig()
    registry: RegistryConfig = RegistryConfig()

    # Logging
    logging: LoggingSettings = LoggingSettings()

    def model_post_init(self, __context: Any) -> None:
        # Running apps from their own directory changes CWD; keep paths stable.
        self.data_dir = _resolve_repo_path(self.data_dir)
        self.log_dir = _resolve_repo_path(self.log_dir)
        for p in (self.data_dir, self.log_dir):
            Path(p).mkdir(parents=True, exist_ok=True)

    @property
    def languages(self) -> dict[str, str]:
        return dict(self.transcription.languages)
