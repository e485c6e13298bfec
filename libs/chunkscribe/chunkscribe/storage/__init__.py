"""Object storage backends."""

from chunkscribe.config import Settings
from chunkscribe.exceptions import ConfigurationError
from chunkscribe.storage.object_store import LocalObjectStore, ObjectInfo, ObjectStore
from chunkscribe.storage.s3_store import S3ObjectStore


def get_object_store(settings: Settings) -> ObjectStore:
    backend = str(settings.storage.backend or "s3").strip().lower()
    match backend:
        case "s3":
            return S3ObjectStore(
                endpoint=settings.storage.endpoint,
                region=settings.storage.region,
                access_key=settings.storage.access_key,
                secret_key=settings.storage.secret_key,
            )
        case "local":
            return LocalObjectStore(settings.storage.local_root)
        case _:
            raise ConfigurationError(f"Unknown storage backend: {backend}")


__all__ = ["LocalObjectStore", "ObjectInfo", "ObjectStore", "S3ObjectStore", "get_object_store"]
