"""Storage adapters implementing ObjectStoragePort."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tempshare.infra.storage.fs_adapter import FilesystemAdapter
from tempshare.infra.storage.s3_adapter import S3Adapter

if TYPE_CHECKING:
    from tempshare.config import Settings
    from tempshare.ports.object_storage_port import ObjectStoragePort


def build_storage(settings: Settings) -> ObjectStoragePort:
    """Instantiate and connect the configured storage backend."""
    if settings.storage_backend == "s3":
        s3 = S3Adapter(
            bucket=settings.s3_bucket,
            endpoint_url=settings.s3_endpoint_url,
            access_key=settings.aws_access_key_id,
            secret_key=settings.aws_secret_access_key,
            region=settings.s3_region,
        )
        s3.connect()
        return s3

    fs = FilesystemAdapter(settings.storage_root)
    fs.connect()
    return fs


__all__ = ["FilesystemAdapter", "S3Adapter", "build_storage"]
