"""S3/MinIO adapter implementing ObjectStoragePort.

Bucket directories are key prefixes inside a single S3 bucket. boto3 is
synchronous, so every call runs in a worker thread and the event loop
only ever awaits it.

- Writes: put_object below one buffer, otherwise a multipart upload with
  a bounded number of in-flight upload_part calls
- Reads: get_object with an HTTP Range, streamed in chunks
- remove_all: list_objects_v2 pages + delete_objects batches (<= 1000)
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import TYPE_CHECKING, Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from tempshare.ports.object_storage_port import ObjectStoragePort, ObjectWriter
from tempshare.shared.errors import ObjectNotFoundError, StorageError
from tempshare.shared.types import ObjectMetadata

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)

# S3 rejects multipart parts smaller than 5 MiB (except the last one).
MIN_PART_SIZE = 5 * 1024 * 1024
DELETE_BATCH_SIZE = 1000
DEFAULT_READ_CHUNK_SIZE = 256 * 1024

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_not_found(exc: ClientError) -> bool:
    code = exc.response.get("Error", {}).get("Code", "")
    return code in _NOT_FOUND_CODES


class _S3Writer(ObjectWriter):
    """Buffered writer that switches to a multipart upload once a buffer fills."""

    def __init__(
        self,
        adapter: S3Adapter,
        key: str,
        buffer_size: int,
        concurrency: int,
    ) -> None:
        self._adapter = adapter
        self._key = key
        self._buffer_size = max(buffer_size, MIN_PART_SIZE)
        self._concurrency = max(concurrency, 1)
        self._buffer = bytearray()
        self._upload_id: str | None = None
        self._next_part = 1
        self._etags: dict[int, str] = {}
        self._pending: set[asyncio.Task[None]] = set()
        self._failure: BaseException | None = None
        self._closed = False

    async def write(self, chunk: bytes) -> None:
        if self._closed:
            raise StorageError("write", self._key, message=f"Writer for '{self._key}' is closed")
        self._buffer.extend(chunk)
        while len(self._buffer) >= self._buffer_size:
            data = bytes(self._buffer[: self._buffer_size])
            del self._buffer[: self._buffer_size]
            await self._submit(data)

    async def _submit(self, data: bytes) -> None:
        if self._upload_id is None:
            resp = await self._adapter.call(
                "create_multipart_upload",
                self._key,
                self._adapter.client.create_multipart_upload,
                Bucket=self._adapter.bucket,
                Key=self._key,
            )
            self._upload_id = resp["UploadId"]

        while len(self._pending) >= self._concurrency:
            done, self._pending = await asyncio.wait(
                self._pending,
                return_when=asyncio.FIRST_COMPLETED,
            )
            for task in done:
                task.result()

        number = self._next_part
        self._next_part += 1
        self._pending.add(asyncio.create_task(self._upload_part(number, data)))

    async def _upload_part(self, number: int, data: bytes) -> None:
        try:
            resp = await self._adapter.call(
                "upload_part",
                self._key,
                self._adapter.client.upload_part,
                Bucket=self._adapter.bucket,
                Key=self._key,
                UploadId=self._upload_id,
                PartNumber=number,
                Body=data,
            )
        except BaseException as exc:
            self._failure = exc
            raise
        self._etags[number] = resp["ETag"]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._upload_id is None:
            await self._adapter.call(
                "put_object",
                self._key,
                self._adapter.client.put_object,
                Bucket=self._adapter.bucket,
                Key=self._key,
                Body=bytes(self._buffer),
            )
            self._buffer.clear()
            return

        try:
            if self._buffer:
                data = bytes(self._buffer)
                self._buffer.clear()
                await self._submit(data)
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)
                self._pending.clear()
            if self._failure is not None:
                raise StorageError("upload_part", self._key) from self._failure

            await self._adapter.call(
                "complete_multipart_upload",
                self._key,
                self._adapter.client.complete_multipart_upload,
                Bucket=self._adapter.bucket,
                Key=self._key,
                UploadId=self._upload_id,
                MultipartUpload={
                    "Parts": [
                        {"ETag": etag, "PartNumber": number}
                        for number, etag in sorted(self._etags.items())
                    ]
                },
            )
        except BaseException:
            await self._abort()
            raise

    async def _abort(self) -> None:
        try:
            await self._adapter.call(
                "abort_multipart_upload",
                self._key,
                self._adapter.client.abort_multipart_upload,
                Bucket=self._adapter.bucket,
                Key=self._key,
                UploadId=self._upload_id,
            )
        except StorageError as exc:
            logger.warning("Failed to abort multipart upload for '%s': %s", self._key, exc)


class S3Adapter(ObjectStoragePort):
    """ObjectStoragePort implementation using S3/MinIO."""

    def __init__(
        self,
        bucket: str | None = None,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
        *,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ) -> None:
        self._bucket = bucket or os.environ.get("S3_BUCKET", "tempshare")
        self._endpoint_url = endpoint_url or os.environ.get("S3_ENDPOINT_URL") or None
        self._access_key = access_key or os.environ.get("AWS_ACCESS_KEY_ID", "")
        self._secret_key = secret_key or os.environ.get("AWS_SECRET_ACCESS_KEY", "")
        self._region = region
        self._read_chunk_size = read_chunk_size
        self._client: Any = None

    @classmethod
    def from_client(cls, client: Any, bucket: str) -> S3Adapter:
        """Wrap an existing boto3 S3 client."""
        adapter = cls(bucket=bucket)
        adapter._client = client
        return adapter

    def connect(self) -> None:
        """Create S3 client (synchronous; calls are moved off the event loop)."""
        self._client = boto3.client(
            "s3",
            endpoint_url=self._endpoint_url,
            aws_access_key_id=self._access_key or None,
            aws_secret_access_key=self._secret_key or None,
            region_name=self._region,
            config=Config(signature_version="s3v4"),
        )
        logger.info("S3 adapter connected: bucket=%s endpoint=%s", self._bucket, self._endpoint_url)

    @property
    def client(self) -> Any:
        if self._client is None:
            msg = "S3 not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    @property
    def bucket(self) -> str:
        return self._bucket

    async def call(
        self,
        operation: str,
        path: str,
        fn: Callable[..., Any],
        **kwargs: Any,
    ) -> Any:
        """Run a blocking boto3 call in a thread, translating its errors."""
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except ClientError as exc:
            if _is_not_found(exc):
                raise ObjectNotFoundError(operation, path) from exc
            raise StorageError(operation, path) from exc
        except BotoCoreError as exc:
            raise StorageError(operation, path) from exc

    async def open_writer(
        self,
        path: str,
        *,
        buffer_size: int,
        concurrency: int,
    ) -> ObjectWriter:
        return _S3Writer(self, path, buffer_size, concurrency)

    async def stat(self, path: str) -> ObjectMetadata:
        if path.endswith("/"):
            if await self._prefix_exists(path):
                return ObjectMetadata(path=path, is_dir=True)
            raise ObjectNotFoundError("stat", path)

        resp = await self.call("stat", path, self.client.head_object, Bucket=self._bucket, Key=path)
        return ObjectMetadata(path=path, content_length=int(resp["ContentLength"]))

    async def read(
        self,
        path: str,
        start: int = 0,
        end: int | None = None,
    ) -> AsyncIterator[bytes]:
        kwargs: dict[str, Any] = {"Bucket": self._bucket, "Key": path}
        if start or end is not None:
            kwargs["Range"] = f"bytes={start}-{'' if end is None else end}"
        resp = await self.call("read", path, self.client.get_object, **kwargs)

        body = resp["Body"]
        try:
            while True:
                try:
                    chunk = await asyncio.to_thread(body.read, self._read_chunk_size)
                except BotoCoreError as exc:
                    raise StorageError("read", path) from exc
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()

    def _list_sync(self, prefix: str) -> tuple[list[str], list[dict[str, Any]]]:
        paginator = self.client.get_paginator("list_objects_v2")
        prefixes: list[str] = []
        contents: list[dict[str, Any]] = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix, Delimiter="/"):
            prefixes.extend(p["Prefix"] for p in page.get("CommonPrefixes", []))
            contents.extend(page.get("Contents", []))
        return prefixes, contents

    async def list_dir(self, path: str) -> list[ObjectMetadata]:
        prefix = path.strip("/")
        prefix = f"{prefix}/" if prefix else ""
        prefixes, contents = await self.call("list", path, self._list_sync, prefix=prefix)

        entries = [ObjectMetadata(path=p, is_dir=True) for p in prefixes]
        entries.extend(
            ObjectMetadata(path=obj["Key"], content_length=int(obj.get("Size", 0)))
            for obj in contents
            # the directory marker written by create_dir
            if obj["Key"] != prefix
        )
        return entries

    async def _prefix_exists(self, prefix: str) -> bool:
        resp = await self.call(
            "list",
            prefix,
            self.client.list_objects_v2,
            Bucket=self._bucket,
            Prefix=prefix,
            MaxKeys=1,
        )
        return int(resp.get("KeyCount", 0)) > 0

    async def create_dir(self, path: str) -> None:
        key = path.rstrip("/") + "/"
        await self.call("create_dir", key, self.client.put_object, Bucket=self._bucket, Key=key, Body=b"")

    async def exists(self, path: str) -> bool:
        if path.endswith("/"):
            return await self._prefix_exists(path)
        try:
            await self.call("exists", path, self.client.head_object, Bucket=self._bucket, Key=path)
        except ObjectNotFoundError:
            return False
        return True

    def _delete_prefix_sync(self, prefix: str) -> int:
        deleted = 0
        continuation: dict[str, Any] = {}
        while True:
            resp = self.client.list_objects_v2(Bucket=self._bucket, Prefix=prefix, **continuation)
            keys = [{"Key": obj["Key"]} for obj in resp.get("Contents", [])]
            for offset in range(0, len(keys), DELETE_BATCH_SIZE):
                batch = keys[offset : offset + DELETE_BATCH_SIZE]
                result = self.client.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": batch, "Quiet": True},
                )
                errors = result.get("Errors", [])
                if errors:
                    first = errors[0]
                    msg = f"{len(errors)} keys not deleted under '{prefix}', first: {first.get('Key')} ({first.get('Code')})"
                    raise StorageError("remove_all", prefix, message=msg)
                deleted += len(batch)
            if resp.get("IsTruncated"):
                continuation = {"ContinuationToken": resp["NextContinuationToken"]}
            else:
                break
        return deleted

    async def remove_all(self, path: str) -> None:
        prefix = path.strip("/")
        if not prefix:
            raise StorageError("remove_all", path, message="Refusing to remove the storage root")
        prefix = f"{prefix}/"
        deleted = await self.call("remove_all", prefix, self._delete_prefix_sync, prefix=prefix)
        logger.debug("Removed %d objects under '%s'", deleted, prefix)
