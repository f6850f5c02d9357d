"""
S3-compatible storage (AWS S3, Cloudflare R2, Backblaze B2).

boto3 is blocking, so every call runs in the Starlette threadpool. Object
bodies are read in chunks, one threadpool hop per chunk, so a cancelled
request stops pulling data at the next chunk boundary.
"""
from typing import Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError
from starlette.concurrency import run_in_threadpool

from ..config import Settings
from .provider import ListPage, ObjectEntry, ObjectNotFound, StorageProvider

READ_CHUNK_SIZE = 512 * 1024


class S3StorageProvider(StorageProvider):
    name = "s3"

    def __init__(self, settings: Settings) -> None:
        if not settings.s3_bucket:
            raise RuntimeError("S3_BUCKET must be set")
        self._bucket = settings.s3_bucket
        self._client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            config=BotoConfig(
                s3={"addressing_style": "path" if settings.s3_force_path_style else "auto"},
                signature_version="s3v4",
            ),
        )

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await run_in_threadpool(
            self._client.put_object, Bucket=self._bucket, Key=key, Body=data, ContentType=content_type
        )

    async def get(self, key: str) -> bytes:
        try:
            obj = await run_in_threadpool(self._client.get_object, Bucket=self._bucket, Key=key)
        except ClientError as ce:
            code = ce.response.get("Error", {}).get("Code", "")
            if code in {"NoSuchKey", "NotFound", "404"}:
                raise ObjectNotFound(key)
            raise
        body = obj["Body"]
        chunks = []
        try:
            while True:
                chunk = await run_in_threadpool(body.read, READ_CHUNK_SIZE)
                if not chunk:
                    break
                chunks.append(chunk)
        finally:
            body.close()
        return b"".join(chunks)

    async def list_page(self, prefix: str, cursor: Optional[str] = None, page_size: int = 1000) -> ListPage:
        kwargs = {"Bucket": self._bucket, "Prefix": prefix, "MaxKeys": page_size}
        if cursor:
            kwargs["ContinuationToken"] = cursor
        out = await run_in_threadpool(self._client.list_objects_v2, **kwargs)
        entries = [ObjectEntry(key=o["Key"], size=int(o.get("Size", 0))) for o in out.get("Contents", [])]
        next_cursor = out.get("NextContinuationToken") if out.get("IsTruncated") else None
        return ListPage(entries=entries, next_cursor=next_cursor)

    async def delete(self, key: str) -> None:
        await run_in_threadpool(self._client.delete_object, Bucket=self._bucket, Key=key)

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        return self._client.generate_presigned_url(
            "put_object",
            Params={"Bucket": self._bucket, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_s,
        )
