import asyncio
import logging
from typing import List, Sequence

import boto3
from botocore.client import Config

from closet.core.config import settings

logger = logging.getLogger("uvicorn.error")


def r2_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.R2_ENDPOINT or None,
        aws_access_key_id=settings.R2_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY or None,
        region_name=settings.R2_REGION,
        config=Config(signature_version="s3v4"),
    )


def object_url(bucket: str, key: str) -> str:
    cdn = settings.R2_CDN_BASE.rstrip("/")
    if cdn:
        return f"{cdn}/{bucket}/{key}"
    base = settings.R2_ENDPOINT.rstrip("/")
    return f"{base}/{bucket}/{key}"


class R2ObjectStore:
    """S3-compatible bucket access; boto3 calls run in worker threads."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = r2_client()
        return self._client

    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self.client.put_object, Bucket=bucket, Key=key, Body=data, ContentType=content_type
        )
        logger.info("r2 upload bucket=%s key=%s bytes=%s", bucket, key, len(data))

    def public_url(self, bucket: str, key: str) -> str:
        return object_url(bucket, key)

    async def list(self, bucket: str, prefix: str) -> List[str]:
        keys: List[str] = []
        token = None
        while True:
            params = {"Bucket": bucket, "Prefix": prefix}
            if token:
                params["ContinuationToken"] = token
            resp = await asyncio.to_thread(self.client.list_objects_v2, **params)
            keys.extend(obj["Key"] for obj in resp.get("Contents", []))
            if not resp.get("IsTruncated"):
                break
            token = resp.get("NextContinuationToken")
        return keys

    async def remove(self, bucket: str, keys: Sequence[str]) -> None:
        keys = list(keys)
        # delete_objects accepts at most 1000 keys per call
        for i in range(0, len(keys), 1000):
            chunk = keys[i : i + 1000]
            resp = await asyncio.to_thread(
                self.client.delete_objects,
                Bucket=bucket,
                Delete={"Objects": [{"Key": k} for k in chunk], "Quiet": True},
            )
            errors = resp.get("Errors") or []
            if errors:
                raise RuntimeError(f"r2 delete failed for {len(errors)} object(s) in {bucket}")
        if keys:
            logger.info("r2 remove bucket=%s count=%s", bucket, len(keys))
