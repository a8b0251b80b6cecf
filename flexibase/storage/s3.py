"""
S3 blob store for FlexiBase remote sync.

Uploads the serialized document as a single object and downloads it back by
key. Works against AWS S3 and S3-compatible services (MinIO, R2) through a
custom endpoint.

Object layout:
    s3://<bucket>/<prefix>/<name>

The object key is the opaque blob identifier handed back to the sync engine.
locate() resolves a name to its key, so a fresh process pulls the existing
object before its first push.

Invariants:
    - upload() returns only after S3 acknowledged the PUT
    - Every botocore/network failure surfaces as TransportError
    - The client is created lazily and reused until close()

How to change safely:
    - Keep the blob id equal to the object key; persisted configs store it
    - Test against MinIO before changing request parameters
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3Config
from ..errors import TransportError

logger = logging.getLogger(__name__)


class S3BlobStore:
    """BlobStore backed by an S3 bucket.

    Attributes:
        config: S3 configuration

    Example:
        >>> store = S3BlobStore(S3Config(bucket="flexibase-sync"))
        >>> blob_id = await store.upload("flexibase.json", payload)
        >>> await store.download(blob_id) == payload
        True
    """

    def __init__(self, config: S3Config) -> None:
        self.config = config
        self._session = None
        self._client = None
        self._client_ctx = None

    def object_key(self, name: str) -> str:
        prefix = self.config.prefix.strip("/")
        return f"{prefix}/{name}" if prefix else name

    async def upload(self, name: str, data: bytes) -> str:
        """Put data under <prefix>/<name>.

        Returns:
            The object key

        Raises:
            TransportError: If S3 rejects the request or is unreachable
        """
        client = await self._get_client()
        key = self.object_key(name)
        try:
            await client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f"S3 upload of {key} failed: {e}", backend="s3") from e

        logger.info(
            "Uploaded document to S3",
            extra={"bucket": self.config.bucket, "key": key, "bytes": len(data)},
        )
        return key

    async def download(self, blob_id: str) -> bytes:
        """Get the object stored under blob_id.

        Raises:
            TransportError: If the object is missing or S3 is unreachable
        """
        client = await self._get_client()
        try:
            response = await client.get_object(Bucket=self.config.bucket, Key=blob_id)
            data = await response["Body"].read()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("NoSuchKey", "404"):
                raise TransportError(f"S3 object not found: {blob_id}", backend="s3") from e
            raise TransportError(f"S3 download of {blob_id} failed: {e}", backend="s3") from e
        except BotoCoreError as e:
            raise TransportError(f"S3 download of {blob_id} failed: {e}", backend="s3") from e

        logger.debug("Downloaded document from S3", extra={"key": blob_id, "bytes": len(data)})
        return data

    async def locate(self, name: str) -> Optional[str]:
        """Return the object key for name if the object exists.

        Raises:
            TransportError: If S3 is unreachable or denies the request
        """
        client = await self._get_client()
        key = self.object_key(name)
        try:
            await client.head_object(Bucket=self.config.bucket, Key=key)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code in ("NoSuchKey", "NotFound", "404"):
                return None
            raise TransportError(f"S3 lookup of {key} failed: {e}", backend="s3") from e
        except BotoCoreError as e:
            raise TransportError(f"S3 lookup of {key} failed: {e}", backend="s3") from e
        return key

    async def close(self) -> None:
        """Close the S3 client."""
        if self._client is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None
            logger.debug("S3 client closed")

    async def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        self._session = get_session()
        client_kwargs: dict[str, Any] = {"region_name": self.config.region}
        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url
        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        try:
            self._client = await self._client_ctx.__aenter__()
        except BotoCoreError as e:
            self._client_ctx = None
            raise TransportError(f"Failed to create S3 client: {e}", backend="s3") from e
        return self._client
