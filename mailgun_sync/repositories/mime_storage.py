"""S3 storage for locally cached raw MIME messages."""

import uuid

import aioboto3
from aiobotocore.config import AioConfig
from botocore.exceptions import ClientError

from mailgun_sync.config import Settings, settings
from mailgun_sync.logging.config import get_logger
from mailgun_sync.repositories.base import get_aws_config

logger = get_logger(__name__)


class MimeStorage:
    """
    Blob store for MIME content downloaded before provider storage expires.

    Each blob gets a random key under its event key, so rewriting a blob
    never clobbers one an in-flight resubmit is reading.
    """

    def __init__(self, config: Settings | None = None) -> None:
        """
        Initialize MimeStorage.

        Args:
            config: Settings for bucket, endpoint and credentials
        """
        self.config = config or settings
        self.bucket = self.config.mime_bucket
        self.session = aioboto3.Session()

    def _client(self):
        return self.session.client(
            "s3",
            config=AioConfig(s3={"addressing_style": "path"}),
            **get_aws_config(self.config, "s3"),
        )

    async def put(self, event_key: str, content: bytes) -> str:
        """
        Store MIME content for an event.

        Args:
            event_key: Event the content belongs to
            content: Raw MIME bytes

        Returns:
            Blob key of the stored content
        """
        key = f"events/{event_key}/{uuid.uuid4().hex}.eml"
        async with self._client() as s3:
            await s3.put_object(
                Bucket=self.bucket, Key=key, Body=content, ContentType="message/rfc822"
            )
        logger.info(
            "Stored MIME content",
            extra={"context": {"event_key": event_key, "blob_key": key, "size": len(content)}},
        )
        return key

    async def get(self, key: str) -> bytes | None:
        """
        Read MIME content.

        Args:
            key: Blob key

        Returns:
            Content, or None if the blob does not exist
        """
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                    return None
                raise
            async with response["Body"] as stream:
                return await stream.read()

    async def exists(self, key: str) -> bool:
        """Whether a non-empty blob exists under the key."""
        async with self._client() as s3:
            try:
                response = await s3.head_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                    return False
                raise
            return response.get("ContentLength", 0) > 0

    async def delete(self, key: str) -> None:
        async with self._client() as s3:
            await s3.delete_object(Bucket=self.bucket, Key=key)
